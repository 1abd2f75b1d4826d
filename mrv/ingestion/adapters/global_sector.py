"""Global sector-aggregate CSV rows → synthetic facilities + observed annual totals."""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, Hashable, Mapping, Sequence, Tuple

from mrv.normalization.periods import extract_month, extract_year, normalize_granularity
from mrv.normalization.sector import MIN_CONFIDENCE, classify, sector_display_name
from mrv.normalization.units import DEFAULT_UNIT, to_canonical_mass
from mrv.storage.models import Facility, Observation
from mrv.storage.store import ObservationStore

from .base import FormatAdapter, UpsertResult, ValidationResult, header_set, resolve_duplicate


LOGGER = logging.getLogger(__name__)

METHOD = "global_sector_aggregate"
FACILITY_KIND = "sector_aggregate"


def synthetic_facility_name(sector_slug: str, subsector: str | None) -> str:
    """Deterministic facility name so repeated commits reuse the same record."""

    label = f"{sector_slug} {subsector}" if subsector else sector_slug
    return f"{label} (sector aggregate)"


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class GlobalSectorAdapter(FormatAdapter):
    """Country-level sector emissions that fold into one observed total per year."""

    key = "global_sector"
    default_dataset_name = "Global Sector Emissions"
    default_source = "global_sector"
    aggregates = True

    REQUIRED_HEADERS = frozenset({"iso3_country", "start_time", "emissions_quantity"})

    def detect(self, headers: Sequence[str]) -> bool:
        return self.REQUIRED_HEADERS <= header_set(headers)

    def validate(self, row: Mapping[str, Any]) -> ValidationResult:
        match = classify(row.get("sector"))
        if not match.recognized:
            return ValidationResult.failure(
                "unrecognized_sector",
                {"raw_sector": row.get("sector"), "confidence": match.confidence},
            )

        subsector = str(row.get("subsector") or "").strip() or None
        time_field = row.get("start_time") or row.get("start") or row.get("year")
        year = extract_year(time_field)
        if year is None:
            return ValidationResult.failure("bad_year")

        raw_granularity = str(row.get("temporal_granularity") or "").strip().lower()
        granularity = normalize_granularity(raw_granularity)
        if granularity is None:
            return ValidationResult.failure("unsupported_granularity", {"granularity": raw_granularity})

        raw_quantity = row.get("emissions_quantity")
        if _blank(raw_quantity):
            return ValidationResult.failure("missing_quantity")
        try:
            quantity = float(raw_quantity)
        except (TypeError, ValueError):
            return ValidationResult.failure("non_numeric_quantity")
        if not math.isfinite(quantity):
            return ValidationResult.failure("non_numeric_quantity")

        month = None
        if granularity == "monthly":
            month = extract_month(row.get("start_time"))
            if month is None:
                return ValidationResult.failure("bad_month")

        return ValidationResult.success(
            sector_slug=match.slug,
            subsector=subsector,
            year=year,
            month=month,
            granularity=granularity,
            quantity=quantity,
            unit=str(row.get("emissions_quantity_units") or "").strip() or DEFAULT_UNIT,
            country=str(row.get("iso3_country") or "").strip() or None,
            meta={"original_sector": match.original, "sector_confidence": match.confidence},
        )

    def aggregation_key(self, candidate: Mapping[str, Any]) -> Hashable:
        key: Tuple[str, str, int] = (
            candidate["sector_slug"],
            candidate.get("subsector") or "",
            int(candidate["year"]),
        )
        return key

    def quantity_tonnes(self, candidate: Mapping[str, Any]) -> float:
        return to_canonical_mass(candidate["quantity"], candidate.get("unit"))

    def upsert(
        self,
        store: ObservationStore,
        candidate: Mapping[str, Any],
        *,
        dataset_version: str,
        duplicate_policy: str,
    ) -> UpsertResult:
        tonnes = candidate.get("tonnes")
        if tonnes is None:
            tonnes = self.quantity_tonnes(candidate)

        sector_slug = candidate["sector_slug"]
        subsector = candidate.get("subsector")
        sector = store.upsert_sector(sector_slug, sector_display_name(sector_slug))
        facility = self._ensure_facility(store, candidate, sector_id=sector.sector_id)

        # Sub-annual rows are already folded, so the key is always annual.
        observation, created = store.insert_observation_if_absent(
            Observation(
                facility_id=facility.facility_id,
                year=int(candidate["year"]),
                co2e_tonnes=float(tonnes),
                scope=1,
                source="observed",
                method=METHOD,
                dataset_version=dataset_version,
            )
        )
        if not created:
            return resolve_duplicate(
                store,
                observation,
                dataset_version=dataset_version,
                duplicate_policy=duplicate_policy,
                updates={"co2e_tonnes": float(tonnes), "method": METHOD},
            )

        LOGGER.debug(
            "Inserted observed total %.3f t for %s/%s %s",
            observation.co2e_tonnes,
            sector_slug,
            subsector or "-",
            observation.year,
        )
        return UpsertResult(action="inserted", observation_id=observation.observation_id)

    def _ensure_facility(
        self,
        store: ObservationStore,
        candidate: Mapping[str, Any],
        *,
        sector_id: str,
    ) -> Facility:
        sector_slug = candidate["sector_slug"]
        subsector = candidate.get("subsector")
        name = synthetic_facility_name(sector_slug, subsector)
        facility = store.find_facility_by_name(name)
        if facility is not None:
            return facility

        meta: Dict[str, Any] = dict(candidate.get("meta") or {})
        return store.create_facility(
            Facility(
                name=name,
                sector_id=sector_id,
                meta={
                    "kind": FACILITY_KIND,
                    "sector": sector_slug,
                    "subsector": subsector,
                    "origin": {
                        "original_sector": meta.get("original_sector"),
                        "sector_confidence": meta.get("sector_confidence"),
                        "example_country": candidate.get("country"),
                    },
                    "units_seen": candidate.get("unit"),
                },
            )
        )


__all__ = ["GlobalSectorAdapter", "METHOD", "synthetic_facility_name"]
