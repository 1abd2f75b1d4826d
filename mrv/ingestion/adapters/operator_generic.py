"""Operator self-reported facility emissions, one observation per row."""

from __future__ import annotations

import math
from typing import Any, Dict, Mapping, Sequence

from mrv.storage.models import OBSERVATION_SOURCES, SCOPES, Observation
from mrv.storage.store import ObservationStore

from .base import FormatAdapter, UpsertResult, ValidationResult, header_set, resolve_duplicate


TONNES_COLUMNS = ("co2e_tonnes", "co2e", "tco2e", "co2e_t")


def _number(value: Any) -> float | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _present(value: Any) -> bool:
    return value is not None and str(value).strip() != ""


class OperatorGenericAdapter(FormatAdapter):
    """Rows keyed by an existing facility name; unknown facilities are skipped, never created."""

    key = "operator_generic"
    default_dataset_name = "Operator Upload"
    default_source = "operator"

    def detect(self, headers: Sequence[str]) -> bool:
        columns = header_set(headers)
        return "facility_name" in columns and "year" in columns and any(c in columns for c in TONNES_COLUMNS)

    def validate(self, row: Mapping[str, Any]) -> ValidationResult:
        name = str(row.get("facility_name") or "").strip()
        if not name:
            return ValidationResult.failure("missing_facility_name")

        year = _number(row.get("year"))
        if year is None or not year.is_integer():
            return ValidationResult.failure("bad_year", {"year": row.get("year")})

        month = None
        if _present(row.get("month")):
            month_value = _number(row.get("month"))
            if month_value is None or not month_value.is_integer() or not 1 <= month_value <= 12:
                return ValidationResult.failure("bad_month", {"month": row.get("month")})
            month = int(month_value)

        raw_tonnes = next((row.get(c) for c in TONNES_COLUMNS if _present(row.get(c))), None)
        tonnes = _number(raw_tonnes)
        if tonnes is None:
            return ValidationResult.failure("bad_tonnes")

        scope = None
        if _present(row.get("scope")):
            scope_value = _number(row.get("scope"))
            if scope_value is None or scope_value not in SCOPES:
                return ValidationResult.failure("bad_scope", {"scope": row.get("scope")})
            scope = int(scope_value)

        source = str(row.get("source") or "reported").strip().lower() or "reported"
        if source not in OBSERVATION_SOURCES:
            return ValidationResult.failure("bad_source", {"source": source})

        return ValidationResult.success(
            facility_name=name,
            year=int(year),
            month=month,
            tonnes=tonnes,
            source=source,
            scope=scope,
            method=str(row.get("method") or "").strip() or None,
            notes=str(row.get("notes") or "").strip() or None,
        )

    def upsert(
        self,
        store: ObservationStore,
        candidate: Mapping[str, Any],
        *,
        dataset_version: str,
        duplicate_policy: str,
    ) -> UpsertResult:
        facility = store.find_facility_by_name(candidate["facility_name"])
        if facility is None:
            return UpsertResult(action="skip_unknown_facility")

        observation, created = store.insert_observation_if_absent(
            Observation(
                facility_id=facility.facility_id,
                year=int(candidate["year"]),
                month=candidate.get("month"),
                co2e_tonnes=float(candidate["tonnes"]),
                scope=candidate.get("scope") or 1,
                source=candidate["source"],
                method=candidate.get("method"),
                notes=candidate.get("notes"),
                dataset_version=dataset_version,
            )
        )
        if created:
            return UpsertResult(action="inserted", observation_id=observation.observation_id)

        updates: Dict[str, Any] = {
            "co2e_tonnes": float(candidate["tonnes"]),
            "method": candidate.get("method") or observation.method,
            "scope": candidate["scope"] if candidate.get("scope") is not None else observation.scope,
        }
        if candidate.get("notes"):
            updates["notes"] = candidate["notes"]
        return resolve_duplicate(
            store,
            observation,
            dataset_version=dataset_version,
            duplicate_policy=duplicate_policy,
            updates=updates,
        )


__all__ = ["OperatorGenericAdapter", "TONNES_COLUMNS"]
