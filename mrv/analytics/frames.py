"""Observation store → pandas frames used by the analytics readers."""

from __future__ import annotations

from typing import Dict, Iterable, List

import pandas as pd

from mrv.storage.models import Facility, Observation
from mrv.storage.store import ObservationNotFound, ObservationStore


OBSERVATION_COLUMNS = (
    "facility_id",
    "year",
    "month",
    "source",
    "co2e_tonnes",
    "method",
    "notes",
    "dataset_version",
    "sector_code",
    "subsector",
)


def facility_sector_code(store: ObservationStore, facility: Facility) -> str | None:
    """Sector code of a facility; synthetic facilities fall back to ``meta.sector``."""

    if facility.sector_id:
        sector = store.get_sector(facility.sector_id)
        if sector is not None:
            return sector.code
    code = (facility.meta or {}).get("sector")
    return str(code) if code else None


def facility_subsector(facility: Facility) -> str | None:
    subsector = (facility.meta or {}).get("subsector")
    return str(subsector) if subsector else None


def observations_frame(
    store: ObservationStore,
    observations: Iterable[Observation],
) -> pd.DataFrame:
    sector_codes: Dict[str, str | None] = {}
    subsectors: Dict[str, str | None] = {}
    rows: List[dict] = []
    for observation in observations:
        if observation.facility_id not in sector_codes:
            facility = _facility_or_none(store, observation.facility_id)
            sector_codes[observation.facility_id] = (
                facility_sector_code(store, facility) if facility is not None else None
            )
            subsectors[observation.facility_id] = (
                facility_subsector(facility) if facility is not None else None
            )
        rows.append(
            {
                "facility_id": observation.facility_id,
                "year": int(observation.year),
                "month": observation.month,
                "source": observation.source,
                "co2e_tonnes": float(observation.co2e_tonnes),
                "method": observation.method,
                "notes": observation.notes,
                "dataset_version": observation.dataset_version,
                "sector_code": sector_codes[observation.facility_id],
                "subsector": subsectors[observation.facility_id],
            }
        )
    return pd.DataFrame.from_records(rows, columns=list(OBSERVATION_COLUMNS))


def _facility_or_none(store: ObservationStore, facility_id: str) -> Facility | None:
    try:
        return store.get_facility(facility_id)
    except ObservationNotFound:
        return None


def annual_series(frame: pd.DataFrame) -> List[dict]:
    """Fold monthly and annual rows into one ``{year, value}`` point per year."""

    if frame.empty:
        return []
    totals = frame.groupby("year", sort=True)["co2e_tonnes"].sum()
    return [{"year": int(year), "value": float(value)} for year, value in totals.items()]


__all__ = [
    "OBSERVATION_COLUMNS",
    "annual_series",
    "facility_sector_code",
    "facility_subsector",
    "observations_frame",
]
