"""Per-facility trend and the method/version timeline of stored observations."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

import pandas as pd

from mrv.storage.store import ObservationStore

from .frames import observations_frame


LOGGER = logging.getLogger(__name__)


def facility_trend(store: ObservationStore, facility_id: str) -> Dict[str, Any]:
    """Annual totals per ``(year, source)`` for one facility, monthly rows folded in."""

    # Raises ObservationNotFound for an unknown facility.
    store.get_facility(facility_id)
    frame = observations_frame(store, store.list_observations(facility_id=facility_id))
    rows: List[Dict[str, Any]] = []
    if not frame.empty:
        totals = frame.groupby(["year", "source"], sort=True)["co2e_tonnes"].sum()
        rows = [
            {"year": int(year), "source": str(source), "co2e_tonnes": float(value)}
            for (year, source), value in totals.items()
        ]
    return {"facility_id": facility_id, "rows": rows}


def method_timeline(
    store: ObservationStore,
    facility_id: str | None = None,
    start_year: int | None = None,
    end_year: int | None = None,
) -> Dict[str, Any]:
    """Method, source and dataset version of every observation, oldest first.

    Both year bounds are inclusive and optional. Annual rows (no month) sort
    ahead of the monthly rows of the same year.
    """

    if start_year is not None and end_year is not None and start_year > end_year:
        raise ValueError(f"Invalid year range {start_year}..{end_year}")

    frame = observations_frame(store, store.list_observations(facility_id=facility_id))
    if start_year is not None:
        frame = frame[frame["year"] >= start_year]
    if end_year is not None:
        frame = frame[frame["year"] <= end_year]
    if frame.empty:
        return {"facility_id": facility_id, "rows": []}

    ordered = frame.sort_values(["year", "month", "source"], na_position="first", kind="stable")
    rows = [
        {
            "year": int(record.year),
            "month": None if pd.isna(record.month) else int(record.month),
            "method": _text_or_none(record.method),
            "source": record.source,
            "dataset_version": _text_or_none(record.dataset_version),
        }
        for record in ordered.itertuples(index=False)
    ]
    LOGGER.debug("Method timeline for facility=%s: %d row(s)", facility_id or "*", len(rows))
    return {"facility_id": facility_id, "rows": rows}


def _text_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


__all__ = ["facility_trend", "method_timeline"]
