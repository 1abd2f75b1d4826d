"""Observed emissions by sector and year, plus the per-sector deep dive."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List

import pandas as pd

from mrv.storage.store import ObservationStore

from .frames import observations_frame


DEFAULT_START_YEAR = 2015
DEFAULT_END_YEAR = 2025
UNASSIGNED_SECTOR = "unassigned"

DEEP_DIVE_SPAN_YEARS = 5
TOP_SUBSECTORS = 5
OTHER_SUBSECTOR = "Other"


def _observed_in_range(store: ObservationStore, start_year: int, end_year: int) -> pd.DataFrame:
    if start_year > end_year:
        raise ValueError(f"Invalid year range {start_year}..{end_year}")

    frame = observations_frame(store, store.list_observations(source="observed"))
    if frame.empty:
        return frame
    frame = frame[(frame["year"] >= start_year) & (frame["year"] <= end_year)].copy()
    frame["sector_code"] = frame["sector_code"].fillna(UNASSIGNED_SECTOR)
    return frame


def overview_by_sector(
    store: ObservationStore,
    start_year: int = DEFAULT_START_YEAR,
    end_year: int = DEFAULT_END_YEAR,
) -> Dict[str, Any]:
    """Observed totals per sector per year within ``[start_year, end_year]``.

    Facilities without a linked sector fall back to ``meta.sector``; those with
    neither are grouped under ``"unassigned"``.
    """

    frame = _observed_in_range(store, start_year, end_year)
    series: Dict[str, List[Dict[str, Any]]] = {}
    if frame.empty:
        return {"from": start_year, "to": end_year, "series": series, "years": []}

    totals = frame.groupby(["sector_code", "year"], sort=True)["co2e_tonnes"].sum()
    for (sector_code, year), value in totals.items():
        series.setdefault(str(sector_code), []).append({"year": int(year), "value": float(value)})

    years = sorted({int(year) for year in frame["year"].unique()})
    return {"from": start_year, "to": end_year, "series": series, "years": years}


def sector_deep_dive(
    store: ObservationStore,
    start_year: int | None = None,
    end_year: int | None = None,
) -> Dict[str, Any]:
    """Per-sector observed totals with year-over-year change.

    The range defaults to the last five calendar years through the current
    one. Each sector also lists up to five subsectors ranked by the absolute
    change between its latest year and the one before; facilities without
    ``meta.subsector`` count as ``"Other"``.
    """

    current_year = datetime.now(timezone.utc).year
    if start_year is None:
        start_year = current_year - DEEP_DIVE_SPAN_YEARS
    if end_year is None:
        end_year = current_year

    frame = _observed_in_range(store, start_year, end_year)
    sectors: List[Dict[str, Any]] = []
    if frame.empty:
        return {"from": start_year, "to": end_year, "years": [], "sectors": sectors}

    frame["subsector"] = frame["subsector"].fillna(OTHER_SUBSECTOR)
    for sector_code, sector_frame in frame.groupby("sector_code", sort=True):
        totals = sector_frame.groupby("year", sort=True)["co2e_tonnes"].sum()
        points = [{"year": int(year), "value": float(value)} for year, value in totals.items()]
        changes = _year_over_year(points)
        latest = points[-1]
        previous_year = points[-2]["year"] if len(points) > 1 else None
        sectors.append(
            {
                "sector": str(sector_code),
                "totals": points,
                "yoy": changes,
                "latest": {
                    "year": latest["year"],
                    "value": latest["value"],
                    "pct_change": changes[-1]["pct"] if changes else None,
                    "delta": changes[-1]["delta"] if changes else None,
                },
                "breakdown": _subsector_breakdown(sector_frame, latest["year"], previous_year),
            }
        )

    years = sorted({int(year) for year in frame["year"].unique()})
    return {"from": start_year, "to": end_year, "years": years, "sectors": sectors}


def _year_over_year(points: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    changes: List[Dict[str, Any]] = []
    for previous, current in zip(points, points[1:]):
        delta = current["value"] - previous["value"]
        # No percentage against a zero baseline.
        pct = 100.0 * delta / previous["value"] if previous["value"] else None
        changes.append({"year": current["year"], "delta": delta, "pct": pct})
    return changes


def _subsector_breakdown(
    sector_frame: pd.DataFrame,
    latest_year: int,
    previous_year: int | None,
) -> List[Dict[str, Any]]:
    entries: List[Dict[str, Any]] = []
    for subsector, rows in sector_frame.groupby("subsector", sort=True):
        totals = rows.groupby("year")["co2e_tonnes"].sum()
        current = float(totals.get(latest_year, 0.0))
        previous = float(totals.get(previous_year, 0.0)) if previous_year is not None else 0.0
        if current == 0.0 and previous == 0.0:
            continue
        entries.append(
            {"subsector": str(subsector), "current": current, "previous": previous, "delta": current - previous}
        )
    entries.sort(key=lambda entry: abs(entry["delta"]), reverse=True)
    return entries[:TOP_SUBSECTORS]


__all__ = [
    "DEEP_DIVE_SPAN_YEARS",
    "DEFAULT_END_YEAR",
    "DEFAULT_START_YEAR",
    "TOP_SUBSECTORS",
    "overview_by_sector",
    "sector_deep_dive",
]
