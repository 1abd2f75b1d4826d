"""Robust (median/MAD) anomaly flags over annual emissions series."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Sequence

import numpy as np

from mrv.storage.models import OBSERVATION_SOURCES
from mrv.storage.store import ObservationStore

from .frames import annual_series, observations_frame


LOGGER = logging.getLogger(__name__)

DEFAULT_Z = 3.5
MIN_POINTS = 5
# Scales the MAD to a standard-deviation estimate for normal data.
MAD_SCALE = 1.4826
MAD_EPSILON = 1e-9


def detect_anomalies(series: Sequence[Mapping[str, Any]], z: float = DEFAULT_Z) -> List[Dict[str, Any]]:
    """Flag points whose robust z-score is at least ``z``.

    ``series`` holds ``{"year", "value"}`` points. Fewer than
    ``MIN_POINTS`` points never produce flags. A zero MAD is replaced by a
    tiny epsilon, so any deviation from a perfectly flat series is flagged.
    """

    if len(series) < MIN_POINTS:
        return []

    values = np.asarray([float(point["value"]) for point in series], dtype=float)
    median = float(np.median(values))
    mad = float(np.median(np.abs(values - median))) or MAD_EPSILON
    scores = np.abs(values - median) / (MAD_SCALE * mad)

    flagged: List[Dict[str, Any]] = []
    for point, score in zip(series, scores):
        if score >= z:
            flagged.append(
                {
                    "year": int(point["year"]),
                    "value": float(point["value"]),
                    "score": float(score),
                    "median": median,
                    "mad": mad,
                }
            )
    return flagged


def _check_source(source: str) -> None:
    if source not in OBSERVATION_SOURCES:
        raise ValueError(f"Unknown observation source '{source}'")


def facility_series(store: ObservationStore, facility_id: str, source: str = "reported") -> List[Dict[str, Any]]:
    """Annual totals for one facility; monthly rows are summed into their year."""

    _check_source(source)
    store.get_facility(facility_id)
    frame = observations_frame(store, store.list_observations(facility_id=facility_id, source=source))
    return annual_series(frame)


def sector_series(store: ObservationStore, sector_code: str, source: str = "reported") -> List[Dict[str, Any]]:
    """Annual totals summed across every facility in the sector."""

    _check_source(source)
    frame = observations_frame(store, store.list_observations(source=source))
    if frame.empty:
        return []
    return annual_series(frame[frame["sector_code"] == sector_code])


def anomaly_report(
    store: ObservationStore,
    *,
    facility_id: str | None = None,
    sector: str | None = None,
    source: str = "reported",
    z: float = DEFAULT_Z,
) -> Dict[str, Any]:
    if (facility_id is None) == (sector is None):
        raise ValueError("Exactly one of facility_id or sector is required")

    if facility_id is not None:
        points = facility_series(store, facility_id, source)
    else:
        points = sector_series(store, str(sector), source)
    anomalies = detect_anomalies(points, z)
    LOGGER.info(
        "Anomaly scan %s=%s source=%s: %d point(s), %d flagged",
        "facility" if facility_id is not None else "sector",
        facility_id or sector,
        source,
        len(points),
        len(anomalies),
    )
    return {"source": source, "z": z, "points": points, "anomalies": anomalies}


__all__ = [
    "DEFAULT_Z",
    "MAD_SCALE",
    "MIN_POINTS",
    "anomaly_report",
    "detect_anomalies",
    "facility_series",
    "sector_series",
]
