"""Reported vs observed reconciliation and the keyword-driven variance breakdown."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import re
from typing import Any, Dict, List, Optional, Pattern

import pandas as pd

from mrv.storage.store import ObservationStore

from .frames import observations_frame


LOGGER = logging.getLogger(__name__)

# Share of the row's tonnes attributed to each matched keyword bucket.
ADJUSTMENT_WEIGHT = 0.15
# Adjustments smaller than this (in tonnes, absolute) are reported as zero.
ADJUSTMENT_FLOOR_TONNES = 1.0


@dataclass(frozen=True)
class AdjustmentBucket:
    key: str
    label: str
    pattern: Pattern[str]
    sign: int


ADJUSTMENT_BUCKETS = (
    AdjustmentBucket("measuredAdj", "Measured vs Calculated", re.compile(r"measure", re.I), 1),
    AdjustmentBucket("calcAdj", "Calculated/Model factors", re.compile(r"calc|model|factor", re.I), -1),
    AdjustmentBucket("estAdj", "Estimation & gaps", re.compile(r"estimate|assum|gap", re.I), -1),
    AdjustmentBucket("biogenicAdj", "Biogenic carve-out", re.compile(r"biogenic", re.I), -1),
    AdjustmentBucket("ventingAdj", "Venting & flaring", re.compile(r"vent|flare", re.I), 1),
    AdjustmentBucket("scopeAdj", "Scope/boundary", re.compile(r"scope\s*[23]|boundary", re.I), 1),
)


def _max_version(values: pd.Series) -> Optional[str]:
    tags = [str(value) for value in values if isinstance(value, str) and value]
    return max(tags) if tags else None


def _percent(delta: float, observed: float) -> Optional[float]:
    if observed > 0:
        return 100.0 * delta / observed
    return None


def _scoped_frame(store: ObservationStore, facility_id: str | None) -> pd.DataFrame:
    if facility_id is not None:
        # Raises ObservationNotFound for an unknown facility.
        store.get_facility(facility_id)
    return observations_frame(store, store.list_observations(facility_id=facility_id))


def reconcile(store: ObservationStore, facility_id: str | None = None) -> List[Dict[str, Any]]:
    """Per-year observed and reported totals, ordered by year.

    Missing sources count as zero. ``pct`` is ``None`` whenever the observed
    total is not positive. The lexicographically newest dataset version of
    each side is carried along for audit only.
    """

    frame = _scoped_frame(store, facility_id)
    if frame.empty:
        return []

    grouped = frame.groupby(["year", "source"], sort=True).agg(
        tonnes=("co2e_tonnes", "sum"),
        version=("dataset_version", _max_version),
    )
    rows: List[Dict[str, Any]] = []
    for year in sorted(frame["year"].unique()):
        observed = float(grouped["tonnes"].get((year, "observed"), 0.0))
        reported = float(grouped["tonnes"].get((year, "reported"), 0.0))
        delta = reported - observed
        rows.append(
            {
                "year": int(year),
                "observed": observed,
                "reported": reported,
                "delta": delta,
                "pct": _percent(delta, observed),
                "observed_version": grouped["version"].get((year, "observed")),
                "reported_version": grouped["version"].get((year, "reported")),
            }
        )
    LOGGER.debug("Reconciled %d year(s) for facility=%s", len(rows), facility_id or "*")
    return rows


def explain(
    store: ObservationStore,
    facility_id: str | None = None,
    year: int | None = None,
) -> Dict[str, Any]:
    """Waterfall from observed to reported for one year.

    Each reported row whose method or notes mention a bucket keyword contributes
    ``ADJUSTMENT_WEIGHT`` of its tonnes to that bucket, signed. The residual
    closes the gap so ``observed + adjustments + residual == reported``.
    This is a keyword heuristic, not a causal attribution.
    """

    frame = _scoped_frame(store, facility_id)
    if frame.empty:
        return {"facility_id": facility_id, "year": None, "breakdown": [], "meta": {"note": "no data"}}

    if year is None:
        year = int(frame["year"].max())
    selected = frame[frame["year"] == int(year)]

    observed = float(selected.loc[selected["source"] == "observed", "co2e_tonnes"].sum())
    reported = float(selected.loc[selected["source"] == "reported", "co2e_tonnes"].sum())

    totals = {bucket.key: 0.0 for bucket in ADJUSTMENT_BUCKETS}
    for record in selected[selected["source"] == "reported"].itertuples(index=False):
        text = " ".join(str(part) for part in (record.method, record.notes) if isinstance(part, str))
        if not text:
            continue
        for bucket in ADJUSTMENT_BUCKETS:
            if bucket.pattern.search(text):
                totals[bucket.key] += bucket.sign * ADJUSTMENT_WEIGHT * float(record.co2e_tonnes)

    adjustments = {
        key: (value if abs(value) >= ADJUSTMENT_FLOOR_TONNES else 0.0) for key, value in totals.items()
    }
    residual = reported - observed - sum(adjustments.values())

    breakdown: List[Dict[str, Any]] = [{"key": "observed", "label": "Observed", "value": observed, "kind": "base"}]
    for bucket in ADJUSTMENT_BUCKETS:
        breakdown.append(
            {"key": bucket.key, "label": bucket.label, "value": adjustments[bucket.key], "kind": "delta"}
        )
    breakdown.append({"key": "residual", "label": "Residual", "value": residual, "kind": "delta"})
    breakdown.append({"key": "reported", "label": "Reported", "value": reported, "kind": "final"})

    return {
        "facility_id": facility_id,
        "year": int(year),
        "breakdown": breakdown,
        "meta": {
            "observed": observed,
            "reported": reported,
            "delta": reported - observed,
            "heuristic": True,
            "weight": ADJUSTMENT_WEIGHT,
        },
    }


__all__ = [
    "ADJUSTMENT_BUCKETS",
    "ADJUSTMENT_FLOOR_TONNES",
    "ADJUSTMENT_WEIGHT",
    "AdjustmentBucket",
    "explain",
    "reconcile",
]
