"""Read-only analytics over the normalized observation store."""

from .anomaly import anomaly_report, detect_anomalies, facility_series, sector_series
from .overview import overview_by_sector, sector_deep_dive
from .reconciliation import explain, reconcile
from .timeline import facility_trend, method_timeline

__all__ = [
    "anomaly_report",
    "detect_anomalies",
    "explain",
    "facility_series",
    "facility_trend",
    "method_timeline",
    "overview_by_sector",
    "reconcile",
    "sector_deep_dive",
    "sector_series",
]
