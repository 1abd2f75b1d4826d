"""Normalization utilities: sector taxonomy, units, periods and lineage."""

from .lineage import LineageInput, build_lineage_payload, compute_checksum
from .periods import extract_month, extract_year, normalize_granularity
from .sector import MIN_CONFIDENCE, SectorMatch, classify
from .units import ConversionError, MassOverflow, UnsupportedUnit, to_canonical_mass

__all__ = [
    "ConversionError",
    "LineageInput",
    "MIN_CONFIDENCE",
    "MassOverflow",
    "SectorMatch",
    "UnsupportedUnit",
    "build_lineage_payload",
    "classify",
    "compute_checksum",
    "extract_month",
    "extract_year",
    "normalize_granularity",
    "to_canonical_mass",
]
