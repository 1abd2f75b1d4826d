"""Declared quantity units → tonnes CO2-equivalent."""

from __future__ import annotations

import math
from typing import Dict


class ConversionError(ValueError):
    """Base class for quantities that cannot be expressed in tonnes CO2e."""


class UnsupportedUnit(ConversionError):
    """Raised when a declared unit has no known conversion factor."""

    def __init__(self, unit: object) -> None:
        super().__init__(f"Unsupported unit: {unit!r}")
        self.unit = unit


class MassOverflow(ConversionError):
    """Raised when a converted mass is not a finite number of tonnes."""

    def __init__(self, tonnes: float) -> None:
        super().__init__(f"Converted mass is not finite: {tonnes!r} tonnes")
        self.tonnes = tonnes


DEFAULT_UNIT = "tonnes_co2e"

UNIT_FACTORS: Dict[str, float] = {
    "": 1.0,
    "t": 1.0,
    "tco2e": 1.0,
    "t_co2e": 1.0,
    "tonnes": 1.0,
    "tonnes_co2e": 1.0,
    "kt": 1_000.0,
    "ktco2e": 1_000.0,
    "kilotonnes_co2e": 1_000.0,
    "mt": 1_000_000.0,
    "mtco2e": 1_000_000.0,
    "megatonnes_co2e": 1_000_000.0,
}


def to_canonical_mass(quantity: float, unit: str | None) -> float:
    """Convert ``quantity`` expressed in ``unit`` to tonnes CO2e.

    Only whitelisted units are accepted; anything else raises
    :class:`UnsupportedUnit` instead of guessing a factor. A product that
    overflows raises :class:`MassOverflow`.
    """

    key = (unit or "").strip().lower()
    try:
        factor = UNIT_FACTORS[key]
    except KeyError as exc:
        raise UnsupportedUnit(unit) from exc
    tonnes = float(quantity) * factor
    if not math.isfinite(tonnes):
        raise MassOverflow(tonnes)
    return tonnes


__all__ = [
    "ConversionError",
    "DEFAULT_UNIT",
    "MassOverflow",
    "UNIT_FACTORS",
    "UnsupportedUnit",
    "to_canonical_mass",
]
