"""Year / month extraction from loosely formatted time fields."""

from __future__ import annotations

import re
from typing import Any, Dict

_YEAR_PREFIX = re.compile(r"^(\d{4})")
_MONTH_PREFIX = re.compile(r"^\d{4}-(\d{2})")

GRANULARITY_ALIASES: Dict[str, str] = {
    "annual": "annual",
    "year": "annual",
    "yr": "annual",
    "y": "annual",
    "monthly": "monthly",
    "month": "monthly",
    "mo": "monthly",
    "m": "monthly",
}


def extract_year(value: Any) -> int | None:
    """Return the leading 4-digit year of ``value`` or ``None``."""

    match = _YEAR_PREFIX.match(str(value or "").strip())
    return int(match.group(1)) if match else None


def extract_month(value: Any) -> int | None:
    """Return the month of a ``YYYY-MM...`` value when it lies in 1..12."""

    match = _MONTH_PREFIX.match(str(value or "").strip())
    if not match:
        return None
    month = int(match.group(1))
    return month if 1 <= month <= 12 else None


def normalize_granularity(value: Any, default: str = "annual") -> str | None:
    text = str(value or "").strip().lower() or default
    return GRANULARITY_ALIASES.get(text)


__all__ = ["GRANULARITY_ALIASES", "extract_month", "extract_year", "normalize_granularity"]
