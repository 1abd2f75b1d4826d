"""Free-text sector label classification against the fixed sector taxonomy.

Lookup order is alias table, canonical slug, then bounded edit distance.
Callers should treat anything below ``MIN_CONFIDENCE`` as unrecognized.
"""

from __future__ import annotations

from dataclasses import dataclass
import math
import re
from typing import Dict, Tuple


CANONICAL_SECTORS: Tuple[str, ...] = (
    "agriculture",
    "buildings",
    "fluorinated_gases",
    "forestry_and_land_use",
    "fossil_fuel_operations",
    "manufacturing",
    "mineral_extraction",
    "power",
    "transport",
    "waste",
)

MIN_CONFIDENCE = 0.7

_SEPARATORS = re.compile(r"[_\-]+")
_NON_WORD = re.compile(r"[^\w ]|_")
_WHITESPACE = re.compile(r"\s+")


def normalize_label(label: object) -> str:
    """Lowercase, fold separators and punctuation to single spaces, trim."""

    text = "" if label is None else str(label)
    text = _SEPARATORS.sub(" ", text.lower())
    text = _NON_WORD.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()


_RAW_ALIASES: Dict[str, str] = {
    "fluorinated gases": "fluorinated_gases",
    "f-gases": "fluorinated_gases",
    "f gas": "fluorinated_gases",
    "forestry and land use": "forestry_and_land_use",
    "forestry&landuse": "forestry_and_land_use",
    "forestry land use": "forestry_and_land_use",
    "land use": "forestry_and_land_use",
    "oil and gas": "fossil_fuel_operations",
    "oil & gas": "fossil_fuel_operations",
    "fossil fuel operations": "fossil_fuel_operations",
    "mineral extraction": "mineral_extraction",
    "mineral extractiong": "mineral_extraction",
    "mining": "mineral_extraction",
    "transportation": "transport",
    "transportatn": "transport",
    "transportn": "transport",
    "electricity": "power",
}

# Keys are stored pre-normalized so "Oil & Gas" and "oil-and-gas" hit the same entry.
ALIASES: Dict[str, str] = {normalize_label(key): slug for key, slug in _RAW_ALIASES.items()}


@dataclass(frozen=True)
class SectorMatch:
    slug: str | None
    confidence: float
    original: str

    @property
    def recognized(self) -> bool:
        return self.slug is not None and self.confidence >= MIN_CONFIDENCE


def levenshtein(a: str, b: str) -> int:
    """Classic edit distance with unit insert/delete/substitute costs."""

    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def classify(raw_label: object) -> SectorMatch:
    original = "" if raw_label is None else str(raw_label)
    key = normalize_label(original)

    if key in ALIASES:
        return SectorMatch(slug=ALIASES[key], confidence=1.0, original=original)

    underscored = key.replace(" ", "_")
    if underscored in CANONICAL_SECTORS:
        return SectorMatch(slug=underscored, confidence=1.0, original=original)

    best_slug: str | None = None
    best_distance = math.inf
    for candidate in CANONICAL_SECTORS:
        distance = levenshtein(underscored, candidate)
        if distance < best_distance:
            best_slug, best_distance = candidate, distance

    max_len = max(len(underscored), len(best_slug or "")) or 1
    threshold = min(3, math.ceil(0.25 * max_len))
    if best_slug is not None and best_distance <= threshold:
        confidence = max(0.6, 1 - best_distance / max_len)
        return SectorMatch(slug=best_slug, confidence=confidence, original=original)

    return SectorMatch(slug=None, confidence=0.0, original=original)


def sector_display_name(slug: str) -> str:
    return slug.replace("_", " ")


__all__ = [
    "ALIASES",
    "CANONICAL_SECTORS",
    "MIN_CONFIDENCE",
    "SectorMatch",
    "classify",
    "levenshtein",
    "normalize_label",
    "sector_display_name",
]
