"""CSV upload → header list + row mappings."""

from __future__ import annotations

import csv
from dataclasses import dataclass, field
import io
from typing import Dict, List, Sequence


class EmptyUploadError(ValueError):
    """Raised when an upload carries no data rows."""


class MalformedUploadError(ValueError):
    """Raised when an upload is not valid UTF-8 text."""


@dataclass(frozen=True)
class ParsedCsv:
    headers: List[str]
    rows: List[Dict[str, str]] = field(default_factory=list)


def parse_csv(payload: bytes | str, *, max_rows: int | None = None) -> ParsedCsv:
    """Parse a CSV buffer whose first row holds the column names.

    Keys and values are trimmed, fully empty lines are skipped and at most
    ``max_rows`` data rows are returned. Raises :class:`EmptyUploadError`
    when nothing remains and :class:`MalformedUploadError` when the bytes
    do not decode as UTF-8.
    """

    if not payload:
        raise EmptyUploadError("CSV file is required")
    if isinstance(payload, bytes):
        try:
            text = payload.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise MalformedUploadError(f"CSV is not valid UTF-8 (byte {exc.start})") from exc
    else:
        text = payload
    reader = csv.DictReader(io.StringIO(text))

    rows: List[Dict[str, str]] = []
    for record in reader:
        cleaned = {
            str(key).strip(): (value.strip() if isinstance(value, str) else "")
            for key, value in record.items()
            if key is not None
        }
        if not any(cleaned.values()):
            continue
        rows.append(cleaned)
        if max_rows is not None and len(rows) >= max_rows:
            break

    if not rows:
        raise EmptyUploadError("Empty CSV")
    return ParsedCsv(headers=list(rows[0].keys()), rows=rows)


def normalize_headers(headers: Sequence[str]) -> Dict[str, str]:
    """Map each original header to its lowercase trimmed key."""

    return {header: header.strip().lower() for header in headers}


def rekey_row(row: Dict[str, str], header_map: Dict[str, str]) -> Dict[str, str]:
    return {header_map.get(key, key.strip().lower()): value for key, value in row.items()}


__all__ = ["EmptyUploadError", "MalformedUploadError", "ParsedCsv", "normalize_headers", "parse_csv", "rekey_row"]
