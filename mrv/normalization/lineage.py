"""Lineage helpers used by the ingestion pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass
import hashlib
from typing import Mapping


@dataclass(frozen=True)
class LineageInput:
    """Represents the uploaded file participating in an import."""

    filename: str | None
    checksum_sha256: str
    adapter: str
    row_count: int | None = None


def compute_checksum(payload: bytes) -> str:
    """Return the hex SHA-256 digest of an in-memory upload."""

    return hashlib.sha256(payload).hexdigest()


def build_lineage_payload(
    *,
    dataset_id: str,
    import_job_id: str,
    source: LineageInput,
    metadata: Mapping[str, object] | None = None,
) -> dict:
    """Compose the lineage payload wiring an upload to its dataset and job."""

    payload = {
        "dataset_id": dataset_id,
        "import_job_id": import_job_id,
        "input": asdict(source),
    }
    if metadata:
        payload["metadata"] = dict(metadata)
    return payload


__all__ = ["LineageInput", "build_lineage_payload", "compute_checksum"]
