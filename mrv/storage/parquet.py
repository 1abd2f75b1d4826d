"""Deterministic atomic Parquet writing utilities."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Sequence

import pyarrow as pa
import pyarrow.parquet as pq


def write_parquet_atomic(
    records: Sequence[Mapping[str, Any]] | Iterable[Mapping[str, Any]],
    path: Path | str,
    *,
    compression: str = "zstd",
) -> dict[str, Any]:
    """Write records atomically to a Parquet file, returning deterministic metadata."""

    destination = Path(path)
    destination.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = destination.with_name(destination.name + ".tmp")

    materialized, column_order = _materialize_records(records)
    table = pa.Table.from_pylist(materialized)
    if column_order and table.schema.names != column_order:
        table = table.select(column_order)
    pq.write_table(table, tmp_path, compression=compression, use_dictionary=True)

    try:
        pq.read_table(tmp_path)
    except Exception as exc:
        tmp_path.unlink(missing_ok=True)
        raise RuntimeError(f"Parquet verification failed for {destination}: {exc}") from exc

    os.replace(tmp_path, destination)
    return {
        "path": str(destination),
        "file_hash": _sha256_file(destination),
        "bytes_written": destination.stat().st_size,
        "records": len(materialized),
    }


def read_parquet_records(path: Path | str) -> List[Dict[str, Any]]:
    destination = Path(path)
    if not destination.exists():
        return []
    return pq.read_table(destination).to_pylist()


def _materialize_records(
    records: Sequence[Mapping[str, Any]] | Iterable[Mapping[str, Any]],
) -> tuple[list[dict[str, Any]], list[str]]:
    materialized: list[dict[str, Any]] = []
    ordered_keys: set[str] = set()
    for record in records:
        coerced = dict(record)
        materialized.append(coerced)
        ordered_keys.update(str(key) for key in coerced)
    return materialized, sorted(ordered_keys)


def _sha256_file(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(65536), b""):
            digest.update(chunk)
    return f"sha256:{digest.hexdigest()}"


__all__ = ["read_parquet_records", "write_parquet_atomic"]
