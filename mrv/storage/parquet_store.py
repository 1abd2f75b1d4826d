"""Parquet-backed observation store: one file per table under a root directory."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict

from .models import Dataset, Facility, ImportJob, Observation, Sector
from .parquet import read_parquet_records, write_parquet_atomic
from .store import MemoryStore, StoreError


LOGGER = logging.getLogger(__name__)

TABLES = ("datasets", "import_jobs", "sectors", "facilities", "observations")


class ParquetStore(MemoryStore):
    """Loads every table on open and rewrites them atomically on :meth:`flush`."""

    def __init__(self, root: Path | str) -> None:
        super().__init__()
        self.root = Path(root)
        try:
            self._load(
                datasets=[Dataset.from_record(r) for r in read_parquet_records(self._path("datasets"))],
                jobs=[ImportJob.from_record(r) for r in read_parquet_records(self._path("import_jobs"))],
                sectors=[Sector.from_record(r) for r in read_parquet_records(self._path("sectors"))],
                facilities=[Facility.from_record(r) for r in read_parquet_records(self._path("facilities"))],
                observations=[
                    Observation.from_record(r) for r in read_parquet_records(self._path("observations"))
                ],
            )
        except (OSError, KeyError, ValueError) as exc:
            raise StoreError(f"Unable to open parquet store at {self.root}: {exc}") from exc
        LOGGER.debug(
            "Opened parquet store %s with %d observations", self.root, len(self._observations)
        )

    def _path(self, table: str) -> Path:
        return self.root / f"{table}.parquet"

    def table_counts(self) -> Dict[str, int]:
        """Row count per table as currently held in memory."""

        with self._lock:
            return {
                "datasets": len(self._datasets),
                "import_jobs": len(self._jobs),
                "sectors": len(self._sectors),
                "facilities": len(self._facilities),
                "observations": len(self._observations),
            }

    def flush(self) -> Dict[str, Dict[str, Any]]:
        tables = {
            "datasets": [item.to_record() for item in self._datasets.values()],
            "import_jobs": [item.to_record() for item in self._jobs.values()],
            "sectors": [item.to_record() for item in self._sectors.values()],
            "facilities": [item.to_record() for item in self._facilities.values()],
            "observations": [item.to_record() for item in self._observations.values()],
        }
        written: Dict[str, Dict[str, Any]] = {}
        with self._lock:
            for table in TABLES:
                # Tables only grow, so an empty one has nothing to replace on disk.
                if not tables[table]:
                    continue
                try:
                    written[table] = write_parquet_atomic(tables[table], self._path(table))
                except (OSError, RuntimeError) as exc:
                    raise StoreError(f"Failed to persist table '{table}': {exc}") from exc
        return written


__all__ = ["ParquetStore", "TABLES"]
