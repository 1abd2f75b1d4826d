"""Observation store models and implementations."""

from .models import Dataset, Facility, ImportJob, JobStats, Observation, Sector
from .parquet_store import ParquetStore
from .store import MemoryStore, ObservationNotFound, ObservationStore, StoreError

__all__ = [
    "Dataset",
    "Facility",
    "ImportJob",
    "JobStats",
    "MemoryStore",
    "Observation",
    "ObservationNotFound",
    "ObservationStore",
    "ParquetStore",
    "Sector",
    "StoreError",
]
