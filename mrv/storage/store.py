"""Observation store contract and the in-memory implementation."""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
import threading
from typing import Any, Dict, Iterable, List, Mapping, Tuple

from .models import Dataset, Facility, ImportJob, Observation, ObservationKey, Sector


LOGGER = logging.getLogger(__name__)


class StoreError(RuntimeError):
    """Infrastructure-level persistence failure (connectivity, constraints)."""


class ObservationNotFound(LookupError):
    """Raised by read paths when a referenced record does not exist."""


class ObservationStore(ABC):
    """Persistence surface consumed by adapters, the pipeline and analytics.

    Implementations must provide a per-key conditional update in
    :meth:`replace_observation_if_newer`; reads and writes are otherwise
    independent and not wrapped in a cross-row transaction.
    """

    # datasets ---------------------------------------------------------------

    @abstractmethod
    def get_or_create_dataset(self, name: str, source: str, version_tag: str) -> Dataset: ...

    # import jobs ------------------------------------------------------------

    @abstractmethod
    def create_import_job(self, job: ImportJob) -> ImportJob: ...

    @abstractmethod
    def save_import_job(self, job: ImportJob) -> None: ...

    @abstractmethod
    def get_import_job(self, job_id: str) -> ImportJob: ...

    # sectors / facilities ---------------------------------------------------

    @abstractmethod
    def upsert_sector(self, code: str, name: str) -> Sector:
        """Insert the sector when absent; never overwrite an existing one."""

    @abstractmethod
    def get_sector(self, sector_id: str) -> Sector | None: ...

    @abstractmethod
    def find_facility_by_name(self, name: str) -> Facility | None: ...

    @abstractmethod
    def get_facility(self, facility_id: str) -> Facility: ...

    @abstractmethod
    def create_facility(self, facility: Facility) -> Facility: ...

    @abstractmethod
    def list_facilities(self) -> List[Facility]: ...

    # observations -----------------------------------------------------------

    @abstractmethod
    def find_observation(self, key: ObservationKey) -> Observation | None: ...

    @abstractmethod
    def insert_observation(self, observation: Observation) -> Observation: ...

    @abstractmethod
    def insert_observation_if_absent(self, observation: Observation) -> Tuple[Observation, bool]:
        """Insert unless the dedup key is taken; return the stored record and whether it was created."""

    @abstractmethod
    def replace_observation_if_newer(
        self,
        key: ObservationKey,
        dataset_version: str,
        updates: Mapping[str, Any],
    ) -> bool:
        """Apply ``updates`` only if the stored version sorts below ``dataset_version``."""

    @abstractmethod
    def list_observations(
        self,
        *,
        facility_id: str | None = None,
        source: str | None = None,
    ) -> List[Observation]: ...


_MUTABLE_OBSERVATION_FIELDS = frozenset({"co2e_tonnes", "method", "scope", "notes"})


class MemoryStore(ObservationStore):
    """Dictionary-backed store; a single lock serializes the conditional update."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._datasets: Dict[str, Dataset] = {}
        self._jobs: Dict[str, ImportJob] = {}
        self._sectors: Dict[str, Sector] = {}
        self._facilities: Dict[str, Facility] = {}
        self._observations: Dict[ObservationKey, Observation] = {}

    def get_or_create_dataset(self, name: str, source: str, version_tag: str) -> Dataset:
        with self._lock:
            for dataset in self._datasets.values():
                if (dataset.name, dataset.source, dataset.version_tag) == (name, source, version_tag):
                    return dataset
            dataset = Dataset(name=name, source=source, version_tag=version_tag)
            self._datasets[dataset.dataset_id] = dataset
            return dataset

    def list_datasets(self) -> List[Dataset]:
        return list(self._datasets.values())

    def create_import_job(self, job: ImportJob) -> ImportJob:
        with self._lock:
            if job.job_id in self._jobs:
                raise StoreError(f"Import job {job.job_id} already exists")
            self._jobs[job.job_id] = job
        return job

    def save_import_job(self, job: ImportJob) -> None:
        with self._lock:
            if job.job_id not in self._jobs:
                raise StoreError(f"Import job {job.job_id} was never created")
            self._jobs[job.job_id] = job

    def get_import_job(self, job_id: str) -> ImportJob:
        try:
            return self._jobs[job_id]
        except KeyError as exc:
            raise ObservationNotFound(f"Import job {job_id} not found") from exc

    def list_import_jobs(self) -> List[ImportJob]:
        return list(self._jobs.values())

    def upsert_sector(self, code: str, name: str) -> Sector:
        with self._lock:
            existing = self._find_sector(code)
            if existing is not None:
                return existing
            sector = Sector(code=code, name=name)
            self._sectors[sector.sector_id] = sector
            return sector

    def get_sector(self, sector_id: str) -> Sector | None:
        return self._sectors.get(sector_id)

    def find_sector(self, code: str) -> Sector | None:
        return self._find_sector(code)

    def list_sectors(self) -> List[Sector]:
        return list(self._sectors.values())

    def _find_sector(self, code: str) -> Sector | None:
        for sector in self._sectors.values():
            if sector.code == code:
                return sector
        return None

    def find_facility_by_name(self, name: str) -> Facility | None:
        for facility in self._facilities.values():
            if facility.name == name:
                return facility
        return None

    def get_facility(self, facility_id: str) -> Facility:
        try:
            return self._facilities[facility_id]
        except KeyError as exc:
            raise ObservationNotFound(f"Facility {facility_id} not found") from exc

    def create_facility(self, facility: Facility) -> Facility:
        with self._lock:
            if any(existing.name == facility.name for existing in self._facilities.values()):
                raise StoreError(f"Facility name '{facility.name}' already exists")
            self._facilities[facility.facility_id] = facility
        LOGGER.debug("Created facility %s (%s)", facility.name, facility.facility_id)
        return facility

    def list_facilities(self) -> List[Facility]:
        return list(self._facilities.values())

    def find_observation(self, key: ObservationKey) -> Observation | None:
        return self._observations.get(key)

    def insert_observation(self, observation: Observation) -> Observation:
        with self._lock:
            if observation.key in self._observations:
                raise StoreError(f"Observation already exists for key {observation.key}")
            self._observations[observation.key] = observation
        return observation

    def insert_observation_if_absent(self, observation: Observation) -> Tuple[Observation, bool]:
        with self._lock:
            existing = self._observations.get(observation.key)
            if existing is not None:
                return existing, False
            return self.insert_observation(observation), True

    def replace_observation_if_newer(
        self,
        key: ObservationKey,
        dataset_version: str,
        updates: Mapping[str, Any],
    ) -> bool:
        unknown = set(updates) - _MUTABLE_OBSERVATION_FIELDS
        if unknown:
            raise ValueError(f"Immutable observation field(s) {sorted(unknown)} in update")
        with self._lock:
            existing = self._observations.get(key)
            if existing is None:
                raise StoreError(f"Observation for key {key} disappeared before replace")
            if not str(dataset_version) > str(existing.dataset_version or ""):
                return False
            for field_name, value in updates.items():
                setattr(existing, field_name, value)
            existing.dataset_version = dataset_version
            return True

    def list_observations(
        self,
        *,
        facility_id: str | None = None,
        source: str | None = None,
    ) -> List[Observation]:
        return [
            observation
            for observation in self._observations.values()
            if (facility_id is None or observation.facility_id == facility_id)
            and (source is None or observation.source == source)
        ]

    def _load(
        self,
        *,
        datasets: Iterable[Dataset] = (),
        jobs: Iterable[ImportJob] = (),
        sectors: Iterable[Sector] = (),
        facilities: Iterable[Facility] = (),
        observations: Iterable[Observation] = (),
    ) -> None:
        for dataset in datasets:
            self._datasets[dataset.dataset_id] = dataset
        for job in jobs:
            self._jobs[job.job_id] = job
        for sector in sectors:
            self._sectors[sector.sector_id] = sector
        for facility in facilities:
            self._facilities[facility.facility_id] = facility
        for observation in observations:
            self._observations[observation.key] = observation


__all__ = ["MemoryStore", "ObservationNotFound", "ObservationStore", "StoreError"]
