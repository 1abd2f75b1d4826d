"""Records held by the observation store."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
import json
from typing import Any, Dict, List, Mapping, Optional, Tuple
import uuid


OBSERVATION_SOURCES: Tuple[str, ...] = ("observed", "reported", "projected")
SCOPES: Tuple[int, ...] = (1, 2, 3)
JOB_STATUSES: Tuple[str, ...] = ("pending", "completed", "failed")
MAX_JOB_ERRORS = 500

# (facility_id, year, month-or-None, source)
ObservationKey = Tuple[str, int, Optional[int], str]


def new_id() -> str:
    return uuid.uuid4().hex


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _dump(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def _load(value: Any, default: Any) -> Any:
    if value is None or value == "":
        return default
    if isinstance(value, str):
        return json.loads(value)
    return value


@dataclass
class Observation:
    """One emissions figure for a facility and period from a given source."""

    facility_id: str
    year: int
    co2e_tonnes: float
    source: str
    scope: int = 1
    month: int | None = None
    method: str | None = None
    notes: str | None = None
    dataset_version: str | None = None
    observation_id: str = field(default_factory=new_id)

    def __post_init__(self) -> None:
        if self.source not in OBSERVATION_SOURCES:
            raise ValueError(f"source must be one of {OBSERVATION_SOURCES}, got {self.source!r}")
        if self.scope not in SCOPES:
            raise ValueError(f"scope must be one of {SCOPES}, got {self.scope!r}")

    @property
    def key(self) -> ObservationKey:
        return (self.facility_id, self.year, self.month, self.source)

    def to_record(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Observation":
        month = record.get("month")
        return cls(
            facility_id=str(record["facility_id"]),
            year=int(record["year"]),
            co2e_tonnes=float(record["co2e_tonnes"]),
            source=str(record["source"]),
            scope=int(record.get("scope") or 1),
            month=int(month) if month is not None else None,
            method=record.get("method"),
            notes=record.get("notes"),
            dataset_version=record.get("dataset_version"),
            observation_id=str(record["observation_id"]),
        )


@dataclass
class Sector:
    code: str
    name: str
    sector_id: str = field(default_factory=new_id)

    def to_record(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Sector":
        return cls(code=str(record["code"]), name=str(record["name"]), sector_id=str(record["sector_id"]))


@dataclass
class Facility:
    """Join key for observations; ``name`` is the exact-match lookup key."""

    name: str
    sector_id: str | None = None
    organization_id: str | None = None
    location: Dict[str, Any] | None = None
    meta: Dict[str, Any] = field(default_factory=dict)
    facility_id: str = field(default_factory=new_id)

    def to_record(self) -> Dict[str, Any]:
        record = asdict(self)
        record["location"] = _dump(self.location) if self.location is not None else None
        record["meta"] = _dump(self.meta)
        return record

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Facility":
        return cls(
            name=str(record["name"]),
            sector_id=record.get("sector_id"),
            organization_id=record.get("organization_id"),
            location=_load(record.get("location"), None),
            meta=_load(record.get("meta"), {}),
            facility_id=str(record["facility_id"]),
        )


@dataclass
class Dataset:
    name: str
    source: str
    version_tag: str
    dataset_id: str = field(default_factory=new_id)

    def to_record(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Dataset":
        return cls(
            name=str(record["name"]),
            source=str(record["source"]),
            version_tag=str(record["version_tag"]),
            dataset_id=str(record["dataset_id"]),
        )


@dataclass
class JobStats:
    rows_total: int = 0
    rows_imported: int = 0
    rows_skipped: int = 0
    duplicates: int = 0
    invalid: int = 0


@dataclass
class ImportJob:
    """Lineage record for one commit; finalized exactly once."""

    dataset_id: str
    filename: str | None
    checksum_sha256: str
    header_map: Dict[str, str] = field(default_factory=dict)
    stats: JobStats = field(default_factory=JobStats)
    status: str = "pending"
    errors: List[Dict[str, Any]] = field(default_factory=list)
    created_at: str = field(default_factory=utc_now)
    finished_at: str | None = None
    job_id: str = field(default_factory=new_id)

    @property
    def is_terminal(self) -> bool:
        return self.status != "pending"

    def finalize(self, status: str, stats: JobStats, errors: List[Dict[str, Any]]) -> None:
        if self.is_terminal:
            raise RuntimeError(f"Import job {self.job_id} already finalized as '{self.status}'")
        if status not in ("completed", "failed"):
            raise ValueError(f"Import jobs finalize as completed or failed, not {status!r}")
        self.status = status
        self.stats = stats
        self.errors = list(errors)[:MAX_JOB_ERRORS]
        self.finished_at = utc_now()

    def to_record(self) -> Dict[str, Any]:
        record = asdict(self)
        record["header_map"] = _dump(self.header_map)
        record["stats"] = _dump(asdict(self.stats))
        record["errors"] = _dump(self.errors)
        return record

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "ImportJob":
        return cls(
            dataset_id=str(record["dataset_id"]),
            filename=record.get("filename"),
            checksum_sha256=str(record["checksum_sha256"]),
            header_map=_load(record.get("header_map"), {}),
            stats=JobStats(**_load(record.get("stats"), {})),
            status=str(record.get("status") or "pending"),
            errors=_load(record.get("errors"), []),
            created_at=str(record.get("created_at") or utc_now()),
            finished_at=record.get("finished_at"),
            job_id=str(record["job_id"]),
        )


__all__ = [
    "Dataset",
    "Facility",
    "ImportJob",
    "JOB_STATUSES",
    "JobStats",
    "MAX_JOB_ERRORS",
    "OBSERVATION_SOURCES",
    "Observation",
    "ObservationKey",
    "SCOPES",
    "Sector",
    "new_id",
]
