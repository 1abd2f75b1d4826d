"""Shared adapter contract: row validation results, upsert outcomes, duplicate policy."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, Literal, Mapping, Sequence

from mrv.storage.models import Observation
from mrv.storage.store import ObservationStore


REPLACE_IF_NEWER = "replace_if_newer"

UpsertAction = Literal["inserted", "replaced", "duplicate", "skip_unknown_facility"]


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one raw row; ``fields`` is empty on failure."""

    ok: bool
    fields: Dict[str, Any] = field(default_factory=dict)
    reason: str | None = None
    meta: Dict[str, Any] | None = None

    @classmethod
    def success(cls, **fields: Any) -> "ValidationResult":
        return cls(ok=True, fields=fields)

    @classmethod
    def failure(cls, reason: str, meta: Mapping[str, Any] | None = None) -> "ValidationResult":
        return cls(ok=False, reason=reason, meta=dict(meta) if meta else None)

    def as_dict(self) -> Dict[str, Any]:
        if self.ok:
            return {"ok": True, **self.fields}
        payload: Dict[str, Any] = {"ok": False, "reason": self.reason}
        if self.meta:
            payload["meta"] = self.meta
        return payload


@dataclass(frozen=True)
class UpsertResult:
    action: UpsertAction
    observation_id: str | None = None


def header_set(headers: Sequence[str]) -> set[str]:
    return {str(header).strip().lower() for header in headers}


def resolve_duplicate(
    store: ObservationStore,
    existing: Observation,
    *,
    dataset_version: str,
    duplicate_policy: str,
    updates: Mapping[str, Any],
) -> UpsertResult:
    """Apply the duplicate policy against an observation already at the dedup key.

    Versions compare as plain strings, so "v9" sorts after "v10"; callers
    must supply comparably formatted tags. Any policy other than
    ``replace_if_newer`` always reports a duplicate.
    """

    if duplicate_policy == REPLACE_IF_NEWER and str(dataset_version) > str(existing.dataset_version or ""):
        if store.replace_observation_if_newer(existing.key, str(dataset_version), updates):
            return UpsertResult(action="replaced", observation_id=existing.observation_id)
    return UpsertResult(action="duplicate", observation_id=existing.observation_id)


class FormatAdapter(ABC):
    """One source CSV format: detection, row validation and persistence."""

    key: str = ""
    default_dataset_name: str = ""
    default_source: str = ""
    aggregates: bool = False

    @abstractmethod
    def detect(self, headers: Sequence[str]) -> bool: ...

    @abstractmethod
    def validate(self, row: Mapping[str, Any]) -> ValidationResult: ...

    @abstractmethod
    def upsert(
        self,
        store: ObservationStore,
        candidate: Mapping[str, Any],
        *,
        dataset_version: str,
        duplicate_policy: str,
    ) -> UpsertResult: ...

    def aggregation_key(self, candidate: Mapping[str, Any]) -> Hashable:
        raise NotImplementedError(f"{type(self).__name__} does not pre-aggregate rows")

    def quantity_tonnes(self, candidate: Mapping[str, Any]) -> float:
        raise NotImplementedError(f"{type(self).__name__} does not pre-aggregate rows")


__all__ = [
    "FormatAdapter",
    "REPLACE_IF_NEWER",
    "UpsertAction",
    "UpsertResult",
    "ValidationResult",
    "header_set",
    "resolve_duplicate",
]
