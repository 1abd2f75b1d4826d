"""Normalized commit parameters shared across the scripts and the pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from .adapters import REPLACE_IF_NEWER

DEFAULT_DATASET_VERSION = "v4.7.0"
DEFAULT_DUPLICATE_POLICY = REPLACE_IF_NEWER


def _optional_text(value: Any | None) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class CommitRequest:
    """Caller-supplied commit options; ``None`` fields fall back to adapter defaults."""

    dataset_name: str | None = None
    source: str | None = None
    dataset_version: str = DEFAULT_DATASET_VERSION
    duplicate_policy: str = DEFAULT_DUPLICATE_POLICY
    filename: str | None = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any] | None) -> "CommitRequest":
        if payload is None:
            return cls()
        if not isinstance(payload, Mapping):
            raise TypeError("commit options must be a mapping")
        return cls(
            dataset_name=_optional_text(payload.get("dataset_name")),
            source=_optional_text(payload.get("source")),
            dataset_version=_optional_text(payload.get("dataset_version")) or DEFAULT_DATASET_VERSION,
            duplicate_policy=_optional_text(payload.get("duplicate_policy")) or DEFAULT_DUPLICATE_POLICY,
            filename=_optional_text(payload.get("filename")),
        )


__all__ = ["CommitRequest", "DEFAULT_DATASET_VERSION", "DEFAULT_DUPLICATE_POLICY"]
