"""Shared helpers for resolving runtime storage roots."""

from __future__ import annotations

import os
from pathlib import Path


_REPO_ROOT = Path(__file__).resolve().parents[1]


def get_repo_root() -> Path:
    """Return the repository root for callers that need absolute resolution."""

    return _REPO_ROOT


def get_data_root() -> Path:
    """Resolve the runtime data root honoring the MRV_DATA_ROOT override."""

    override = os.environ.get("MRV_DATA_ROOT")
    if override:
        return Path(override).expanduser()
    return get_repo_root() / ".mrv_data"


def store_root(data_root: Path | None = None) -> Path:
    """Directory holding the parquet-backed observation store."""

    return (data_root or get_data_root()) / "store"


def manifest_root(data_root: Path | None = None) -> Path:
    """Directory used for import job manifest persistence."""

    return (data_root or get_data_root()) / "manifests" / "import_jobs"


def cli_log_root(data_root: Path | None = None) -> Path:
    """Directory holding the interactive shell's command history."""

    return (data_root or get_data_root()) / "logs" / "cli"


__all__ = ["cli_log_root", "get_data_root", "get_repo_root", "manifest_root", "store_root"]
