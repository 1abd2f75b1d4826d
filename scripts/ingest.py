#!/usr/bin/env python3
"""Preview or commit an emissions CSV into the parquet-backed observation store."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Mapping, Sequence

import yaml

from mrv.ingestion import CommitRequest, EmptyUploadError, IngestionPipeline, MalformedUploadError
from mrv.normalization.sector import sector_display_name
from mrv.paths import get_data_root, manifest_root, store_root
from mrv.storage import Facility, MemoryStore, ParquetStore, StoreError


LOGGER = logging.getLogger("scripts.ingest")

COMMIT_KEYS = ("dataset_name", "source", "dataset_version", "duplicate_policy")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Preview or commit an emissions CSV upload.")
    parser.add_argument("--csv", required=True, help="Path to the CSV file to ingest.")
    parser.add_argument("--config", help="Optional JSON or YAML file with commit options and facilities.")
    parser.add_argument("--dataset-name", help="Dataset name; defaults per detected adapter.")
    parser.add_argument("--source", help="Dataset source label; defaults per detected adapter.")
    parser.add_argument("--dataset-version", help="Version tag compared when replacing (default v4.7.0).")
    parser.add_argument(
        "--duplicate-policy",
        help="replace_if_newer (default) or any other value to always report duplicates.",
    )
    parser.add_argument("--data-root", help="Override MRV_DATA_ROOT for the store and manifests.")
    parser.add_argument("--preview", action="store_true", help="Validate a bounded sample without writing.")
    parser.add_argument("--log-level", default="WARNING", help="Logging level written to stderr.")
    return parser.parse_args(argv)


def load_config(path: Path) -> Mapping[str, Any]:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in {".yaml", ".yml"}:
        payload = yaml.safe_load(text)
    else:
        payload = json.loads(text)
    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise ValueError(f"Config {path} must contain a mapping")
    return payload


def build_request(args: argparse.Namespace, config: Mapping[str, Any], filename: str) -> CommitRequest:
    options: Dict[str, Any] = {key: config.get(key) for key in COMMIT_KEYS}
    for key in COMMIT_KEYS:
        value = getattr(args, key)
        if value is not None:
            options[key] = value
    options["filename"] = filename
    return CommitRequest.from_mapping(options)


def register_facilities(store: ParquetStore, entries: Sequence[Mapping[str, Any]]) -> int:
    """Create operator facilities listed in the config; existing names are left alone."""

    created = 0
    for entry in entries:
        name = str(entry.get("name") or "").strip()
        if not name or store.find_facility_by_name(name) is not None:
            continue
        sector_id = None
        sector_code = str(entry.get("sector") or "").strip()
        if sector_code:
            sector_id = store.upsert_sector(sector_code, sector_display_name(sector_code)).sector_id
        store.create_facility(
            Facility(name=name, sector_id=sector_id, organization_id=entry.get("organization_id"))
        )
        created += 1
    return created


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), stream=sys.stderr)

    csv_path = Path(args.csv)
    data_root = Path(args.data_root).expanduser() if args.data_root else get_data_root()
    try:
        config = load_config(Path(args.config)) if args.config else {}
        payload = csv_path.read_bytes()
    except (OSError, ValueError, yaml.YAMLError) as exc:
        return _emit_summary(_failure_summary(csv_path, error=str(exc)))

    if args.preview:
        pipeline = IngestionPipeline(MemoryStore())
        try:
            preview = pipeline.preview(payload)
        except (EmptyUploadError, MalformedUploadError) as exc:
            return _emit_summary(_failure_summary(csv_path, error=str(exc)))
        return _emit_summary({"status": "preview", "csv_path": str(csv_path), **preview})

    try:
        store = ParquetStore(store_root(data_root))
    except StoreError as exc:
        return _emit_summary(_failure_summary(csv_path, error=str(exc)))

    request = build_request(args, config, csv_path.name)
    pipeline = IngestionPipeline(store, manifest_dir=manifest_root(data_root))
    try:
        created = register_facilities(store, config.get("facilities") or ())
        report = pipeline.commit(payload, request)
    except (EmptyUploadError, MalformedUploadError, StoreError) as exc:
        summary = _failure_summary(csv_path, error=str(exc))
    else:
        summary = {
            "status": "succeeded",
            "csv_path": str(csv_path),
            "facilities_created": created,
            **report.as_dict(),
        }
    finally:
        # The failed job record is persisted as well.
        try:
            store.flush()
        except StoreError as exc:
            LOGGER.error("Unable to flush store at %s: %s", store.root, exc)
            summary = _failure_summary(csv_path, error=str(exc))
    return _emit_summary(summary)


def _failure_summary(csv_path: Path, *, error: str) -> Dict[str, Any]:
    return {"status": "failed", "csv_path": str(csv_path), "error": error}


def _emit_summary(summary: Mapping[str, Any]) -> int:
    print(json.dumps(summary, indent=2, sort_keys=True, default=str))
    if summary.get("status") in {"succeeded", "preview"}:
        return 0
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
