"""Two-pass CSV ingestion: validate every row, then aggregate and upsert."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import asdict, dataclass, field
import json
import logging
import math
from pathlib import Path
from typing import Any, Dict, Hashable, List, Mapping, Sequence

from mrv.normalization.lineage import LineageInput, build_lineage_payload, compute_checksum
from mrv.normalization.units import ConversionError, MassOverflow
from mrv.storage.models import MAX_JOB_ERRORS, ImportJob, JobStats
from mrv.storage.store import ObservationStore

from .adapters import FormatAdapter
from .csv_source import normalize_headers, parse_csv, rekey_row
from .request import CommitRequest
from .router import AdapterRegistry


LOGGER = logging.getLogger(__name__)

PREVIEW_READ_ROWS = 200
PREVIEW_CHECK_ROWS = 50

_ACTION_FIELDS = {
    "inserted": "inserted",
    "replaced": "replaced",
    "duplicate": "duplicates",
    "skip_unknown_facility": "skipped",
}


@dataclass
class _Tally:
    inserted: int = 0
    replaced: int = 0
    duplicates: int = 0
    skipped: int = 0
    invalid: int = 0

    def record(self, action: str, count: int = 1) -> None:
        field_name = _ACTION_FIELDS[action]
        setattr(self, field_name, getattr(self, field_name) + count)

    @property
    def accounted(self) -> int:
        return self.inserted + self.replaced + self.duplicates + self.skipped + self.invalid


@dataclass
class _ValidRow:
    index: int
    fields: Dict[str, Any]


@dataclass
class _Bucket:
    candidate: Dict[str, Any]
    rows: List[int] = field(default_factory=list)
    tonnes: float = 0.0
    error: Exception | None = None


@dataclass(frozen=True)
class ImportReport:
    """Final commit report; ``rows_total`` always equals the sum of the outcome counts."""

    dataset_id: str
    import_job_id: str
    adapter: str
    duplicate_policy: str
    rows_total: int
    inserted: int
    replaced: int
    duplicates: int
    skipped: int
    invalid: int
    errors: List[Dict[str, Any]]
    manifest_path: str | None = None

    def as_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        if payload["manifest_path"] is None:
            payload.pop("manifest_path")
        return payload


class IngestionPipeline:
    """Coordinates adapter detection, validation, aggregation, upserts and job lineage."""

    def __init__(
        self,
        store: ObservationStore,
        *,
        registry: AdapterRegistry | None = None,
        manifest_dir: Path | str | None = None,
    ) -> None:
        self.store = store
        self.registry = registry or AdapterRegistry()
        self.manifest_dir = Path(manifest_dir) if manifest_dir is not None else None

    # ------------------------------------------------------------------
    # Preview
    # ------------------------------------------------------------------

    def preview(self, payload: bytes | str) -> Dict[str, Any]:
        """Validate a bounded sample without touching the store."""

        parsed = parse_csv(payload, max_rows=PREVIEW_READ_ROWS)
        header_map = normalize_headers(parsed.headers)
        adapter = self.registry.detect_adapter(list(header_map.values()))

        checked = min(len(parsed.rows), PREVIEW_CHECK_ROWS)
        problems: List[Dict[str, Any]] = []
        sample: List[Dict[str, Any]] = []
        for index, raw in enumerate(parsed.rows[:checked], start=1):
            try:
                result = adapter.validate(rekey_row(raw, header_map))
            except Exception as exc:
                problems.append({"row": index, "reason": "exception", "details": str(exc)})
                continue
            if result.ok:
                sample.append({"input": raw, "normalized": result.as_dict()})
            else:
                problems.append(_error_entry(index, result.reason, result.meta))

        return {
            "adapter": adapter.key,
            "headers": parsed.headers,
            "sample_normalized": sample,
            "preview_stats": {"checked": checked, "ok": len(sample), "problems": problems},
        }

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def commit(self, payload: bytes | str, request: CommitRequest | None = None) -> ImportReport:
        """Parse an uploaded CSV buffer and commit every row."""

        raw_bytes = payload.encode("utf-8") if isinstance(payload, str) else payload
        parsed = parse_csv(raw_bytes)
        return self.commit_rows(
            parsed.rows,
            headers=parsed.headers,
            request=request,
            checksum_sha256=compute_checksum(raw_bytes),
        )

    def commit_rows(
        self,
        rows: Sequence[Mapping[str, Any]],
        *,
        headers: Sequence[str] | None = None,
        request: CommitRequest | None = None,
        checksum_sha256: str | None = None,
    ) -> ImportReport:
        request = request or CommitRequest()
        if headers is None:
            headers = list(rows[0].keys()) if rows else []
        header_map = normalize_headers(headers)
        adapter = self.registry.detect_adapter(list(header_map.values()))

        dataset = self.store.get_or_create_dataset(
            request.dataset_name or adapter.default_dataset_name,
            request.source or adapter.default_source,
            request.dataset_version,
        )
        if checksum_sha256 is None:
            checksum_sha256 = compute_checksum(json.dumps(list(rows), sort_keys=True, default=str).encode("utf-8"))
        job = self.store.create_import_job(
            ImportJob(
                dataset_id=dataset.dataset_id,
                filename=request.filename,
                checksum_sha256=checksum_sha256,
                header_map=header_map,
            )
        )
        LOGGER.info(
            "Import job %s started: adapter=%s dataset=%s rows=%d policy=%s",
            job.job_id,
            adapter.key,
            dataset.name,
            len(rows),
            request.duplicate_policy,
        )

        tally = _Tally()
        errors: List[Dict[str, Any]] = []
        rows_total = len(rows)
        try:
            valid = self._validate_all(adapter, rows, header_map, tally, errors)
            if adapter.aggregates:
                self._upsert_aggregated(adapter, valid, request, tally, errors)
            else:
                self._upsert_rows(adapter, valid, request, tally)
            if tally.accounted != rows_total:
                raise RuntimeError(
                    f"Row accounting mismatch for job {job.job_id}: {tally.accounted} outcomes for {rows_total} rows"
                )
        except Exception:
            LOGGER.error("Import job %s failed during commit", job.job_id, exc_info=True)
            self._finalize(job, "failed", rows_total, tally, errors)
            if self.manifest_dir is not None:
                self._persist_manifest(self.manifest_dir, job, adapter, dataset.dataset_id, rows_total)
            raise

        self._finalize(job, "completed", rows_total, tally, errors)
        LOGGER.info(
            "Import job %s completed: inserted=%d replaced=%d duplicates=%d skipped=%d invalid=%d",
            job.job_id,
            tally.inserted,
            tally.replaced,
            tally.duplicates,
            tally.skipped,
            tally.invalid,
        )

        manifest_path = None
        if self.manifest_dir is not None:
            manifest_path = str(
                self._persist_manifest(self.manifest_dir, job, adapter, dataset.dataset_id, rows_total)
            )

        return ImportReport(
            dataset_id=dataset.dataset_id,
            import_job_id=job.job_id,
            adapter=adapter.key,
            duplicate_policy=request.duplicate_policy,
            rows_total=rows_total,
            inserted=tally.inserted,
            replaced=tally.replaced,
            duplicates=tally.duplicates,
            skipped=tally.skipped,
            invalid=tally.invalid,
            errors=list(job.errors),
            manifest_path=manifest_path,
        )

    # ---- pass 1 -------------------------------------------------------

    def _validate_all(
        self,
        adapter: FormatAdapter,
        rows: Sequence[Mapping[str, Any]],
        header_map: Dict[str, str],
        tally: _Tally,
        errors: List[Dict[str, Any]],
    ) -> List[_ValidRow]:
        valid: List[_ValidRow] = []
        for index, raw in enumerate(rows, start=1):
            try:
                result = adapter.validate(rekey_row(dict(raw), header_map))
            except Exception as exc:
                tally.invalid += 1
                errors.append({"row": index, "reason": "exception", "details": str(exc)})
                continue
            if not result.ok:
                tally.invalid += 1
                errors.append(_error_entry(index, result.reason, result.meta))
                LOGGER.debug("Row %d rejected: %s", index, result.reason)
                continue
            valid.append(_ValidRow(index=index, fields=result.fields))
        return valid

    # ---- pass 2 -------------------------------------------------------

    def _upsert_rows(
        self,
        adapter: FormatAdapter,
        valid: Sequence[_ValidRow],
        request: CommitRequest,
        tally: _Tally,
    ) -> None:
        for item in valid:
            result = adapter.upsert(
                self.store,
                item.fields,
                dataset_version=request.dataset_version,
                duplicate_policy=request.duplicate_policy,
            )
            tally.record(result.action)

    def _upsert_aggregated(
        self,
        adapter: FormatAdapter,
        valid: Sequence[_ValidRow],
        request: CommitRequest,
        tally: _Tally,
        errors: List[Dict[str, Any]],
    ) -> None:
        # The dedup key is coarser than the input grain: fold first, upsert once per key.
        buckets: "OrderedDict[Hashable, _Bucket]" = OrderedDict()
        for item in valid:
            key = adapter.aggregation_key(item.fields)
            bucket = buckets.get(key)
            if bucket is None:
                bucket = buckets[key] = _Bucket(candidate=dict(item.fields))
            bucket.rows.append(item.index)
            if bucket.error is not None:
                continue
            try:
                bucket.tonnes += adapter.quantity_tonnes(item.fields)
                if not math.isfinite(bucket.tonnes):
                    raise MassOverflow(bucket.tonnes)
            except ConversionError as exc:
                bucket.error = exc

        for bucket in buckets.values():
            if bucket.error is not None:
                tally.invalid += len(bucket.rows)
                for index in bucket.rows:
                    errors.append({"row": index, "reason": "exception", "details": str(bucket.error)})
                continue
            result = adapter.upsert(
                self.store,
                {**bucket.candidate, "tonnes": bucket.tonnes},
                dataset_version=request.dataset_version,
                duplicate_policy=request.duplicate_policy,
            )
            tally.record(result.action, count=len(bucket.rows))

    # ---- lineage ------------------------------------------------------

    def _finalize(
        self,
        job: ImportJob,
        status: str,
        rows_total: int,
        tally: _Tally,
        errors: List[Dict[str, Any]],
    ) -> None:
        stats = JobStats(
            rows_total=rows_total,
            rows_imported=tally.inserted + tally.replaced,
            rows_skipped=tally.skipped,
            duplicates=tally.duplicates,
            invalid=tally.invalid,
        )
        ordered = sorted(errors, key=lambda entry: entry["row"])[:MAX_JOB_ERRORS]
        job.finalize(status, stats, ordered)
        self.store.save_import_job(job)

    def _persist_manifest(
        self,
        manifest_dir: Path,
        job: ImportJob,
        adapter: FormatAdapter,
        dataset_id: str,
        rows_total: int,
    ) -> Path:
        manifest = job.to_record()
        manifest["header_map"] = job.header_map
        manifest["stats"] = asdict(job.stats)
        manifest["errors"] = job.errors
        manifest["lineage"] = build_lineage_payload(
            dataset_id=dataset_id,
            import_job_id=job.job_id,
            source=LineageInput(
                filename=job.filename,
                checksum_sha256=job.checksum_sha256,
                adapter=adapter.key,
                row_count=rows_total,
            ),
        )
        manifest_dir.mkdir(parents=True, exist_ok=True)
        manifest_path = manifest_dir / f"{job.job_id}.json"
        with manifest_path.open("w", encoding="utf-8") as handle:
            json.dump(manifest, handle, indent=2, sort_keys=True, default=str)
        return manifest_path


def _error_entry(index: int, reason: str | None, meta: Mapping[str, Any] | None) -> Dict[str, Any]:
    entry: Dict[str, Any] = {"row": index, "reason": reason}
    if meta:
        entry["meta"] = dict(meta)
    return entry


__all__ = ["ImportReport", "IngestionPipeline", "PREVIEW_CHECK_ROWS", "PREVIEW_READ_ROWS"]
