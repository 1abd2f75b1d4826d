import json

import pytest

from mrv.storage import MemoryStore, ParquetStore, StoreError
from scripts import ingest, report


GLOBAL_CSV = (
    "sector,subsector,iso3_country,start_time,temporal_granularity,emissions_quantity,emissions_quantity_units\n"
    "power,,USA,2022-01-01T00:00:00Z,annual,60000,t\n"
    "power,,CAN,2022-01-01T00:00:00Z,annual,40,kt\n"
)

OPERATOR_CSV = (
    "facility_name,year,co2e_tonnes,source,method\n"
    "power (sector aggregate),2022,106000,reported,measured\n"
    "Plant A,2022,10,reported,\n"
)


def _ingest(tmp_path, capsys, csv_text, *extra):
    csv_path = tmp_path / "upload.csv"
    csv_path.write_text(csv_text, encoding="utf-8")
    exit_code = ingest.main(["--csv", str(csv_path), "--data-root", str(tmp_path / "data"), *extra])
    return exit_code, json.loads(capsys.readouterr().out)


def _report(tmp_path, capsys, *args):
    exit_code = report.main(["--data-root", str(tmp_path / "data"), *args])
    return exit_code, json.loads(capsys.readouterr().out)


def test_commit_then_reconcile_across_runs(tmp_path, capsys):
    exit_code, summary = _ingest(tmp_path, capsys, GLOBAL_CSV)
    assert exit_code == 0
    assert summary["status"] == "succeeded"
    assert summary["adapter"] == "global_sector"
    assert summary["inserted"] == 2
    assert (tmp_path / "data" / "store" / "observations.parquet").exists()
    manifest = tmp_path / "data" / "manifests" / "import_jobs" / f"{summary['import_job_id']}.json"
    assert summary["manifest_path"] == str(manifest)
    assert manifest.exists()

    exit_code, summary = _ingest(tmp_path, capsys, OPERATOR_CSV)
    assert exit_code == 0
    assert (summary["inserted"], summary["skipped"]) == (1, 1)

    exit_code, payload = _report(tmp_path, capsys, "reconcile")
    assert exit_code == 0
    (row,) = payload["rows"]
    assert row["year"] == 2022
    assert row["observed"] == 100000.0
    assert row["reported"] == 106000.0
    assert row["delta"] == 6000.0
    assert row["pct"] == pytest.approx(6.0)

    exit_code, payload = _report(tmp_path, capsys, "explain")
    assert exit_code == 0
    assert payload["year"] == 2022
    assert payload["meta"]["heuristic"] is True

    exit_code, payload = _report(tmp_path, capsys, "overview", "--from", "2020", "--to", "2023")
    assert payload["series"] == {"power": [{"year": 2022, "value": 100000.0}]}

    exit_code, payload = _report(tmp_path, capsys, "anomalies", "--sector", "power", "--source", "observed")
    assert exit_code == 0
    assert payload["points"] == [{"year": 2022, "value": 100000.0}]
    assert payload["anomalies"] == []


def test_config_file_supplies_options_and_facilities(tmp_path, capsys):
    config_path = tmp_path / "ingest.yml"
    config_path.write_text(
        "dataset_name: Operator Q1\n"
        "dataset_version: v5.0.0\n"
        "facilities:\n"
        "  - name: Plant A\n"
        "    sector: power\n",
        encoding="utf-8",
    )
    exit_code, summary = _ingest(
        tmp_path, capsys, OPERATOR_CSV, "--config", str(config_path), "--dataset-version", "v5.1.0"
    )

    assert exit_code == 0
    assert summary["facilities_created"] == 1
    assert (summary["inserted"], summary["skipped"]) == (1, 1)

    exit_code, payload = _report(tmp_path, capsys, "overview")
    assert payload["series"] == {}


def test_preview_does_not_create_a_store(tmp_path, capsys):
    exit_code, summary = _ingest(tmp_path, capsys, GLOBAL_CSV, "--preview")
    assert exit_code == 0
    assert summary["status"] == "preview"
    assert summary["preview_stats"]["ok"] == 2
    assert not (tmp_path / "data").exists()


def test_empty_upload_reports_failure(tmp_path, capsys):
    exit_code, summary = _ingest(tmp_path, capsys, "facility_name,year,co2e\n")
    assert exit_code == 1
    assert summary["status"] == "failed"
    assert summary["error"] == "Empty CSV"


def test_failed_commit_still_persists_the_job(tmp_path, capsys, monkeypatch):
    def _boom(self, observation):
        raise StoreError("disk quota exceeded")

    monkeypatch.setattr(MemoryStore, "insert_observation", _boom)
    exit_code, summary = _ingest(tmp_path, capsys, GLOBAL_CSV)
    monkeypatch.undo()

    assert exit_code == 1
    assert summary["error"] == "disk quota exceeded"
    (job,) = ParquetStore(tmp_path / "data" / "store").list_import_jobs()
    assert job.status == "failed"


def test_report_unknown_facility_is_not_found(tmp_path, capsys):
    exit_code, payload = _report(tmp_path, capsys, "reconcile", "--facility-id", "missing")
    assert exit_code == 1
    assert payload["status"] == "not_found"


@pytest.mark.parametrize("extra", [(), ("--preview",)])
def test_undecodable_upload_reports_failure(tmp_path, capsys, extra):
    csv_path = tmp_path / "upload.csv"
    csv_path.write_bytes(GLOBAL_CSV.encode("utf-8") + b"power,,US\xff,2021-01-01,annual,10,t\n")

    exit_code = ingest.main(["--csv", str(csv_path), "--data-root", str(tmp_path / "data"), *extra])
    summary = json.loads(capsys.readouterr().out)

    assert exit_code == 1
    assert summary["status"] == "failed"
    assert "not valid UTF-8" in summary["error"]


def test_sector_trend_and_timeline_reports(tmp_path, capsys):
    exit_code, _ = _ingest(tmp_path, capsys, GLOBAL_CSV)
    assert exit_code == 0

    exit_code, payload = _report(tmp_path, capsys, "sectors", "--from", "2021", "--to", "2022")
    assert exit_code == 0
    (power,) = payload["sectors"]
    assert power["sector"] == "power"
    assert power["totals"] == [{"year": 2022, "value": 100000.0}]
    assert power["latest"]["pct_change"] is None
    assert power["breakdown"] == [{"subsector": "Other", "current": 100000.0, "previous": 0.0, "delta": 100000.0}]

    facility_id = ParquetStore(tmp_path / "data" / "store").find_facility_by_name(
        "power (sector aggregate)"
    ).facility_id
    exit_code, payload = _report(tmp_path, capsys, "trend", "--facility-id", facility_id)
    assert exit_code == 0
    assert payload["rows"] == [{"year": 2022, "source": "observed", "co2e_tonnes": 100000.0}]

    exit_code, payload = _report(tmp_path, capsys, "timeline", "--from", "2022")
    assert exit_code == 0
    assert payload["rows"] == [
        {
            "year": 2022,
            "month": None,
            "method": "global_sector_aggregate",
            "source": "observed",
            "dataset_version": "v4.7.0",
        }
    ]

    exit_code, payload = _report(tmp_path, capsys, "trend", "--facility-id", "missing")
    assert (exit_code, payload["status"]) == (1, "not_found")
