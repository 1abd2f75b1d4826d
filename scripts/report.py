#!/usr/bin/env python3
"""Read-only reports over the observation store."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Mapping, Sequence

from mrv.analytics import (
    anomaly_report,
    explain,
    facility_trend,
    method_timeline,
    overview_by_sector,
    reconcile,
    sector_deep_dive,
)
from mrv.analytics.anomaly import DEFAULT_Z
from mrv.analytics.overview import DEFAULT_END_YEAR, DEFAULT_START_YEAR
from mrv.paths import get_data_root, store_root
from mrv.storage import ObservationNotFound, ObservationStore, ParquetStore, StoreError


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconciliation and anomaly reports over ingested emissions.")
    parser.add_argument("--data-root", help="Override MRV_DATA_ROOT for the store location.")
    parser.add_argument("--log-level", default="WARNING", help="Logging level written to stderr.")
    commands = parser.add_subparsers(dest="command", required=True)

    reconcile_parser = commands.add_parser("reconcile", help="Observed vs reported totals per year.")
    reconcile_parser.add_argument("--facility-id", help="Restrict to one facility (default: all).")

    explain_parser = commands.add_parser("explain", help="Heuristic observed → reported breakdown for one year.")
    explain_parser.add_argument("--facility-id", help="Restrict to one facility (default: all).")
    explain_parser.add_argument("--year", type=int, help="Year to explain (default: latest with data).")

    anomaly_parser = commands.add_parser("anomalies", help="Median/MAD outliers over an annual series.")
    target = anomaly_parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--facility-id", help="Facility whose series is scanned.")
    target.add_argument("--sector", help="Sector code whose summed series is scanned.")
    anomaly_parser.add_argument("--source", default="reported", help="Observation source (default reported).")
    anomaly_parser.add_argument("--z", type=float, default=DEFAULT_Z, help="Robust z threshold.")

    overview_parser = commands.add_parser("overview", help="Observed totals by sector and year.")
    overview_parser.add_argument("--from", dest="start_year", type=int, default=DEFAULT_START_YEAR)
    overview_parser.add_argument("--to", dest="end_year", type=int, default=DEFAULT_END_YEAR)

    sectors_parser = commands.add_parser(
        "sectors", help="Per-sector totals, year-over-year change and top subsectors."
    )
    sectors_parser.add_argument("--from", dest="start_year", type=int, help="First year (default: 5 years ago).")
    sectors_parser.add_argument("--to", dest="end_year", type=int, help="Last year (default: current year).")

    trend_parser = commands.add_parser("trend", help="Annual totals per source for one facility.")
    trend_parser.add_argument("--facility-id", required=True, help="Facility to summarize.")

    timeline_parser = commands.add_parser("timeline", help="Method and dataset version of each observation.")
    timeline_parser.add_argument("--facility-id", help="Restrict to one facility (default: all).")
    timeline_parser.add_argument("--from", dest="start_year", type=int, help="First year, inclusive.")
    timeline_parser.add_argument("--to", dest="end_year", type=int, help="Last year, inclusive.")
    return parser.parse_args(argv)


def run_report(args: argparse.Namespace, store: ObservationStore) -> Dict[str, Any]:
    if args.command == "reconcile":
        return {"facility_id": args.facility_id, "rows": reconcile(store, args.facility_id)}
    if args.command == "explain":
        return explain(store, args.facility_id, args.year)
    if args.command == "anomalies":
        return anomaly_report(
            store,
            facility_id=args.facility_id,
            sector=args.sector,
            source=args.source,
            z=args.z,
        )
    if args.command == "overview":
        return overview_by_sector(store, args.start_year, args.end_year)
    if args.command == "sectors":
        return sector_deep_dive(store, args.start_year, args.end_year)
    if args.command == "trend":
        return facility_trend(store, args.facility_id)
    if args.command == "timeline":
        return method_timeline(store, args.facility_id, args.start_year, args.end_year)
    raise ValueError(f"Unknown report '{args.command}'")


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), stream=sys.stderr)
    data_root = Path(args.data_root).expanduser() if args.data_root else get_data_root()

    try:
        store = ParquetStore(store_root(data_root))
        payload = run_report(args, store)
    except ObservationNotFound as exc:
        return _emit_summary({"status": "not_found", "report": args.command, "error": str(exc)})
    except (StoreError, ValueError) as exc:
        return _emit_summary({"status": "failed", "report": args.command, "error": str(exc)})
    return _emit_summary({"status": "succeeded", "report": args.command, **payload})


def _emit_summary(summary: Mapping[str, Any]) -> int:
    print(json.dumps(summary, indent=2, sort_keys=True, default=str))
    return 0 if summary.get("status") == "succeeded" else 1


if __name__ == "__main__":
    raise SystemExit(main())
