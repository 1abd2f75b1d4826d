from __future__ import annotations

from cli.commands.specs import CommandSpec, ParamSpec

REPORTS = ("reconcile", "explain", "anomalies", "overview", "sectors", "trend", "timeline")

spec = CommandSpec(
    name="report",
    description="Reconcile, explain, scan for anomalies or summarize observed totals by sector.",
    module="scripts.report",
    usage=(
        f"report [--data-root <path>] {'|'.join(REPORTS)} "
        "[--facility-id <id>] [--year <yyyy>] [--sector <code>] [--source <src>] [--z <float>] "
        "[--from <yyyy>] [--to <yyyy>]"
    ),
    subcommands=REPORTS,
    params=(
        ParamSpec("--facility-id", "str", "Facility to report on; required for trend."),
        ParamSpec("--year", "int", "Year to explain; latest with data when omitted."),
        ParamSpec("--sector", "str", "Sector code for anomalies."),
        ParamSpec("--source", "str", "Observation source for anomalies.", default="reported"),
        ParamSpec("--z", "float", "Robust z threshold for anomalies.", default="3.5"),
        ParamSpec("--from/--to", "int", "Year range for overview, sectors and timeline."),
    ),
    returns="JSON report to stdout.",
    example="report sectors --from 2019 --to 2024",
)
