from __future__ import annotations

from cli.commands.specs import CommandSpec, ParamSpec

_COMMON_PARAMS = (
    ParamSpec("--csv", "path", "CSV export to ingest.", required=True),
    ParamSpec("--config", "path", "JSON or YAML file with commit options and facilities."),
    ParamSpec("--data-root", "path", "Override MRV_DATA_ROOT."),
    ParamSpec("--log-level", "str", "Logging level written to stderr.", default="WARNING"),
)

spec = CommandSpec(
    name="ingest",
    description="Commit an emissions CSV into .mrv_data/store and write an import job manifest.",
    module="scripts.ingest",
    usage=(
        "ingest --csv <path> [--config <path>] [--dataset-name <name>] [--source <label>] "
        "[--dataset-version <tag>] [--duplicate-policy <policy>] [--data-root <path>]"
    ),
    params=_COMMON_PARAMS
    + (
        ParamSpec("--dataset-name", "str", "Dataset name; defaults per detected adapter."),
        ParamSpec("--source", "str", "Dataset source label; defaults per detected adapter."),
        ParamSpec("--dataset-version", "str", "Version tag compared on replace.", default="v4.7.0"),
        ParamSpec("--duplicate-policy", "str", "Duplicate handling policy.", default="replace_if_newer"),
    ),
    returns="JSON import report to stdout; manifest written under .mrv_data/manifests/import_jobs/.",
    example="ingest --csv exports/climate_trace_2024.csv --dataset-version v4.8.0",
)

preview_spec = CommandSpec(
    name="preview",
    description="Detect the adapter and validate a sample of a CSV without writing anything.",
    module="scripts.ingest",
    fixed_args=("--preview",),
    usage="preview --csv <path>",
    params=_COMMON_PARAMS,
    returns="JSON preview (adapter, headers, sample_normalized, preview_stats) to stdout.",
    example="preview --csv exports/operator_q1.csv",
)
