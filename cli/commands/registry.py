from __future__ import annotations

from cli.commands.doctor import spec as doctor_spec
from cli.commands.ingest import preview_spec
from cli.commands.ingest import spec as ingest_spec
from cli.commands.report import spec as report_spec
from cli.commands.specs import CommandSpec

COMMAND_SPECS: tuple[CommandSpec, ...] = (
    preview_spec,
    ingest_spec,
    report_spec,
    doctor_spec,
)
