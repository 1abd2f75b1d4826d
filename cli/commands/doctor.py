from __future__ import annotations

import os
from pathlib import Path
from typing import List, Sequence

from cli.commands.specs import CommandContext, CommandResult, CommandSpec
from mrv.paths import store_root
from mrv.storage import ParquetStore, StoreError


def _interpreter_problem(python: str) -> str | None:
    path = Path(python)
    if not path.exists():
        return f"Interpreter not found: {python}"
    if not os.access(path, os.X_OK):
        return f"Interpreter is not executable: {python}"
    return None


def run(args: Sequence[str], context: CommandContext) -> CommandResult:
    """Check the interpreter, the package checkout and the observation store."""

    report: List[str] = []
    failures: List[str] = []
    warnings: List[str] = []

    problem = _interpreter_problem(context.python)
    if problem:
        failures.append(problem)
    else:
        report.append(f"interpreter   {context.python}")

    if not (context.repo_root / "mrv" / "__init__.py").is_file():
        failures.append(f"mrv package not found under {context.repo_root}")

    root = store_root(context.data_root)
    if not root.is_dir():
        warnings.append(f"No observation store at {root} yet; run `ingest` first.")
    else:
        try:
            counts = ParquetStore(root).table_counts()
        except StoreError as exc:
            failures.append(str(exc))
        else:
            report.append(f"store         {root}")
            report.extend(f"  {table:<13}{count}" for table, count in counts.items())
            if counts["observations"] == 0:
                warnings.append("The store holds no observations.")

    lines = ["Doctor: failed" if failures else "Doctor: ok", *report]
    lines.extend(f"error: {entry}" for entry in failures)
    lines.extend(f"warning: {entry}" for entry in warnings)
    text = "\n".join(lines) + "\n"
    if failures:
        return CommandResult(exit_code=2, stdout="", stderr=text)
    return CommandResult(exit_code=0, stdout=text, stderr="")


spec = CommandSpec(
    name="doctor",
    description="Check the interpreter, the mrv checkout and the observation store's tables.",
    handler=run,
    usage="doctor",
    returns="Table row counts on success; errors and warnings otherwise.",
)
