"""The ``mrv`` command: an interactive shell, or one command run directly."""

from __future__ import annotations

import json
import os
import shlex
import subprocess
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import typer

try:
    import readline
except ImportError:  # pragma: no cover - Windows has no readline
    readline = None  # type: ignore[assignment]

from cli.commands.registry import COMMAND_SPECS
from cli.commands.specs import CommandContext, CommandResult, CommandSpec
from mrv.paths import cli_log_root, get_data_root, get_repo_root

app = typer.Typer(add_completion=False, help="Emissions ingestion and reporting shell.")

COMMANDS: Dict[str, CommandSpec] = {spec.name: spec for spec in COMMAND_SPECS}

PROMPT = "mrv> "
HISTORY_FILE = "history.jsonl"
EXIT_WORDS = frozenset({"exit", "quit"})
HELP_FLAGS = frozenset({"-h", "--help"})


def build_context(data_root: Path | None = None) -> CommandContext:
    """Session settings; ``PYTHON`` picks the interpreter, otherwise the running one."""

    return CommandContext(
        repo_root=get_repo_root(),
        data_root=data_root or get_data_root(),
        python=os.environ.get("PYTHON", "").strip() or sys.executable,
    )


def forwarded_argv(spec: CommandSpec, args: Sequence[str]) -> List[str]:
    return [*spec.fixed_args, *args]


def overview_help() -> str:
    width = max(len(name) for name in COMMANDS)
    lines = ["Available commands:"]
    lines.extend(f"  {spec.name:<{width}}  {spec.description}" for spec in COMMAND_SPECS)
    lines.append("`<command> --help` shows its parameters; `exit` leaves the shell.")
    return "\n".join(lines)


def command_help(spec: CommandSpec) -> str:
    lines = [f"{spec.name}: {spec.description}"]
    if spec.usage:
        lines.append(f"Usage: {spec.usage}")
    if spec.subcommands:
        lines.append(f"Reports: {', '.join(spec.subcommands)}")
    if spec.params:
        lines.append("Parameters:")
        lines.extend(f"  {param.describe()}" for param in spec.params)
    if spec.returns:
        lines.append(f"Returns: {spec.returns}")
    if spec.example:
        lines.append(f"Example: {spec.example}")
    if spec.module:
        lines.append(f"Runs: python -m {' '.join([spec.module, *spec.fixed_args])}")
    return "\n".join(lines)


def run_module(spec: CommandSpec, args: Sequence[str], context: CommandContext) -> CommandResult:
    """Run a scripts module in a child interpreter sharing this session's data root."""

    if not spec.module:
        return CommandResult(exit_code=2, stdout="", stderr=f"Command '{spec.name}' has no module to run.")
    env = {
        **os.environ,
        "PYTHONPATH": str(context.repo_root),
        "MRV_DATA_ROOT": str(context.data_root),
    }
    completed = subprocess.run(
        [context.python, "-m", spec.module, *forwarded_argv(spec, args)],
        cwd=str(context.repo_root),
        env=env,
        capture_output=True,
        text=True,
    )
    return CommandResult(exit_code=completed.returncode, stdout=completed.stdout, stderr=completed.stderr)


def execute(spec: CommandSpec, args: Sequence[str], context: CommandContext) -> CommandResult:
    if spec.handler is not None:
        return spec.handler(args, context)
    return run_module(spec, args, context)


def summary_status(stdout: str) -> Optional[str]:
    """``status`` of the JSON summary a scripts module printed, if it printed one."""

    try:
        payload = json.loads(stdout)
    except ValueError:
        return None
    if isinstance(payload, dict) and isinstance(payload.get("status"), str):
        return payload["status"]
    return None


def record_invocation(
    context: CommandContext,
    spec: CommandSpec,
    args: Sequence[str],
    result: CommandResult,
) -> Path:
    """Append one JSON line per command to ``<data root>/logs/cli/history.jsonl``."""

    log_dir = cli_log_root(context.data_root)
    log_dir.mkdir(parents=True, exist_ok=True)
    entry: Dict[str, Any] = {
        "at": datetime.now(timezone.utc).isoformat(),
        "command": spec.name,
        "module": spec.module,
        "argv": forwarded_argv(spec, args),
        "exit_code": result.exit_code,
        "status": summary_status(result.stdout),
        "stderr": result.stderr.strip() or None,
    }
    history = log_dir / HISTORY_FILE
    with history.open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(entry, sort_keys=True) + "\n")
    return history


def dispatch(spec: CommandSpec, args: Sequence[str], context: CommandContext) -> CommandResult:
    if HELP_FLAGS.intersection(args):
        typer.echo(command_help(spec))
        return CommandResult(exit_code=0, stdout="", stderr="")
    result = execute(spec, args, context)
    if result.stdout:
        sys.stdout.write(result.stdout)
    if result.stderr:
        sys.stderr.write(result.stderr)
    record_invocation(context, spec, args, result)
    if result.exit_code != 0:
        status = summary_status(result.stdout)
        detail = f" ({status})" if status else ""
        typer.echo(f"{spec.name} exited with code {result.exit_code}{detail}", err=True)
    return result


def handle_line(raw: str, context: CommandContext) -> Optional[CommandResult]:
    try:
        tokens = shlex.split(raw)
    except ValueError as exc:
        typer.echo(f"Could not parse input: {exc}", err=True)
        return None
    if not tokens:
        return None
    name, args = tokens[0], tokens[1:]
    if name in EXIT_WORDS:
        raise typer.Exit()
    if name == "help" or name in HELP_FLAGS:
        typer.echo(overview_help())
        return None
    spec = COMMANDS.get(name)
    if spec is None:
        typer.echo(f"Unknown command: {name}")
        typer.echo(overview_help())
        return None
    return dispatch(spec, args, context)


def completions(head: str, text: str) -> List[str]:
    """Candidates for the word being typed; ``head`` is the line before it."""

    words = head.split()
    if not words:
        candidates = sorted(COMMANDS)
    else:
        spec = COMMANDS.get(words[0])
        if spec is None:
            return []
        reports = [word for word in words[1:] if word in spec.subcommands]
        if spec.subcommands and not reports:
            candidates = list(spec.subcommands)
        else:
            candidates = [flag for param in spec.params for flag in param.flag.split("/")]
    return [candidate for candidate in candidates if candidate.startswith(text)]


def _install_completer() -> None:
    if readline is None:
        return

    def completer(text: str, state: int) -> Optional[str]:
        head = readline.get_line_buffer()[: readline.get_begidx()]
        matches = completions(head, text)
        return matches[state] if state < len(matches) else None

    readline.set_completer(completer)
    readline.set_completer_delims(" \t")
    readline.parse_and_bind("tab: complete")


def shell(context: CommandContext) -> None:
    _install_completer()
    typer.echo(f"mrv shell (data root: {context.data_root}). Type `help` for commands.")
    while True:
        try:
            line = input(PROMPT)
        except EOFError:
            typer.echo()
            break
        handle_line(line, context)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    data_root: Optional[Path] = typer.Option(None, "--data-root", help="Override MRV_DATA_ROOT for this session."),
) -> None:
    """Start the interactive shell, or run a single command and exit with its code."""

    ctx.obj = build_context(data_root.expanduser() if data_root else None)
    if ctx.invoked_subcommand is None:
        shell(ctx.obj)


def _register_direct_command(spec: CommandSpec) -> None:
    # Arguments, --help included, pass through untouched to the scripts module.
    settings = {"allow_extra_args": True, "ignore_unknown_options": True, "help_option_names": []}

    @app.command(name=spec.name, help=spec.description, context_settings=settings)
    def _direct(ctx: typer.Context) -> None:  # type: ignore[valid-type]
        result = dispatch(spec, list(ctx.args), ctx.obj)
        raise typer.Exit(code=result.exit_code)


for _spec in COMMAND_SPECS:
    _register_direct_command(_spec)


if __name__ == "__main__":
    app()
