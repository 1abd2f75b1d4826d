from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence, Tuple


@dataclass(frozen=True)
class CommandContext:
    repo_root: Path
    data_root: Path
    python: str


@dataclass(frozen=True)
class CommandResult:
    exit_code: int
    stdout: str
    stderr: str


CommandHandler = Callable[[Sequence[str], CommandContext], CommandResult]


@dataclass(frozen=True)
class ParamSpec:
    flag: str
    kind: str
    help: str
    required: bool = False
    default: Optional[str] = None

    def describe(self) -> str:
        suffix = " (required)" if self.required else ""
        if self.default is not None:
            suffix += f" [default: {self.default}]"
        return f"{self.flag:<20} {self.kind:<6} {self.help}{suffix}"


@dataclass(frozen=True)
class CommandSpec:
    name: str
    description: str
    module: Optional[str] = None
    handler: Optional[CommandHandler] = None
    fixed_args: Tuple[str, ...] = ()
    usage: Optional[str] = None
    params: Tuple[ParamSpec, ...] = ()
    returns: Optional[str] = None
    example: Optional[str] = None
    subcommands: Tuple[str, ...] = ()
