from __future__ import annotations

import shlex
from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Sequence

from param_utils import ParameterSpec
from validators import CacheValue

INTERPRETER_PARAM = "python"
SCRIPT_PARAM = "script"


@dataclass
class CommandInvocation:
    interpreter: str
    script: str
    args: List[str] = field(default_factory=list)

    @property
    def argv(self) -> List[str]:
        return [self.interpreter, *self.args]

    def preview(self) -> str:
        return shell_join(self.argv)


def shell_join(parts: Iterable[str]) -> str:
    return " ".join(shlex.quote(str(x)) for x in parts)


def format_value(value: CacheValue) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        # repr is locale independent and round-trips
        return repr(value)
    return str(value)


def build_command(specs: Sequence[ParameterSpec], params: Mapping[str, CacheValue]) -> CommandInvocation:
    script = str(params[SCRIPT_PARAM])
    args: List[str] = [script]
    for spec in specs:
        if spec.flag and params[spec.name]:
            args.append(f"--{spec.name}")
    for spec in specs:
        if spec.flag or spec.name in (INTERPRETER_PARAM, SCRIPT_PARAM):
            continue
        args += [f"--{spec.name}", format_value(params[spec.name])]
    return CommandInvocation(interpreter=str(params[INTERPRETER_PARAM]), script=script, args=args)
