#!/usr/bin/env python3
"""Launcher for the GPU inference script.

Parameters come from command-line flags, then the values used by the last
successful run (cached under ``~/.infer_launcher``), then interactive prompts,
then the built-in defaults. Before starting the script the launcher checks that
the target interpreter has a CUDA-enabled torch, a GPU, the CUDA toolkit,
``nvidia-smi``, ``ninja`` and a C++ compiler, and it strips the conda base
install from the child's PATH so the OpenMP runtime is loaded only once.
"""
from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, MutableMapping, Optional, Sequence

from dotenv import load_dotenv

import cache_utils
import env_utils
import preflight
import process_utils
from command_utils import INTERPRETER_PARAM, SCRIPT_PARAM, CommandInvocation, build_command
from constants import DEFAULTS, ENV, EXIT
from errors import InferenceFailedError, LaunchError, PreflightError
from log_utils import setup_logging
from param_utils import ParameterSpec, PromptFn, resolve_parameters
from path_utils import resolve_path
from validators import CacheValue, ParamKind

SCRIPT_DIR = Path(__file__).resolve().parent

log = logging.getLogger(__name__)

PARAMETERS: List[ParameterSpec] = [
    ParameterSpec(INTERPRETER_PARAM, ParamKind.STRING, DEFAULTS.PYTHON, "Python interpreter that runs the script", promptable=False),
    ParameterSpec(SCRIPT_PARAM, ParamKind.STRING, DEFAULTS.SCRIPT, "Inference script", path="file"),
    ParameterSpec("fp16", ParamKind.BOOLEAN, True, "Run the model in half precision", flag=True),
    ParameterSpec("cuda_kernel", ParamKind.BOOLEAN, False, "Use the compiled CUDA kernels", flag=True),
    ParameterSpec("cache_size", ParamKind.INTEGER, 2048, "KV cache size"),
    ParameterSpec("batch_size", ParamKind.INTEGER, 1, "Batch size"),
    ParameterSpec("gpu", ParamKind.INTEGER, 0, "GPU index"),
    ParameterSpec("model_dir", ParamKind.STRING, "checkpoints", "Model checkpoint directory", path="dir"),
    ParameterSpec("config", ParamKind.STRING, "checkpoints/config.yaml", "Model config file", path="file"),
    ParameterSpec("segments", ParamKind.INTEGER, 120, "Number of text segments"),
    ParameterSpec("output_dir", ParamKind.STRING, "outputs", "Directory for generated output", path="outdir"),
    ParameterSpec("max_tokens", ParamKind.INTEGER, 600, "Maximum generated tokens per segment"),
    ParameterSpec("repetition_penalty", ParamKind.FLOAT, 10.0, "Repetition penalty"),
    ParameterSpec("text_file", ParamKind.STRING, "input.txt", "Input text file", path="file"),
    ParameterSpec("prompt_file", ParamKind.STRING, "prompt.txt", "Prompt text file", path="file"),
]


class LaunchState(Enum):
    INIT = "init"
    CACHE_LOADED = "cache-loaded"
    PARAMETERS_RESOLVED = "parameters-resolved"
    PATHS_RESOLVED = "paths-resolved"
    PREFLIGHT_PASSED = "preflight-passed"
    COMMAND_BUILT = "command-built"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class LaunchOptions:
    overrides: Dict[str, Optional[CacheValue]] = field(default_factory=dict)
    use_defaults: bool = False
    interactive: bool = False
    ask: List[str] = field(default_factory=list)
    reset_cache: bool = False
    dry_run: bool = False
    skip_preflight: bool = False
    skip_gpu_checks: bool = False
    allow_omp_duplicate: bool = False


class Launcher:
    def __init__(
        self,
        options: LaunchOptions,
        *,
        specs: Sequence[ParameterSpec] = PARAMETERS,
        environ: MutableMapping[str, str] | None = None,
        prompt: PromptFn = input,
        cache_path: Path | None = None,
        out: Callable[[str], None] = print,
    ) -> None:
        self.options = options
        self.specs = list(specs)
        self.environ = os.environ if environ is None else environ
        self.prompt = prompt
        self.cache_path = cache_path or cache_utils.default_cache_path()
        self.out = out
        self.state = LaunchState.INIT
        self.params: Dict[str, CacheValue] = {}
        self.invocation: CommandInvocation | None = None
        self.conda: env_utils.CondaContext | None = None

    def _advance(self, state: LaunchState) -> None:
        log.debug("%s -> %s", self.state.value, state.value)
        self.state = state

    def load_cache(self) -> Dict[str, CacheValue]:
        if self.options.reset_cache:
            if self.options.dry_run:
                log.info("Dry run: ignoring cached values without removing %s", self.cache_path)
            else:
                cache_utils.clear(self.cache_path)
            return {}
        return cache_utils.load(self.cache_path)

    def resolve_paths(self, params: Dict[str, CacheValue]) -> Dict[str, CacheValue]:
        resolved = dict(params)
        for spec in self.specs:
            if spec.path is None:
                continue
            path = resolve_path(
                str(params[spec.name]),
                create_dir=spec.path == "outdir",
                name=spec.help or spec.name,
            )
            resolved[spec.name] = str(path)
        return resolved

    def execute(self, invocation: CommandInvocation) -> int:
        updates = env_utils.child_environment_updates(
            self.environ, self.conda, allow_omp_duplicate=self.options.allow_omp_duplicate
        )
        self._advance(LaunchState.EXECUTING)
        with process_utils.scoped_environ(self.environ, updates) as env:
            return process_utils.run_child(invocation.argv, env=dict(env))

    def run(self) -> int:
        opts = self.options
        cache = self.load_cache()
        self._advance(LaunchState.CACHE_LOADED)

        self.params = resolve_parameters(
            self.specs,
            overrides=opts.overrides,
            cache=cache,
            use_defaults=opts.use_defaults,
            interactive=opts.interactive,
            ask=opts.ask,
            prompt=self.prompt,
        )
        self._advance(LaunchState.PARAMETERS_RESOLVED)

        resolved = self.resolve_paths(self.params)
        self.conda = env_utils.conda_context(self.environ)
        self._advance(LaunchState.PATHS_RESOLVED)

        if opts.skip_preflight:
            log.info("Skipping preflight checks")
        else:
            report = preflight.run_preflight(str(resolved[INTERPRETER_PARAM]), skip_gpu_checks=opts.skip_gpu_checks)
            if not report.passed:
                raise PreflightError(report)
        self._advance(LaunchState.PREFLIGHT_PASSED)

        self.invocation = build_command(self.specs, resolved)
        self._advance(LaunchState.COMMAND_BUILT)

        if opts.dry_run:
            self.out("Dry run, would launch:\n  " + self.invocation.preview())
            return EXIT.OK

        self.out("Launching inference:\n  " + self.invocation.preview())
        status = self.execute(self.invocation)
        if status != 0:
            self._advance(LaunchState.FAILED)
            raise InferenceFailedError(status)
        self._advance(LaunchState.SUCCEEDED)
        cache_utils.save(self.params, self.cache_path)
        return EXIT.OK


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Check the GPU environment and launch the inference script.")
    modes = p.add_argument_group("modes")
    modes.add_argument("--use-defaults", action="store_true", help="ignore cached values and use built-in defaults")
    modes.add_argument("--interactive", action="store_true", help="prompt for every parameter")
    modes.add_argument(
        "--ask",
        action="append",
        default=[],
        metavar="NAME",
        choices=[s.name for s in PARAMETERS if s.promptable],
        help="prompt for this parameter only (repeatable)",
    )
    modes.add_argument("--reset-cache", action="store_true", help="forget the values of the last successful run")
    modes.add_argument("--dry-run", action="store_true", help="print the command without running it")
    modes.add_argument("--skip-preflight", action="store_true", help="do not check the environment")
    modes.add_argument("--skip-gpu-checks", action="store_true", help="skip torch/CUDA/nvidia-smi checks")
    modes.add_argument(
        "--allow-omp-duplicate",
        action="store_true",
        help=f"set {ENV.OMP_GUARD}=TRUE for the child (last resort for OMP Error #15)",
    )
    modes.add_argument("--log-file", default=None, help=f"also log to this file (default: ${ENV.LOG_FILE})")
    modes.add_argument("--verbose", "-v", action="store_true", help="debug logging")

    values = p.add_argument_group("parameters")
    values.add_argument("--python", default=None, help="interpreter that runs the script")
    values.add_argument("--script", default=None, help="inference script path")
    values.add_argument("--fp16", action=argparse.BooleanOptionalAction, default=None, help="half precision")
    values.add_argument("--cuda-kernel", action=argparse.BooleanOptionalAction, default=None, help="compiled CUDA kernels")
    values.add_argument("--cache-size", type=int, default=None)
    values.add_argument("--batch-size", type=int, default=None)
    values.add_argument("--gpu", type=int, default=None, help="GPU index")
    values.add_argument("--model-dir", default=None)
    values.add_argument("--config", default=None)
    values.add_argument("--segments", type=int, default=None, help="text segment count")
    values.add_argument("--output-dir", default=None)
    values.add_argument("--max-tokens", type=int, default=None)
    values.add_argument("--repetition-penalty", type=float, default=None)
    values.add_argument("--text-file", default=None)
    values.add_argument("--prompt-file", default=None)
    return p


def options_from_args(args: argparse.Namespace) -> LaunchOptions:
    return LaunchOptions(
        overrides={spec.name: getattr(args, spec.name) for spec in PARAMETERS},
        use_defaults=args.use_defaults,
        interactive=args.interactive,
        ask=list(args.ask),
        reset_cache=args.reset_cache,
        dry_run=args.dry_run,
        skip_preflight=args.skip_preflight,
        skip_gpu_checks=args.skip_gpu_checks,
        allow_omp_duplicate=args.allow_omp_duplicate,
    )


def load_environment() -> None:
    for env_file in (SCRIPT_DIR / ".env", SCRIPT_DIR / ".env.local", Path.cwd() / ".env"):
        load_dotenv(env_file)


def main(argv: Sequence[str] | None = None) -> int:
    load_environment()
    args = build_parser().parse_args(argv)
    try:
        setup_logging(verbose=args.verbose, log_file=args.log_file or os.environ.get(ENV.LOG_FILE))
        return Launcher(options_from_args(args)).run()
    except LaunchError as exc:
        log.error("%s", exc)
        return exc.exit_code


if __name__ == "__main__":
    sys.exit(main())
