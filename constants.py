from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class LauncherDefaults:
    PYTHON: str = "python"
    SCRIPT: str = "infer.py"
    CACHE_DIR_NAME: str = ".infer_launcher"
    CACHE_FILE_NAME: str = "last_run.json"
    PROBE_TIMEOUT: float = 120.0
    PACKAGE_TIMEOUT: float = 60.0


@dataclass(frozen=True)
class EnvVars:
    CACHE_PATH: str = "INFER_LAUNCHER_CACHE"
    LOG_FILE: str = "INFER_LAUNCHER_LOG"
    CONDA_PREFIX: str = "CONDA_PREFIX"
    CONDA_EXE: str = "CONDA_EXE"
    SEARCH_PATH: str = "PATH"
    OMP_GUARD: str = "KMP_DUPLICATE_LIB_OK"


@dataclass(frozen=True)
class PreflightRequirements:
    GPU_TOOL: str = "nvidia-smi"
    BUILD_PACKAGE: str = "ninja"
    COMPILER_WINDOWS: str = "cl"
    COMPILER_POSIX: str = "c++"
    # libiomp prints this when a second copy of the OpenMP runtime initialises
    OMP_DUPLICATE_SIGNATURE: str = "OMP: Error #15"


@dataclass(frozen=True)
class ExitCodes:
    OK: int = 0
    PREFLIGHT: int = 1
    INTERRUPTED: int = 130
    PROBE_FAILED: int = 3
    NOT_FOUND: int = 127
    TIMEOUT: int = 124


DEFAULTS = LauncherDefaults()
ENV = EnvVars()
REQUIRED = PreflightRequirements()
EXIT = ExitCodes()
