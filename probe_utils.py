"""Query the target interpreter for torch/CUDA status and look up host tools."""
from __future__ import annotations

import json
import logging
import shutil
import subprocess
import sys
import textwrap
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from constants import DEFAULTS, EXIT, REQUIRED

log = logging.getLogger(__name__)

PROBE_SCRIPT = textwrap.dedent(
    f"""\
    import json
    import os
    import sys

    payload = {{
        "torch_version": None,
        "cuda_version": None,
        "cuda_available": False,
        "cuda_home": None,
        "error": None,
    }}
    try:
        import torch
        payload["torch_version"] = getattr(torch, "__version__", None)
        cuda_version = getattr(getattr(torch, "version", None), "cuda", None)
        payload["cuda_version"] = str(cuda_version) if cuda_version else None
        payload["cuda_available"] = bool(torch.cuda.is_available())
        try:
            from torch.utils.cpp_extension import CUDA_HOME
        except Exception:
            CUDA_HOME = None
        payload["cuda_home"] = CUDA_HOME or os.environ.get("CUDA_HOME") or os.environ.get("CUDA_PATH")
    except Exception as exc:
        payload["error"] = f"{{type(exc).__name__}}: {{exc}}"
    sys.stdout.write(json.dumps(payload) + "\\n")
    sys.stdout.flush()
    sys.exit({EXIT.PROBE_FAILED} if payload["error"] else 0)
    """
)

PACKAGE_SCRIPT = "import importlib.util, sys; sys.exit(0 if importlib.util.find_spec(sys.argv[1]) else 1)"


@dataclass
class ProbeResult:
    exit_status: int
    diagnostics: str = ""
    torch_version: Optional[str] = None
    cuda_version: Optional[str] = None
    cuda_available: bool = False
    cuda_home: Optional[str] = None
    error: Optional[str] = None
    parsed: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_status == 0


def _last_json_line(stdout: str) -> Dict[str, Any] | None:
    for line in reversed(stdout.strip().splitlines()):
        line = line.strip()
        if line.startswith("{"):
            data = json.loads(line)
            return data if isinstance(data, dict) else None
    return None


def parse_probe_output(stdout: str, stderr: str, exit_status: int) -> ProbeResult:
    result = ProbeResult(exit_status=exit_status, diagnostics="\n".join(p for p in (stdout, stderr) if p).strip())
    try:
        data = _last_json_line(stdout)
    except ValueError as exc:
        log.warning("Could not parse runtime probe output: %s", exc)
        return result
    if data is None:
        if exit_status == 0:
            log.warning("Runtime probe printed no status line")
        return result
    result.torch_version = data.get("torch_version") or None
    result.cuda_version = data.get("cuda_version") or None
    result.cuda_available = bool(data.get("cuda_available"))
    result.cuda_home = data.get("cuda_home") or None
    result.error = data.get("error") or None
    result.parsed = True
    return result


def probe_runtime(
    interpreter: str,
    *,
    env: Mapping[str, str] | None = None,
    timeout: float = DEFAULTS.PROBE_TIMEOUT,
) -> ProbeResult:
    cmd = [interpreter, "-c", PROBE_SCRIPT]
    log.debug("Probing runtime with %s", interpreter)
    try:
        proc = subprocess.run(
            cmd,
            text=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            env=dict(env) if env is not None else None,
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError as exc:
        return ProbeResult(exit_status=EXIT.NOT_FOUND, diagnostics=str(exc), error=str(exc))
    except subprocess.TimeoutExpired:
        msg = f"Runtime probe timed out after {timeout:g}s"
        return ProbeResult(exit_status=EXIT.TIMEOUT, diagnostics=msg, error=msg)
    return parse_probe_output(proc.stdout or "", proc.stderr or "", proc.returncode)


def has_aux_tool(name: str) -> bool:
    return shutil.which(name) is not None


def has_package(interpreter: str, package: str, *, timeout: float = DEFAULTS.PACKAGE_TIMEOUT) -> bool:
    try:
        proc = subprocess.run(
            [interpreter, "-c", PACKAGE_SCRIPT, package],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            timeout=timeout,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        log.debug("Package check for %s failed: %s", package, exc)
        return False
    return proc.returncode == 0


def detect_duplicate_runtime_conflict(text: str | None) -> bool:
    return REQUIRED.OMP_DUPLICATE_SIGNATURE in (text or "")


def compiler_driver() -> str:
    return REQUIRED.COMPILER_WINDOWS if sys.platform == "win32" else REQUIRED.COMPILER_POSIX


def package_hint(missing: list[str]) -> str:
    if sys.platform == "win32":
        if REQUIRED.COMPILER_WINDOWS in missing:
            return "Install the Visual Studio Build Tools (C++ workload) and run from a Developer Prompt"
        return ""
    if shutil.which("apt-get"):
        pkg_map = {
            "c++": "build-essential",
            "g++": "build-essential",
            "nvidia-smi": "nvidia-utils",
        }
        pkgs = sorted({pkg_map.get(m, m) for m in missing})
        return "Try: sudo apt install -y " + " ".join(pkgs)
    if shutil.which("pacman"):
        pkg_map = {
            "c++": "base-devel",
            "g++": "base-devel",
            "nvidia-smi": "nvidia-utils",
        }
        pkgs = sorted({pkg_map.get(m, m) for m in missing})
        return "Try: sudo pacman -S --needed " + " ".join(pkgs)
    return ""
