"""Readiness checks run before the inference process is started."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import probe_utils
from constants import REQUIRED
from probe_utils import ProbeResult

log = logging.getLogger(__name__)


@dataclass
class PreflightReport:
    passed: bool = True
    failures: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    probe: Optional[ProbeResult] = None

    def fail(self, message: str) -> "PreflightReport":
        log.error("%s", message)
        self.failures.append(message)
        self.passed = False
        return self

    def warn(self, message: str) -> None:
        log.warning("%s", message)
        self.warnings.append(message)


def _with_hint(message: str, missing: str) -> str:
    hint = probe_utils.package_hint([missing])
    return f"{message}\n{hint}" if hint else message


def check_gpu_runtime(probe: ProbeResult, report: PreflightReport) -> bool:
    if not probe.parsed:
        report.fail(f"Runtime status output could not be read:\n{probe.diagnostics or 'no output'}")
        return False
    if not probe.cuda_version:
        report.fail(
            f"PyTorch {probe.torch_version or '(unknown version)'} has no CUDA build; "
            "install a CUDA-enabled torch wheel"
        )
        return False
    if not probe.cuda_available:
        report.fail(f"CUDA {probe.cuda_version} is not available to torch (no usable GPU or driver)")
        return False
    if not probe.cuda_home:
        report.fail("CUDA toolkit home not configured: set CUDA_HOME or install the CUDA toolkit")
        return False
    log.info("torch %s, CUDA %s at %s", probe.torch_version, probe.cuda_version, probe.cuda_home)
    return True


def run_preflight(interpreter: str, *, skip_gpu_checks: bool = False) -> PreflightReport:
    report = PreflightReport()
    probe = probe_utils.probe_runtime(interpreter)
    report.probe = probe

    duplicate = probe_utils.detect_duplicate_runtime_conflict(probe.diagnostics)
    if duplicate:
        report.warn("Duplicate OpenMP runtime detected; the child PATH will be sanitized to avoid it")

    if not skip_gpu_checks:
        if probe.ok:
            if not check_gpu_runtime(probe, report):
                return report
        elif not duplicate:
            detail = probe.diagnostics or probe.error or "no output"
            return report.fail(f"Runtime probe failed (exit {probe.exit_status}):\n{detail}")
        if not probe_utils.has_aux_tool(REQUIRED.GPU_TOOL):
            return report.fail(_with_hint(f"{REQUIRED.GPU_TOOL} not found on PATH (NVIDIA driver missing?)", REQUIRED.GPU_TOOL))
    else:
        log.info("Skipping GPU checks")

    if not probe_utils.has_package(interpreter, REQUIRED.BUILD_PACKAGE):
        return report.fail(
            f"Python package '{REQUIRED.BUILD_PACKAGE}' is not importable by {interpreter}; "
            f"try: {interpreter} -m pip install {REQUIRED.BUILD_PACKAGE}"
        )

    compiler = probe_utils.compiler_driver()
    if not probe_utils.has_aux_tool(compiler):
        return report.fail(_with_hint(f"C++ compiler driver '{compiler}' not found on PATH", compiler))

    log.info("Preflight passed")
    return report
