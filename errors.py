"""Exceptions that stop a launch before or after the child runs."""
from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from constants import EXIT

if TYPE_CHECKING:  # pragma: no cover
    from preflight import PreflightReport


class LaunchError(Exception):
    """Fatal condition; ``exit_code`` is what the launcher exits with."""

    def __init__(self, message: str, exit_code: int = EXIT.PREFLIGHT) -> None:
        super().__init__(message)
        self.exit_code = exit_code


class PathNotFoundError(LaunchError):
    def __init__(self, path: Path, name: str = "Path") -> None:
        super().__init__(f"{name} not found: {path}")
        self.path = path


class EnvironmentContextError(LaunchError):
    pass


class PreflightError(LaunchError):
    def __init__(self, report: "PreflightReport") -> None:
        detail = "; ".join(report.failures) or "unknown failure"
        super().__init__(f"Preflight failed: {detail}")
        self.report = report


def exit_code_for_status(status: int) -> int:
    """Map a ``Popen`` return code to a shell-style exit code (signal N -> 128 + N)."""
    return 128 - status if status < 0 else status


class InferenceFailedError(LaunchError):
    def __init__(self, status: int) -> None:
        if status < 0:
            message = f"Inference process was killed by signal {-status}"
        else:
            message = f"Inference process exited with status {status}"
        super().__init__(message, exit_code=exit_code_for_status(status))
        self.status = status
