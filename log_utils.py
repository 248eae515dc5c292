from __future__ import annotations

import logging
import sys
from pathlib import Path

from errors import LaunchError

CONSOLE_FORMAT = "%(levelname)s: %(message)s"
FILE_FORMAT = "[%(asctime)s] %(message)s"


def setup_logging(*, verbose: bool = False, log_file: Path | str | None = None) -> logging.Logger:
    """Configure the root logger for a launcher run.

    Console output goes to stderr so stdout stays clean for the command
    preview. ``log_file`` adds a plain timestamped file log.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.DEBUG)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root.addHandler(console)

    if log_file:
        path = Path(log_file).expanduser()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(path, encoding="utf-8")
        except OSError as exc:
            raise LaunchError(f"Cannot open log file {path}: {exc}") from exc
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        root.addHandler(file_handler)
    return root
