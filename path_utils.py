from __future__ import annotations

import os
from pathlib import Path

from errors import LaunchError, PathNotFoundError


def expand_path(path_like: str) -> str:
    return os.path.expanduser(os.path.expandvars(str(path_like)))


def resolve_path(
    path_like: str,
    *,
    allow_missing: bool = False,
    create_dir: bool = False,
    name: str = "Path",
) -> Path:
    """Expand ``$VARS`` and ``~`` and return an absolute path.

    Existing paths come back canonical. Missing ones are made absolute against
    the working directory and then created, returned as-is or rejected.
    """
    expanded = expand_path(path_like or "")
    if not expanded:
        # Path("") would silently mean the working directory
        raise PathNotFoundError(Path(expanded), name)
    candidate = Path(expanded)
    if candidate.exists():
        return candidate.resolve()
    absolute = candidate.absolute()
    if create_dir:
        try:
            absolute.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise LaunchError(f"Could not create {name}: {absolute} ({exc})") from exc
        return absolute
    if allow_missing:
        return absolute
    raise PathNotFoundError(absolute, name)
