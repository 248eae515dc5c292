"""Keep a conda base install's native libraries out of the child's PATH.

When an isolated conda env is active, the base installation's ``Library/bin``
(or ``lib``) directories can still sit on PATH. Both ship an OpenMP runtime,
and loading the second copy aborts torch with ``OMP: Error #15``. The child
gets a PATH without the base install's entries while the env's own entries
stay.
"""
from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional

from constants import ENV
from errors import EnvironmentContextError

log = logging.getLogger(__name__)

_SEPARATORS = "\\/"


@dataclass(frozen=True)
class CondaContext:
    env_prefix: str
    install_root: str


def _normalize(entry: str, ignore_case: bool) -> str:
    entry = entry.strip().rstrip(_SEPARATORS)
    return entry.lower() if ignore_case else entry


def _is_under(entry: str, root: str) -> bool:
    if not root:
        return False
    return entry == root or (entry.startswith(root) and entry[len(root)] in _SEPARATORS)


def compute_sanitized_search_path(
    current_path: str,
    env_prefix: str,
    install_root: str,
    *,
    sep: str = os.pathsep,
    ignore_case: Optional[bool] = None,
) -> str:
    if ignore_case is None:
        ignore_case = sys.platform == "win32"
    prefix = _normalize(env_prefix, ignore_case)
    root = _normalize(install_root, ignore_case)
    kept = []
    for entry in current_path.split(sep):
        normalized = _normalize(entry, ignore_case)
        if _is_under(normalized, root) and not _is_under(normalized, prefix):
            log.debug("Dropping %s from child PATH", entry)
            continue
        kept.append(entry)
    return sep.join(kept)


def _is_conda_install(path: Path) -> bool:
    return (path / "conda-meta").is_dir()


def _install_root_from_exe(conda_exe: str) -> Path | None:
    if not conda_exe:
        return None
    # <root>/bin/conda, <root>/condabin/conda or <root>\Scripts\conda.exe
    root = Path(conda_exe).parent.parent
    if not _is_conda_install(root):
        log.debug("Ignoring %s=%s: %s is not a conda install", ENV.CONDA_EXE, conda_exe, root)
        return None
    return root


def conda_context(environ: Mapping[str, str]) -> CondaContext | None:
    prefix = environ.get(ENV.CONDA_PREFIX, "").strip()
    if not prefix:
        return None
    prefix_path = Path(prefix)
    if not prefix_path.is_dir():
        raise EnvironmentContextError(f"{ENV.CONDA_PREFIX} does not point to a directory: {prefix}")
    root = None
    if prefix_path.parent.name == "envs" and _is_conda_install(prefix_path.parent.parent):
        root = prefix_path.parent.parent
    if root is None:
        root = _install_root_from_exe(environ.get(ENV.CONDA_EXE, "").strip()) or prefix_path
    return CondaContext(env_prefix=str(prefix_path), install_root=str(root))


def child_environment_updates(
    environ: Mapping[str, str],
    context: CondaContext | None,
    *,
    allow_omp_duplicate: bool = False,
) -> Dict[str, str]:
    updates: Dict[str, str] = {}
    if context is not None and context.env_prefix != context.install_root:
        current = environ.get(ENV.SEARCH_PATH, "")
        sanitized = compute_sanitized_search_path(current, context.env_prefix, context.install_root)
        if sanitized != current:
            updates[ENV.SEARCH_PATH] = sanitized
    if allow_omp_duplicate:
        log.warning("%s=TRUE set for the child; results may be unreliable", ENV.OMP_GUARD)
        updates[ENV.OMP_GUARD] = "TRUE"
    return updates
