from __future__ import annotations

import atexit
import logging
import subprocess
from contextlib import contextmanager
from typing import Dict, Iterator, List, MutableMapping, Optional, Sequence

from constants import EXIT

log = logging.getLogger(__name__)

_active_processes: List[subprocess.Popen] = []


def register_process(proc: subprocess.Popen) -> subprocess.Popen:
    if proc not in _active_processes:
        _active_processes.append(proc)
    return proc


def unregister_process(proc: subprocess.Popen) -> None:
    try:
        _active_processes.remove(proc)
    except ValueError:
        pass


def terminate_process(proc: subprocess.Popen, *, timeout: float = 5.0) -> None:
    if proc.poll() is not None:
        return
    try:
        proc.terminate()
        proc.wait(timeout=timeout)
    except (OSError, subprocess.TimeoutExpired):
        try:
            proc.kill()
        except OSError:
            pass


def cleanup_processes() -> None:
    for proc in list(_active_processes):
        terminate_process(proc)
    _active_processes.clear()


@contextmanager
def managed_process(cmd: Sequence[str], **kwargs) -> Iterator[subprocess.Popen]:
    proc = subprocess.Popen(list(cmd), **kwargs)
    register_process(proc)
    try:
        yield proc
    finally:
        unregister_process(proc)


@contextmanager
def scoped_environ(environ: MutableMapping[str, str], updates: Dict[str, str]) -> Iterator[MutableMapping[str, str]]:
    """Apply ``updates`` to ``environ`` and put every touched key back on exit."""
    saved: Dict[str, Optional[str]] = {key: environ.get(key) for key in updates}
    try:
        for key, value in updates.items():
            environ[key] = value
        yield environ
    finally:
        for key, value in saved.items():
            if value is None:
                environ.pop(key, None)
            else:
                environ[key] = value


def run_child(cmd: Sequence[str], *, env: Dict[str, str] | None = None) -> int:
    """Run ``cmd`` to completion; Ctrl-C stops the child and returns 130."""
    log.debug("Spawning: %s", " ".join(map(str, cmd)))
    with managed_process(cmd, env=env) as proc:
        try:
            return proc.wait()
        except KeyboardInterrupt:
            terminate_process(proc)
            return EXIT.INTERRUPTED


atexit.register(cleanup_processes)
