"""Last-used parameter cache stored as a flat JSON object."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict, Mapping

from constants import DEFAULTS, ENV
from validators import CacheValue

log = logging.getLogger(__name__)


def default_cache_path() -> Path:
    override = os.environ.get(ENV.CACHE_PATH)
    if override:
        return Path(override).expanduser()
    return Path.home() / DEFAULTS.CACHE_DIR_NAME / DEFAULTS.CACHE_FILE_NAME


def load(path: Path | None = None) -> Dict[str, CacheValue]:
    path = path or default_cache_path()
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as exc:
        log.warning("Ignoring unreadable cache %s: %s", path, exc)
        return {}
    if not isinstance(data, dict):
        log.warning("Ignoring cache %s: expected a JSON object", path)
        return {}
    record: Dict[str, CacheValue] = {}
    for key, value in data.items():
        if isinstance(value, (str, int, float, bool)):
            record[str(key)] = value
        else:
            log.warning("Ignoring cached %s: unsupported value %r", key, value)
    log.debug("Loaded %d cached values from %s", len(record), path)
    return record


def save(record: Mapping[str, CacheValue], path: Path | None = None) -> bool:
    path = path or default_cache_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(dict(record), indent=2), encoding="utf-8")
    except (OSError, TypeError, ValueError) as exc:
        log.warning("Could not save cache %s: %s", path, exc)
        return False
    log.debug("Saved %d values to %s", len(record), path)
    return True


def clear(path: Path | None = None) -> bool:
    path = path or default_cache_path()
    try:
        path.unlink()
    except FileNotFoundError:
        return True
    except OSError as exc:
        log.warning("Could not remove cache %s: %s", path, exc)
        return False
    log.info("Cleared cached values (%s)", path)
    return True
