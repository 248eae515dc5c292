from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar, Union


T = TypeVar("T")

CacheValue = Union[str, int, float, bool]

_YES_RE = re.compile(r"^(y|yes)$", re.IGNORECASE)
_NO_RE = re.compile(r"^(n|no)$", re.IGNORECASE)


class ParamKind(Enum):
    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"


@dataclass
class ValidationResult(Generic[T]):
    value: Optional[T]
    error: Optional[str]

    @property
    def is_valid(self) -> bool:
        return self.error is None


def parse_bool(value: str) -> Optional[bool]:
    text = value.strip()
    if _YES_RE.match(text):
        return True
    if _NO_RE.match(text):
        return False
    return None


def parse_or_none(value: str, kind: ParamKind) -> Optional[CacheValue]:
    """Parse user text into ``kind``; ``None`` means the text is not valid."""
    text = value.strip()
    if kind is ParamKind.STRING:
        return text
    if kind is ParamKind.BOOLEAN:
        return parse_bool(text)
    try:
        if kind is ParamKind.INTEGER:
            return int(text)
        return float(text)
    except ValueError:
        return None


def coerce_value(value: str, kind: ParamKind, *, name: str = "value") -> ValidationResult[CacheValue]:
    parsed = parse_or_none(value, kind)
    if parsed is not None:
        return ValidationResult(parsed, None)
    if kind is ParamKind.BOOLEAN:
        return ValidationResult(None, f"{name} must be y/yes or n/no")
    if kind is ParamKind.INTEGER:
        return ValidationResult(None, f"{name} must be an integer")
    return ValidationResult(None, f"{name} must be a number")


def coerce_cached(value: Any, kind: ParamKind) -> Optional[CacheValue]:
    """Convert a value read from JSON into ``kind``, or ``None`` if it does not fit."""
    if kind is ParamKind.BOOLEAN:
        if isinstance(value, bool):
            return value
        return parse_bool(value) if isinstance(value, str) else None
    if isinstance(value, bool):
        return None
    if kind is ParamKind.STRING:
        return value if isinstance(value, str) else None
    if kind is ParamKind.INTEGER:
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        return parse_or_none(value, kind) if isinstance(value, str) else None
    if isinstance(value, (int, float)):
        return float(value)
    return parse_or_none(value, kind) if isinstance(value, str) else None
