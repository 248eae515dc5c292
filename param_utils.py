"""Resolve launcher parameters from overrides, cache, prompts and defaults."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Mapping, Optional, Sequence

from validators import CacheValue, ParamKind, coerce_cached, coerce_value

log = logging.getLogger(__name__)

PromptFn = Callable[[str], str]


@dataclass(frozen=True)
class ParameterSpec:
    name: str
    kind: ParamKind
    default: CacheValue
    help: str = ""
    promptable: bool = True
    # presence-only child flag (``--name`` when true, omitted when false)
    flag: bool = False
    # None, "file", "dir" or "outdir"
    path: Optional[str] = None


def format_suggestion(value: CacheValue) -> str:
    if isinstance(value, bool):
        return "y" if value else "n"
    return str(value)


def prompt_value(spec: ParameterSpec, suggested: CacheValue, prompt: PromptFn = input) -> CacheValue:
    """Ask until the answer coerces to ``spec.kind``; blank keeps ``suggested``."""
    label = f"{spec.name} [{format_suggestion(suggested)}]: "
    while True:
        try:
            answer = prompt(label)
        except EOFError:
            log.warning("No input for %s; keeping %s", spec.name, format_suggestion(suggested))
            return suggested
        if not answer.strip():
            return suggested
        result = coerce_value(answer, spec.kind, name=spec.name)
        if result.is_valid:
            return result.value  # type: ignore[return-value]
        log.warning("%s", result.error)


def cached_value(spec: ParameterSpec, cache: Mapping[str, CacheValue]) -> Optional[CacheValue]:
    if spec.name not in cache:
        return None
    value = coerce_cached(cache[spec.name], spec.kind)
    if value is None:
        log.warning("Ignoring cached %s=%r: not a %s", spec.name, cache[spec.name], spec.kind.value)
    return value


def resolve_parameter(
    spec: ParameterSpec,
    *,
    override: Optional[CacheValue] = None,
    cache: Mapping[str, CacheValue] | None = None,
    use_defaults: bool = False,
    interactive: bool = False,
    prompt: PromptFn = input,
) -> CacheValue:
    if override is not None:
        return override
    if use_defaults:
        return spec.default
    base = cached_value(spec, cache or {})
    if base is None:
        base = spec.default
    if interactive and spec.promptable:
        return prompt_value(spec, base, prompt)
    return base


def resolve_parameters(
    specs: Sequence[ParameterSpec],
    *,
    overrides: Mapping[str, Optional[CacheValue]] | None = None,
    cache: Mapping[str, CacheValue] | None = None,
    use_defaults: bool = False,
    interactive: bool = False,
    ask: Iterable[str] = (),
    prompt: PromptFn = input,
) -> Dict[str, CacheValue]:
    overrides = overrides or {}
    ask_names = set(ask)
    resolved: Dict[str, CacheValue] = {}
    for spec in specs:
        value = resolve_parameter(
            spec,
            override=overrides.get(spec.name),
            cache=cache,
            use_defaults=use_defaults,
            interactive=interactive or spec.name in ask_names,
            prompt=prompt,
        )
        resolved[spec.name] = value
        log.debug("%s = %r", spec.name, value)
    return resolved
