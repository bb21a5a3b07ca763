"""Per-item parameter templates resolved against the item payload."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping
import json
import re

from .config_loader import parse_runner_config
from .invocation import RunnerConfig


_PLACEHOLDER_PATTERN = re.compile(r"\{\{([^{}]+)\}\}")

TEMPLATED_KEYS = ("command", "args", "env", "working_dir")


class TemplateError(ValueError):
    """Raised when template resolution fails."""


def _to_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def lookup_path(context: Mapping[str, Any], path: str) -> Any:
    current: Any = context
    for part in path.split("."):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
            continue
        if isinstance(current, list):
            try:
                current = current[int(part)]
            except (ValueError, IndexError) as exc:
                raise TemplateError(f"Cannot resolve path '{path}' in template context") from exc
            continue
        raise TemplateError(f"Cannot resolve path '{path}' in template context")
    return current


def substitute(text: str, context: Mapping[str, Any]) -> str:
    """Replace every ``{{path}}`` in ``text`` with its value from ``context``."""

    def replacement(match: re.Match[str]) -> str:
        return _to_text(lookup_path(context, match.group(1).strip()))

    return _PLACEHOLDER_PATTERN.sub(replacement, text)


def has_placeholders(value: Any) -> bool:
    if isinstance(value, str):
        return _PLACEHOLDER_PATTERN.search(value) is not None
    if isinstance(value, Mapping):
        return any(has_placeholders(item) for item in value.values())
    if isinstance(value, (list, tuple)):
        return any(has_placeholders(item) for item in value)
    return False


@dataclass(frozen=True)
class ParameterTemplate:
    """Builds a :class:`RunnerConfig` per item from a raw configuration mapping.

    ``{{json.<path>}}`` refers to the item payload and ``{{index}}`` to its
    position in the batch.
    """

    raw: Mapping[str, Any]

    def __post_init__(self) -> None:
        # Surface structural problems before the first item runs.
        parse_runner_config(self.raw)

    @property
    def is_static(self) -> bool:
        return not any(has_placeholders(self.raw.get(key)) for key in TEMPLATED_KEYS)

    def _resolve(self, value: Any, context: Mapping[str, Any]) -> Any:
        if isinstance(value, str):
            return substitute(value, context)
        if isinstance(value, Mapping):
            return {key: self._resolve(item, context) for key, item in value.items()}
        if isinstance(value, (list, tuple)):
            return [self._resolve(item, context) for item in value]
        return value

    def render(self, index: int, payload: Any) -> RunnerConfig:
        context = {"json": payload if payload is not None else {}, "index": index}
        resolved: Dict[str, Any] = dict(self.raw)
        for key in TEMPLATED_KEYS:
            if key in resolved:
                resolved[key] = self._resolve(resolved[key], context)
        return parse_runner_config(resolved)

    __call__ = render


__all__ = [
    "ParameterTemplate",
    "TEMPLATED_KEYS",
    "TemplateError",
    "has_placeholders",
    "lookup_path",
    "substitute",
]
