"""Assemble per-item process invocations."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Sequence, Tuple
import json
import os


class StdoutFormat(Enum):
    """How the standard output of a finished command is decoded."""

    JSON = "json"
    PLAIN = "plain"

    @classmethod
    def from_value(cls, value: "StdoutFormat | str | None") -> "StdoutFormat":
        if isinstance(value, StdoutFormat):
            return value
        if value is None:
            return cls.JSON
        text = str(value).strip().lower()
        if text == cls.JSON.value:
            return cls.JSON
        # Anything else is delivered as raw text.
        return cls.PLAIN


EnvOverrides = Sequence[Tuple[str, str]]


@dataclass(frozen=True)
class RunnerConfig:
    """Per-item configuration of a command execution."""

    command: str
    args: Tuple[str, ...] = ()
    env: Tuple[Tuple[str, str], ...] = ()
    working_dir: str = ""
    stdout_format: StdoutFormat = StdoutFormat.JSON
    timeout: float | None = None

    def __post_init__(self) -> None:
        args = (self.args,) if isinstance(self.args, str) else self.args
        object.__setattr__(self, "args", tuple(str(arg) for arg in args))
        object.__setattr__(self, "env", tuple(_normalize_env(self.env)))
        object.__setattr__(self, "stdout_format", StdoutFormat.from_value(self.stdout_format))


@dataclass(frozen=True)
class InvocationSpec:
    """Fully resolved description of one process execution."""

    command: str
    args: Tuple[str, ...] = ()
    env: Mapping[str, str] = field(default_factory=dict)
    working_dir: str | None = None
    stdin: bytes | None = None

    @property
    def argv(self) -> list[str]:
        return [self.command, *self.args]


def _normalize_env(env: Mapping[str, str] | Iterable[Tuple[str, str]]) -> list[Tuple[str, str]]:
    pairs = env.items() if isinstance(env, Mapping) else env
    return [(str(name), str(value)) for name, value in pairs]


def build_environment(
    overrides: EnvOverrides | Mapping[str, str],
    *,
    base: Mapping[str, str] | None = None,
) -> Dict[str, str]:
    """Return the inherited environment with ``overrides`` applied in order."""

    merged: Dict[str, str] = dict(os.environ if base is None else base)
    for name, value in _normalize_env(overrides):
        merged[name] = value
    return merged


def normalize_working_dir(value: str | None) -> str | None:
    if value is None:
        return None
    text = value.strip()
    return text or None


def serialize_payload(payload: Any) -> bytes | None:
    """Encode ``payload`` as compact JSON; ``None`` means no stdin at all."""

    if payload is None:
        return None
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def build_invocation(
    config: RunnerConfig,
    payload: Any = None,
    *,
    base_env: Mapping[str, str] | None = None,
) -> InvocationSpec:
    """Build the invocation for one item.

    Nothing is validated here; an unusable command or working directory
    only surfaces once the process is spawned.
    """

    return InvocationSpec(
        command=config.command,
        args=tuple(config.args),
        env=build_environment(config.env, base=base_env),
        working_dir=normalize_working_dir(config.working_dir),
        stdin=serialize_payload(payload),
    )


__all__ = [
    "EnvOverrides",
    "InvocationSpec",
    "RunnerConfig",
    "StdoutFormat",
    "build_environment",
    "build_invocation",
    "normalize_working_dir",
    "serialize_payload",
]
