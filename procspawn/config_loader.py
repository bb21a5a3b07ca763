"""Helpers for loading runner configuration files."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Sequence, Tuple

import json
import tomllib

import yaml

from .invocation import RunnerConfig, StdoutFormat


ConfigLoader = Callable[[Any], Mapping[str, Any]]


class ConfigError(ValueError):
    """Raised when a runner configuration is malformed."""


FILE_LOADERS: Dict[str, ConfigLoader] = {
    ".toml": lambda stream: tomllib.load(stream),
    ".json": lambda stream: json.load(stream),
    ".yaml": lambda stream: yaml.safe_load(stream),
    ".yml": lambda stream: yaml.safe_load(stream),
}
"""Mapping of file suffixes to loader callables."""

CONFIG_KEYS = frozenset({"command", "args", "env", "working_dir", "stdout_format", "timeout"})


def load_config_file(path: Path) -> Mapping[str, Any]:
    """Load and decode a configuration mapping from ``path``."""

    suffix = path.suffix.lower()
    loader = FILE_LOADERS.get(suffix)
    if loader is None:
        supported = ", ".join(sorted(FILE_LOADERS)) or "<none>"
        raise ConfigError(
            f"Unsupported configuration file extension: {suffix}. Supported: {supported}"
        )

    mode = "rb" if suffix == ".toml" else "r"
    kwargs: Dict[str, Any] = {}
    if mode == "r":
        kwargs["encoding"] = "utf-8"

    with path.open(mode, **kwargs) as handle:
        data = loader(handle)

    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigError(f"Configuration file '{path}' must contain a mapping at the root")

    return data


def merge_mappings(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> Dict[str, Any]:
    """Overlay ``overlay`` onto ``base``, skipping ``None`` values."""

    result: Dict[str, Any] = dict(base)
    for key, value in overlay.items():
        if value is None:
            continue
        existing = result.get(key)
        if isinstance(existing, Mapping) and isinstance(value, Mapping):
            result[key] = merge_mappings(existing, value)
        else:
            result[key] = value
    return result


def normalize_string_list(value: Any, *, field_name: str) -> List[str]:
    """Coerce ``value`` into a list of strings, keeping empty entries."""

    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        items: List[str] = []
        for item in value:
            if isinstance(item, (dict, list)) or item is None:
                raise ConfigError(f"{field_name} entries must be scalar values")
            items.append(str(item))
        return items
    raise ConfigError(f"{field_name} must be a string or sequence of strings")


def normalize_env(value: Any) -> List[Tuple[str, str]]:
    """Accept a mapping or a list of ``{name, value}`` entries."""

    if value is None:
        return []
    if isinstance(value, Mapping):
        return [(str(name), "" if item is None else str(item)) for name, item in value.items()]
    if isinstance(value, Sequence) and not isinstance(value, str):
        pairs: List[Tuple[str, str]] = []
        for entry in value:
            if isinstance(entry, Mapping):
                if "name" not in entry:
                    raise ConfigError("env entries must define 'name'")
                pairs.append((str(entry["name"]), str(entry.get("value", ""))))
            elif isinstance(entry, Sequence) and not isinstance(entry, str) and len(entry) == 2:
                pairs.append((str(entry[0]), str(entry[1])))
            elif isinstance(entry, str) and "=" in entry:
                name, _, text = entry.partition("=")
                pairs.append((name, text))
            else:
                raise ConfigError(f"Invalid env entry: {entry!r}")
        return pairs
    raise ConfigError("env must be a mapping or a list of entries")


def parse_runner_config(data: Mapping[str, Any]) -> RunnerConfig:
    """Validate ``data`` and build a :class:`RunnerConfig`."""

    unknown = sorted(set(data) - CONFIG_KEYS)
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")

    command = data.get("command")
    if not isinstance(command, str) or not command.strip():
        raise ConfigError("command must be a non-empty string")

    working_dir = data.get("working_dir") or ""
    if not isinstance(working_dir, str):
        raise ConfigError("working_dir must be a string")

    stdout_format = data.get("stdout_format", StdoutFormat.JSON.value)
    if not isinstance(stdout_format, (str, StdoutFormat)):
        raise ConfigError("stdout_format must be 'json' or 'plain'")

    timeout = data.get("timeout")
    if timeout is not None:
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ConfigError("timeout must be a positive number of seconds")
        timeout = float(timeout)

    return RunnerConfig(
        command=command,
        args=tuple(normalize_string_list(data.get("args"), field_name="args")),
        env=tuple(normalize_env(data.get("env"))),
        working_dir=working_dir,
        stdout_format=StdoutFormat.from_value(stdout_format),
        timeout=timeout,
    )


def load_runner_config(path: Path, *, overrides: Mapping[str, Any] | None = None) -> RunnerConfig:
    data = load_config_file(path)
    if overrides:
        data = merge_mappings(data, overrides)
    return parse_runner_config(data)


__all__ = [
    "CONFIG_KEYS",
    "ConfigError",
    "ConfigLoader",
    "FILE_LOADERS",
    "load_config_file",
    "load_runner_config",
    "merge_mappings",
    "normalize_env",
    "normalize_string_list",
    "parse_runner_config",
]
