from __future__ import annotations

import json
from dataclasses import asdict, is_dataclass
from typing import Any, Callable, Dict, Mapping, Optional

import yaml

from ..core.errors import ConfigurationError


def load_config(path: str) -> Dict[str, Any]:
    """Load a JSON or YAML config file into a dict.

    YAML is read through PyYAML for `.yaml`/`.yml` paths, everything else as JSON.
    """
    if path.endswith(('.yaml', '.yml')):
        with open(path, 'r') as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigurationError(f"Could not parse {path}: {exc}") from exc
    else:
        with open(path, 'r') as f:
            data = json.load(f)
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping, got {type(data).__name__}")
    return data


def dump_config(obj: Any) -> Dict[str, Any]:
    """Convert a dataclass, `Configuration` or dict to a plain dict for logging/serialization."""
    if is_dataclass(obj):
        return asdict(obj)
    if isinstance(obj, Configuration):
        return {k: dict(v) if isinstance(v, Mapping) else v for k, v in obj.mapping.items()}
    if isinstance(obj, dict):
        return obj
    raise TypeError(f"Cannot dump configuration of type {type(obj).__name__}")


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        v = value.strip().lower()
        if v == "true":
            return True
        if v == "false":
            return False
    raise ValueError(f"not a boolean: {value!r}")


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"not an integer: {value!r}")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"not an integer: {value!r}")
    return int(value)


def _to_float(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError(f"not a number: {value!r}")
    return float(value)


class Configuration:
    """Parameter map with per-component and per-entry lookups.

    Values are either scalars, which apply to every entry (resolution level),
    or lists holding one value per entry. A component section
    (``mapping[label][name]``) takes precedence over a top-level ``mapping[name]``.
    """

    def __init__(self, mapping: Optional[Mapping[str, Any]] = None):
        self.mapping: Dict[str, Any] = dict(mapping or {})

    @classmethod
    def from_file(cls, path: str) -> "Configuration":
        return cls(load_config(path))

    def _lookup(self, name: str, label: str | None) -> Any:
        if label:
            section = self.mapping.get(label)
            if isinstance(section, Mapping) and name in section:
                return section[name]
        return self.mapping.get(name)

    def has_parameter(self, name: str, label: str | None = None) -> bool:
        """True if `name` is set in the given scope: section `label`, or the top level."""
        if label:
            section = self.mapping.get(label)
            return isinstance(section, Mapping) and section.get(name) is not None
        return self.mapping.get(name) is not None

    def set_parameter(self, name: str, value: Any, label: str | None = None) -> None:
        if not label:
            self.mapping[name] = value
            return
        section = self.mapping.get(label, {})
        if not isinstance(section, Mapping):
            raise ConfigurationError(f"{label} is not a parameter section")
        section = dict(section)
        section[name] = value
        self.mapping[label] = section

    def read_parameter(
        self,
        name: str,
        label: str | None = None,
        entry: int = 0,
        default_entry: int = 0,
        *,
        default: Any = None,
        cast: Callable[[Any], Any] | None = None,
    ) -> Any:
        raw = self._lookup(name, label)
        if raw is None:
            return default
        if isinstance(raw, (list, tuple)):
            if not raw:
                return default
            if 0 <= entry < len(raw):
                value = raw[entry]
            elif 0 <= default_entry < len(raw):
                value = raw[default_entry]
            else:
                raise ConfigurationError(
                    f"{name}: no entry {entry} or {default_entry} in {len(raw)} value(s)"
                )
        else:
            value = raw
        if cast is None:
            return value
        try:
            return cast(value)
        except (TypeError, ValueError) as exc:
            scope = f"{label}/" if label else ""
            raise ConfigurationError(f"Invalid value for {scope}{name}[{entry}]: {exc}") from exc

    def read_bool(self, name: str, label: str | None = None, entry: int = 0, default_entry: int = 0, *, default: bool = False) -> bool:
        return self.read_parameter(name, label, entry, default_entry, default=default, cast=_to_bool)

    def read_int(self, name: str, label: str | None = None, entry: int = 0, default_entry: int = 0, *, default: int | None = None) -> int | None:
        return self.read_parameter(name, label, entry, default_entry, default=default, cast=_to_int)

    def read_float(self, name: str, label: str | None = None, entry: int = 0, default_entry: int = 0, *, default: float | None = None) -> float | None:
        return self.read_parameter(name, label, entry, default_entry, default=default, cast=_to_float)
