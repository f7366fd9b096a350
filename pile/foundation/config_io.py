from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from pile.foundation.errors import ConfigError

DESCRIPTOR_NAME = "pile.yml"
DEFAULTS_ENV_VAR = "PILE_DEFAULTS"

# Descriptor values are literal text (`3.10` is a version, not a float), so
# only null is resolved implicitly; booleans go through `parse_bool`.
_LITERAL_SCALAR_TAGS = {
    "tag:yaml.org,2002:bool",
    "tag:yaml.org,2002:int",
    "tag:yaml.org,2002:float",
    "tag:yaml.org,2002:timestamp",
}


class StringScalarLoader(yaml.SafeLoader):
    """SafeLoader that keeps plain scalars as strings."""


StringScalarLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag not in _LITERAL_SCALAR_TAGS]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def find_repo_root(start: str | os.PathLike[str] | None = None) -> str:
    start_path = Path(start or os.getcwd()).resolve()
    if start_path.is_file():
        start_path = start_path.parent

    for candidate in (start_path, *start_path.parents):
        if (candidate / ".git").exists():
            return str(candidate)

    raise FileNotFoundError(f"Cannot locate repo root: searched from {start_path} for .git")


def load_yaml_mapping(path: str | os.PathLike[str]) -> dict[str, Any]:
    """Read a YAML file that must contain a mapping (an empty file is an empty mapping)."""

    try:
        with open(path, "r", encoding="utf-8") as handle:
            payload = yaml.load(handle, Loader=StringScalarLoader)
    except FileNotFoundError:
        raise
    except OSError as exc:
        raise ConfigError(f"Error reading config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    if payload is None:
        payload = {}
    if not isinstance(payload, Mapping):
        raise ConfigError(f"Config file must contain a YAML mapping: {path}")
    return dict(payload)


def defaults_path(root_dir: str | os.PathLike[str], *, env_var: str | None = DEFAULTS_ENV_VAR) -> str:
    """Location of the defaults descriptor: the env override when set, else `<root>/pile.yml`."""

    if env_var:
        raw_env = os.environ.get(env_var, "").strip()
        if raw_env:
            return os.path.abspath(os.path.expandvars(os.path.expanduser(raw_env)))
    return os.path.join(os.path.abspath(root_dir), DESCRIPTOR_NAME)


def parse_bool(value: Any, path: str) -> bool:
    """
    Strict boolean parsing to avoid bool('false') footguns.

    Accepts True/False, 0/1 and the strings true/false/1/0/yes/no
    (case-insensitive, surrounding whitespace ignored).
    """

    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value in (0, 1):
            return bool(value)
        raise ConfigError(f"Invalid boolean for {path}: {value!r}")
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"true", "1", "yes"}:
            return True
        if normalized in {"false", "0", "no"}:
            return False
    raise ConfigError(f"Invalid boolean for {path}: {value!r}")


def parse_str(value: Any, path: str) -> str:
    # YAML turns bare numbers into ints/floats; prefixes like `1.` are still valid strings.
    if isinstance(value, bool):
        raise ConfigError(f"Invalid config type for {path}: expected string, got bool")
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value
    raise ConfigError(f"Invalid config type for {path}: expected string, got {type(value).__name__}")


def parse_str_list(value: Any, path: str) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, (list, tuple)):
        raise ConfigError(f"Invalid config type for {path}: expected list, got {type(value).__name__}")
    return tuple(parse_str(item, f"{path}[{idx}]") for idx, item in enumerate(value))


def parse_str_mapping(value: Any, path: str) -> dict[str, str]:
    if not isinstance(value, Mapping):
        raise ConfigError(f"Invalid config type for {path}: expected mapping, got {type(value).__name__}")
    return {str(key): parse_str(item, f"{path}.{key}") for key, item in value.items()}


def require_mapping(value: Any, path: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ConfigError(f"Invalid config type for {path}: expected mapping, got {type(value).__name__}")
    return value


def collect_unknown_keys(cfg: Mapping[str, Any], allowed: Mapping[str, Any], *, prefix: str = "") -> list[str]:
    """Dotted paths of keys in `cfg` that `allowed` does not describe.

    `allowed` maps key -> None for leaves, or key -> nested schema mapping.
    """

    unknown: list[str] = []
    for key, value in cfg.items():
        dotted = f"{prefix}.{key}" if prefix else str(key)
        if key not in allowed:
            unknown.append(dotted)
            continue
        nested = allowed[key]
        if isinstance(nested, Mapping) and isinstance(value, Mapping):
            unknown.extend(collect_unknown_keys(value, nested, prefix=dotted))
    return unknown
