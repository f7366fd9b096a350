from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pile.foundation.config_io import parse_bool, parse_str, require_mapping

REGISTRY_SCHEMA: dict[str, Any] = {"url": None, "push": None}


@dataclass(frozen=True)
class RegistryConfig:
    """Registry that images are pushed to and reused from.

    Fields are None when unset so project values can inherit from defaults.
    """

    url: str | None = None
    push: bool | None = None

    @staticmethod
    def from_dict(raw: Any, path: str = "registry") -> "RegistryConfig":
        cfg: Mapping[str, Any] = require_mapping(raw, path)
        url = cfg.get("url")
        push = cfg.get("push")
        return RegistryConfig(
            url=parse_str(url, f"{path}.url") if url is not None else None,
            push=parse_bool(push, f"{path}.push") if push is not None else None,
        )

    def registry_prefix(self) -> str:
        """Literal prefix placed before an image name, e.g. `registry.example.com/team/`."""

        url = (self.url or "").strip()
        if not url:
            return ""
        return url.rstrip("/") + "/"
