"""Per-project configuration and the buildable identity derived from it.

A project is a directory with an optional `pile.yml` descriptor and an optional
`Dockerfile`. Loading a project never fails because of its descriptor (a
missing or broken descriptor degrades to defaults); it fails only when the
version, tag or image cannot be computed for a buildable project.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Any

from pile.foundation.config_io import (
    DESCRIPTOR_NAME,
    collect_unknown_keys,
    load_yaml_mapping,
    parse_str,
    parse_str_list,
    parse_str_mapping,
    require_mapping,
)
from pile.foundation.errors import ConfigError, MergeError, PileError
from pile.framework.registry import REGISTRY_SCHEMA, RegistryConfig
from pile.framework.template import DEFAULT_TEMPLATE
from pile.framework.version import VersionRecord, VersionResolver, unique_paths

DOCKERFILE_NAME = "Dockerfile"

logger = logging.getLogger(__name__)

PROJECT_SCHEMA: dict[str, Any] = {
    "name": None,
    "context_dir": None,
    "image_prefix": None,
    "version_prefix": None,
    "version_template": None,
    "depends_on": None,
    "build_args": None,
    "test": {"target": None, "copy_results": {"src_path": None, "dst_path": None}},
    "registry": REGISTRY_SCHEMA,
}


def _optional_str(cfg: Mapping[str, Any], key: str, path: str) -> str | None:
    value = cfg.get(key)
    return parse_str(value, path) if value is not None else None


@dataclass(frozen=True)
class CopyResultsConfig:
    # Location inside the container, e.g. /app/build/.
    src_path: str | None = None
    # Relative to the project directory, e.g. build.
    dst_path: str | None = None


@dataclass(frozen=True)
class TestConfig:
    """Optional test stage of a multi-stage build."""

    __test__ = False

    target: str | None = None
    copy_results: CopyResultsConfig | None = None

    @staticmethod
    def from_dict(raw: Any, path: str = "test") -> "TestConfig":
        cfg = require_mapping(raw, path)
        copy_results = None
        if cfg.get("copy_results") is not None:
            copy_cfg = require_mapping(cfg["copy_results"], f"{path}.copy_results")
            copy_results = CopyResultsConfig(
                src_path=_optional_str(copy_cfg, "src_path", f"{path}.copy_results.src_path"),
                dst_path=_optional_str(copy_cfg, "dst_path", f"{path}.copy_results.dst_path"),
            )
        return TestConfig(target=_optional_str(cfg, "target", f"{path}.target"), copy_results=copy_results)


@dataclass(frozen=True)
class ProjectConfig:
    """Declarative project settings; None means "not set here, inherit"."""

    name: str | None = None
    context_dir: str | None = None
    image_prefix: str | None = None
    version_prefix: str | None = None
    version_template: str | None = None
    depends_on: tuple[str, ...] | None = None
    build_args: Mapping[str, str] | None = None
    test: TestConfig | None = None
    registry: RegistryConfig | None = None

    @staticmethod
    def from_dict(cfg: Mapping[str, Any]) -> tuple["ProjectConfig", list[str]]:
        """Parse a descriptor mapping. Returns the config and warnings for unknown keys."""

        cfg = require_mapping(cfg, "<root>")

        name = _optional_str(cfg, "name", "name")
        if name is not None and not name.strip():
            raise ConfigError("Invalid config value for name: must be a non-empty string")

        depends_on = None
        if cfg.get("depends_on") is not None:
            depends_on = parse_str_list(cfg["depends_on"], "depends_on")

        build_args = None
        if cfg.get("build_args") is not None:
            build_args = MappingProxyType(parse_str_mapping(cfg["build_args"], "build_args"))

        test = TestConfig.from_dict(cfg["test"]) if cfg.get("test") is not None else None
        registry = RegistryConfig.from_dict(cfg["registry"]) if cfg.get("registry") is not None else None

        config = ProjectConfig(
            name=name,
            context_dir=_optional_str(cfg, "context_dir", "context_dir"),
            image_prefix=_optional_str(cfg, "image_prefix", "image_prefix"),
            version_prefix=_optional_str(cfg, "version_prefix", "version_prefix"),
            version_template=_optional_str(cfg, "version_template", "version_template"),
            depends_on=depends_on,
            build_args=build_args,
            test=test,
            registry=registry,
        )
        warnings = [f"Unknown config key: {key}" for key in sorted(collect_unknown_keys(cfg, PROJECT_SCHEMA))]
        return config, warnings


def _merge_scalar(path: str, value: Any, default: Any, expected: type) -> Any:
    for candidate in (value, default):
        if candidate is not None and not isinstance(candidate, expected):
            raise MergeError(
                f"Cannot merge {path}: expected {expected.__name__}, got {type(candidate).__name__}"
            )
    return value if value is not None else default


def _merge_sequence(path: str, value: Any, default: Any) -> tuple[str, ...] | None:
    # Lists replace wholesale; a project listing its dependencies owns the full list.
    for candidate in (value, default):
        if candidate is not None and (isinstance(candidate, str) or not isinstance(candidate, (list, tuple))):
            raise MergeError(f"Cannot merge {path}: expected a list, got {type(candidate).__name__}")
    chosen = value if value is not None else default
    return tuple(chosen) if chosen is not None else None


def _merge_mapping(path: str, value: Any, default: Any) -> Mapping[str, str] | None:
    # Key-wise union; project keys win over default keys.
    for candidate in (value, default):
        if candidate is not None and not isinstance(candidate, Mapping):
            raise MergeError(f"Cannot merge {path}: expected a mapping, got {type(candidate).__name__}")
    if value is None and default is None:
        return None
    merged: dict[str, str] = dict(default or {})
    merged.update(value or {})
    return MappingProxyType(merged)


def _merge_block(path: str, value: Any, default: Any, expected: type) -> Any:
    for candidate in (value, default):
        if candidate is not None and not isinstance(candidate, expected):
            raise MergeError(
                f"Cannot merge {path}: expected {expected.__name__}, got {type(candidate).__name__}"
            )
    if value is None or default is None:
        return value if value is not None else default

    if expected is RegistryConfig:
        return RegistryConfig(
            url=_merge_scalar(f"{path}.url", value.url, default.url, str),
            push=_merge_scalar(f"{path}.push", value.push, default.push, bool),
        )
    if expected is CopyResultsConfig:
        return CopyResultsConfig(
            src_path=_merge_scalar(f"{path}.src_path", value.src_path, default.src_path, str),
            dst_path=_merge_scalar(f"{path}.dst_path", value.dst_path, default.dst_path, str),
        )
    if expected is TestConfig:
        return TestConfig(
            target=_merge_scalar(f"{path}.target", value.target, default.target, str),
            copy_results=_merge_block(
                f"{path}.copy_results", value.copy_results, default.copy_results, CopyResultsConfig
            ),
        )
    raise MergeError(f"Cannot merge {path}: unsupported block type {expected.__name__}")


def merge_config(project: ProjectConfig, defaults: ProjectConfig | None) -> ProjectConfig:
    """Fill every unset field of `project` from `defaults`.

    Set values always win, including empty strings and empty collections.
    `build_args` is a key-wise union (project keys win), `depends_on` is
    replaced wholesale, `test` and `registry` merge field by field.
    """

    if defaults is None:
        return project
    if not isinstance(project, ProjectConfig) or not isinstance(defaults, ProjectConfig):
        raise MergeError(
            f"Cannot merge {type(project).__name__} with {type(defaults).__name__}: expected ProjectConfig"
        )

    return ProjectConfig(
        name=_merge_scalar("name", project.name, defaults.name, str),
        context_dir=_merge_scalar("context_dir", project.context_dir, defaults.context_dir, str),
        image_prefix=_merge_scalar("image_prefix", project.image_prefix, defaults.image_prefix, str),
        version_prefix=_merge_scalar("version_prefix", project.version_prefix, defaults.version_prefix, str),
        version_template=_merge_scalar(
            "version_template", project.version_template, defaults.version_template, str
        ),
        depends_on=_merge_sequence("depends_on", project.depends_on, defaults.depends_on),
        build_args=_merge_mapping("build_args", project.build_args, defaults.build_args),
        test=_merge_block("test", project.test, defaults.test, TestConfig),
        registry=_merge_block("registry", project.registry, defaults.registry, RegistryConfig),
    )


def load_project_config(config_dir: str | os.PathLike[str], *, descriptor_path: str | None = None) -> ProjectConfig:
    """Read `pile.yml` from `config_dir` leniently.

    A missing descriptor is normal; an unreadable or invalid one is logged and
    treated as empty so the project still resolves with inherited defaults.
    """

    path = descriptor_path or os.path.join(os.fspath(config_dir), DESCRIPTOR_NAME)
    if not os.path.isfile(path):
        logger.debug("Config file does not exist: %s", path)
        return ProjectConfig()

    try:
        config, warnings = ProjectConfig.from_dict(load_yaml_mapping(path))
    except ConfigError as exc:
        logger.warning("Ignoring config file %s: %s", path, exc)
        return ProjectConfig()

    for warning in warnings:
        logger.warning("%s (%s)", warning, path)
    return config


@dataclass(frozen=True)
class Project:
    dir: str
    config: ProjectConfig
    can_build: bool = False
    version: VersionRecord | None = None
    repository: str | None = None
    tag: str | None = None
    image: str | None = None
    image_with_registry: str | None = None

    @property
    def context_dir(self) -> str:
        if self.config.context_dir:
            return os.path.normpath(os.path.join(self.dir, self.config.context_dir))
        return self.dir

    def versioned_paths(self) -> list[str]:
        """Paths whose history makes up this project's version: itself, its context and its dependencies."""

        paths = [self.dir]
        if self.context_dir != self.dir:
            paths.append(self.context_dir)
        for dependency in self.config.depends_on or ():
            paths.append(os.path.join(self.dir, dependency))
        return unique_paths(paths)


def load_project(
    project_dir: str | os.PathLike[str],
    defaults: ProjectConfig | None = None,
    *,
    resolver: VersionResolver,
    dockerfile_name: str = DOCKERFILE_NAME,
) -> Project:
    """Resolve a project directory into its buildable identity.

    Raises VCSError, TemplateError, IdentityError or MergeError; descriptor
    problems never raise.
    """

    directory = os.path.normpath(os.path.abspath(os.fspath(project_dir)))

    config = load_project_config(directory)
    if config.name is None:
        config = replace(config, name=os.path.basename(directory))
    try:
        config = merge_config(config, defaults)
    except MergeError as exc:
        logger.error("Failed to apply defaults to project %s: %s", directory, exc)
        raise

    project = Project(dir=directory, config=config)
    if not os.path.isfile(os.path.join(directory, dockerfile_name)):
        logger.debug("No %s in %s; skipping version computation", dockerfile_name, directory)
        return project

    try:
        version = resolver.resolve(project.versioned_paths())
        tag = version.format(config.version_template or DEFAULT_TEMPLATE)
    except PileError as exc:
        logger.error("Failed to resolve project %s: %s", directory, exc)
        raise

    if config.version_prefix:
        tag = config.version_prefix + tag

    repository = f"{config.image_prefix or ''}{config.name}"
    image = f"{repository}:{tag}"
    registry = config.registry or RegistryConfig()
    return replace(
        project,
        can_build=True,
        version=version,
        repository=repository,
        tag=tag,
        image=image,
        image_with_registry=f"{registry.registry_prefix()}{image}",
    )
