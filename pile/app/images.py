"""Resolve every project of a source tree into image names."""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from pile.foundation.config_io import DESCRIPTOR_NAME, defaults_path
from pile.foundation.errors import PileError
from pile.framework.project import (
    DOCKERFILE_NAME,
    Project,
    ProjectConfig,
    load_project,
    load_project_config,
)
from pile.framework.version import VersionResolver

logger = logging.getLogger(__name__)


@dataclass
class ResolutionResult:
    projects: list[Project] = field(default_factory=list)
    errors: dict[str, PileError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def buildable(self) -> list[Project]:
        return [project for project in self.projects if project.can_build]


def load_defaults(root_dir: str | os.PathLike[str]) -> ProjectConfig:
    """Defaults every project inherits: `<root>/pile.yml`, or the file named by PILE_DEFAULTS."""

    path = defaults_path(root_dir)
    logger.debug("Loading defaults from %s", path)
    return load_project_config(os.path.dirname(path), descriptor_path=path)


def discover_projects(root_dir: str | os.PathLike[str]) -> list[str]:
    """Immediate, non-hidden subdirectories of `root_dir` that carry a descriptor or a Dockerfile."""

    root = os.path.abspath(os.fspath(root_dir))
    found: list[str] = []
    for entry in sorted(os.listdir(root)):
        if entry.startswith("."):
            continue
        candidate = os.path.join(root, entry)
        if not os.path.isdir(candidate):
            continue
        if os.path.isfile(os.path.join(candidate, DESCRIPTOR_NAME)) or os.path.isfile(
            os.path.join(candidate, DOCKERFILE_NAME)
        ):
            found.append(candidate)
    return found


def resolve_projects(
    project_dirs: Sequence[str | os.PathLike[str]],
    defaults: ProjectConfig | None,
    *,
    resolver: VersionResolver,
    max_workers: int | None = None,
) -> ResolutionResult:
    """Load projects concurrently. Projects that fail are reported in `errors`; the rest are kept in input order."""

    dirs = [os.path.abspath(os.fspath(path)) for path in project_dirs]
    result = ResolutionResult()
    if not dirs:
        return result

    workers = max(1, min(max_workers or os.cpu_count() or 1, len(dirs)))
    logger.debug("Resolving %d project(s) with %d worker(s)", len(dirs), workers)
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="pile") as pool:
        futures = [pool.submit(load_project, path, defaults, resolver=resolver) for path in dirs]
        for path, future in zip(dirs, futures):
            try:
                result.projects.append(future.result())
            except PileError as exc:
                result.errors[path] = exc
    return result
