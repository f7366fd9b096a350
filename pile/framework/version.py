"""Version records: what changed, for a set of paths in one git work tree."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from pile.framework.identity import IdentityCache, default_identity_cache
from pile.framework.template import render, render_default
from pile.framework.vcs import VcsAdapter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VersionRecord:
    branch: str
    commit_depth: str
    revision: str
    dirty: bool
    user: str

    def format(self, template: str) -> str:
        return render(self, template)

    def __str__(self) -> str:
        return render_default(self)


def unique_paths(paths: Iterable[str | os.PathLike[str]]) -> list[str]:
    """Absolute, normalized paths with duplicates dropped (first occurrence wins)."""

    seen: set[str] = set()
    ordered: list[str] = []
    for path in paths:
        normalized = os.path.normpath(os.path.abspath(os.fspath(path)))
        if normalized not in seen:
            seen.add(normalized)
            ordered.append(normalized)
    return ordered


class VersionResolver:
    """Combines VCS facts and the operator identity into a `VersionRecord`.

    Commit depth and revision cover the union of the paths' histories: a
    commit touching any of the paths counts once and can become the revision.
    Adapter failures propagate unchanged.
    """

    def __init__(self, vcs: VcsAdapter, identity: IdentityCache | None = None) -> None:
        self.vcs = vcs
        self.identity = identity or default_identity_cache()

    def resolve(self, paths: Sequence[str | os.PathLike[str]]) -> VersionRecord:
        resolved = unique_paths(paths)
        if not resolved:
            raise ValueError("resolve() requires at least one path")

        branch = self.vcs.current_branch()
        commit_depth = self.vcs.commit_depth(resolved)
        revision = self.vcs.abbreviate(self.vcs.head_revision(resolved))
        dirty = self.vcs.is_dirty(resolved)
        user = self.identity.get()

        record = VersionRecord(
            branch=branch,
            commit_depth=commit_depth,
            revision=revision,
            dirty=dirty,
            user=user,
        )
        logger.debug("Resolved version %s for %s", record, ", ".join(resolved))
        return record

    def resolve_projects(self, names: Sequence[str]) -> VersionRecord:
        """Resolve by project names relative to the adapter's working directory."""

        return self.resolve(self.vcs.resolve_project_paths(names))
