"""Git queries used to version a set of paths.

Every query is a single `git` subprocess with a bounded timeout. Failures of any
kind (git missing, not a work tree, bad revision, timeout) surface as `VCSError`;
nothing is retried because git answers are deterministic for a given tree.
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Sequence
from typing import Protocol

from pile.foundation.errors import ConfigError, VCSError

DEFAULT_GIT_TIMEOUT_S = 30.0
GIT_TIMEOUT_ENV_VAR = "PILE_GIT_TIMEOUT"

logger = logging.getLogger(__name__)


class VcsAdapter(Protocol):
    def current_branch(self) -> str: ...

    def commit_depth(self, paths: Sequence[str]) -> str: ...

    def head_revision(self, paths: Sequence[str]) -> str: ...

    def abbreviate(self, revision: str) -> str: ...

    def is_dirty(self, paths: Sequence[str]) -> bool: ...

    def resolve_project_paths(self, names: Sequence[str]) -> list[str]: ...


def git_timeout_from_env(default: float = DEFAULT_GIT_TIMEOUT_S) -> float:
    raw = os.environ.get(GIT_TIMEOUT_ENV_VAR, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigError(f"Invalid {GIT_TIMEOUT_ENV_VAR}: {raw!r}") from exc
    if not value > 0:
        raise ConfigError(f"Invalid {GIT_TIMEOUT_ENV_VAR}: must be > 0 (got {raw!r})")
    return value


class GitAdapter:
    """`VcsAdapter` backed by the git CLI.

    Paths handed to the path-scoped queries are absolute and must live inside
    the work tree containing `cwd`.
    """

    def __init__(
        self,
        cwd: str | os.PathLike[str] | None = None,
        *,
        binary: str = "git",
        timeout_s: float | None = None,
    ) -> None:
        self.cwd = os.path.abspath(cwd or os.getcwd())
        self.binary = binary
        if timeout_s is not None and not timeout_s > 0:
            raise ConfigError(f"Invalid git timeout: must be > 0 (got {timeout_s!r})")
        self.timeout_s = timeout_s if timeout_s is not None else git_timeout_from_env()
        self._toplevel: str | None = None

    def _run(self, args: Sequence[str], *, cwd: str | None = None) -> str:
        cmd = [self.binary, *args]
        run_cwd = cwd or self.cwd
        logger.debug("Running %s (cwd=%s)", " ".join(cmd), run_cwd)
        try:
            proc = subprocess.run(
                cmd,
                cwd=run_cwd,
                check=False,
                capture_output=True,
                text=True,
                timeout=self.timeout_s,
            )
        except FileNotFoundError as exc:
            raise VCSError(f"git executable not found: {self.binary}", command=cmd, cwd=run_cwd) from exc
        except subprocess.TimeoutExpired as exc:
            raise VCSError(f"git timed out after {self.timeout_s:g}s", command=cmd, cwd=run_cwd) from exc
        except OSError as exc:
            raise VCSError(f"git could not be started: {exc}", command=cmd, cwd=run_cwd) from exc

        if proc.returncode != 0:
            raise VCSError(
                f"git failed with returncode={proc.returncode}",
                command=cmd,
                cwd=run_cwd,
                stderr=(proc.stderr or "").strip(),
            )
        return (proc.stdout or "").strip()

    def toplevel(self) -> str:
        if self._toplevel is None:
            self._toplevel = os.path.realpath(self._run(["rev-parse", "--show-toplevel"]))
        return self._toplevel

    def _relative(self, paths: Sequence[str]) -> list[str]:
        root = self.toplevel()
        relative: list[str] = []
        for path in paths:
            real = os.path.realpath(path)
            if real != root and not real.startswith(root + os.sep):
                raise VCSError(f"Path is outside the git work tree {root}: {path}")
            rel = os.path.relpath(real, root)
            relative.append(rel.replace(os.sep, "/"))
        return relative

    def _pathspec(self, paths: Sequence[str]) -> list[str]:
        if not paths:
            raise VCSError("At least one path is required")
        return ["--", *self._relative(paths)]

    def current_branch(self) -> str:
        return self._run(["rev-parse", "--abbrev-ref", "HEAD"])

    def commit_depth(self, paths: Sequence[str]) -> str:
        return self._run(["rev-list", "--count", "HEAD", *self._pathspec(paths)], cwd=self.toplevel())

    def head_revision(self, paths: Sequence[str]) -> str:
        revision = self._run(["log", "-n", "1", "--format=%H", "HEAD", *self._pathspec(paths)], cwd=self.toplevel())
        if not revision:
            raise VCSError(f"No commits touch paths: {', '.join(paths)}", cwd=self.toplevel())
        return revision

    def abbreviate(self, revision: str) -> str:
        return self._run(["rev-parse", "--short", revision])

    def is_dirty(self, paths: Sequence[str]) -> bool:
        status = self._run(["status", "--porcelain", "--untracked-files=normal", *self._pathspec(paths)], cwd=self.toplevel())
        return bool(status)

    def resolve_project_paths(self, names: Sequence[str]) -> list[str]:
        """Absolute paths for project names given relative to `cwd`, verified to be inside the work tree."""

        paths = [os.path.abspath(os.path.join(self.cwd, name)) for name in names]
        self._relative(paths)
        return paths
