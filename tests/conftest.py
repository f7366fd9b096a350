from __future__ import annotations

import logging
import os
import shutil
import subprocess
from collections.abc import Sequence

import pytest

from pile.framework.identity import IdentityCache
from pile.framework.version import VersionResolver


class FakeVcs:
    """In-memory VcsAdapter that records every call."""

    def __init__(
        self,
        *,
        branch: str = "main",
        depth: str = "5",
        revision: str = "abcdef1234567890",
        dirty: bool = False,
        fail_with: Exception | None = None,
    ) -> None:
        self.branch = branch
        self.depth = depth
        self.revision = revision
        self.dirty = dirty
        self.fail_with = fail_with
        self.calls: list[tuple[str, tuple[str, ...]]] = []

    def _record(self, name: str, args: Sequence[str] = ()) -> None:
        self.calls.append((name, tuple(args)))
        if self.fail_with is not None:
            raise self.fail_with

    def current_branch(self) -> str:
        self._record("current_branch")
        return self.branch

    def commit_depth(self, paths: Sequence[str]) -> str:
        self._record("commit_depth", paths)
        return self.depth

    def head_revision(self, paths: Sequence[str]) -> str:
        self._record("head_revision", paths)
        return self.revision

    def abbreviate(self, revision: str) -> str:
        self._record("abbreviate", (revision,))
        return revision[:7]

    def is_dirty(self, paths: Sequence[str]) -> bool:
        self._record("is_dirty", paths)
        return self.dirty

    def resolve_project_paths(self, names: Sequence[str]) -> list[str]:
        self._record("resolve_project_paths", names)
        return [os.path.abspath(name) for name in names]


@pytest.fixture
def fake_vcs() -> FakeVcs:
    return FakeVcs()


@pytest.fixture
def identity() -> IdentityCache:
    return IdentityCache(lambda: "bob")


@pytest.fixture
def resolver(fake_vcs: FakeVcs, identity: IdentityCache) -> VersionResolver:
    return VersionResolver(fake_vcs, identity)


def _git(cwd, *args: str) -> str:
    env = dict(os.environ)
    env.update(
        {
            "GIT_AUTHOR_NAME": "Test",
            "GIT_AUTHOR_EMAIL": "test@example.com",
            "GIT_COMMITTER_NAME": "Test",
            "GIT_COMMITTER_EMAIL": "test@example.com",
            "GIT_CONFIG_NOSYSTEM": "1",
            "HOME": str(cwd),
        }
    )
    proc = subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        env=env,
        check=True,
        capture_output=True,
        text=True,
    )
    return proc.stdout.strip()


class GitRepo:
    def __init__(self, root) -> None:
        self.root = root

    def git(self, *args: str) -> str:
        return _git(self.root, *args)

    def write(self, relpath: str, text: str) -> None:
        path = self.root / relpath
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")

    def commit(self, relpath: str, text: str, message: str | None = None) -> None:
        self.write(relpath, text)
        self.git("add", relpath)
        self.git("commit", "-q", "-m", message or f"update {relpath}")


@pytest.fixture
def git_repo(tmp_path) -> GitRepo:
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    root = tmp_path / "repo"
    root.mkdir()
    repo = GitRepo(root.resolve())
    repo.git("init", "-q")
    repo.git("symbolic-ref", "HEAD", "refs/heads/main")
    return repo


@pytest.fixture(autouse=True)
def _restore_pile_logger():
    yield
    logger = logging.getLogger("pile")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
