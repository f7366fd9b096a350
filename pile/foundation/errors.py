"""Exception types shared across pile.

Configuration problems are recoverable (callers log and fall back to defaults);
everything else aborts the resolution of the project that raised it.
"""

from __future__ import annotations

from collections.abc import Sequence


class PileError(RuntimeError):
    """Base class for all pile failures."""


class ConfigError(PileError):
    """Raised when a project descriptor cannot be read or parsed."""


class MergeError(PileError):
    """Raised when project configuration cannot be merged with its defaults."""


class IdentityError(PileError):
    """Raised when the operator identity cannot be determined."""


class TemplateError(PileError):
    """Raised when a version template cannot be parsed or rendered."""


class TemplateParseError(TemplateError):
    """Malformed version template."""


class TemplateRenderError(TemplateError):
    """Template parsed but could not be applied to a version record."""


class VCSError(PileError):
    """Raised when a version control query fails."""

    def __init__(
        self,
        message: str,
        *,
        command: Sequence[str] | None = None,
        cwd: str | None = None,
        stderr: str | None = None,
    ) -> None:
        self.command = tuple(command) if command is not None else None
        self.cwd = cwd
        self.stderr = stderr
        details = [message]
        if command is not None:
            details.append(f"command={' '.join(command)!r}")
        if cwd is not None:
            details.append(f"cwd={cwd!r}")
        if stderr:
            details.append(f"stderr={stderr[-2000:]!r}")
        super().__init__(". ".join(details))
