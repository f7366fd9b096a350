"""Process-wide operator identity used in dirty version strings."""

from __future__ import annotations

import getpass
import logging
import re
import threading
from collections.abc import Callable

from pile.foundation.errors import IdentityError

_NON_ALPHANUMERIC = re.compile(r"[^a-zA-Z0-9]+")

logger = logging.getLogger(__name__)


def sanitize_username(raw: str) -> str:
    return _NON_ALPHANUMERIC.sub("", raw)


class IdentityCache:
    """Compute-once sanitized username.

    The first `get()` performs the lookup under a lock; every later or
    concurrent caller receives the same value, or the same `IdentityError`
    when the lookup failed.
    """

    def __init__(self, lookup: Callable[[], str] = getpass.getuser) -> None:
        self._lookup = lookup
        self._lock = threading.Lock()
        self._done = False
        self._value: str | None = None
        self._error: IdentityError | None = None

    def get(self) -> str:
        if not self._done:
            with self._lock:
                if not self._done:
                    self._compute()
        if self._error is not None:
            raise self._error.with_traceback(None)
        assert self._value is not None
        return self._value

    def _compute(self) -> None:
        try:
            raw = self._lookup()
        except Exception as exc:  # noqa: BLE001
            self._error = IdentityError(f"Unable to determine current user: {exc}")
            self._error.__cause__ = exc
            logger.debug("Identity lookup failed: %s", exc)
        else:
            self._value = sanitize_username(str(raw))
            logger.debug("Identity resolved: %s", self._value)
        self._done = True

    def override(self, value: str) -> None:
        """Pin the identity (sanitized) without performing a lookup."""

        with self._lock:
            self._value = sanitize_username(value)
            self._error = None
            self._done = True

    def reset(self) -> None:
        """Forget the cached outcome; the next `get()` performs a fresh lookup."""

        with self._lock:
            self._value = None
            self._error = None
            self._done = False


_DEFAULT_CACHE = IdentityCache()


def default_identity_cache() -> IdentityCache:
    return _DEFAULT_CACHE
