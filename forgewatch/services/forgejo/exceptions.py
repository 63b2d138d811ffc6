"""Exceptions raised while talking to a Forgejo/Gitea instance."""

from __future__ import annotations


class ForgejoError(Exception):
    """Base exception for monitor failures."""


class ForgejoConfigurationError(ForgejoError):
    """Raised when required configuration is missing."""


class NetworkError(ForgejoError):
    """Raised when a request never completed (connection refused, DNS, reset, timeout)."""


class HttpError(ForgejoError):
    """Raised when the server answered with an error status or an unreadable body."""

    def __init__(self, status: int, message: str | None = None):
        super().__init__(message or f"HTTP {status}")
        self.status = status

    @property
    def is_not_found(self) -> bool:
        return self.status == 404


class PatternError(ForgejoError):
    """
    Raised when a user-supplied regular expression fails to compile.

    The engine never lets this escape into filtering; callers use
    ``compile_or_default`` which logs it and falls back.
    """

    def __init__(self, pattern: str, message: str):
        super().__init__(f"Invalid pattern {pattern!r}: {message}")
        self.pattern = pattern
        self.reason = message
