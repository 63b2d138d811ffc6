"""Compilation of user-supplied filter patterns."""

from __future__ import annotations

import logging
import re
from typing import Callable, Optional, Pattern

from forgewatch.services.forgejo.exceptions import PatternError

logger = logging.getLogger(__name__)

MATCH_ALL = ".*"
MATCH_ALL_RE = re.compile(MATCH_ALL)


def is_match_all(pattern: Optional[str]) -> bool:
    return not pattern or pattern == MATCH_ALL


def compile_pattern(pattern: str) -> Pattern[str]:
    """Compile ``pattern`` case-insensitively, raising PatternError when invalid."""
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as exc:
        raise PatternError(pattern, str(exc)) from exc


def compile_or_default(
    pattern: Optional[str],
    default: Optional[Pattern[str]],
    on_error: Optional[Callable[[PatternError], None]] = None,
) -> Optional[Pattern[str]]:
    """
    Compile ``pattern`` or return ``default``.

    An empty pattern yields ``default`` silently; an invalid one yields
    ``default`` after reporting the error through ``on_error`` (or the logger).
    """
    if not pattern:
        return default
    try:
        return compile_pattern(pattern)
    except PatternError as exc:
        if on_error is not None:
            on_error(exc)
        else:
            logger.warning(str(exc))
        return default
