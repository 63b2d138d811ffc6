from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Deque, Optional, Tuple

from forgewatch.ci_providers.models import Repository, RunRecord

DISCOVERY_LOG_SIZE = 50


class DiscoveryLog:
    """User-facing log of the current discovery cycle, capped at the last 50 lines."""

    def __init__(self, maxlen: int = DISCOVERY_LOG_SIZE):
        self._entries: Deque[str] = deque(maxlen=maxlen)

    def add(self, message: str, now: Optional[datetime] = None) -> None:
        stamp = (now or datetime.now()).strftime("%H:%M:%S")
        self._entries.append(f"{stamp} - {message}")

    def clear(self) -> None:
        self._entries.clear()

    def snapshot(self) -> Tuple[str, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


@dataclass(frozen=True)
class EngineState:
    """
    Everything the presentation layer reads.

    Instances are never mutated; the scheduler swaps in a new one after
    each step, so a reference handed out earlier stays consistent.
    """

    repositories: Tuple[Repository, ...] = ()
    runs: Tuple[RunRecord, ...] = ()
    last_update: Optional[datetime] = None
    log: Tuple[str, ...] = field(default_factory=tuple)
    discovering: bool = False
    loading: bool = False
    error: Optional[str] = None
