"""Mapping from raw (status, conclusion) pairs to CanonicalStatus."""

from __future__ import annotations

from typing import Optional

from .models import CanonicalStatus, NormalizedRun

# Aliases reported by Gitea-compatible servers that do not use Forgejo's own names
STATUS_ALIASES = {
    "in_progress": CanonicalStatus.RUNNING,
    "queued": CanonicalStatus.PENDING,
    "blocked": CanonicalStatus.WAITING,
    "timed_out": CanonicalStatus.FAILURE,
    "canceled": CanonicalStatus.CANCELLED,
}


def normalize_status(raw_status: Optional[str]) -> CanonicalStatus:
    """Normalize a single status or conclusion string to CanonicalStatus."""
    if not raw_status:
        return CanonicalStatus.UNKNOWN
    value = raw_status.lower()
    try:
        return CanonicalStatus(value)
    except ValueError:
        return STATUS_ALIASES.get(value, CanonicalStatus.UNKNOWN)


def classify(status: Optional[str], conclusion: Optional[str]) -> CanonicalStatus:
    """
    Derive the canonical status of a run.

    A completed run is described by its conclusion; any other run by its
    status. Unrecognized values map to UNKNOWN.
    """
    if status and status.lower() == "completed":
        return normalize_status(conclusion)
    return normalize_status(status)


def classify_run(run: NormalizedRun) -> CanonicalStatus:
    return classify(run.status, run.conclusion)
