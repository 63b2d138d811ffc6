from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CanonicalStatus(str, Enum):
    """Color-independent run status shown by the dashboard."""

    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLED = "cancelled"
    RUNNING = "running"
    WAITING = "waiting"
    PENDING = "pending"
    SKIPPED = "skipped"
    UNKNOWN = "unknown"

    @property
    def priority(self) -> int:
        """Sort weight: jobs needing attention come first."""
        return STATUS_PRIORITY[self]

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]


STATUS_PRIORITY: Dict[CanonicalStatus, int] = {
    CanonicalStatus.FAILURE: 4,
    CanonicalStatus.RUNNING: 3,
    CanonicalStatus.WAITING: 3,
    CanonicalStatus.PENDING: 3,
    CanonicalStatus.CANCELLED: 2,
    CanonicalStatus.SUCCESS: 1,
    CanonicalStatus.SKIPPED: 1,
    CanonicalStatus.UNKNOWN: 0,
}

STATUS_LABELS: Dict[CanonicalStatus, str] = {
    CanonicalStatus.SUCCESS: "Success",
    CanonicalStatus.FAILURE: "Failed",
    CanonicalStatus.CANCELLED: "Cancelled",
    CanonicalStatus.RUNNING: "Running",
    CanonicalStatus.WAITING: "Waiting",
    CanonicalStatus.PENDING: "Pending",
    CanonicalStatus.SKIPPED: "Skipped",
    CanonicalStatus.UNKNOWN: "Unknown",
}


class Repository(BaseModel):
    """A repository selected for monitoring during a discovery cycle."""

    model_config = ConfigDict(frozen=True)

    id: int
    full_name: str
    name: str
    owner: str
    html_url: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Repository":
        """
        Build a Repository from an ``/orgs/{org}/repos`` or ``/repos/search`` item.

        Older servers expose the owner as ``username`` instead of ``login``.
        """
        full_name = data.get("full_name") or ""
        owner_data = data.get("owner") or {}
        owner = owner_data.get("login") or owner_data.get("username")
        if not owner and "/" in full_name:
            owner = full_name.split("/", 1)[0]
        name = data.get("name") or full_name.rsplit("/", 1)[-1]
        return cls(
            id=data["id"],
            full_name=full_name or f"{owner}/{name}",
            name=name,
            owner=owner or "",
            html_url=data.get("html_url"),
        )


class NormalizedRun(BaseModel):
    """
    Canonical workflow run record.

    The canonical fields are filled by ``normalize_run`` from a fallback chain
    of field names; every other field of the raw payload is kept in ``extra``.
    """

    model_config = ConfigDict(frozen=True)

    id: Optional[Any] = None
    status: Optional[str] = None
    conclusion: Optional[str] = None
    head_branch: Optional[str] = None
    head_sha: Optional[str] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    run_number: Optional[int] = None
    commit_message: Optional[str] = None
    author: Optional[str] = None

    extra: Dict[str, Any] = Field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a canonical field first, then the raw payload."""
        if key in CANONICAL_FIELDS:
            value = getattr(self, key)
            return default if value is None else value
        return self.extra.get(key, default)

    def to_raw(self) -> Dict[str, Any]:
        """Dict form of the run, suitable for feeding back into ``normalize_run``."""
        raw = dict(self.extra)
        for field in CANONICAL_FIELDS:
            raw[field] = getattr(self, field)
        return raw

    @property
    def short_sha(self) -> Optional[str]:
        return self.head_sha[:7] if self.head_sha else None

    def duration_seconds(self, now: Optional[datetime] = None) -> Optional[float]:
        """Elapsed seconds from start to completion, or to ``now`` while still running."""
        if self.started_at is None:
            return None
        end = self.completed_at or now or datetime.now(timezone.utc)
        return max((end - self.started_at).total_seconds(), 0.0)


CANONICAL_FIELDS = (
    "id",
    "status",
    "conclusion",
    "head_branch",
    "head_sha",
    "created_at",
    "started_at",
    "completed_at",
    "run_number",
    "commit_message",
    "author",
)


class RunRecord(BaseModel):
    """A normalized run tagged with the repository it was fetched from."""

    model_config = ConfigDict(frozen=True)

    run: NormalizedRun
    repo: Repository
    workflow_name: str

    @property
    def job_path(self) -> str:
        return f"{self.repo.full_name}/{self.workflow_name}"


class Job(BaseModel):
    """
    Aggregated view of one workflow within one repository.

    ``all_runs`` is ordered newest first, so the latest run is always its head.
    """

    repo: Repository
    workflow_name: str
    all_runs: List[NormalizedRun]

    @property
    def job_path(self) -> str:
        return f"{self.repo.full_name}/{self.workflow_name}"

    @property
    def latest_run(self) -> NormalizedRun:
        return self.all_runs[0]

    @property
    def status(self) -> CanonicalStatus:
        from .status import classify_run

        return classify_run(self.latest_run)
