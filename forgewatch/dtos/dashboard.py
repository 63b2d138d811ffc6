"""Dashboard DTOs for the presentation layer"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from forgewatch.ci_providers.models import Job, NormalizedRun, Repository
from forgewatch.ci_providers.status import classify_run


class RepositoryDto(BaseModel):
    id: int
    full_name: str
    name: str
    owner: str
    html_url: Optional[str] = None

    @classmethod
    def from_repository(cls, repo: Repository) -> "RepositoryDto":
        return cls(**repo.model_dump())


class RunSummary(BaseModel):
    """One run of a job, flattened for display."""

    id: Optional[str] = None
    run_number: Optional[int] = None
    status: str
    status_label: str
    raw_status: Optional[str] = None
    conclusion: Optional[str] = None
    branch: Optional[str] = None
    commit_sha: Optional[str] = None
    commit_message: Optional[str] = None
    author: Optional[str] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None
    html_url: Optional[str] = None

    @classmethod
    def from_run(cls, run: NormalizedRun) -> "RunSummary":
        status = classify_run(run)
        return cls(
            id=None if run.id is None else str(run.id),
            run_number=run.run_number,
            status=status.value,
            status_label=status.label,
            raw_status=run.status,
            conclusion=run.conclusion,
            branch=run.head_branch,
            commit_sha=run.short_sha,
            commit_message=run.commit_message,
            author=run.author,
            created_at=run.created_at,
            started_at=run.started_at,
            completed_at=run.completed_at,
            duration_seconds=run.duration_seconds(),
            html_url=run.extra.get("html_url"),
        )


class JobSummary(BaseModel):
    job_path: str
    repo: RepositoryDto
    workflow_name: str
    status: str
    status_label: str
    priority: int
    latest_run: RunSummary
    runs: List[RunSummary]

    @classmethod
    def from_job(cls, job: Job) -> "JobSummary":
        runs = [RunSummary.from_run(run) for run in job.all_runs]
        return cls(
            job_path=job.job_path,
            repo=RepositoryDto.from_repository(job.repo),
            workflow_name=job.workflow_name,
            status=job.status.value,
            status_label=job.status.label,
            priority=job.status.priority,
            latest_run=runs[0],
            runs=runs,
        )


class DashboardSnapshotResponse(BaseModel):
    status: str
    jobs: List[JobSummary]
    status_counts: Dict[str, int]
    repository_count: int
    run_count: int
    last_update: Optional[datetime] = None
    discovering: bool = False
    loading: bool = False
    error: Optional[str] = None
    log: List[str] = []
    organizations: List[str] = []
    refresh_interval: int = 0


class RepositoryJobsResponse(BaseModel):
    repository: str
    jobs: List[JobSummary]


class OrganizationRequest(BaseModel):
    name: str = Field(..., min_length=1)


class OrganizationsResponse(BaseModel):
    organizations: List[str]


class FiltersUpdateRequest(BaseModel):
    """Only the provided patterns are changed."""

    workflow_pattern: Optional[str] = None
    branch_pattern: Optional[str] = None
    repo_pattern: Optional[str] = None


class FiltersResponse(BaseModel):
    workflow_pattern: str
    branch_pattern: str
    repo_pattern: str


class IntervalUpdateRequest(BaseModel):
    seconds: int = Field(..., ge=0)


class IntervalResponse(BaseModel):
    """Active refresh interval; 0 means periodic refresh is off."""

    seconds: int
    timer_active: bool
