"""Dashboard endpoints exposing the monitor engine."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from forgewatch.dtos.dashboard import (
    DashboardSnapshotResponse,
    FiltersResponse,
    FiltersUpdateRequest,
    IntervalResponse,
    IntervalUpdateRequest,
    JobSummary,
    OrganizationRequest,
    OrganizationsResponse,
    RepositoryJobsResponse,
)
from forgewatch.tasks.scheduler import MonitorScheduler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


def get_scheduler(request: Request) -> MonitorScheduler:
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Monitor is not running")
    return scheduler


def _build_snapshot(scheduler: MonitorScheduler) -> DashboardSnapshotResponse:
    state = scheduler.snapshot()
    jobs = scheduler.jobs()
    counts = scheduler.aggregator.status_counts(jobs)
    return DashboardSnapshotResponse(
        status=scheduler.fleet_status(jobs).value,
        jobs=[JobSummary.from_job(job) for job in jobs],
        status_counts={status.value: count for status, count in counts.items()},
        repository_count=len(state.repositories),
        run_count=len(state.runs),
        last_update=state.last_update,
        discovering=state.discovering,
        loading=state.loading,
        error=state.error,
        log=list(state.log),
        organizations=list(scheduler.config.organizations),
        refresh_interval=scheduler.config.refresh_interval,
    )


@router.get("/snapshot", response_model=DashboardSnapshotResponse)
async def get_snapshot(scheduler: MonitorScheduler = Depends(get_scheduler)):
    """Return jobs, fleet status, discovery log and loading flags."""
    return _build_snapshot(scheduler)


@router.get("/jobs", response_model=list[JobSummary])
async def get_jobs(scheduler: MonitorScheduler = Depends(get_scheduler)):
    return [JobSummary.from_job(job) for job in scheduler.jobs()]


@router.get("/repos", response_model=list[RepositoryJobsResponse])
async def get_jobs_by_repository(scheduler: MonitorScheduler = Depends(get_scheduler)):
    """Return jobs grouped by repository, in job priority order."""
    grouped = scheduler.aggregator.group_by_repository(scheduler.jobs())
    return [
        RepositoryJobsResponse(
            repository=repo_name,
            jobs=[JobSummary.from_job(job) for job in jobs],
        )
        for repo_name, jobs in grouped.items()
    ]


@router.post("/discover", response_model=DashboardSnapshotResponse)
async def run_discovery(scheduler: MonitorScheduler = Depends(get_scheduler)):
    """Run a full discovery cycle and return the resulting snapshot."""
    await scheduler.discover()
    return _build_snapshot(scheduler)


@router.post("/refresh", response_model=DashboardSnapshotResponse)
async def run_refresh(scheduler: MonitorScheduler = Depends(get_scheduler)):
    await scheduler.refresh()
    return _build_snapshot(scheduler)


@router.post("/organizations", response_model=OrganizationsResponse)
async def add_organization(
    request: OrganizationRequest,
    scheduler: MonitorScheduler = Depends(get_scheduler),
):
    if scheduler.add_organization(request.name):
        logger.info(f"Added organization {request.name}")
    return OrganizationsResponse(organizations=scheduler.config.organizations)


@router.delete("/organizations/{name}", response_model=OrganizationsResponse)
async def remove_organization(
    name: str,
    scheduler: MonitorScheduler = Depends(get_scheduler),
):
    if not scheduler.remove_organization(name):
        raise HTTPException(status_code=404, detail=f"Organization {name} is not monitored")
    return OrganizationsResponse(organizations=scheduler.config.organizations)


@router.put("/filters", response_model=FiltersResponse)
async def update_filters(
    request: FiltersUpdateRequest,
    scheduler: MonitorScheduler = Depends(get_scheduler),
):
    scheduler.update_filters(
        workflow_pattern=request.workflow_pattern,
        branch_pattern=request.branch_pattern,
        repo_pattern=request.repo_pattern,
    )
    config = scheduler.config
    return FiltersResponse(
        workflow_pattern=config.workflow_pattern,
        branch_pattern=config.branch_pattern,
        repo_pattern=config.repo_pattern,
    )


@router.put("/interval", response_model=IntervalResponse)
async def update_interval(
    request: IntervalUpdateRequest,
    scheduler: MonitorScheduler = Depends(get_scheduler),
):
    scheduler.configure_interval(request.seconds)
    return IntervalResponse(
        seconds=scheduler.config.refresh_interval,
        timer_active=scheduler.timer_active,
    )
