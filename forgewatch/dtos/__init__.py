"""Data Transfer Objects (DTOs) for API requests and responses"""

from .dashboard import (
    DashboardSnapshotResponse,
    FiltersResponse,
    FiltersUpdateRequest,
    IntervalResponse,
    IntervalUpdateRequest,
    JobSummary,
    OrganizationRequest,
    OrganizationsResponse,
    RepositoryDto,
    RepositoryJobsResponse,
    RunSummary,
)

__all__ = [
    # Dashboard
    "DashboardSnapshotResponse",
    "JobSummary",
    "RunSummary",
    "RepositoryDto",
    "RepositoryJobsResponse",
    # Configuration
    "OrganizationRequest",
    "OrganizationsResponse",
    "FiltersUpdateRequest",
    "FiltersResponse",
    "IntervalUpdateRequest",
    "IntervalResponse",
]
