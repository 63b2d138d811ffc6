"""
Job aggregation.

Filters runs by workflow and branch pattern, groups them per
``repository/workflow`` and orders the resulting jobs so the ones needing
attention come first.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Pattern

from forgewatch.ci_providers.models import CanonicalStatus, Job, NormalizedRun, RunRecord
from forgewatch.ci_providers.status import classify_run
from forgewatch.services.forgejo.exceptions import PatternError
from forgewatch.services.patterns import MATCH_ALL_RE, compile_or_default

logger = logging.getLogger(__name__)

MAX_JOB_HISTORY = 15

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def _created_key(run: NormalizedRun) -> datetime:
    return run.created_at or _OLDEST


class JobAggregator:
    """Builds the Job list; a pure function of the run set and the filter patterns."""

    def __init__(self, max_history: int = MAX_JOB_HISTORY):
        self.max_history = max_history

    @staticmethod
    def _warn(kind: str):
        def _on_error(exc: PatternError) -> None:
            logger.warning(f"Invalid {kind} pattern, ignoring filter: {exc.reason}")

        return _on_error

    def compile_filters(
        self, workflow_pattern: Optional[str], branch_pattern: Optional[str]
    ) -> tuple[Pattern[str], Optional[Pattern[str]]]:
        """
        Compile the workflow and branch filters.

        An unusable workflow pattern matches everything. An empty or invalid
        branch pattern means "no branch filter" (``None``), which unlike a
        compiled ``.*`` also accepts runs without a branch.
        """
        workflow_regex = compile_or_default(workflow_pattern, MATCH_ALL_RE, self._warn("workflow"))
        branch_regex = compile_or_default(branch_pattern, None, self._warn("branch"))
        return workflow_regex, branch_regex

    def aggregate(
        self,
        records: Iterable[RunRecord],
        workflow_pattern: Optional[str],
        branch_pattern: Optional[str],
    ) -> List[Job]:
        workflow_regex, branch_regex = self.compile_filters(workflow_pattern, branch_pattern)

        grouped: Dict[str, List[RunRecord]] = {}
        for record in records:
            matches_workflow = bool(
                workflow_regex.search(record.workflow_name) or workflow_regex.search(record.job_path)
            )
            matches_branch = branch_regex is None or bool(
                branch_regex.search(record.run.head_branch or "")
            )
            if matches_workflow and matches_branch:
                grouped.setdefault(record.job_path, []).append(record)

        jobs: List[Job] = []
        for group in grouped.values():
            history = sorted((r.run for r in group), key=_created_key, reverse=True)
            jobs.append(
                Job(
                    repo=group[0].repo,
                    workflow_name=group[0].workflow_name,
                    all_runs=history[: self.max_history],
                )
            )

        jobs.sort(key=lambda job: classify_run(job.latest_run).priority, reverse=True)
        return jobs

    @staticmethod
    def fleet_status(jobs: List[Job]) -> CanonicalStatus:
        """Overall status across all jobs, judged by each job's latest run."""
        statuses = [job.status for job in jobs]
        if not statuses:
            return CanonicalStatus.UNKNOWN
        if CanonicalStatus.FAILURE in statuses:
            return CanonicalStatus.FAILURE
        if CanonicalStatus.RUNNING in statuses:
            return CanonicalStatus.RUNNING
        if CanonicalStatus.PENDING in statuses or CanonicalStatus.WAITING in statuses:
            return CanonicalStatus.PENDING
        if all(status == CanonicalStatus.SUCCESS for status in statuses):
            return CanonicalStatus.SUCCESS
        return CanonicalStatus.UNKNOWN

    @staticmethod
    def group_by_repository(jobs: List[Job]) -> Dict[str, List[Job]]:
        """Jobs keyed by repository full name, keeping the job order."""
        grouped: Dict[str, List[Job]] = {}
        for job in jobs:
            grouped.setdefault(job.repo.full_name, []).append(job)
        return grouped

    @staticmethod
    def status_counts(jobs: List[Job]) -> Dict[CanonicalStatus, int]:
        return dict(Counter(job.status for job in jobs))
