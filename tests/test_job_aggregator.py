"""Tests for filtering, grouping and ordering of jobs."""

import pytest

from conftest import make_repo, make_run
from forgewatch.ci_providers.models import CanonicalStatus, Job, Repository, RunRecord
from forgewatch.ci_providers.normalizer import normalize_run, workflow_name
from forgewatch.services.job_aggregator import MAX_JOB_HISTORY, JobAggregator

API = Repository.from_api(make_repo(1, "acme/api"))
WEB = Repository.from_api(make_repo(2, "acme/web"))


def _record(repo, run_id, **kwargs):
    run = normalize_run(make_run(run_id, **kwargs))
    return RunRecord(run=run, repo=repo, workflow_name=workflow_name(run))


def _day(day):
    return f"2024-05-{day:02d}T12:00:00Z"


@pytest.fixture
def aggregator():
    return JobAggregator()


def test_history_is_bounded_and_newest_first(aggregator):
    records = [_record(API, i, created_at=_day(i)) for i in range(1, 21)]

    (job,) = aggregator.aggregate(records, ".*", "")

    assert len(job.all_runs) == MAX_JOB_HISTORY
    assert [run.id for run in job.all_runs] == list(range(20, 5, -1))
    assert job.latest_run is job.all_runs[0]
    assert job.job_path == "acme/api/ci"


def test_jobs_are_ordered_by_status_priority(aggregator):
    records = [
        _record(API, 1, workflow="ok"),
        _record(API, 2, workflow="building", status="running", conclusion=None),
        _record(WEB, 3, workflow="broken", conclusion="failure"),
        _record(WEB, 4, workflow="stopped", conclusion="cancelled"),
    ]

    jobs = aggregator.aggregate(records, ".*", "")

    assert [job.workflow_name for job in jobs] == ["broken", "building", "stopped", "ok"]


def test_equal_priorities_keep_first_seen_order(aggregator):
    records = [_record(WEB, 1, workflow="b"), _record(API, 2, workflow="a")]

    jobs = aggregator.aggregate(records, ".*", "")

    assert [job.job_path for job in jobs] == ["acme/web/b", "acme/api/a"]


def test_latest_run_decides_job_status(aggregator):
    records = [
        _record(API, 1, conclusion="failure", created_at=_day(1)),
        _record(API, 2, conclusion="success", created_at=_day(2)),
    ]

    (job,) = aggregator.aggregate(records, ".*", "")

    assert job.status == CanonicalStatus.SUCCESS


def test_same_workflow_in_two_repositories_makes_two_jobs(aggregator):
    jobs = aggregator.aggregate([_record(API, 1), _record(WEB, 2)], ".*", "")

    assert sorted(job.job_path for job in jobs) == ["acme/api/ci", "acme/web/ci"]


def test_workflow_filter_matches_name_or_job_path(aggregator):
    records = [_record(API, 1, workflow="deploy"), _record(WEB, 2, workflow="ci")]

    by_name = aggregator.aggregate(records, "^deploy$", "")
    by_path = aggregator.aggregate(records, "acme/web/", "")

    assert [job.workflow_name for job in by_name] == ["deploy"]
    assert [job.job_path for job in by_path] == ["acme/web/ci"]


def test_invalid_workflow_pattern_matches_everything(aggregator):
    records = [_record(API, 1, workflow="deploy"), _record(WEB, 2, workflow="ci")]

    assert len(aggregator.aggregate(records, "(unclosed", "")) == 2


def test_branch_filter(aggregator):
    records = [_record(API, 1, branch="main"), _record(API, 2, branch="feature/x")]

    (job,) = aggregator.aggregate(records, ".*", "^main$")

    assert [run.id for run in job.all_runs] == [1]


@pytest.mark.parametrize("pattern", ["", None, "[bad"])
def test_missing_or_invalid_branch_pattern_disables_branch_filter(aggregator, pattern):
    records = [
        _record(API, 1, branch="main"),
        _record(API, 2, branch="feature/x"),
        RunRecord(run=normalize_run({"id": 3, "name": "ci"}), repo=API, workflow_name="ci"),
    ]

    (job,) = aggregator.aggregate(records, ".*", pattern)

    assert len(job.all_runs) == 3


def test_runs_without_timestamp_sort_last(aggregator):
    records = [
        RunRecord(run=normalize_run({"id": 1, "name": "ci"}), repo=API, workflow_name="ci"),
        _record(API, 2, created_at=_day(3)),
    ]

    (job,) = aggregator.aggregate(records, ".*", "")

    assert [run.id for run in job.all_runs] == [2, 1]


def test_aggregation_is_repeatable(aggregator):
    records = [_record(API, i, created_at=_day(i)) for i in range(1, 5)]

    assert aggregator.aggregate(records, ".*", "") == aggregator.aggregate(records, ".*", "")


def _job(conclusion="success", status="completed"):
    run = normalize_run(make_run(1, status=status, conclusion=conclusion))
    return Job(repo=API, workflow_name="ci", all_runs=[run])


class TestFleetStatus:
    def test_any_failure_wins(self):
        jobs = [_job("success"), _job(None, status="running"), _job("failure")]
        assert JobAggregator.fleet_status(jobs) == CanonicalStatus.FAILURE

    def test_running_before_pending(self):
        jobs = [_job(None, status="waiting"), _job(None, status="running")]
        assert JobAggregator.fleet_status(jobs) == CanonicalStatus.RUNNING

    def test_waiting_counts_as_pending(self):
        assert JobAggregator.fleet_status([_job(None, status="waiting")]) == CanonicalStatus.PENDING

    def test_all_success(self):
        assert JobAggregator.fleet_status([_job(), _job()]) == CanonicalStatus.SUCCESS

    def test_mixed_success_and_cancelled_is_unknown(self):
        assert JobAggregator.fleet_status([_job(), _job("cancelled")]) == CanonicalStatus.UNKNOWN

    def test_no_jobs(self):
        assert JobAggregator.fleet_status([]) == CanonicalStatus.UNKNOWN


def test_group_by_repository_and_counts(aggregator):
    jobs = aggregator.aggregate(
        [
            _record(API, 1, workflow="a", conclusion="failure"),
            _record(WEB, 2, workflow="b"),
            _record(API, 3, workflow="c"),
        ],
        ".*",
        "",
    )

    grouped = JobAggregator.group_by_repository(jobs)
    counts = JobAggregator.status_counts(jobs)

    assert [job.workflow_name for job in grouped["acme/api"]] == ["a", "c"]
    assert [job.workflow_name for job in grouped["acme/web"]] == ["b"]
    assert counts == {CanonicalStatus.FAILURE: 1, CanonicalStatus.SUCCESS: 2}
