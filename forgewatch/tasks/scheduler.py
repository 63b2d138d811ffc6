"""
Discovery and periodic refresh of workflow runs.

``MonitorScheduler`` owns all mutable engine state. Two cycles exist:

- ``discover()``: list repositories (organizations + search), then fetch the
  runs of every matching repository one after another.
- ``refresh()``: re-fetch runs for the repositories found by the last
  discovery, skipping repository listing.

Both replace the whole run collection instead of patching it. Repositories are
fetched sequentially to keep the load on the server predictable.

A refresh fired by the timer while a previous one is still in flight is
skipped. A discovery that overlaps a refresh is not serialized against it: the
cycle finishing last wins.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from forgewatch.ci_providers.models import CanonicalStatus, Job, Repository, RunRecord
from forgewatch.ci_providers.normalizer import workflow_name
from forgewatch.config import EngineConfig
from forgewatch.entities.engine_state import DiscoveryLog, EngineState
from forgewatch.services.forgejo.client import ForgejoClient
from forgewatch.services.job_aggregator import JobAggregator
from forgewatch.services.repo_discovery import RepoDiscoverer
from forgewatch.services.run_fetcher import RunFetcher

logger = logging.getLogger(__name__)

StateListener = Callable[[EngineState], None]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MonitorScheduler:
    def __init__(
        self,
        config: EngineConfig,
        client: Optional[ForgejoClient] = None,
        aggregator: Optional[JobAggregator] = None,
    ) -> None:
        """
        Args:
            config: Connection, filter and polling settings
            client: Pre-built API client; when omitted one is created from
                ``config`` on first use and closed on shutdown
            aggregator: Job aggregator (defaults to 15 runs of history per job)
        """
        self._config = config
        self._client = client
        self._owns_client = client is None
        self._aggregator = aggregator or JobAggregator()
        self._log = DiscoveryLog()
        self._state = EngineState()
        self._listeners: List[StateListener] = []
        self._timer: Optional[asyncio.Task] = None
        self._refreshing = False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def aggregator(self) -> JobAggregator:
        return self._aggregator

    @property
    def state(self) -> EngineState:
        return self.snapshot()

    def snapshot(self) -> EngineState:
        """Current immutable state, including the discovery log lines so far."""
        return replace(self._state, log=self._log.snapshot())

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call ``listener`` with every new state; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _publish(self, **changes) -> None:
        self._state = replace(self._state, **changes)
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("State listener failed")

    def jobs(self) -> List[Job]:
        return self._aggregator.aggregate(
            self._state.runs,
            self._config.workflow_pattern,
            self._config.branch_pattern,
        )

    def fleet_status(self, jobs: Optional[List[Job]] = None) -> CanonicalStatus:
        return self._aggregator.fleet_status(self.jobs() if jobs is None else jobs)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def add_organization(self, org: str) -> bool:
        org = org.strip()
        if not org or org in self._config.organizations:
            return False
        self._config = self._config.model_copy(
            update={"organizations": [*self._config.organizations, org]}
        )
        return True

    def remove_organization(self, org: str) -> bool:
        if org not in self._config.organizations:
            return False
        self._config = self._config.model_copy(
            update={"organizations": [o for o in self._config.organizations if o != org]}
        )
        return True

    def update_filters(
        self,
        workflow_pattern: Optional[str] = None,
        branch_pattern: Optional[str] = None,
        repo_pattern: Optional[str] = None,
    ) -> None:
        """
        Change filter patterns. ``None`` keeps the current value.

        Workflow and branch changes take effect on the next ``jobs()`` call;
        a repository pattern change only matters for the next discovery.
        """
        changes = {
            key: value
            for key, value in (
                ("workflow_pattern", workflow_pattern),
                ("branch_pattern", branch_pattern),
                ("repo_pattern", repo_pattern),
            )
            if value is not None
        }
        if changes:
            self._config = self._config.model_copy(update=changes)

    def configure_interval(self, seconds: int) -> None:
        """Set the refresh interval (0 disables) and re-arm the timer. Call from the event loop."""
        if seconds < 0:
            raise ValueError("Refresh interval must be zero or positive")
        self._config = self._config.model_copy(update={"refresh_interval": seconds})
        self._arm_timer()

    async def reconfigure(self, config: EngineConfig) -> None:
        """Swap in a new configuration, reconnecting when the server or token changed."""
        connection_changed = (
            config.base_url != self._config.base_url or config.token != self._config.token
        )
        self._config = config
        if connection_changed and self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
        self._arm_timer()

    def _get_client(self) -> ForgejoClient:
        if self._client is None:
            self._client = ForgejoClient(
                self._config.base_url,
                self._config.token,
                timeout=self._config.request_timeout,
            )
        return self._client

    # ------------------------------------------------------------------
    # Cycles
    # ------------------------------------------------------------------

    async def _collect_runs(
        self, repositories: Iterable[Repository], announce: bool
    ) -> List[RunRecord]:
        fetcher = RunFetcher(self._get_client(), self._log)
        records: List[RunRecord] = []
        for repo in repositories:
            if announce:
                self._log.add(f"Loading runs for: {repo.full_name}")
            runs = await fetcher.fetch_runs(repo.owner, repo.name)
            records.extend(
                RunRecord(run=run, repo=repo, workflow_name=workflow_name(run)) for run in runs
            )
        return records

    async def discover(self) -> EngineState:
        """Full cycle: find repositories, then load runs for each of them."""
        if not self._config.base_url:
            logger.info("No server configured, skipping discovery")
            return self.snapshot()
        if self._state.discovering:
            logger.debug("Discovery already in progress, skipping")
            return self.snapshot()

        self._log.clear()
        self._publish(discovering=True, error=None)
        try:
            discoverer = RepoDiscoverer(self._get_client(), self._log)
            repositories = await discoverer.discover(
                self._config.organizations, self._config.repo_pattern
            )
            records = await self._collect_runs(repositories, announce=True)
            self._log.add(f"Loaded {len(records)} runs in total")
            self._publish(
                repositories=tuple(repositories),
                runs=tuple(records),
                last_update=_now(),
            )
        except Exception as exc:
            logger.exception("Discovery cycle failed")
            self._log.add(f"Error: {exc}")
            self._publish(error=str(exc))
        finally:
            self._publish(discovering=False)

        self._arm_timer()
        return self.snapshot()

    async def refresh(self) -> EngineState:
        """Light cycle: re-fetch runs of the already discovered repositories."""
        if not self._config.base_url or not self._state.repositories:
            return self.snapshot()
        if self._refreshing:
            logger.debug("Refresh already in progress, skipping")
            return self.snapshot()

        self._refreshing = True
        self._publish(loading=True)
        try:
            records = await self._collect_runs(self._state.repositories, announce=False)
            self._publish(runs=tuple(records), last_update=_now(), error=None)
        except Exception as exc:
            logger.exception("Refresh cycle failed")
            self._publish(error=str(exc))
        finally:
            self._refreshing = False
            self._publish(loading=False)
        return self.snapshot()

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    @property
    def timer_active(self) -> bool:
        return self._timer is not None and not self._timer.done()

    async def _refresh_loop(self, interval: int) -> None:
        while True:
            await asyncio.sleep(interval)
            await self.refresh()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _arm_timer(self) -> None:
        self._cancel_timer()
        interval = self._config.refresh_interval
        if interval <= 0 or not self._config.base_url or not self._state.repositories:
            return
        self._timer = asyncio.create_task(self._refresh_loop(interval))
        logger.debug(f"Periodic refresh armed every {interval}s")

    async def shutdown(self) -> None:
        """Stop the refresh timer and close the API client if this scheduler created it."""
        timer = self._timer
        self._cancel_timer()
        if timer is not None:
            try:
                await timer
            except asyncio.CancelledError:
                pass

        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "MonitorScheduler":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.shutdown()
