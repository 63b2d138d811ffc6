from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Set
from urllib.parse import quote

from pydantic import ValidationError

from forgewatch.ci_providers.models import NormalizedRun
from forgewatch.ci_providers.normalizer import normalize_run, workflow_name
from forgewatch.entities.engine_state import DiscoveryLog
from forgewatch.services.forgejo.client import ForgejoClient
from forgewatch.services.forgejo.exceptions import ForgejoError, HttpError

logger = logging.getLogger(__name__)

MAX_PAGES = 5
PAGE_LIMIT = 50


def _page_runs(data: Any) -> List[Any]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return data.get("workflow_runs") or []
    return []


class RunFetcher:
    """
    Fetches the recent run history of one repository.

    At most ``MAX_PAGES`` pages of ``PAGE_LIMIT`` runs are read. Fetching stops
    early on an empty or short page, or once a page after the first brings no
    workflow that was not already seen. Runs are deduplicated by id, so a page
    boundary shifted by a newly queued run does not repeat its last entry.
    """

    def __init__(self, client: ForgejoClient, discovery_log: Optional[DiscoveryLog] = None):
        self._client = client
        self._log = discovery_log

    def _endpoint(self, owner: str, repo_name: str, page: int) -> str:
        return (
            f"/repos/{quote(owner, safe='')}/{quote(repo_name, safe='')}/actions/runs"
            f"?page={page}&limit={PAGE_LIMIT}"
        )

    async def _fetch_pages(self, owner: str, repo_name: str) -> List[NormalizedRun]:
        runs: List[NormalizedRun] = []
        seen_ids: Set[Any] = set()
        seen_workflows: Set[str] = set()

        for page in range(1, MAX_PAGES + 1):
            data = await self._client.call(self._endpoint(owner, repo_name, page))
            page_runs = _page_runs(data)
            if not page_runs:
                break

            known = len(seen_workflows)
            for raw in page_runs:
                if not isinstance(raw, Mapping):
                    logger.debug(f"Skipping non-object run record in {owner}/{repo_name}: {raw!r}")
                    continue
                run = normalize_run(raw)
                seen_workflows.add(workflow_name(raw))
                if run.id is not None:
                    if run.id in seen_ids:
                        continue
                    seen_ids.add(run.id)
                runs.append(run)

            # TODO: confirm whether stale workflows that only appear on later
            # pages should keep pagination going; this stops after one quiet page.
            if len(seen_workflows) == known and page > 1:
                break
            if len(page_runs) < PAGE_LIMIT:
                break

        return runs

    async def fetch_runs(self, owner: str, repo_name: str) -> List[NormalizedRun]:
        """
        Return normalized runs for ``owner/repo_name``, newest pages first.

        Never raises for API failures: a 404 (Actions disabled) yields an empty
        list silently, anything else is logged and yields an empty list.
        """
        try:
            return await self._fetch_pages(owner, repo_name)
        except HttpError as exc:
            if exc.is_not_found:
                logger.debug(f"No actions for {owner}/{repo_name}")
                return []
            self._report_failure(owner, repo_name, exc)
        except (ForgejoError, ValidationError) as exc:
            self._report_failure(owner, repo_name, exc)
        return []

    def _report_failure(self, owner: str, repo_name: str, exc: Exception) -> None:
        message = f"Runs for {owner}/{repo_name}: {exc}"
        logger.warning(message)
        if self._log is not None:
            self._log.add(message)
