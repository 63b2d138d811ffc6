"""
Repository discovery.

Resolves the set of repositories to monitor from organization membership and,
for selective repository patterns, the server's full-text repository search.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import quote

from pydantic import ValidationError

from forgewatch.ci_providers.models import Repository
from forgewatch.entities.engine_state import DiscoveryLog
from forgewatch.services.forgejo.client import ForgejoClient
from forgewatch.services.forgejo.exceptions import ForgejoError, PatternError
from forgewatch.services.patterns import (
    MATCH_ALL_RE,
    compile_or_default,
    is_match_all,
)

logger = logging.getLogger(__name__)

ORG_PAGE_LIMIT = 50
SEARCH_LIMIT = 100
SEARCH_TERM_MAX_LENGTH = 20
SEARCH_TERM_MIN_LENGTH = 2

_NON_TERM_CHARS_RE = re.compile(r"[^a-zA-Z0-9_-]")


def derive_search_term(repo_pattern: str) -> str:
    """
    Reduce a repository regex to a literal term for the search endpoint.

    ``^api-.*$`` becomes ``api-``; the result may be too short to be useful.
    """
    term = repo_pattern.replace(".*", "")
    term = _NON_TERM_CHARS_RE.sub("", term)
    return term[:SEARCH_TERM_MAX_LENGTH]


def _items(data: Any, key: str) -> List[Dict[str, Any]]:
    """Unwrap responses that are either a bare list or ``{key: [...]}``."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return data.get(key) or []
    return []


class RepoDiscoverer:
    """Finds repositories across organizations and filters them by name pattern."""

    def __init__(self, client: ForgejoClient, discovery_log: Optional[DiscoveryLog] = None):
        self._client = client
        self._log = discovery_log

    def _report(self, message: str, level: int = logging.INFO) -> None:
        logger.log(level, message)
        if self._log is not None:
            self._log.add(message)

    async def fetch_org_repos(self, org: str) -> List[Dict[str, Any]]:
        """
        Page through ``/orgs/{org}/repos``.

        A failing page ends the listing for this organization; whatever was
        collected before the failure is kept.
        """
        repos: List[Dict[str, Any]] = []
        page = 1
        while True:
            endpoint = f"/orgs/{quote(org, safe='')}/repos?page={page}&limit={ORG_PAGE_LIMIT}"
            try:
                data = await self._client.call(endpoint)
            except ForgejoError as exc:
                self._report(f"Failed to list organization {org}: {exc}", logging.WARNING)
                break

            page_repos = _items(data, "data")
            if not page_repos:
                break
            repos.extend(page_repos)
            if len(page_repos) < ORG_PAGE_LIMIT:
                break
            page += 1

        return repos

    async def search_repos(self, term: str) -> List[Dict[str, Any]]:
        try:
            data = await self._client.call(
                f"/repos/search?q={quote(term, safe='')}&limit={SEARCH_LIMIT}"
            )
        except ForgejoError as exc:
            self._report(f"Repository search failed: {exc}", logging.WARNING)
            return []
        return _items(data, "data")

    def _to_repositories(self, items: Iterable[Dict[str, Any]]) -> List[Repository]:
        repositories: List[Repository] = []
        seen_ids = set()
        for item in items:
            try:
                repo = Repository.from_api(item)
            except (KeyError, TypeError, AttributeError, ValidationError) as exc:
                logger.warning(f"Skipping malformed repository record: {exc}")
                continue
            if repo.id in seen_ids:
                continue
            seen_ids.add(repo.id)
            repositories.append(repo)
        return repositories

    async def discover(self, organizations: Iterable[str], repo_pattern: str) -> List[Repository]:
        """
        Resolve the repositories to monitor.

        Args:
            organizations: Organization names to enumerate
            repo_pattern: Case-insensitive regex matched against full and short names

        Returns:
            Matching repositories, deduplicated by id, in discovery order
        """
        collected: List[Dict[str, Any]] = []

        for org in organizations:
            self._report(f"Scanning organization: {org}")
            org_repos = await self.fetch_org_repos(org)
            self._report(f"  -> {len(org_repos)} repositories found")
            collected.extend(org_repos)

        if not is_match_all(repo_pattern):
            term = derive_search_term(repo_pattern)
            if len(term) >= SEARCH_TERM_MIN_LENGTH:
                self._report(f'Searching repositories for: "{term}"')
                found = await self.search_repos(term)
                self._report(f"  -> {len(found)} repositories found")
                collected.extend(found)

        def _pattern_failed(exc: PatternError) -> None:
            self._report(f"Invalid repository pattern: {exc.reason}", logging.WARNING)

        repo_regex = compile_or_default(repo_pattern, MATCH_ALL_RE, _pattern_failed)

        matching = [
            repo
            for repo in self._to_repositories(collected)
            if repo_regex.search(repo.full_name) or repo_regex.search(repo.name)
        ]
        self._report(f"{len(matching)} repositories match the pattern")
        return matching
