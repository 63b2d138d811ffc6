"""Shared fixtures: an in-memory Forgejo server behind httpx.MockTransport."""

from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest

from forgewatch.services.forgejo.client import ForgejoClient

BASE_URL = "https://forge.example.org"


def make_repo(repo_id: int, full_name: str, **overrides) -> Dict[str, Any]:
    owner, name = full_name.split("/", 1)
    data = {
        "id": repo_id,
        "full_name": full_name,
        "name": name,
        "owner": {"login": owner},
        "html_url": f"{BASE_URL}/{full_name}",
    }
    data.update(overrides)
    return data


def make_run(
    run_id: int,
    workflow: str = "ci",
    status: str = "completed",
    conclusion: Optional[str] = "success",
    branch: str = "main",
    created_at: str = "2024-05-01T10:00:00Z",
    **overrides,
) -> Dict[str, Any]:
    data = {
        "id": run_id,
        "name": workflow,
        "workflow_ref": f".forgejo/workflows/{workflow}.yml@refs/heads/{branch}",
        "status": status,
        "conclusion": conclusion,
        "head_branch": branch,
        "head_sha": f"{run_id:040x}",
        "created_at": created_at,
        "run_number": run_id,
    }
    data.update(overrides)
    return data


class FakeForge:
    """
    Routes GET requests by path (and optionally ``page``) to canned JSON.

    Paths with no registered response answer 404. A path registered for some
    pages answers ``[]`` for the others.
    """

    def __init__(self):
        self.routes: Dict[str, Dict[Optional[int], Tuple[int, Any]]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, path: str, payload: Any = None, status: int = 200, page: Optional[int] = None):
        self.routes.setdefault(f"/api/v1{path}", {})[page] = (status, payload)
        return self

    def add_runs(self, full_name: str, runs: List[Dict[str, Any]], page: Optional[int] = None):
        return self.add(f"/repos/{full_name}/actions/runs", {"workflow_runs": runs}, page=page)

    def paths(self) -> List[str]:
        return [request.url.path for request in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        pages = self.routes.get(request.url.path)
        if pages is None:
            return httpx.Response(404, json={"message": "not found"})

        page = request.url.params.get("page")
        key = int(page) if page else None
        if key in pages:
            status, payload = pages[key]
        elif None in pages:
            status, payload = pages[None]
        else:
            status, payload = 200, []
        return httpx.Response(status, json=payload)

    def client(self, token: Optional[str] = None) -> ForgejoClient:
        return ForgejoClient(BASE_URL, token, transport=httpx.MockTransport(self.handler))


@pytest.fixture
def forge():
    return FakeForge()
