from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from forgewatch.services.forgejo.exceptions import (
    ForgejoConfigurationError,
    HttpError,
    NetworkError,
)

API_PREFIX = "/api/v1"

API_HEADERS = {
    "Accept": "application/json",
}

logger = logging.getLogger(__name__)


class ForgejoClient:
    """
    Thin async REST client for the Forgejo/Gitea API.

    Authentication, when a token is configured, is tried in two tiers:
    the ``Authorization: token ...`` header first, then, only if that request
    never reached the server, the same call with ``?token=...`` appended.
    HTTP error statuses are never retried.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize ForgejoClient.

        Args:
            base_url: Server root, e.g. ``https://codeberg.org`` (``/api/v1`` is appended)
            token: Optional personal access token
            timeout: Per-request timeout in seconds
            transport: Custom httpx transport (tests inject ``httpx.MockTransport``)
        """
        if not base_url:
            raise ForgejoConfigurationError("Forgejo base URL is required to call the API")

        self._base_url = base_url.rstrip("/")
        self._token = token or None
        self._rest = httpx.AsyncClient(timeout=timeout, transport=transport)

    @property
    def base_url(self) -> str:
        return self._base_url

    def _url(self, endpoint: str) -> str:
        return f"{self._base_url}{API_PREFIX}{endpoint}"

    def _query_token_url(self, endpoint: str) -> str:
        separator = "&" if "?" in endpoint else "?"
        return f"{self._url(endpoint)}{separator}token={quote(self._token or '', safe='')}"

    async def _get(self, url: str, headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        request_headers = dict(API_HEADERS)
        if headers:
            request_headers.update(headers)
        return await self._rest.get(url, headers=request_headers)

    def _handle_response(self, response: httpx.Response) -> Any:
        if response.is_error:
            raise HttpError(
                response.status_code,
                f"HTTP {response.status_code}: {response.reason_phrase}",
            )
        try:
            return response.json()
        except ValueError as exc:
            raise HttpError(
                response.status_code,
                f"HTTP {response.status_code}: response is not valid JSON",
            ) from exc

    async def call(self, endpoint: str) -> Any:
        """
        GET ``endpoint`` (relative to ``/api/v1``) and return the decoded JSON.

        Raises:
            NetworkError: The request never completed.
            HttpError: The server answered with a 4xx/5xx status or a non-JSON body.
        """
        try:
            if self._token:
                try:
                    response = await self._get(
                        self._url(endpoint),
                        {"Authorization": f"token {self._token}"},
                    )
                except httpx.TransportError as exc:
                    logger.info(
                        f"Header auth request to {endpoint} failed ({exc!r}), "
                        "retrying with query-parameter token"
                    )
                    response = await self._get(self._query_token_url(endpoint))
            else:
                response = await self._get(self._url(endpoint))
        except httpx.TransportError as exc:
            raise NetworkError(f"Request to {endpoint} failed: {exc!r}") from exc

        return self._handle_response(response)

    async def aclose(self) -> None:
        await self._rest.aclose()

    async def __aenter__(self) -> "ForgejoClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
