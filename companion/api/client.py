"""Momentum server API client.

Endpoints used (relative to the configured server URL):
    POST auth/login          — Exchange email + password for a bearer token
    POST health-sync         — Push daily metrics, activities and sleep sessions
    GET  health-sync/status  — Server-side sync status and daily goals

Non-2xx responses raise ``httpx.HTTPStatusError``; connection problems and
timeouts raise other ``httpx.HTTPError`` subclasses.  Callers decide what is
retryable.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx

from companion.api.models import (
    HealthSyncRequest,
    HealthSyncResponse,
    LoginRequest,
    LoginResponse,
    SyncStatusResponse,
)

logger = logging.getLogger("momentum.api")

_LOGIN_PATH = "auth/login"
_HEALTH_SYNC_PATH = "health-sync"
_STATUS_PATH = "health-sync/status"


def normalize_server_url(url: str) -> str:
    """Strip whitespace and ensure exactly one trailing slash."""
    return url.strip().rstrip("/") + "/"


async def _log_request(request: httpx.Request) -> None:
    logger.debug("→ %s %s", request.method, request.url)


async def _log_response(response: httpx.Response) -> None:
    logger.debug(
        "← %s %s %d", response.request.method, response.request.url, response.status_code
    )


class MomentumClient:
    """Async client for the Momentum health-sync API.

    Usage::

        client = MomentumClient("https://momentum.example.com/api/")
        login = await client.login("me@example.com", "secret")
        result = await client.post_health_sync(login.token, request)
    """

    def __init__(
        self,
        server_url: str,
        allow_self_signed: bool = False,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            server_url:        Base URL of the Momentum API.
            allow_self_signed: Skip TLS certificate verification.
            timeout:           Per-request timeout in seconds.
            http_client:       Optional pre-configured httpx client (for testing).
        """
        self._base_url = normalize_server_url(server_url)
        self._verify = not allow_self_signed
        self._timeout = timeout
        self._http_client = http_client
        if allow_self_signed:
            logger.warning("TLS certificate verification disabled for %s", self._base_url)

    @property
    def base_url(self) -> str:
        return self._base_url

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(
            verify=self._verify,
            timeout=self._timeout,
            event_hooks={"request": [_log_request], "response": [_log_response]},
        ) as client:
            yield client

    async def _request(
        self,
        method: str,
        path: str,
        token: str | None = None,
        body: dict[str, Any] | None = None,
    ) -> dict:
        headers = {"Accept": "application/json"}
        if token is not None:
            headers["Authorization"] = f"Bearer {token}"

        async with self._client() as client:
            response = await client.request(
                method, self._base_url + path, headers=headers, json=body
            )
            response.raise_for_status()
            try:
                return response.json()
            except ValueError as exc:
                raise httpx.DecodingError(
                    f"Non-JSON response from {response.request.url}", request=response.request
                ) from exc

    async def login(self, email: str, password: str) -> LoginResponse:
        """Authenticate and return the bearer token (no Authorization header)."""
        data = await self._request(
            "POST", _LOGIN_PATH, body=LoginRequest(email=email, password=password).to_wire()
        )
        logger.info("Logged in to %s as %s", self._base_url, email)
        return LoginResponse.model_validate(data)

    async def post_health_sync(
        self, token: str, request: HealthSyncRequest
    ) -> HealthSyncResponse:
        """Submit one sync payload."""
        data = await self._request("POST", _HEALTH_SYNC_PATH, token=token, body=request.to_wire())
        return HealthSyncResponse.model_validate(data)

    async def get_status(self, token: str) -> SyncStatusResponse:
        data = await self._request("GET", _STATUS_PATH, token=token)
        return SyncStatusResponse.model_validate(data)
