"""Authenticated request pipeline with single-flight token refresh."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import structlog

from cognify_client.config import Settings
from cognify_client.errors import SessionExpiredError
from cognify_client.http.routes import REFRESH_PATH
from cognify_client.models.session import TokenPair
from cognify_client.storage.credentials import CredentialStore

logger = structlog.get_logger()

# Type alias for the call that exchanges a refresh token for a new pair
RefreshFunction = Callable[[str], Awaitable[TokenPair]]


def build_http_client(
    settings: Settings, transport: httpx.AsyncBaseTransport | None = None
) -> httpx.AsyncClient:
    """Create the shared HTTP client for the configured backend."""
    return httpx.AsyncClient(
        base_url=settings.api_url,
        timeout=settings.request_timeout_seconds,
        headers={"Client-Type": settings.client_type},
        transport=transport,
    )


def response_json(response: httpx.Response) -> Any:
    """Decode a JSON body, None for empty bodies."""
    if not response.content:
        return None
    return response.json()


class RefreshCoordinator:
    """Owns the refresh critical section of one pipeline.

    At most one refresh call is in flight. Callers that hit a 401 while it
    runs await the same task and resume with the same token or the same
    failure. A failed refresh clears the credentials and marks the session
    expired until ``reset()`` is called after a new login.

    Args:
        credentials: Token storage shared with login and logout.
        refresh: Coroutine function exchanging a refresh token for new tokens.
    """

    def __init__(self, credentials: CredentialStore, refresh: RefreshFunction):
        self._credentials = credentials
        self._refresh = refresh
        self._inflight: asyncio.Task[str] | None = None
        self._expired = False

    @property
    def session_expired(self) -> bool:
        return self._expired

    @property
    def refreshing(self) -> bool:
        return self._inflight is not None

    def reset(self) -> None:
        self._expired = False

    async def fresh_token(self, stale_token: str | None) -> str:
        """Return an access token newer than ``stale_token``.

        Args:
            stale_token: The token the failed request was sent with.

        Raises:
            SessionExpiredError: If the session cannot be refreshed.
        """
        if self._expired:
            raise SessionExpiredError()

        if self._inflight is None:
            # A refresh may have completed while this request was in flight
            current = await self._credentials.get_access_token()
            if current and current != stale_token:
                return current
        if self._inflight is None:
            self._inflight = asyncio.create_task(self._run_refresh())
        else:
            logger.debug("token_refresh_joined")
        return await asyncio.shield(self._inflight)

    async def _run_refresh(self) -> str:
        try:
            refresh_token = await self._credentials.get_refresh_token()
            if not refresh_token:
                await self._expire("missing_refresh_token")
                raise SessionExpiredError()
            try:
                tokens = await self._refresh(refresh_token)
            except (httpx.HTTPError, ValueError) as e:
                await self._expire(str(e))
                raise SessionExpiredError() from e
            await self._credentials.save(tokens)
            logger.info("token_refreshed")
            return tokens.access_token
        finally:
            self._inflight = None

    async def _expire(self, reason: str) -> None:
        logger.warning("token_refresh_failed", reason=reason)
        self._expired = True
        await self._credentials.clear()


class RequestPipeline:
    """Attaches bearer credentials and recovers once from an expired token.

    Args:
        http: HTTP client bound to the backend base URL.
        credentials: Token storage.
        coordinator: Refresh state; a coordinator calling ``/auth/refresh``
            through ``http`` is created when omitted.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        credentials: CredentialStore,
        coordinator: RefreshCoordinator | None = None,
    ):
        self.http = http
        self.credentials = credentials
        self.coordinator = coordinator or RefreshCoordinator(credentials, self.refresh_tokens)

    async def execute(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        authenticated: bool = True,
        retry: bool = True,
    ) -> httpx.Response:
        """Send a request and return the successful response.

        A 401 on an authenticated request triggers one token refresh and one
        replay, unless ``retry`` is False. Any other failure, or a failure of
        the replay, is raised as ``httpx.HTTPStatusError`` /
        ``httpx.TransportError``.

        Raises:
            SessionExpiredError: If the session expired or cannot be refreshed.
        """
        if authenticated and self.coordinator.session_expired:
            raise SessionExpiredError()

        token = await self.credentials.get_access_token() if authenticated else None
        response = await self._send(method, path, token, json, params)

        if authenticated and retry and response.status_code == httpx.codes.UNAUTHORIZED:
            logger.info("request_unauthorized", method=method, path=path)
            token = await self.coordinator.fresh_token(stale_token=token)
            response = await self._send(method, path, token, json, params)

        response.raise_for_status()
        return response

    async def request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self.execute(method, path, **kwargs)
        return response_json(response)

    async def refresh_tokens(self, refresh_token: str) -> TokenPair:
        """Exchange a refresh token, bypassing the 401 handling."""
        response = await self._send(
            "POST", REFRESH_PATH, None, {"refresh_token": refresh_token}, None
        )
        response.raise_for_status()
        return TokenPair.from_response(response_json(response))

    def reset_session(self) -> None:
        self.coordinator.reset()

    async def _send(
        self,
        method: str,
        path: str,
        token: str | None,
        json: Any,
        params: dict[str, Any] | None,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {token}"} if token else None
        return await self.http.request(method, path, json=json, params=params, headers=headers)
