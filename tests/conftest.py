"""Shared fixtures: an in-process fake backend and a client wired to it."""

import inspect
import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from cognify_client.client import CognifyClient
from cognify_client.config import Settings
from cognify_client.storage.credentials import REFRESH_TOKEN_KEY, TOKEN_KEY
from cognify_client.storage.key_value import MemoryKeyValueStore

Handler = Callable[[httpx.Request], Any]


class FakeBackend:
    """Routes ``(method, path)`` to canned answers and records every request.

    An answer can be a JSON-able value (200), an ``int`` status code, an
    ``httpx.Response``, or a callable (sync or async) returning one of those.
    Unknown routes answer 404.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], Any] = {}
        self.requests: list[httpx.Request] = []
        self.profile: dict[str, Any] | None = None

    def add(self, method: str, path: str, answer: Any) -> None:
        self.routes[(method.upper(), path)] = answer

    def count(self, method: str, path: str) -> int:
        return sum(
            1 for r in self.requests if r.method == method.upper() and r.url.path == path
        )

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method.upper() and r.url.path == path]

    def serve_profile(self, profile: dict[str, Any]) -> None:
        """Stateful GET/PUT /profiles/me; PUT merges top-level fields."""
        self.profile = profile

        def get_profile(request: httpx.Request):
            return self.profile

        def put_profile(request: httpx.Request):
            self.profile = {**self.profile, **json.loads(request.content)}
            return self.profile

        self.add("GET", "/profiles/me", get_profile)
        self.add("PUT", "/profiles/me", put_profile)

    @property
    def progress_report(self) -> list[dict[str, Any]]:
        return ((self.profile or {}).get("student_info") or {}).get("progress_report") or []

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        answer = self.routes.get((request.method, request.url.path))
        if answer is None:
            return httpx.Response(404, json={"detail": "Not Found"})
        if callable(answer):
            answer = answer(request)
            if inspect.isawaitable(answer):
                answer = await answer
        if isinstance(answer, httpx.Response):
            return answer
        if isinstance(answer, int) and not isinstance(answer, bool):
            return httpx.Response(answer, json={"detail": "error"})
        return httpx.Response(200, json=answer)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def store():
    return MemoryKeyValueStore()


@pytest.fixture
def settings(tmp_path):
    return Settings(api_url="http://testserver", storage_dir=tmp_path, request_timeout_seconds=5.0)


@pytest.fixture
async def client(settings, store, backend):
    async with CognifyClient(settings, store=store, transport=backend.transport) as c:
        yield c


@pytest.fixture
async def logged_in(store):
    """Seed the store with a valid token pair."""
    await store.set_item(TOKEN_KEY, "access-1")
    await store.set_item(REFRESH_TOKEN_KEY, "refresh-1")
    return store