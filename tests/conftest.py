from datetime import datetime, timezone
from typing import Any

import pytest

from fitcheck_client.apis import AuthApi, FeedApi, GymsApi, MessagesApi, ProfileApi
from fitcheck_client.optimistic import OptimisticMutationCoordinator
from fitcheck_client.session import SessionManager
from fitcheck_client.storage import MemoryStore

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class FakeHttpClient:
    """Stands in for HttpClient; routes map (method, path) to a canned reply.

    A route value may be a plain response, an exception instance to raise, or
    a callable taking (token, payload) for dynamic replies.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], Any] = {}
        self.calls: list[tuple[str, str, str | None, Any]] = []

    def on(self, method: str, path: str, reply: Any) -> None:
        self.routes[(method, path)] = reply

    def paths(self, method: str | None = None) -> list[str]:
        return [path for verb, path, _, _ in self.calls if method is None or verb == method]

    def _handle(self, method: str, token: str | None, path: str, payload: Any) -> Any:
        self.calls.append((method, path, token, payload))
        if (method, path) not in self.routes:
            raise AssertionError(f"Unexpected request {method} {path}")
        reply = self.routes[(method, path)]
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            return reply(token, payload)
        return reply

    def get_json(self, token, path, params=None, retry=True):
        return self._handle("GET", token, path, params)

    def post_json(self, token, path, payload):
        return self._handle("POST", token, path, payload)

    def put_json(self, token, path, payload):
        return self._handle("PUT", token, path, payload)

    def post_form(self, token, path, data):
        return self._handle("POST", token, path, data)

    def close(self):
        pass


@pytest.fixture
def http():
    return FakeHttpClient()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def notices():
    return []


@pytest.fixture
def make_session(http, store):
    def _make(**kwargs) -> SessionManager:
        return SessionManager(AuthApi(http), kwargs.pop("store", store), clock=lambda: NOW, **kwargs)

    return _make


@pytest.fixture
def coordinator_factory(notices):
    def _make(timeout_seconds: float = 2) -> OptimisticMutationCoordinator:
        return OptimisticMutationCoordinator(timeout_seconds=timeout_seconds, notify=notices.append)

    return _make


@pytest.fixture
def signed_in_store():
    return MemoryStore(
        {
            "token": "tok-123",
            "username": "maria",
            "userData": '{"id": 7, "username": "maria"}',
        }
    )


@pytest.fixture
def apis(http):
    return {
        "feed": FeedApi(http),
        "messages": MessagesApi(http),
        "profile": ProfileApi(http),
        "gyms": GymsApi(http),
    }
