from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest

from outlook_mcp import auth, graph
from outlook_mcp.calendar_utils import set_calendar_resolver
from outlook_mcp.tools import account as account_tools

TEST_TOKEN = "test-access-token"


class FakeGraph:
    """Stands in for graph.call_graph_api and records every call."""

    def __init__(self) -> None:
        self.responses: dict[tuple[str, str], Any] = {}
        self.calls: list[dict[str, Any]] = []

    def register(self, method: str, path: str, response: Any) -> None:
        """Register a response, a callable producing one, or an exception to raise."""
        self.responses[(method, path)] = response

    def __call__(
        self,
        access_token: str,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        query_params: dict[str, Any] | None = None,
    ) -> Any:
        self.calls.append(
            {
                "access_token": access_token,
                "method": method,
                "path": path,
                "body": body,
                "query_params": query_params,
            }
        )
        key = (method, path)
        if key not in self.responses:
            raise AssertionError(f"Unexpected Graph request: {method} {path}")
        value = self.responses[key]
        if isinstance(value, Exception):
            raise value
        return value() if callable(value) else value

    def calls_to(self, method: str, path: str) -> list[dict[str, Any]]:
        return [c for c in self.calls if c["method"] == method and c["path"] == path]


@pytest.fixture(autouse=True)
def isolated_state(tmp_path, monkeypatch: pytest.MonkeyPatch):
    """Fresh resolver cache, token store and pending sign-in for every test."""
    monkeypatch.setenv("OUTLOOK_MCP_TOKEN_PATH", str(tmp_path / "tokens.json"))
    set_calendar_resolver(None)
    auth.set_token_provider(auth.TokenProvider(token_path=tmp_path / "tokens.json"))
    account_tools._set_pending_flow(None)
    yield
    set_calendar_resolver(None)
    auth.set_token_provider(None)
    account_tools._set_pending_flow(None)


@pytest.fixture
def mock_graph(monkeypatch: pytest.MonkeyPatch) -> FakeGraph:
    """Patch graph.call_graph_api with a recording fake."""
    fake = FakeGraph()
    monkeypatch.setattr(graph, "call_graph_api", fake)
    return fake


@pytest.fixture
def authenticated(monkeypatch: pytest.MonkeyPatch) -> str:
    """Make auth.ensure_authenticated hand out a fixed token."""
    monkeypatch.setattr(auth, "ensure_authenticated", lambda force_new=False: TEST_TOKEN)
    return TEST_TOKEN


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    now = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
    return lambda: now


@pytest.fixture
def make_event() -> Callable[..., dict[str, Any]]:
    """Build a Graph calendar event payload."""

    def factory(**overrides: Any) -> dict[str, Any]:
        start = datetime(2024, 3, 10, 9, 0)
        event = {
            "id": "event-1",
            "subject": "Planning",
            "bodyPreview": "Quarterly planning",
            "start": {"dateTime": start.isoformat(), "timeZone": "UTC"},
            "end": {
                "dateTime": (start + timedelta(hours=1)).isoformat(),
                "timeZone": "UTC",
            },
            "location": {"displayName": "Room 1"},
        }
        event.update(overrides)
        return event

    return factory
