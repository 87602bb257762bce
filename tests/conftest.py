"""Shared fakes for the asyncpg driver."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Iterator

import pytest

from pgstats.models import ConnectionParams
from pgstats.session import Session


class FakeConnection:
    """Minimal stand-in for `asyncpg.Connection`."""

    def __init__(
        self,
        responses: dict[str, list[Any]] | None = None,
        *,
        status: str = "INSERT 0 1",
        error: Exception | None = None,
        ping_delay: float = 0.0,
    ) -> None:
        self.responses = responses or {}
        self.status = status
        self.error = error
        self.ping_delay = ping_delay
        self.queries: list[str] = []
        self.closed = False

    async def fetch(self, query: str) -> list[Any]:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        for fragment, rows in self.responses.items():
            if fragment in query:
                return rows
        return []

    async def fetchval(self, query: str) -> Any:
        self.queries.append(query)
        if self.ping_delay:
            await asyncio.sleep(self.ping_delay)
        if self.error is not None:
            raise self.error
        return 1

    async def execute(self, query: str) -> str:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return self.status

    async def close(self) -> None:
        self.closed = True

    def is_closed(self) -> bool:
        return self.closed


class FakeDriver:
    """Replacement for `asyncpg.connect` that records every attempt."""

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.connections: list[FakeConnection] = []
        self.responses: dict[str, list[Any]] = {}
        self.error: Exception | None = None

    async def connect(self, **kwargs: Any) -> FakeConnection:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        connection = FakeConnection(dict(self.responses))
        self.connections.append(connection)
        return connection


@pytest.fixture
def driver(monkeypatch: pytest.MonkeyPatch) -> FakeDriver:
    fake = FakeDriver()
    monkeypatch.setattr("pgstats.session.asyncpg.connect", fake.connect)
    return fake


@pytest.fixture
def params() -> ConnectionParams:
    return ConnectionParams(host="db1", dbname="app", user="alice", port="5432", password="secret")


@pytest.fixture
def make_session() -> Iterator[Callable[..., Session]]:
    sessions: list[Session] = []

    def _make(params: ConnectionParams, **kwargs: Any) -> Session:
        session = Session(params, **kwargs)
        sessions.append(session)
        return session

    yield _make
    for session in sessions:
        session.close()
