"""
tests.conftest
~~~~~~~~~~~~~~

Shared fixtures: an in-memory RoomStore, a ConnectionManager fed with fake
sockets that record every frame, and a FastAPI TestClient whose uploads go to
a temporary directory.
"""
from __future__ import annotations

from typing import Any, Callable, Iterator

import pytest
from fastapi.testclient import TestClient

from watchparty.core.config import Settings
from watchparty.main import create_app
from watchparty.services.connection_manager import ConnectionManager
from watchparty.services.event_relay import EventRelay
from watchparty.services.room_store import RoomStore

FIXED_NOW_MS: int = 1_700_000_000_000


class FakeSocket:
    """Stands in for a WebSocket; keeps every frame sent to it."""

    def __init__(self) -> None:
        self.frames: list[dict[str, Any]] = []

    async def send_json(self, message: dict[str, Any]) -> None:
        self.frames.append(message)

    def events(self) -> list[str]:
        return [frame["event"] for frame in self.frames]

    def of(self, event: str) -> list[Any]:
        return [frame["data"] for frame in self.frames if frame["event"] == event]


@pytest.fixture()
def store() -> RoomStore:
    return RoomStore()


@pytest.fixture()
def connections() -> ConnectionManager:
    return ConnectionManager()


@pytest.fixture()
def relay(store: RoomStore, connections: ConnectionManager) -> EventRelay:
    return EventRelay(store, connections, clock=lambda: FIXED_NOW_MS)


@pytest.fixture()
def connect(connections: ConnectionManager) -> Callable[[str], FakeSocket]:
    """Register a fake socket under a chosen connection id."""

    def _connect(connection_id: str) -> FakeSocket:
        socket = FakeSocket()
        connections.connections[connection_id] = socket  # type: ignore[assignment]
        return socket

    return _connect


@pytest.fixture()
def settings(tmp_path: Any, monkeypatch: pytest.MonkeyPatch) -> Settings:
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("ROOM_EVICTION", "never")
    return Settings()


@pytest.fixture()
def app(settings: Settings):
    return create_app(settings)


@pytest.fixture()
def client(app) -> Iterator[TestClient]:
    # One portal for the whole test, so HTTP handlers and open sockets share a loop
    with TestClient(app) as test_client:
        yield test_client
