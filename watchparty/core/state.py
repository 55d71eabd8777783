# watchparty/core/state.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from watchparty.core.config import Settings
from watchparty.services.connection_manager import ConnectionManager
from watchparty.services.event_relay import EventRelay
from watchparty.services.room_store import RoomStore


@dataclass
class AppState:
    """Per-application singletons, created once by create_app() and hung off app.state."""

    settings: Settings
    room_store: RoomStore
    connection_manager: ConnectionManager
    relay: EventRelay
    app_start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def build_state(settings: Settings) -> AppState:
    room_store = RoomStore(eviction=settings.ROOM_EVICTION, idle_ttl=settings.ROOM_IDLE_TTL_SECONDS)
    connection_manager = ConnectionManager()
    relay = EventRelay(room_store, connection_manager)
    return AppState(
        settings=settings,
        room_store=room_store,
        connection_manager=connection_manager,
        relay=relay,
    )
