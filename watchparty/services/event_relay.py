# watchparty/services/event_relay.py

from __future__ import annotations

import asyncio
import logging
import time
from collections import Counter
from typing import Any, Callable, Optional

from watchparty.models.events import (
    Chat,
    InboundEvent,
    JoinRoom,
    LeaveRoom,
    Playback,
    SetMedia,
    Signal,
    parse_event,
)
from watchparty.models.room import MediaDescriptor, Member
from watchparty.services.connection_manager import ConnectionManager
from watchparty.services.room_store import RoomStore

logger = logging.getLogger(__name__)


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def _members_wire(members: list[Member]) -> list[dict]:
    return [m.to_wire() for m in members]


def _media_wire(media: Optional[MediaDescriptor]) -> Optional[dict]:
    return media.to_wire() if media is not None else None


# ============================================================================
# EVENT RELAY
# ============================================================================


class EventRelay:
    """
    Turns inbound client events into RoomStore mutations and outbound frames.

    Recipient sets:
        room          every distinct connection with a member record in the room
        room-but-one  the same, minus the sender
        sender        only the connection the event came from
        target        one explicitly addressed connection (signal relay)

    Invalid input never produces an error frame: unknown events, malformed
    payloads, signals without a target and playback for unknown rooms are
    dropped and logged.
    """

    def __init__(
        self,
        store: RoomStore,
        connections: ConnectionManager,
        clock: Callable[[], int] = _epoch_ms,
    ) -> None:
        self.store = store
        self.connections = connections
        self._clock = clock
        self.event_counts: Counter[str] = Counter()
        self.dropped = 0
        # One event at a time: a fan-out finishes before the next mutation starts
        self._lock = asyncio.Lock()

    async def dispatch(self, connection_id: str, frame: Any) -> None:
        """Validate one decoded frame and run its handler."""
        event = parse_event(frame)
        if event is None:
            self.dropped += 1
            return

        self.event_counts[frame["event"]] += 1
        await self.handle(connection_id, event)

    async def handle(self, connection_id: str, event: InboundEvent) -> None:
        async with self._lock:
            await self._handle(connection_id, event)

    async def _handle(self, connection_id: str, event: InboundEvent) -> None:
        if isinstance(event, JoinRoom):
            await self.join_room(connection_id, event)
        elif isinstance(event, LeaveRoom):
            await self.leave_room(connection_id, event)
        elif isinstance(event, Signal):
            await self.signal(connection_id, event)
        elif isinstance(event, Chat):
            await self.chat(connection_id, event)
        elif isinstance(event, Playback):
            await self.playback(connection_id, event)
        elif isinstance(event, SetMedia):
            await self._set_media(event.room_id, event.media)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def join_room(self, connection_id: str, event: JoinRoom) -> None:
        """
        Add the sender to a room (creating it on first reference).

        Emits:
            user-joined   to everyone else in the room
            room-users    to everyone in the room, sender included
            media-update  to the sender only, with the room's current media
        """
        room = self.store.ensure_room(event.room_id)
        members = self.store.add_member(event.room_id, connection_id, event.display_name)
        logger.info("→ %s joined %s as %r (%d members)", connection_id, event.room_id, event.display_name, len(members))

        recipients = self.store.recipients(event.room_id)
        await self.connections.send_many(
            recipients,
            "user-joined",
            {"connectionId": connection_id, "displayName": event.display_name},
            exclude=connection_id,
        )
        await self.connections.send_many(recipients, "room-users", _members_wire(members))
        await self.connections.send(connection_id, "media-update", _media_wire(room.media))

    async def leave_room(self, connection_id: str, event: LeaveRoom) -> None:
        if event.room_id not in self.store:
            return

        members = self.store.remove_member(event.room_id, connection_id)
        logger.info("← %s left %s (%d members)", connection_id, event.room_id, len(members))
        await self.connections.send_many(self.store.recipients(event.room_id), "room-users", _members_wire(members))

    async def signal(self, connection_id: str, event: Signal) -> None:
        if not event.to:
            logger.debug("Dropping signal from %s without a target", connection_id)
            return
        await self.connections.send(event.to, "signal", {"from": connection_id, "data": event.data})

    async def chat(self, connection_id: str, event: Chat) -> None:
        message = {
            "message": event.message,
            "displayName": event.display_name,
            "timestamp": self._clock(),
        }
        await self.connections.send_many(self.store.recipients(event.room_id), "chat", message)

    async def playback(self, connection_id: str, event: Playback) -> None:
        if event.room_id not in self.store:
            logger.debug("Dropping playback for unknown room %s", event.room_id)
            return
        await self.connections.send_many(
            self.store.recipients(event.room_id),
            "playback",
            {"action": event.action, "time": event.time},
        )

    async def set_media(self, room_id: str, media: Optional[MediaDescriptor]) -> None:
        """
        Store a room's media and push it to everyone in the room.

        Shared by the set-media socket event and POST /set-media, so media set
        over HTTP reaches already connected clients too.
        """
        async with self._lock:
            await self._set_media(room_id, media)

    async def _set_media(self, room_id: str, media: Optional[MediaDescriptor]) -> None:
        media = self.store.set_media(room_id, media)
        logger.info("🎬 Media for %s set to %s", room_id, _media_wire(media))
        await self.connections.send_many(self.store.recipients(room_id), "media-update", _media_wire(media))

    async def disconnect(self, connection_id: str) -> None:
        """Drop a closed connection from every room and tell each room once."""
        async with self._lock:
            self.connections.disconnect(connection_id)
            for room_id, members in self.store.remove_member_from_all_rooms(connection_id):
                await self.connections.send_many(self.store.recipients(room_id), "room-users", _members_wire(members))
