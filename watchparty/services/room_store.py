# watchparty/services/room_store.py
from __future__ import annotations

import logging
import time
import uuid
from typing import Callable, Dict, List, Optional, Set, Tuple

from watchparty.core.config import EvictionPolicy
from watchparty.models.room import MediaDescriptor, Member, Room

logger = logging.getLogger(__name__)

# ============================================================================
# IN-MEMORY ROOM STORE
# ============================================================================


class RoomStore:
    """
    Owns every room's state for the lifetime of the process.

    Nothing is persisted; a restart starts from an empty store. All methods are
    synchronous and run on the event loop thread, so each call is atomic from
    the caller's point of view.

    Data Structures:
        rooms: Maps room_id -> Room (media descriptor + ordered member list)
               Example: {"1f3a9c2e": Room(media=None, members=[...])}

        connection_rooms: Reverse index, connection_id -> set of room_ids the
                          connection currently has member records in.
                          Disconnect cleanup reads this instead of scanning
                          every room.

    Eviction:
        "never"  rooms live until the process exits (an emptied room is kept)
        "empty"  a room is dropped as soon as its last member leaves
        "idle"   empty rooms idle longer than idle_ttl are dropped by reap_idle()

    Usage:
        store = RoomStore()
        room_id = store.create_room()
        members = store.add_member(room_id, "conn-1", "alice")
    """

    def __init__(
        self,
        eviction: EvictionPolicy = "never",
        idle_ttl: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.rooms: Dict[str, Room] = {}
        self.connection_rooms: Dict[str, Set[str]] = {}
        self.eviction = eviction
        self.idle_ttl = idle_ttl
        self._clock = clock
        self._last_activity: Dict[str, float] = {}

    def __len__(self) -> int:
        return len(self.rooms)

    def __contains__(self, room_id: object) -> bool:
        return room_id in self.rooms

    def room_ids(self) -> List[str]:
        return list(self.rooms)

    # ------------------------------------------------------------------
    # Room lifecycle
    # ------------------------------------------------------------------

    def create_room(self) -> str:
        """
        Allocate a fresh room with no media and no members.

        Returns:
            The new 8 character room id (collisions are not checked)
        """
        room_id = uuid.uuid4().hex[:8]
        self.rooms[room_id] = Room()
        self._touch(room_id)
        logger.info("✓ Created room %s", room_id)
        return room_id

    def get_room(self, room_id: str) -> Optional[Room]:
        """
        Get a read-only snapshot of a room.

        Returns:
            A deep copy of the room, or None if it doesn't exist
        """
        room = self.rooms.get(room_id)
        if room is None:
            return None
        return room.model_copy(deep=True)

    def ensure_room(self, room_id: str) -> Room:
        """Insert an empty room under room_id unless one is already there."""
        room = self.rooms.get(room_id)
        if room is None:
            room = Room()
            self.rooms[room_id] = room
            self._touch(room_id)
            logger.info("✓ Created room %s on first reference", room_id)
        return room

    def delete_room(self, room_id: str) -> bool:
        """
        Drop a room and every reverse-index entry pointing at it.

        Returns:
            True if the room was deleted, False if it didn't exist
        """
        room = self.rooms.pop(room_id, None)
        if room is None:
            return False

        self._last_activity.pop(room_id, None)
        for member in room.members:
            self._unindex(member.connection_id, room_id)

        logger.info("✗ Deleted room %s", room_id)
        return True

    # ------------------------------------------------------------------
    # Media
    # ------------------------------------------------------------------

    def set_media(self, room_id: str, media: Optional[MediaDescriptor]) -> Optional[MediaDescriptor]:
        """Replace the room's media descriptor, creating the room if needed."""
        room = self.ensure_room(room_id)
        room.media = media
        self._touch(room_id)
        return media

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def add_member(self, room_id: str, connection_id: str, display_name: str) -> List[Member]:
        """
        Append a member record, creating the room if needed.

        Joining twice with the same connection id leaves two records; they are
        both removed on the next leave or disconnect.

        Returns:
            Copy of the room's member list after the append
        """
        room = self.ensure_room(room_id)
        room.members.append(Member(connection_id=connection_id, display_name=display_name))
        self.connection_rooms.setdefault(connection_id, set()).add(room_id)
        self._touch(room_id)
        return list(room.members)

    def remove_member(self, room_id: str, connection_id: str) -> List[Member]:
        """
        Remove every record of connection_id from the room.

        Returns:
            Copy of the remaining member list (empty if the room doesn't exist)
        """
        room = self.rooms.get(room_id)
        if room is None:
            return []

        remaining = [m for m in room.members if m.connection_id != connection_id]
        if len(remaining) == len(room.members):
            return list(remaining)

        room.members = remaining
        self._unindex(connection_id, room_id)
        self._touch(room_id)
        self._evict_if_empty(room_id)
        return list(remaining)

    def remove_member_from_all_rooms(self, connection_id: str) -> List[Tuple[str, List[Member]]]:
        """
        Remove a connection from every room it is a member of.

        Returns:
            One (room_id, remaining members) pair per room the connection was in
        """
        changed: List[Tuple[str, List[Member]]] = []
        for room_id in sorted(self.rooms_for(connection_id)):
            changed.append((room_id, self.remove_member(room_id, connection_id)))
        self.connection_rooms.pop(connection_id, None)
        return changed

    def rooms_for(self, connection_id: str) -> Set[str]:
        return set(self.connection_rooms.get(connection_id, ()))

    def recipients(self, room_id: str) -> List[str]:
        """Distinct connection ids in the room, in join order."""
        room = self.rooms.get(room_id)
        if room is None:
            return []
        return list(dict.fromkeys(m.connection_id for m in room.members))

    # ------------------------------------------------------------------
    # Eviction
    # ------------------------------------------------------------------

    def reap_idle(self, now: Optional[float] = None) -> List[str]:
        """
        Delete empty rooms that have been idle for longer than idle_ttl.

        Only does anything under the "idle" eviction policy.

        Returns:
            Ids of the rooms that were deleted
        """
        if self.eviction != "idle":
            return []

        now = self._clock() if now is None else now
        stale = [
            room_id
            for room_id, room in self.rooms.items()
            if not room.members and now - self._last_activity.get(room_id, now) > self.idle_ttl
        ]
        for room_id in stale:
            self.delete_room(room_id)
        if stale:
            logger.info("🧹 Reaped %d idle rooms", len(stale))
        return stale

    def _evict_if_empty(self, room_id: str) -> None:
        if self.eviction == "empty" and not self.rooms[room_id].members:
            self.delete_room(room_id)

    def _touch(self, room_id: str) -> None:
        self._last_activity[room_id] = self._clock()

    def _unindex(self, connection_id: str, room_id: str) -> None:
        rooms = self.connection_rooms.get(connection_id)
        if rooms is None:
            return
        rooms.discard(room_id)
        if not rooms:
            del self.connection_rooms[connection_id]
