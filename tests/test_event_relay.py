"""
tests.test_event_relay
~~~~~~~~~~~~~~~~~~~~~~

EventRelay tests against fake sockets: who receives what, in which order,
and which inputs are silently dropped.
"""
from __future__ import annotations

import asyncio

import pytest

from tests.conftest import FIXED_NOW_MS
from watchparty.models.room import MediaDescriptor
from watchparty.services.event_relay import EventRelay
from watchparty.services.room_store import RoomStore

pytestmark = pytest.mark.asyncio


def join(room_id: str, name: str) -> dict:
    return {"event": "join-room", "data": {"roomId": room_id, "displayName": name}}


def member(connection_id: str, name: str) -> dict:
    return {"connectionId": connection_id, "displayName": name}


YOUTUBE_ABC = {"kind": "youtube", "locator": "abc"}


class TestJoin:

    async def test_first_join(self, relay: EventRelay, store: RoomStore, connect) -> None:
        a = connect("a")

        await relay.dispatch("a", join("x", "A"))

        assert a.frames == [
            {"event": "room-users", "data": [member("a", "A")]},
            {"event": "media-update", "data": None},
        ]
        assert "x" in store

    async def test_second_join_notifies_others(self, relay: EventRelay, connect) -> None:
        a, b = connect("a"), connect("b")
        await relay.dispatch("a", join("x", "A"))
        a.frames.clear()

        await relay.dispatch("b", join("x", "B"))

        assert a.frames == [
            {"event": "user-joined", "data": member("b", "B")},
            {"event": "room-users", "data": [member("a", "A"), member("b", "B")]},
        ]
        assert b.events() == ["room-users", "media-update"]

    async def test_late_joiner_gets_current_media(self, relay: EventRelay, connect) -> None:
        a, b, c = connect("a"), connect("b"), connect("c")
        await relay.dispatch("a", join("x", "A"))
        await relay.dispatch("b", join("x", "B"))
        await relay.dispatch("a", {"event": "set-media", "data": {"roomId": "x", "media": YOUTUBE_ABC}})

        await relay.dispatch("c", join("x", "C"))

        assert c.of("media-update") == [YOUTUBE_ABC]
        expected = [member("a", "A"), member("b", "B"), member("c", "C")]
        assert a.of("room-users")[-1] == expected
        assert b.of("room-users")[-1] == expected
        assert c.of("room-users") == [expected]

    async def test_media_update_is_never_stale(self, relay: EventRelay, connect) -> None:
        connect("a")
        c = connect("c")
        await relay.dispatch("a", {"event": "set-media", "data": {"roomId": "x", "media": YOUTUBE_ABC}})
        newer = {"kind": "file", "locator": "http://host/uploads/1-movie.mp4"}
        await relay.dispatch("a", {"event": "set-media", "data": {"roomId": "x", "media": newer}})

        await relay.dispatch("c", join("x", "C"))

        assert c.of("media-update") == [newer]

    async def test_duplicate_join_delivers_once(self, relay: EventRelay, store: RoomStore, connect) -> None:
        a = connect("a")
        await relay.dispatch("a", join("x", "A"))
        a.frames.clear()

        await relay.dispatch("a", join("x", "A"))

        assert a.frames == [
            {"event": "room-users", "data": [member("a", "A"), member("a", "A")]},
            {"event": "media-update", "data": None},
        ]


class TestLeaveAndDisconnect:

    async def test_leave_updates_remaining_members(self, relay: EventRelay, connect) -> None:
        a, b = connect("a"), connect("b")
        await relay.dispatch("a", join("x", "A"))
        await relay.dispatch("b", join("x", "B"))
        a.frames.clear()
        b.frames.clear()

        await relay.dispatch("b", {"event": "leave-room", "data": {"roomId": "x"}})

        assert a.frames == [{"event": "room-users", "data": [member("a", "A")]}]
        assert b.frames == []

    async def test_leave_unknown_room_is_silent(self, relay: EventRelay, store: RoomStore, connect) -> None:
        a = connect("a")

        await relay.dispatch("a", {"event": "leave-room", "data": {"roomId": "ghost"}})

        assert a.frames == []
        assert "ghost" not in store

    async def test_disconnect_updates_each_room_once(self, relay: EventRelay, store: RoomStore, connect) -> None:
        a, b, c = connect("a"), connect("b"), connect("c")
        await relay.dispatch("a", join("x", "A"))
        await relay.dispatch("a", join("y", "A"))
        await relay.dispatch("b", join("x", "B"))
        await relay.dispatch("c", join("y", "C"))
        await relay.dispatch("c", join("z", "C"))
        for socket in (a, b, c):
            socket.frames.clear()

        await relay.disconnect("a")

        assert b.frames == [{"event": "room-users", "data": [member("b", "B")]}]
        assert c.frames == [{"event": "room-users", "data": [member("c", "C")]}]
        assert a.frames == []
        assert "a" not in relay.connections
        assert store.rooms_for("a") == set()

    async def test_disconnect_keeps_room(self, relay: EventRelay, store: RoomStore, connect) -> None:
        connect("a")
        await relay.dispatch("a", join("x", "A"))

        await relay.disconnect("a")

        room = store.get_room("x")
        assert room is not None
        assert room.members == []


class TestRelayOnlyEvents:

    async def test_signal_reaches_target_only(self, relay: EventRelay, connect) -> None:
        a, b, c = connect("a"), connect("b"), connect("c")
        offer = {"type": "offer", "sdp": "v=0..."}

        await relay.dispatch("a", {"event": "signal", "data": {"to": "b", "data": offer}})

        assert b.frames == [{"event": "signal", "data": {"from": "a", "data": offer}}]
        assert a.frames == []
        assert c.frames == []

    @pytest.mark.parametrize("payload", [{"data": {}}, {"to": "", "data": {}}, {"to": None}, {"to": "gone", "data": 1}])
    async def test_signal_without_live_target_is_dropped(self, relay: EventRelay, connect, payload: dict) -> None:
        a, b = connect("a"), connect("b")

        await relay.dispatch("a", {"event": "signal", "data": payload})

        assert a.frames == []
        assert b.frames == []

    async def test_chat_reaches_everyone_including_sender(self, relay: EventRelay, connect) -> None:
        a, b = connect("a"), connect("b")
        await relay.dispatch("a", join("x", "A"))
        await relay.dispatch("b", join("x", "B"))
        a.frames.clear()
        b.frames.clear()

        await relay.dispatch("a", {"event": "chat", "data": {"roomId": "x", "message": "hi", "displayName": "A"}})

        expected = {"event": "chat", "data": {"message": "hi", "displayName": "A", "timestamp": FIXED_NOW_MS}}
        assert a.frames == [expected]
        assert b.frames == [expected]

    async def test_chat_does_not_leak_across_rooms(self, relay: EventRelay, connect) -> None:
        a, b = connect("a"), connect("b")
        await relay.dispatch("a", join("x", "A"))
        await relay.dispatch("b", join("y", "B"))
        b.frames.clear()

        await relay.dispatch("a", {"event": "chat", "data": {"roomId": "x", "message": "hi"}})

        assert b.frames == []

    async def test_playback_broadcast(self, relay: EventRelay, connect) -> None:
        a, b = connect("a"), connect("b")
        await relay.dispatch("a", join("x", "A"))
        await relay.dispatch("b", join("x", "B"))
        a.frames.clear()
        b.frames.clear()

        await relay.dispatch("a", {"event": "playback", "data": {"roomId": "x", "action": "pause", "time": 42.5}})

        expected = {"event": "playback", "data": {"action": "pause", "time": 42.5}}
        assert a.frames == [expected]
        assert b.frames == [expected]

    async def test_playback_for_unknown_room_is_dropped(self, relay: EventRelay, store: RoomStore, connect) -> None:
        a = connect("a")

        await relay.dispatch("a", {"event": "playback", "data": {"roomId": "ghost", "action": "play", "time": 0}})

        assert a.frames == []
        assert "ghost" not in store

    async def test_set_media_creates_room_and_broadcasts(self, relay: EventRelay, store: RoomStore, connect) -> None:
        a = connect("a")
        await relay.dispatch("a", join("x", "A"))
        a.frames.clear()

        await relay.dispatch("a", {"event": "set-media", "data": {"roomId": "x", "media": YOUTUBE_ABC}})
        await relay.dispatch("a", {"event": "set-media", "data": {"roomId": "new", "media": YOUTUBE_ABC}})

        assert a.frames == [{"event": "media-update", "data": YOUTUBE_ABC}]
        assert store.get_room("new").media.locator == "abc"


class TestDropped:

    @pytest.mark.parametrize(
        "frame",
        [
            [1, 2, 3],
            {"event": "teleport", "data": {}},
            {"data": {"roomId": "x"}},
            {"event": "join-room", "data": {}},
            {"event": "chat", "data": {"roomId": "x"}},
            {"event": "set-media", "data": {"roomId": "x", "media": {"kind": "vhs", "locator": "tape"}}},
        ],
    )
    async def test_bad_frames_are_dropped(self, relay: EventRelay, store: RoomStore, connect, frame) -> None:
        a = connect("a")

        await relay.dispatch("a", frame)

        assert a.frames == []
        assert len(store) == 0
        assert relay.dropped == 1

    async def test_event_counts(self, relay: EventRelay, connect) -> None:
        connect("a")
        await relay.dispatch("a", join("x", "A"))
        await relay.dispatch("a", {"event": "chat", "data": {"roomId": "x", "message": "1"}})
        await relay.dispatch("a", {"event": "chat", "data": {"roomId": "x", "message": "2"}})

        assert relay.event_counts == {"join-room": 1, "chat": 2}


async def test_failed_send_does_not_stop_fan_out(relay: EventRelay, connect) -> None:
    class BrokenSocket:
        async def send_json(self, message):
            raise RuntimeError("socket closed")

    relay.connections.connections["broken"] = BrokenSocket()
    b = connect("b")
    await relay.dispatch("broken", join("x", "Broken"))
    await relay.dispatch("b", join("x", "B"))
    b.frames.clear()

    await relay.dispatch("b", {"event": "chat", "data": {"roomId": "x", "message": "still here"}})

    assert b.of("chat")[0]["message"] == "still here"


class StallingSocket:
    """Stalls on its first frame once armed, like a client on a bad link."""

    def __init__(self) -> None:
        self.frames: list[dict] = []
        self.armed = False

    async def send_json(self, message: dict) -> None:
        if self.armed:
            self.armed = False
            await asyncio.sleep(0.01)
        self.frames.append(message)

    def of(self, event: str) -> list:
        return [frame["data"] for frame in self.frames if frame["event"] == event]


async def test_concurrent_joins_deliver_latest_member_list_last(relay: EventRelay, store: RoomStore, connect) -> None:
    observer = StallingSocket()
    relay.connections.connections["o"] = observer
    connect("a")
    connect("b")
    await relay.dispatch("o", join("x", "O"))
    observer.armed = True

    await asyncio.gather(relay.dispatch("a", join("x", "A")), relay.dispatch("b", join("x", "B")))

    assert [m["displayName"] for m in observer.of("room-users")[-1]] == ["O", "A", "B"]
    assert [m.display_name for m in store.get_room("x").members] == ["O", "A", "B"]


async def test_http_media_waits_for_running_fan_out(relay: EventRelay, store: RoomStore) -> None:
    observer = StallingSocket()
    relay.connections.connections["o"] = observer
    await relay.dispatch("o", join("x", "O"))
    observer.armed = True
    first = {"kind": "youtube", "locator": "first"}

    await asyncio.gather(
        relay.dispatch("o", {"event": "set-media", "data": {"roomId": "x", "media": first}}),
        relay.set_media("x", MediaDescriptor(kind="youtube", locator="second")),
    )

    assert [media and media["locator"] for media in observer.of("media-update")] == [None, "first", "second"]
    assert store.get_room("x").media.locator == "second"
