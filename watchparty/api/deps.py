# watchparty/api/deps.py
from fastapi import Request

from watchparty.core.state import AppState
from watchparty.services.event_relay import EventRelay
from watchparty.services.room_store import RoomStore


def get_state(request: Request) -> AppState:
    return request.app.state.watchparty


def get_room_store(request: Request) -> RoomStore:
    return request.app.state.watchparty.room_store


def get_relay(request: Request) -> EventRelay:
    return request.app.state.watchparty.relay
