# watchparty/models/events.py
"""
Inbound real-time events.

Every frame a client sends is ``{"event": <name>, "data": {...}}``. Each event
name maps to exactly one payload model below; ``parse_event`` returns ``None``
for anything that doesn't fit (unknown name, missing or mistyped fields), and
the relay drops those frames without telling the sender.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Type, Union

from pydantic import ValidationError

from watchparty.models.room import MediaDescriptor, WireModel

logger = logging.getLogger(__name__)


class JoinRoom(WireModel):
    room_id: str
    display_name: str = ""


class LeaveRoom(WireModel):
    room_id: str


class Signal(WireModel):
    # Falsy targets are dropped by the relay, not rejected here
    to: Optional[str] = None
    data: Any = None


class Chat(WireModel):
    room_id: str
    message: str
    display_name: str = ""


class Playback(WireModel):
    room_id: str
    action: str
    time: Optional[float] = None


class SetMedia(WireModel):
    room_id: str
    media: Optional[MediaDescriptor] = None


InboundEvent = Union[JoinRoom, LeaveRoom, Signal, Chat, Playback, SetMedia]

EVENT_MODELS: Dict[str, Type[WireModel]] = {
    "join-room": JoinRoom,
    "leave-room": LeaveRoom,
    "signal": Signal,
    "chat": Chat,
    "playback": Playback,
    "set-media": SetMedia,
}


def parse_event(frame: Any) -> Optional[InboundEvent]:
    """
    Validate a decoded JSON frame into its event model.

    Args:
        frame: Whatever ``json.loads`` produced for one websocket message

    Returns:
        The typed event, or None when the frame is not a known, well-formed event
    """
    if not isinstance(frame, dict):
        logger.warning("Dropping non-object frame: %r", frame)
        return None

    name = frame.get("event")
    model = EVENT_MODELS.get(name) if isinstance(name, str) else None
    if model is None:
        logger.warning("Dropping unknown event: %r", name)
        return None

    payload = frame.get("data")
    if payload is None:
        payload = {}

    try:
        return model.model_validate(payload)
    except ValidationError as e:
        logger.warning("Dropping malformed %s event: %s", name, e.errors(include_url=False))
        return None
