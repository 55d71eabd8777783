# watchparty/models/room.py
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for everything that crosses the wire: camelCase JSON, snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


class MediaDescriptor(WireModel):
    kind: Literal["youtube", "file"]
    locator: str


class Member(WireModel):
    connection_id: str
    display_name: str = ""


class Room(WireModel):
    media: Optional[MediaDescriptor] = None
    members: List[Member] = []


class CreateRoomResponse(WireModel):
    room_id: str


class SetMediaRequest(WireModel):
    # Missing id is an unknown room (404), not a malformed body
    room_id: Optional[str] = None
    media: Optional[MediaDescriptor] = None


class UploadResponse(WireModel):
    url: str
    filename: str
