# watchparty/api/routes/rooms.py

from fastapi import APIRouter, Depends, HTTPException

from watchparty.api.deps import get_relay, get_room_store
from watchparty.models.room import CreateRoomResponse, Room, SetMediaRequest
from watchparty.services.event_relay import EventRelay
from watchparty.services.room_store import RoomStore

router = APIRouter(tags=["rooms"])

# ============================================================================
# ROOM LIFECYCLE ENDPOINTS
# ============================================================================


@router.post("/create-room", response_model=CreateRoomResponse, response_model_by_alias=True)
async def create_room(store: RoomStore = Depends(get_room_store)):
    """
    Create a new empty room.

    Returns:
        {"roomId": "<8 chars>"}
    """
    return CreateRoomResponse(room_id=store.create_room())


@router.post("/set-media")
async def set_media(
    request: SetMediaRequest,
    store: RoomStore = Depends(get_room_store),
    relay: EventRelay = Depends(get_relay),
):
    """
    Set a room's media out of band.

    Goes through the same relay operation as the set-media socket event, so
    clients already in the room receive a media-update.

    Raises:
        HTTPException: 404 if room not found
    """
    if not request.room_id or request.room_id not in store:
        raise HTTPException(status_code=404, detail="Room not found")

    await relay.set_media(request.room_id, request.media)
    return {"ok": True}


@router.get("/room/{room_id}", response_model=Room, response_model_by_alias=True)
async def get_room(room_id: str, store: RoomStore = Depends(get_room_store)):
    """
    Get the current snapshot of a room.

    Raises:
        HTTPException: 404 if room not found
    """
    room = store.get_room(room_id)
    if room is None:
        raise HTTPException(status_code=404, detail="Not found")
    return room
