# watchparty/api/routes/health.py

from fastapi import APIRouter, Depends

from watchparty.api.deps import get_state
from watchparty.core.state import AppState

router = APIRouter()


@router.get("/health")
async def health(state: AppState = Depends(get_state)):
    """
    Health check endpoint.

    Returns current system status, connection counts, and room counts.

    Returns:
        dict: Status, connection count, room count, rooms with members
    """
    store = state.room_store
    return {
        "status": "healthy",
        "connections": len(state.connection_manager),
        "rooms": len(store),
        "active_rooms_with_members": sum(1 for room_id in store.room_ids() if store.recipients(room_id)),
    }
