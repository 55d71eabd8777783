# watchparty/api/routes/root.py

from fastapi import APIRouter

from watchparty import __version__

router = APIRouter()


@router.get("/")
async def root():
    """
    Root endpoint - API information.

    Returns basic info about the API and its features.
    """
    return {
        "message": "Watch Party Relay",
        "version": __version__,
        "features": ["rooms", "media_sync", "playback_relay", "signal_relay", "chat", "uploads"],
        "endpoints": {
            "websocket": "/ws",
            "create_room": "/create-room",
            "set_media": "/set-media",
            "room": "/room/{room_id}",
            "upload": "/upload",
            "uploads": "/uploads/{filename}",
            "health": "/health",
            "metrics": "/metrics",
        },
    }
