# watchparty/api/routes/metrics.py
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from watchparty.api.deps import get_state
from watchparty.core.state import AppState

router = APIRouter()


@router.get("/metrics")
async def get_metrics(state: AppState = Depends(get_state)):
    """
    Relay traffic counters.

    Example Response:
        {
            "uptime_hours": 1.5,
            "total_events": 420,
            "events_per_second": 0.08,
            "events": {"join-room": 12, "chat": 380, "playback": 28},
            "dropped_events": 3,
            "concurrent_connections": 7,
            "total_rooms": 4,
            "eviction_policy": "never"
        }
    """
    uptime_seconds = (datetime.now(timezone.utc) - state.app_start_time).total_seconds()
    relay = state.relay
    total_events = sum(relay.event_counts.values())

    return {
        "uptime_hours": round(uptime_seconds / 3600, 2) if uptime_seconds > 0 else 0,
        "total_events": total_events,
        "events_per_second": round(total_events / uptime_seconds, 2) if uptime_seconds > 0 else 0,
        "events": dict(relay.event_counts),
        "dropped_events": relay.dropped,
        "concurrent_connections": len(state.connection_manager),
        "total_rooms": len(state.room_store),
        "eviction_policy": state.room_store.eviction,
    }
