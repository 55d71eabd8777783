# watchparty/main.py

from __future__ import annotations

import asyncio
import contextlib
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from watchparty.api import websocket as websocket_module
from watchparty.api.routes import health, metrics, root, rooms, uploads
from watchparty.core.config import Settings, settings as default_settings
from watchparty.core.logging import get_logger, setup_logging
from watchparty.core.state import build_state
from watchparty.services.room_store import RoomStore

# Configure logging first
setup_logging()
logger = get_logger(__name__)


async def reap_idle_rooms(store: RoomStore, interval: float) -> None:
    """Background task: drop empty rooms that outlived ROOM_IDLE_TTL_SECONDS."""
    while True:
        await asyncio.sleep(interval)
        try:
            store.reap_idle()
        except Exception:
            logger.exception("Idle room reaper failed")


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
    )
    return JSONResponse(status_code=400, content={"error": errors or "Bad request"})


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    state = app.state.watchparty
    logger.info("🚀 Application starting - room eviction policy: %s", state.settings.ROOM_EVICTION)

    reaper = None
    if state.settings.ROOM_EVICTION == "idle":
        reaper = asyncio.create_task(
            reap_idle_rooms(state.room_store, state.settings.ROOM_REAP_INTERVAL_SECONDS)
        )

    yield

    if reaper is not None:
        reaper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await reaper
    logger.info("Application stopped")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings

    app = FastAPI(title="Watch Party Relay", lifespan=lifespan)
    app.state.watchparty = build_state(settings)

    # CORS (wide open by default, narrow it with CORS_ORIGINS)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # REST routes
    app.include_router(root.router)
    app.include_router(health.router)
    app.include_router(metrics.router)
    app.include_router(rooms.router)
    app.include_router(uploads.router)

    # WebSocket routes
    app.include_router(websocket_module.router)

    # Uploaded media
    upload_dir = Path(settings.UPLOAD_DIR)
    upload_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=upload_dir), name="uploads")

    return app


def main() -> None:
    import uvicorn

    uvicorn.run(
        "watchparty.main:create_app",
        factory=True,
        host=default_settings.HOST,
        port=default_settings.PORT,
    )


if __name__ == "__main__":
    main()
