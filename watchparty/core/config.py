# watchparty/core/config.py
import os
from typing import Literal, get_args

from dotenv import load_dotenv

EvictionPolicy = Literal["never", "empty", "idle"]


class Settings:
    """
    Setup environment variables.
        - HOST / PORT the address uvicorn listens on
        - UPLOAD_DIR where uploaded media files are stored and served from
        - CORS_ORIGINS comma separated list of allowed origins ("*" for any)
        - ROOM_EVICTION when rooms are dropped: "never", "empty" or "idle"
        - ROOM_IDLE_TTL_SECONDS how long an empty room may sit idle ("idle" policy)
        - ROOM_REAP_INTERVAL_SECONDS how often the idle reaper runs
    """

    def __init__(self) -> None:
        # Load environment variables from the .env file
        load_dotenv()

        self.HOST: str = os.getenv("HOST", "0.0.0.0")
        self.PORT: int = int(os.getenv("PORT", "5000"))

        self.UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "uploads")
        self.CORS_ORIGINS: list[str] = [
            origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()
        ]

        eviction = os.getenv("ROOM_EVICTION", "never").lower()
        if eviction not in get_args(EvictionPolicy):
            raise ValueError(f"ROOM_EVICTION must be one of {get_args(EvictionPolicy)}, got {eviction!r}")
        self.ROOM_EVICTION: EvictionPolicy = eviction

        self.ROOM_IDLE_TTL_SECONDS: float = float(os.getenv("ROOM_IDLE_TTL_SECONDS", "3600"))
        self.ROOM_REAP_INTERVAL_SECONDS: float = float(os.getenv("ROOM_REAP_INTERVAL_SECONDS", "60"))


settings = Settings()
