from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "DineDesk Restaurant API"
    VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database
    DATABASE_URL: str = "sqlite:///./dinedesk.db"
    SEED_ON_STARTUP: bool = False

    CORS_ORIGINS: List[str] = ["*"]

    # Realtime relay
    HEARTBEAT_INTERVAL_SECONDS: float = 30.0

    # Auth
    SESSION_TTL_HOURS: int = 24

    # Reporting
    TIMEZONE: str = "UTC"

    # Client side
    API_BASE_URL: str = "http://localhost:8000"
    RECONNECT_BASE_DELAY: float = 1.0
    RECONNECT_MAX_DELAY: float = 30.0
    RECONNECT_MAX_ATTEMPTS: int = 5
    POLL_INTERVAL_SECONDS: float = 10.0
    NEW_ORDER_NOTICE_SECONDS: float = 5.0

    class Config:
        env_file = ".env"
        env_prefix = "DINEDESK_"


@lru_cache()
def get_settings():
    return Settings()
