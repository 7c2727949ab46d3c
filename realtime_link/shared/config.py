"""
MODULE OVERVIEW:
Application-wide configuration using Pydantic Settings.

WHAT IS HAPPENING HERE:
Every timing the connection manager depends on (backoff base, heartbeat period,
handshake timeout, buffer flush window) is declared once here. ConnectionOptions
reads its defaults from this object, so a `.env` file or `REALTIME_*` environment
variables retune every manager without touching code.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="REALTIME_",
        env_file=".env",
        env_file_encoding="utf-8",
        # Tolerate unrelated env vars so the CLI runs out of the box
        extra="ignore",
    )

    LOG_LEVEL: str = "INFO"
    WS_URL: str = "ws://127.0.0.1:8000/ws/connect"

    # Reconnection
    RECONNECT_ATTEMPTS: int = 5
    RECONNECT_INTERVAL_MS: int = 3000

    # Keep-alive and handshake
    HEARTBEAT_INTERVAL_MS: int = 30000
    CONNECT_TIMEOUT_MS: int = 10000

    # Inbound message buffering
    MAX_BUFFER_SIZE: int = 50
    FLUSH_INTERVAL_MS: int = 300

    # Connectivity probe
    NETWORK_PROBE_HOST: str = "1.1.1.1"
    NETWORK_PROBE_PORT: int = 53
    NETWORK_PROBE_INTERVAL_S: float = 5.0


settings = Settings()
