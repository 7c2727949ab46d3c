"""
MODULE OVERVIEW:
The typed data structures shared by the connection manager, the transport and
the consumer layer, powered by Pydantic v2.

WHAT IS HAPPENING HERE:
`ConnectionStatus` is the single source of truth for where a connection is in its
lifecycle. `ConnectionOptions` is frozen: a manager is configured once at
construction and never reconfigured behind its back. `Notice` is the user-facing
message a consumer may render (a toast, a log line, a dashboard banner).
"""
from enum import Enum
from typing import Any, Callable, Literal

from pydantic import BaseModel, ConfigDict, Field

from realtime_link.shared.config import settings

NORMAL_CLOSURE = 1000
ABNORMAL_CLOSURE = 1006
INTERNAL_ERROR_CLOSURE = 1011
CONNECT_TIMEOUT_CLOSURE = 4000


class ConnectionStatus(str, Enum):
    CLOSED = "closed"
    CONNECTING = "connecting"
    OPEN = "open"
    ERROR = "error"


class Notice(BaseModel):
    title: str
    description: str
    level: Literal["info", "warning", "error"] = "info"


class ConnectionOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    reconnect_attempts: int = Field(default_factory=lambda: settings.RECONNECT_ATTEMPTS, ge=0)
    reconnect_interval_ms: int = Field(default_factory=lambda: settings.RECONNECT_INTERVAL_MS, gt=0)
    heartbeat_interval_ms: int = Field(default_factory=lambda: settings.HEARTBEAT_INTERVAL_MS, gt=0)
    connect_timeout_ms: int = Field(default_factory=lambda: settings.CONNECT_TIMEOUT_MS, gt=0)
    auto_connect: bool = True

    buffer_messages: bool = False
    max_buffer_size: int = Field(default_factory=lambda: settings.MAX_BUFFER_SIZE, gt=0)
    flush_interval_ms: int = Field(default_factory=lambda: settings.FLUSH_INTERVAL_MS, gt=0)

    # Callbacks run on the event loop thread and must return promptly
    on_open: Callable[[], Any] | None = None
    on_message: Callable[[Any], Any] | None = None
    on_close: Callable[[int, str], Any] | None = None
    on_error: Callable[[BaseException], Any] | None = None
    on_notice: Callable[[Notice], Any] | None = None


class ConnectionSnapshot(BaseModel):
    """Point-in-time view of a manager, used by the dashboard."""
    url: str
    status: ConnectionStatus
    reconnect_attempt: int
    messages_received: int
    last_close_code: int | None = None
