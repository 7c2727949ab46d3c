"""
MODULE OVERVIEW:
The application-facing realtime feed.

WHAT IS HAPPENING HERE:
This is a *consumer* of the connection manager, not part of it. It wires the
manager's callbacks to the rest of the application: every inbound message is
published on a MessageBus (so caches can invalidate themselves), well-known
event messages become user-facing notices, and a live-updates toggle lets the
user turn the whole thing on and off.
"""
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable

from loguru import logger

from realtime_link.client.connection_manager import ConnectionManager
from realtime_link.client.network_signal import NetworkSignal
from realtime_link.client.scheduler import Scheduler
from realtime_link.client.transport import TransportFactory, WebSocketTransport
from realtime_link.shared.codec import MessageCodec
from realtime_link.shared.events import MessageBus
from realtime_link.shared.models import NORMAL_CLOSURE, ConnectionOptions, ConnectionStatus, Notice

# Tuning used by the live event feed: retry harder and faster than the defaults
FEED_RECONNECT_ATTEMPTS = 10
FEED_RECONNECT_INTERVAL_MS = 1000
FEED_HEARTBEAT_INTERVAL_MS = 15000

EVENT_NOTICES: dict[str, Callable[[dict], Notice]] = {
    "event_created": lambda msg: Notice(
        title="New event created",
        description=msg.get("title") or "A new volunteer opportunity is available!",
    ),
    "event_updated": lambda msg: Notice(
        title="Event updated",
        description=f'"{msg["title"]}" has been updated' if msg.get("title")
        else "An event has been updated with new information.",
    ),
    "event_deleted": lambda msg: Notice(
        title="Event cancelled",
        description=f'"{msg["title"]}" has been cancelled' if msg.get("title")
        else "An event has been cancelled or removed.",
    ),
}


class RealtimeFeed:
    def __init__(
        self,
        url: str,
        bus: MessageBus | None = None,
        enabled: bool = True,
        on_notice: Callable[[Notice], Any] | None = None,
        *,
        reconnect_attempts: int = FEED_RECONNECT_ATTEMPTS,
        reconnect_interval_ms: int = FEED_RECONNECT_INTERVAL_MS,
        heartbeat_interval_ms: int = FEED_HEARTBEAT_INTERVAL_MS,
        transport_factory: TransportFactory = WebSocketTransport,
        scheduler: Scheduler | None = None,
        network: NetworkSignal | None = None,
    ):
        self.bus = bus or MessageBus()
        self.enabled = enabled
        self.last_update: datetime | None = None
        self.notices: deque[Notice] = deque(maxlen=50)
        self.on_notice = on_notice

        options = ConnectionOptions(
            auto_connect=enabled,
            reconnect_attempts=reconnect_attempts,
            reconnect_interval_ms=reconnect_interval_ms,
            heartbeat_interval_ms=heartbeat_interval_ms,
            on_open=self._handle_open,
            on_message=self._handle_message,
            on_close=self._handle_close,
            on_error=self._handle_error,
            on_notice=self._notify,
        )
        self.connection = ConnectionManager(
            url, options, transport_factory=transport_factory, scheduler=scheduler, network=network
        )

    @property
    def status(self) -> ConnectionStatus:
        return self.connection.status

    @property
    def is_connected(self) -> bool:
        return self.connection.is_connected

    def toggle_realtime(self) -> bool:
        self.enabled = not self.enabled
        logger.info(f"event=toggle_realtime enabled={self.enabled}")
        if self.enabled:
            self.connection.connect()
            self._notify(Notice(
                title="Live updates enabled",
                description="You'll now receive real-time updates for events.",
            ))
        else:
            self.connection.disconnect()
            self._notify(Notice(
                title="Live updates disabled",
                description="You'll no longer receive real-time updates for events.",
            ))
        return self.enabled

    def force_reconnect(self) -> None:
        if not self.enabled:
            self._notify(Notice(
                title="Live updates disabled",
                description="Enable live updates first before reconnecting.",
            ))
            return
        self._notify(Notice(
            title="Reconnecting",
            description="Attempting to reestablish real-time connection...",
        ))
        self.connection.reconnect()

    def close(self) -> None:
        self.connection.dispose()

    # ==========================
    # CONNECTION CALLBACKS
    # ==========================
    def _handle_open(self) -> None:
        self._notify(Notice(
            title="Real-time connected",
            description="You'll receive live updates to events.",
        ))

    def _handle_message(self, data: Any) -> None:
        self.last_update = datetime.now(timezone.utc)
        self.bus.publish(data)
        build = EVENT_NOTICES.get(MessageCodec.message_type(data))
        if build is not None:
            self._notify(build(data))

    def _handle_error(self, err: BaseException) -> None:
        self._notify(Notice(
            title="Connection issue",
            description="Having trouble with real-time updates. Trying to reconnect...",
            level="error",
        ))

    def _handle_close(self, code: int, reason: str) -> None:
        if code != NORMAL_CLOSURE:
            self._notify(Notice(
                title="Connection lost",
                description="Real-time updates disconnected. Reconnecting...",
                level="warning",
            ))

    def _notify(self, notice: Notice) -> None:
        self.notices.append(notice)
        if self.on_notice is not None:
            self.on_notice(notice)
