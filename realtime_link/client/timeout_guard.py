from typing import Callable

from loguru import logger

from realtime_link.client.scheduler import Scheduler, TimerHandle


class ConnectionTimeoutGuard:
    """Fires `on_timeout` if the handshake is still pending after `timeout_ms`."""

    def __init__(self, scheduler: Scheduler, timeout_ms: float, on_timeout: Callable[[], None]):
        self._scheduler = scheduler
        self.timeout_ms = timeout_ms
        self._on_timeout = on_timeout
        self._timer: TimerHandle | None = None

    @property
    def armed(self) -> bool:
        return self._timer is not None

    def arm(self) -> None:
        self.cancel()
        self._timer = self._scheduler.call_later(self.timeout_ms, self._expire)

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _expire(self) -> None:
        self._timer = None
        logger.warning(f"event=connect_timeout timeout_ms={self.timeout_ms}")
        self._on_timeout()
