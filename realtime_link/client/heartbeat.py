from typing import Callable

from loguru import logger

from realtime_link.client.scheduler import Scheduler, TimerHandle


class HeartbeatController:
    """
    Sends a keep-alive frame every `interval_ms` while the connection is open.

    Owns at most one pending timer. `start()` on a running controller replaces
    the old schedule instead of adding a second one, and `stop()` is safe to
    call any number of times.
    """

    def __init__(self, scheduler: Scheduler, interval_ms: float, beat: Callable[[], bool]):
        self._scheduler = scheduler
        self.interval_ms = interval_ms
        self._beat = beat
        self._timer: TimerHandle | None = None
        self._active = False
        self.beats_sent = 0

    @property
    def running(self) -> bool:
        return self._active

    def start(self) -> None:
        self.stop()
        self._active = True
        self._arm()

    def stop(self) -> None:
        self._active = False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _arm(self) -> None:
        self._timer = self._scheduler.call_later(self.interval_ms, self._fire)

    def _fire(self) -> None:
        self._timer = None
        if not self._active:
            return
        if self._beat():
            self.beats_sent += 1
            logger.debug("event=heartbeat status=sent")
        else:
            logger.warning("event=heartbeat status=failed")
        # beat() may have torn the connection down and stopped us
        if self._active:
            self._arm()
