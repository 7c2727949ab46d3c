"""
MODULE OVERVIEW:
The timer seam used by the connection manager and its helpers.

WHAT IS HAPPENING HERE:
Every "wait" in the client (heartbeat period, reconnect backoff, handshake
timeout, buffer flush) is a one-shot timer on the event loop, never a blocked
coroutine. `LoopScheduler` hands those timers to asyncio's `call_later`; tests
swap in a virtual clock so timing behaviour is deterministic.
"""
import asyncio
from typing import Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle: ...


class LoopScheduler:
    """Schedules on the running event loop. Must be used from inside that loop."""

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = asyncio.get_running_loop()
        return loop.call_later(delay_ms / 1000.0, callback)
