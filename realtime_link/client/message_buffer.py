"""
MODULE OVERVIEW:
Optional batching of inbound messages.

WHAT IS HAPPENING HERE:
A busy feed can deliver dozens of messages per second, and each one may make a
consumer redraw or refetch. When buffering is on, messages are held for a short
window (or until the buffer is full) and then delivered grouped by their `type`:
several messages of one type arrive as a single `<type>_batch` object, a lone
message arrives unchanged.
"""
from typing import Any, Callable

from loguru import logger

from realtime_link.client.scheduler import Scheduler, TimerHandle
from realtime_link.shared.codec import MessageCodec


class MessageBuffer:
    def __init__(
        self,
        scheduler: Scheduler,
        deliver: Callable[[Any], None],
        max_size: int = 50,
        flush_interval_ms: float = 300,
    ):
        self._scheduler = scheduler
        self._deliver = deliver
        self.max_size = max_size
        self.flush_interval_ms = flush_interval_ms
        self._pending: list[Any] = []
        self._timer: TimerHandle | None = None

    def __len__(self) -> int:
        return len(self._pending)

    def add(self, message: Any) -> None:
        self._pending.append(message)
        if self._timer is None:
            self._timer = self._scheduler.call_later(self.flush_interval_ms, self.flush)
        if len(self._pending) >= self.max_size:
            self.flush()

    def flush(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if not self._pending:
            return

        messages, self._pending = self._pending, []
        logger.debug(f"event=flush count={len(messages)}")

        # dicts keep insertion order, so groups flush in first-seen order
        groups: dict[str, list[Any]] = {}
        for msg in messages:
            groups.setdefault(MessageCodec.message_type(msg), []).append(msg)

        for msg_type, group in groups.items():
            if len(group) > 1:
                self._deliver({"type": f"{msg_type}_batch", "messages": group, "count": len(group)})
            else:
                self._deliver(group[0])
