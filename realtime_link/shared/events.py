"""
MODULE OVERVIEW:
A minimal in-process pub/sub bus for inbound realtime messages.

WHAT IS HAPPENING HERE:
The connection manager knows nothing about what a message means. The realtime
feed publishes every decoded message here, and collaborators (a cache that must
be invalidated, a notification panel, a dashboard) subscribe. A failing
subscriber is logged and skipped so it can never break delivery to the others.
"""

from typing import Any, Callable, List
from loguru import logger


class MessageBus:
    def __init__(self):
        self._subscribers: List[Callable[[Any], None]] = []

    def subscribe(self, callback: Callable[[Any], None]) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, message: Any) -> None:
        for sub in list(self._subscribers):
            try:
                sub(message)
            except Exception as e:
                logger.error(f"Error in subscriber during publish: {e}")

    def __len__(self) -> int:
        return len(self._subscribers)
