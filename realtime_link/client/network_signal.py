"""
MODULE OVERVIEW:
Host connectivity notifications.

WHAT IS HAPPENING HERE:
A browser tells the page when it goes online or offline. A Python process has
no such event, so `NetworkSignal` is the notification point and `NetworkProbe`
is one way to drive it: it periodically opens a TCP connection to a well-known
host and reports the result. Only transitions are emitted, so a flapping probe
that keeps saying "online" does not keep reconnecting the manager.
"""
import asyncio
from typing import Callable, List, Tuple

from loguru import logger

from realtime_link.shared.config import settings


class NetworkSignal:
    def __init__(self, online: bool = True):
        self._online = online
        self._subscribers: List[Tuple[Callable[[], None], Callable[[], None]]] = []

    @property
    def online(self) -> bool:
        return self._online

    def subscribe(self, on_online: Callable[[], None], on_offline: Callable[[], None]) -> Callable[[], None]:
        entry = (on_online, on_offline)
        self._subscribers.append(entry)

        def unsubscribe() -> None:
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return unsubscribe

    def set_online(self, online: bool) -> None:
        if online == self._online:
            return
        self._online = online
        logger.info(f"event=network_{'online' if online else 'offline'} subscribers={len(self._subscribers)}")
        for on_online, on_offline in list(self._subscribers):
            try:
                (on_online if online else on_offline)()
            except Exception as e:
                logger.error(f"Error in network subscriber: {e}")


class NetworkProbe:
    def __init__(
        self,
        signal: NetworkSignal,
        host: str = settings.NETWORK_PROBE_HOST,
        port: int = settings.NETWORK_PROBE_PORT,
        interval_s: float = settings.NETWORK_PROBE_INTERVAL_S,
        timeout_s: float = 3.0,
    ):
        self.signal = signal
        self.host = host
        self.port = port
        self.interval_s = interval_s
        self.timeout_s = timeout_s
        self._task: asyncio.Task | None = None

    async def check(self) -> bool:
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port), timeout=self.timeout_s
            )
        except (OSError, asyncio.TimeoutError) as e:
            logger.debug(f"event=probe host={self.host} port={self.port} result=unreachable reason='{e}'")
            return False
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return True

    async def run(self) -> None:
        while True:
            self.signal.set_online(await self.check())
            await asyncio.sleep(self.interval_s)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
