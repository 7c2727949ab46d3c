"""
MODULE OVERVIEW:
The socket underneath the connection manager.

WHAT IS HAPPENING HERE:
We use the `websockets` library. A WebSocket connection needs two separate async
loops over the same socket: one reads incoming frames, one drains an outgoing
queue. The manager never awaits anything, so the transport turns those loops into
plain callbacks (on_open, on_message, on_error, on_close) and offers a synchronous,
non-blocking `send()` and `close()`.

We pass `ping_interval=None`: keep-alive is the application-level heartbeat that
the manager sends itself.
"""
import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Protocol

import websockets
from loguru import logger
from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.uri import parse_uri

from realtime_link.shared.close_codes import describe_close_code
from realtime_link.shared.models import ABNORMAL_CLOSURE, INTERNAL_ERROR_CLOSURE, NORMAL_CLOSURE


class ReadyState(Enum):
    CONNECTING = 0
    OPEN = 1
    CLOSING = 2
    CLOSED = 3


class TransportClosedError(ConnectionError):
    """Raised by `send()` when the transport is not open."""


@dataclass
class TransportHandlers:
    on_open: Callable[[], None]
    on_message: Callable[[str | bytes], None]
    on_error: Callable[[BaseException], None]
    on_close: Callable[[int, str], None]


class Transport(Protocol):
    ready_state: ReadyState

    def send(self, data: str | bytes) -> None: ...

    def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None: ...


TransportFactory = Callable[[str, TransportHandlers], Transport]


@dataclass
class _CloseRequest:
    code: int
    reason: str


class WebSocketTransport:
    def __init__(self, url: str, handlers: TransportHandlers):
        # Both raise synchronously: a bad URL or a missing event loop is a
        # construction failure, not a connection failure.
        parse_uri(url)
        self._loop = asyncio.get_running_loop()

        self.url = url
        self.ready_state = ReadyState.CONNECTING
        self._handlers = handlers
        self._outgoing: asyncio.Queue[Any] = asyncio.Queue()
        self._close_notified = False
        self._handshake: asyncio.Task | None = None
        self._task = self._loop.create_task(self._run())

    def send(self, data: str | bytes) -> None:
        if self.ready_state is not ReadyState.OPEN:
            raise TransportClosedError(f"cannot send while {self.ready_state.name}")
        self._outgoing.put_nowait(data)

    def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None:
        if self.ready_state in (ReadyState.CLOSING, ReadyState.CLOSED):
            return
        if self.ready_state is ReadyState.CONNECTING:
            # Abandon the handshake; report the close on the next loop tick,
            # the way a browser socket would. A handshake that already finished
            # is closed by `_run` once it sees the CLOSED state.
            self.ready_state = ReadyState.CLOSED
            if self._handshake is None:
                self._task.cancel()
            else:
                self._handshake.cancel()
            self._loop.call_soon(self._notify_close, code, reason)
            return
        self.ready_state = ReadyState.CLOSING
        self._outgoing.put_nowait(_CloseRequest(code, reason))

    def _notify_close(self, code: int, reason: str) -> None:
        if self._close_notified:
            return
        self._close_notified = True
        self._handlers.on_close(code, reason)

    async def _open_socket(self):
        return await websockets.connect(self.url, ping_interval=None, open_timeout=None)

    async def _run(self) -> None:
        self._handshake = self._loop.create_task(self._open_socket())
        try:
            ws = await self._handshake
        except asyncio.CancelledError:
            if self.ready_state is ReadyState.CLOSED:
                return
            raise
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            logger.warning(f"url={self.url} event=handshake_failed reason='{e}'")
            self.ready_state = ReadyState.CLOSED
            self._handlers.on_error(e)
            self._notify_close(ABNORMAL_CLOSURE, str(e))
            return

        if self.ready_state is ReadyState.CLOSED:
            logger.debug(f"url={self.url} event=handshake_abandoned")
            await ws.close()
            return

        self.ready_state = ReadyState.OPEN
        self._handlers.on_open()

        writer = self._loop.create_task(self._write_loop(ws))
        try:
            async for message in ws:
                self._handlers.on_message(message)
        except ConnectionClosed:
            pass
        except Exception as e:
            logger.exception(f"url={self.url} event=reader_failed reason='{e}'")
            self.ready_state = ReadyState.CLOSING
            self._handlers.on_error(e)
            await ws.close(INTERNAL_ERROR_CLOSURE, describe_close_code(INTERNAL_ERROR_CLOSURE))
        finally:
            writer.cancel()

        self.ready_state = ReadyState.CLOSED
        code = ws.close_code if ws.close_code is not None else ABNORMAL_CLOSURE
        self._notify_close(code, ws.close_reason or "")

    async def _write_loop(self, ws) -> None:
        while True:
            item = await self._outgoing.get()
            try:
                if isinstance(item, _CloseRequest):
                    await ws.close(item.code, item.reason)
                    return
                await ws.send(item)
            except ConnectionClosed:
                return
