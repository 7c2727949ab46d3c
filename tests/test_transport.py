"""
Integration tests for WebSocketTransport and ConnectionManager against a real
local `websockets` server.

Tests cover:
- Handshake, echo round trip and normal closure
- Handshake failure reporting (error then abnormal close)
- Abandoning a handshake with a local close code
- A full manager run: open, send, receive, server-side abnormal close, reconnect
"""
import asyncio

import pytest
import websockets
from websockets.exceptions import InvalidURI

from realtime_link.client.connection_manager import ConnectionManager
from realtime_link.client.transport import (
    ReadyState,
    TransportClosedError,
    TransportHandlers,
    WebSocketTransport,
)
from realtime_link.shared.models import ConnectionOptions, ConnectionStatus


def queue_handlers(events: asyncio.Queue) -> TransportHandlers:
    return TransportHandlers(
        on_open=lambda: events.put_nowait(("open",)),
        on_message=lambda message: events.put_nowait(("message", message)),
        on_error=lambda err: events.put_nowait(("error", type(err))),
        on_close=lambda code, reason: events.put_nowait(("close", code)),
    )


async def next_event(events: asyncio.Queue):
    return await asyncio.wait_for(events.get(), timeout=5.0)


async def echo(ws):
    async for message in ws:
        await ws.send(message)


class FakeSocket:
    def __init__(self):
        self.closed = False

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed = True


async def unused_port() -> int:
    server = await asyncio.start_server(lambda r, w: None, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    server.close()
    await server.wait_closed()
    return port


class TestWebSocketTransport:
    @pytest.mark.asyncio
    async def test_echo_round_trip_and_normal_close(self):
        async with websockets.serve(echo, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
            events: asyncio.Queue = asyncio.Queue()
            transport = WebSocketTransport(f"ws://127.0.0.1:{port}", queue_handlers(events))
            assert transport.ready_state is ReadyState.CONNECTING

            assert await next_event(events) == ("open",)
            assert transport.ready_state is ReadyState.OPEN

            transport.send('{"hello": "world"}')
            assert await next_event(events) == ("message", '{"hello": "world"}')

            transport.close(1000, "done")
            assert await next_event(events) == ("close", 1000)
            assert transport.ready_state is ReadyState.CLOSED

    @pytest.mark.asyncio
    async def test_send_before_open_raises(self):
        async with websockets.serve(echo, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
            events: asyncio.Queue = asyncio.Queue()
            transport = WebSocketTransport(f"ws://127.0.0.1:{port}", queue_handlers(events))
            with pytest.raises(TransportClosedError):
                transport.send("too early")
            transport.close()
            await next_event(events)

    @pytest.mark.asyncio
    async def test_handshake_failure_reports_error_then_abnormal_close(self):
        port = await unused_port()
        events: asyncio.Queue = asyncio.Queue()
        WebSocketTransport(f"ws://127.0.0.1:{port}", queue_handlers(events))

        kind, _ = await next_event(events)
        assert kind == "error"
        assert await next_event(events) == ("close", 1006)

    @pytest.mark.asyncio
    async def test_close_during_handshake_uses_given_code(self):
        async with websockets.serve(echo, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
            events: asyncio.Queue = asyncio.Queue()
            transport = WebSocketTransport(f"ws://127.0.0.1:{port}", queue_handlers(events))
            transport.close(4000, "Connection timeout")

            assert await next_event(events) == ("close", 4000)
            assert events.empty()

    @pytest.mark.asyncio
    async def test_failing_message_handler_reports_error_and_closes(self):
        async def push_then_wait(ws):
            await ws.send("first")
            await ws.wait_closed()

        def explode(message):
            raise RuntimeError("handler bug")

        async with websockets.serve(push_then_wait, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
            events: asyncio.Queue = asyncio.Queue()
            handlers = queue_handlers(events)
            handlers.on_message = explode
            transport = WebSocketTransport(f"ws://127.0.0.1:{port}", handlers)

            assert await next_event(events) == ("open",)
            assert await next_event(events) == ("error", RuntimeError)
            assert await next_event(events) == ("close", 1011)
            assert transport.ready_state is ReadyState.CLOSED

    @pytest.mark.asyncio
    async def test_handshake_finished_after_close_is_shut_down(self, monkeypatch):
        socket = FakeSocket()

        async def finished_handshake(self):
            return socket

        monkeypatch.setattr(WebSocketTransport, "_open_socket", finished_handshake)
        events: asyncio.Queue = asyncio.Queue()
        transport = WebSocketTransport("ws://127.0.0.1:9/ws", queue_handlers(events))

        # Close in the gap between the handshake finishing and the reader resuming
        while transport._handshake is None or not transport._handshake.done():
            await asyncio.sleep(0)
        transport.close(4000, "Connection timeout")

        assert await next_event(events) == ("close", 4000)
        await asyncio.wait_for(transport._task, timeout=5.0)
        assert socket.closed
        assert events.empty()

    @pytest.mark.asyncio
    async def test_invalid_url_fails_at_construction(self):
        with pytest.raises(InvalidURI):
            WebSocketTransport("http://127.0.0.1/not-a-websocket", queue_handlers(asyncio.Queue()))


class TestManagerOverWebSockets:
    @pytest.mark.asyncio
    async def test_open_send_receive_and_recover(self):
        connections = []

        async def handler(ws):
            connections.append(ws)
            if len(connections) == 1:
                await ws.send('{"type": "event_created", "title": "Soup kitchen"}')
                await ws.close(1011, "server restarting")
                return
            await echo(ws)

        opened = asyncio.Queue()
        messages = asyncio.Queue()
        closes = []

        async with websockets.serve(handler, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
            options = ConnectionOptions(
                reconnect_interval_ms=50,
                reconnect_attempts=3,
                on_open=lambda: opened.put_nowait(True),
                on_message=messages.put_nowait,
                on_close=lambda code, reason: closes.append(code),
            )
            manager = ConnectionManager(f"ws://127.0.0.1:{port}", options)
            try:
                await asyncio.wait_for(opened.get(), timeout=5.0)
                first = await asyncio.wait_for(messages.get(), timeout=5.0)
                assert first == {"type": "event_created", "title": "Soup kitchen"}

                # The server closed with 1011, so the manager comes back on its own
                await asyncio.wait_for(opened.get(), timeout=5.0)
                assert closes == [1011]
                assert manager.is_connected
                assert manager.reconnect_attempt == 0

                assert manager.send({"type": "ping"}) is True
                assert await asyncio.wait_for(messages.get(), timeout=5.0) == {"type": "ping"}
            finally:
                manager.dispose()

            assert manager.status is ConnectionStatus.CLOSED
            assert len(connections) == 2
