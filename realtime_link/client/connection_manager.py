"""
MODULE OVERVIEW:
The client-side connection manager: one persistent duplex connection, kept alive
and brought back after failures.

WHAT IS HAPPENING HERE:
This object owns the transport, the reconnect-attempt counter and three timers
(heartbeat, reconnect backoff, handshake timeout). Everything is callback driven
on a single event loop: `connect()`, `disconnect()`, `reconnect()` and `send()`
return immediately and progress is made by transport events and timer firings.

Every status change goes through `_transition()`, which only allows the edges in
`TRANSITIONS`. Every transport is tagged with a generation number and every
event or timer carries the generation it was created for. `connect()` and
`disconnect()` bump the generation, so a late close from an abandoned socket or
a reconnect timer that outlived a manual disconnect is simply ignored.
"""
from functools import partial
from typing import Any, Callable

from loguru import logger

from realtime_link.client.heartbeat import HeartbeatController
from realtime_link.client.message_buffer import MessageBuffer
from realtime_link.client.network_signal import NetworkSignal
from realtime_link.client.scheduler import LoopScheduler, Scheduler, TimerHandle
from realtime_link.client.timeout_guard import ConnectionTimeoutGuard
from realtime_link.client.transport import (
    ReadyState,
    Transport,
    TransportFactory,
    TransportHandlers,
    WebSocketTransport,
)
from realtime_link.shared.backoff import calculate_backoff_ms
from realtime_link.shared.close_codes import describe_close_code, is_recoverable_error
from realtime_link.shared.codec import HEARTBEAT_FRAME, MessageCodec
from realtime_link.shared.models import (
    CONNECT_TIMEOUT_CLOSURE,
    NORMAL_CLOSURE,
    ConnectionOptions,
    ConnectionSnapshot,
    ConnectionStatus,
    Notice,
)

TRANSITIONS: dict[ConnectionStatus, set[ConnectionStatus]] = {
    ConnectionStatus.CLOSED: {ConnectionStatus.CONNECTING, ConnectionStatus.CLOSED},
    ConnectionStatus.CONNECTING: {ConnectionStatus.OPEN, ConnectionStatus.ERROR, ConnectionStatus.CLOSED},
    ConnectionStatus.OPEN: {ConnectionStatus.ERROR, ConnectionStatus.CLOSED},
    ConnectionStatus.ERROR: {ConnectionStatus.CONNECTING, ConnectionStatus.ERROR, ConnectionStatus.CLOSED},
}

USER_DISCONNECT_REASON = "User initiated disconnect"


class ConnectionManager:
    def __init__(
        self,
        url: str,
        options: ConnectionOptions | None = None,
        *,
        transport_factory: TransportFactory = WebSocketTransport,
        scheduler: Scheduler | None = None,
        network: NetworkSignal | None = None,
    ):
        self.url = url
        self.options = options or ConnectionOptions()
        self._transport_factory = transport_factory
        self._scheduler = scheduler or LoopScheduler()

        self._status = ConnectionStatus.CLOSED
        self._transport: Transport | None = None
        self._generation = 0
        self._attempt = 0
        self._reconnect_timer: TimerHandle | None = None

        self.last_data: Any = None
        self.last_close_code: int | None = None
        self.messages_received = 0

        self._heartbeat = HeartbeatController(
            self._scheduler, self.options.heartbeat_interval_ms, self._send_heartbeat
        )
        self._timeout_guard = ConnectionTimeoutGuard(
            self._scheduler, self.options.connect_timeout_ms, self._handle_timeout
        )
        self._buffer: MessageBuffer | None = None
        if self.options.buffer_messages:
            self._buffer = MessageBuffer(
                self._scheduler,
                self._deliver,
                max_size=self.options.max_buffer_size,
                flush_interval_ms=self.options.flush_interval_ms,
            )

        self._network_unsubscribe: Callable[[], None] | None = None
        if network is not None:
            self._network_unsubscribe = network.subscribe(self._handle_online, self._handle_offline)

        if self.options.auto_connect:
            self.connect()

    # ==========================
    # PUBLIC HANDLE
    # ==========================
    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def is_connected(self) -> bool:
        return self._status is ConnectionStatus.OPEN

    @property
    def reconnect_attempt(self) -> int:
        return self._attempt

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_timer is not None

    def connect(self) -> None:
        if self._status in (ConnectionStatus.OPEN, ConnectionStatus.CONNECTING):
            logger.debug(f"url={self.url} event=connect_ignored status={self._status.value}")
            return

        self._cancel_reconnect_timer()
        self._generation += 1
        gen = self._generation
        self._abandon_transport()
        self._transition(ConnectionStatus.CONNECTING)

        handlers = TransportHandlers(
            on_open=partial(self._handle_open, gen),
            on_message=partial(self._handle_message, gen),
            on_error=partial(self._handle_error, gen),
            on_close=partial(self._handle_close, gen),
        )
        logger.info(f"url={self.url} event=connecting attempt={self._attempt}")
        try:
            self._transport = self._transport_factory(self.url, handlers)
        except Exception as e:
            logger.error(f"url={self.url} event=create_failed reason='{e}'")
            self._transport = None
            self._transition(ConnectionStatus.ERROR)
            self._fire(self.options.on_error, e)
            self._notify(Notice(
                title="Connection error",
                description="Failed to establish a real-time connection. Some features may be limited.",
                level="error",
            ))
            return

        self._timeout_guard.arm()

    def disconnect(self) -> None:
        logger.info(f"url={self.url} event=disconnect status={self._status.value}")
        self._cancel_reconnect_timer()
        self._heartbeat.stop()
        self._timeout_guard.cancel()
        if self._buffer is not None:
            self._buffer.flush()

        self._attempt = 0
        self._generation += 1
        was_live = self._abandon_transport(USER_DISCONNECT_REASON)
        self._transition(ConnectionStatus.CLOSED)
        if was_live:
            self.last_close_code = NORMAL_CLOSURE
            self._fire(self.options.on_close, NORMAL_CLOSURE, USER_DISCONNECT_REASON)

    def reconnect(self) -> None:
        logger.info(f"url={self.url} event=force_reconnect")
        self.disconnect()
        self._attempt = 0
        self.connect()

    def send(self, payload: Any) -> bool:
        transport = self._transport
        if transport is None:
            logger.warning(f"url={self.url} event=send_rejected reason=not_initialized")
            return False
        if transport.ready_state is ReadyState.CONNECTING:
            logger.warning(f"url={self.url} event=send_rejected reason=still_connecting")
            return False
        if transport.ready_state in (ReadyState.CLOSING, ReadyState.CLOSED):
            logger.warning(f"url={self.url} event=send_rejected reason=closing_or_closed")
            return False

        try:
            transport.send(MessageCodec.encode(payload))
        except Exception as e:
            logger.error(f"url={self.url} event=send_failed reason='{e}'")
            return False
        logger.debug(f"url={self.url} event=sent")
        return True

    def dispose(self) -> None:
        self.disconnect()
        if self._network_unsubscribe is not None:
            self._network_unsubscribe()
            self._network_unsubscribe = None

    def snapshot(self) -> ConnectionSnapshot:
        return ConnectionSnapshot(
            url=self.url,
            status=self._status,
            reconnect_attempt=self._attempt,
            messages_received=self.messages_received,
            last_close_code=self.last_close_code,
        )

    def __enter__(self) -> "ConnectionManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    # ==========================
    # TRANSPORT EVENTS
    # ==========================
    def _handle_open(self, gen: int) -> None:
        if gen != self._generation or not self._transition(ConnectionStatus.OPEN):
            return
        self._timeout_guard.cancel()
        self._attempt = 0
        self._heartbeat.start()
        logger.info(f"url={self.url} event=open")
        self._fire(self.options.on_open)

    def _handle_message(self, gen: int, raw: Any) -> None:
        if gen != self._generation:
            return
        data = MessageCodec.decode(raw)
        if MessageCodec.is_heartbeat_ack(data):
            logger.debug(f"url={self.url} event=heartbeat_ack")
            return

        self.messages_received += 1
        self.last_data = data
        if self._buffer is not None:
            self._buffer.add(data)
        else:
            self._deliver(data)

    def _handle_error(self, gen: int, err: BaseException) -> None:
        if gen != self._generation or not self._transition(ConnectionStatus.ERROR):
            return
        logger.error(f"url={self.url} event=error recoverable={is_recoverable_error(err)} reason='{err}'")
        self._heartbeat.stop()
        # The close event that follows drives any reconnect
        self._fire(self.options.on_error, err)

    def _handle_close(self, gen: int, code: int, reason: str) -> None:
        if gen != self._generation:
            return
        self._heartbeat.stop()
        self._timeout_guard.cancel()
        if self._buffer is not None:
            self._buffer.flush()

        self._transport = None
        self.last_close_code = code
        self._transition(ConnectionStatus.CLOSED)
        log = logger.info if code == NORMAL_CLOSURE else logger.warning
        log(f"url={self.url} event=close code={code} meaning='{describe_close_code(code)}' reason='{reason}'")
        self._fire(self.options.on_close, code, reason)

        # on_close may have called connect() or disconnect()
        if gen != self._generation or code == NORMAL_CLOSURE:
            return
        if self._attempt < self.options.reconnect_attempts:
            self._schedule_reconnect()
        else:
            logger.error(f"url={self.url} event=reconnect_exhausted attempts={self._attempt}")
            self._notify(Notice(
                title="Connection failed",
                description="Maximum reconnect attempts reached. Please check your internet connection and try again.",
                level="error",
            ))

    # ==========================
    # TIMERS
    # ==========================
    def _schedule_reconnect(self) -> None:
        self._attempt += 1
        delay_ms = calculate_backoff_ms(self.options.reconnect_interval_ms, self._attempt)
        logger.warning(
            f"url={self.url} event=reconnect_scheduled "
            f"attempt={self._attempt}/{self.options.reconnect_attempts} delay_ms={delay_ms:.0f}"
        )
        self._reconnect_timer = self._scheduler.call_later(
            delay_ms, partial(self._handle_reconnect_timer, self._generation)
        )

    def _handle_reconnect_timer(self, gen: int) -> None:
        if gen != self._generation or self._status is not ConnectionStatus.CLOSED:
            logger.debug(f"url={self.url} event=stale_reconnect_timer")
            return
        self._reconnect_timer = None
        self.connect()

    def _cancel_reconnect_timer(self) -> None:
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None

    def _handle_timeout(self) -> None:
        if self._status is not ConnectionStatus.CONNECTING or self._transport is None:
            return
        # The transport reports the close, which drives the retry path
        self._transport.close(CONNECT_TIMEOUT_CLOSURE, describe_close_code(CONNECT_TIMEOUT_CLOSURE))

    def _send_heartbeat(self) -> bool:
        return self.send(HEARTBEAT_FRAME)

    # ==========================
    # NETWORK SIGNAL
    # ==========================
    def _handle_offline(self) -> None:
        self._notify(Notice(
            title="Network disconnected",
            description="You are currently offline. Real-time updates will resume when your connection is restored.",
            level="warning",
        ))
        self.disconnect()

    def _handle_online(self) -> None:
        self._notify(Notice(
            title="Network connected",
            description="Your internet connection has been restored. Reconnecting...",
        ))
        self.reconnect()

    # ==========================
    # INTERNALS
    # ==========================
    def _transition(self, target: ConnectionStatus) -> bool:
        if target not in TRANSITIONS[self._status]:
            logger.warning(f"url={self.url} event=illegal_transition from={self._status.value} to={target.value}")
            return False
        if target is not self._status:
            logger.debug(f"url={self.url} event=status from={self._status.value} to={target.value}")
        self._status = target
        return True

    def _abandon_transport(self, reason: str = "") -> bool:
        """Detach the current transport and close it. Returns True if it was still live."""
        transport, self._transport = self._transport, None
        if transport is None:
            return False
        live = transport.ready_state in (ReadyState.CONNECTING, ReadyState.OPEN)
        try:
            transport.close(NORMAL_CLOSURE, reason)
        except Exception as e:
            logger.error(f"url={self.url} event=close_failed reason='{e}'")
        return live

    def _deliver(self, data: Any) -> None:
        self._fire(self.options.on_message, data)

    def _notify(self, notice: Notice) -> None:
        self._fire(self.options.on_notice, notice)

    def _fire(self, callback: Callable[..., Any] | None, *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception(f"url={self.url} event=callback_failed callback={getattr(callback, '__name__', callback)}")
