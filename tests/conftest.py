"""
Deterministic stand-ins for the event loop clock and the socket.

ManualScheduler is a virtual clock: nothing fires until the test calls
`advance()`. FakeTransport records what the manager sends and lets the test
play the server's part by firing open/message/error/close events.
"""
import pytest

from realtime_link.client.connection_manager import ConnectionManager
from realtime_link.client.transport import ReadyState, TransportClosedError, TransportHandlers
from realtime_link.shared.models import ConnectionOptions


class ManualTimer:
    def __init__(self, when: float, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    def __init__(self):
        self.now = 0.0
        self._timers: list[ManualTimer] = []

    def call_later(self, delay_ms, callback) -> ManualTimer:
        timer = ManualTimer(self.now + delay_ms, callback)
        self._timers.append(timer)
        return timer

    @property
    def pending(self) -> list[ManualTimer]:
        return [t for t in self._timers if not t.cancelled and not t.fired]

    def advance(self, ms: float) -> None:
        target = self.now + ms
        while True:
            due = [t for t in self.pending if t.when <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.when)
            self.now = timer.when
            timer.fired = True
            timer.callback()
        self.now = target


class FakeTransport:
    def __init__(self, url: str, handlers: TransportHandlers):
        self.url = url
        self.handlers = handlers
        self.ready_state = ReadyState.CONNECTING
        self.sent: list = []
        self.closed_with: tuple[int, str] | None = None
        self.fail_sends = False

    def send(self, data) -> None:
        if self.ready_state is not ReadyState.OPEN:
            raise TransportClosedError("not open")
        if self.fail_sends:
            raise OSError("broken pipe")
        self.sent.append(data)

    def close(self, code: int = 1000, reason: str = "") -> None:
        if self.ready_state in (ReadyState.CLOSING, ReadyState.CLOSED):
            return
        self.closed_with = (code, reason)
        self.ready_state = ReadyState.CLOSED
        self.handlers.on_close(code, reason)

    # Server-side actions driven by the test
    def open(self) -> None:
        self.ready_state = ReadyState.OPEN
        self.handlers.on_open()

    def receive(self, data) -> None:
        self.handlers.on_message(data)

    def fail(self, code: int = 1006, reason: str = "connection refused") -> None:
        self.ready_state = ReadyState.CLOSED
        self.handlers.on_error(ConnectionError(reason))
        self.handlers.on_close(code, reason)

    def drop(self, code: int = 1006, reason: str = "") -> None:
        self.ready_state = ReadyState.CLOSED
        self.handlers.on_close(code, reason)


class FakeTransportFactory:
    def __init__(self):
        self.created: list[FakeTransport] = []
        self.error: Exception | None = None

    def __call__(self, url: str, handlers: TransportHandlers) -> FakeTransport:
        if self.error is not None:
            raise self.error
        transport = FakeTransport(url, handlers)
        self.created.append(transport)
        return transport

    @property
    def latest(self) -> FakeTransport:
        return self.created[-1]


class Recorder:
    """Collects every callback the manager fires."""

    def __init__(self):
        self.opens = 0
        self.messages: list = []
        self.closes: list[tuple[int, str]] = []
        self.errors: list[BaseException] = []
        self.notices: list = []

    def options(self, **overrides) -> ConnectionOptions:
        fields = dict(
            on_open=self.on_open,
            on_message=self.messages.append,
            on_close=lambda code, reason: self.closes.append((code, reason)),
            on_error=self.errors.append,
            on_notice=self.notices.append,
        )
        fields.update(overrides)
        return ConnectionOptions(**fields)

    def on_open(self) -> None:
        self.opens += 1

    def notice_titles(self) -> list[str]:
        return [n.title for n in self.notices]


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def transports():
    return FakeTransportFactory()


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def make_manager(scheduler, transports, recorder):
    def factory(url: str = "ws://example.test/ws", network=None, **overrides) -> ConnectionManager:
        return ConnectionManager(
            url,
            recorder.options(**overrides),
            transport_factory=transports,
            scheduler=scheduler,
            network=network,
        )

    return factory
