"""
MODULE OVERVIEW:
The Rich Terminal Dashboard.

WHAT IS HAPPENING HERE:
We use Rich to build a terminal dashboard on top of a RealtimeFeed. Messages
arrive through the feed's MessageBus, notices through its notice hook, and the
connection status is sampled on every refresh so each transition lands in the
timeline.
"""

from rich.live import Live
from rich.layout import Layout
from rich.panel import Panel
from rich.table import Table
from collections import deque
from datetime import datetime
from typing import Any
import asyncio

from realtime_link.client.realtime_feed import RealtimeFeed
from realtime_link.shared.close_codes import describe_close_code
from realtime_link.shared.codec import MessageCodec
from realtime_link.shared.models import ConnectionStatus, Notice

STATUS_COLORS = {
    ConnectionStatus.OPEN: "green",
    ConnectionStatus.CONNECTING: "yellow",
    ConnectionStatus.CLOSED: "red",
    ConnectionStatus.ERROR: "red",
}


class Visualizer:
    def __init__(self, feed: RealtimeFeed):
        self.feed = feed
        self.recent_messages = deque(maxlen=10)
        self.timeline = deque(maxlen=8)
        self._last_status: ConnectionStatus | None = None
        self._unsubscribe = feed.bus.subscribe(self.on_message)
        for notice in feed.notices:
            self.on_notice(notice)
        feed.on_notice = self.on_notice

    def on_message(self, message: Any):
        ts = datetime.now().strftime("%H:%M:%S")
        text = str(message)
        payload_str = text[:60] + "..." if len(text) > 60 else text
        self.recent_messages.appendleft((ts, MessageCodec.message_type(message), payload_str))

    def on_notice(self, notice: Notice):
        ts = datetime.now().strftime("%H:%M:%S")
        self.timeline.appendleft(f"[{ts}] {notice.title}")

    def sample_status(self):
        status = self.feed.status
        if status is not self._last_status:
            self._last_status = status
            ts = datetime.now().strftime("%H:%M:%S")
            self.timeline.appendleft(f"[{ts}] State: {status.value.upper()}")

    def generate_layout(self) -> Layout:
        self.sample_status()
        snapshot = self.feed.connection.snapshot()

        layout = Layout()
        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="main")
        )
        layout["main"].split_row(
            Layout(name="left", ratio=2),
            Layout(name="right", ratio=1)
        )
        layout["right"].split_column(
            Layout(name="stats"),
            Layout(name="timeline")
        )

        color = STATUS_COLORS[snapshot.status]
        live = "ON" if self.feed.enabled else "OFF"
        layout["header"].update(Panel(
            f"[{color} bold]{snapshot.url} | Status: {snapshot.status.value.upper()} | Live updates: {live}[/]",
            style=color,
        ))

        table = Table(title="Live Message Feed", expand=True)
        table.add_column("Time", justify="left", style="cyan", no_wrap=True)
        table.add_column("Type", style="magenta")
        table.add_column("Payload", style="green")

        for m in self.recent_messages:
            table.add_row(m[0], m[1], m[2])

        layout["left"].update(Panel(table, title="Feed"))

        close_text = "-"
        if snapshot.last_close_code is not None:
            close_text = f"{snapshot.last_close_code} ({describe_close_code(snapshot.last_close_code)})"
        last_update = self.feed.last_update.strftime("%H:%M:%S") if self.feed.last_update else "Never"
        stats_text = (
            f"Messages Received: {snapshot.messages_received}\n"
            f"Reconnect Attempt: {snapshot.reconnect_attempt}/{self.feed.connection.options.reconnect_attempts}\n"
            f"Last Close: {close_text}\n"
            f"Last Update: {last_update}"
        )
        layout["stats"].update(Panel(stats_text, title="Connection Stats"))

        timeline_text = "\n".join(self.timeline)
        layout["timeline"].update(Panel(timeline_text, title="Timeline"))

        return layout

    async def run(self, duration_s: float):
        with Live(self.generate_layout(), refresh_per_second=4) as live:
            loop = asyncio.get_running_loop()
            deadline = loop.time() + duration_s
            try:
                while loop.time() < deadline:
                    live.update(self.generate_layout())
                    await asyncio.sleep(0.25)
            finally:
                self._unsubscribe()
                self.feed.close()
