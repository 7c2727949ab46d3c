"""
CLI entrypoint for realtime-link.
"""
import asyncio
import sys

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from realtime_link.client.network_signal import NetworkProbe, NetworkSignal
from realtime_link.client.realtime_feed import (
    FEED_HEARTBEAT_INTERVAL_MS,
    FEED_RECONNECT_ATTEMPTS,
    FEED_RECONNECT_INTERVAL_MS,
    RealtimeFeed,
)
from realtime_link.client.visualizer import Visualizer
from realtime_link.shared.close_codes import CLOSE_REASONS
from realtime_link.shared.config import settings
from realtime_link.shared.events import MessageBus

app = typer.Typer(help="realtime-link: a self-healing realtime connection client")


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


async def _run_feed(feed_factory, duration: float, probe: bool, dashboard: bool) -> None:
    network = NetworkSignal() if probe else None
    feed = feed_factory(network)
    network_probe = NetworkProbe(network) if network is not None else None
    if network_probe is not None:
        network_probe.start()
    try:
        if dashboard:
            await Visualizer(feed).run(duration)
        else:
            await asyncio.sleep(duration)
    finally:
        feed.close()
        if network_probe is not None:
            await network_probe.stop()


@app.command()
def watch(
    url: str = typer.Option(settings.WS_URL, help="WebSocket URL to connect to"),
    duration: float = typer.Option(60.0, help="How long to run the dashboard in seconds"),
    reconnect_attempts: int = typer.Option(FEED_RECONNECT_ATTEMPTS, help="Reconnect attempts before giving up"),
    reconnect_interval: int = typer.Option(FEED_RECONNECT_INTERVAL_MS, help="Base backoff interval in ms"),
    heartbeat_interval: int = typer.Option(FEED_HEARTBEAT_INTERVAL_MS, help="Heartbeat interval in ms"),
    probe: bool = typer.Option(True, "--probe/--no-probe", help="Follow host connectivity with a TCP probe"),
):
    """Connect and show the live dashboard."""
    # Log lines would tear the live layout, so only errors reach the terminal
    configure_logging("ERROR")

    def make_feed(network):
        return RealtimeFeed(
            url,
            reconnect_attempts=reconnect_attempts,
            reconnect_interval_ms=reconnect_interval,
            heartbeat_interval_ms=heartbeat_interval,
            network=network,
        )

    try:
        asyncio.run(_run_feed(make_feed, duration, probe, dashboard=True))
    except KeyboardInterrupt:
        pass


@app.command()
def tail(
    url: str = typer.Option(settings.WS_URL, help="WebSocket URL to connect to"),
    duration: float = typer.Option(60.0, help="How long to listen in seconds"),
    probe: bool = typer.Option(False, "--probe/--no-probe", help="Follow host connectivity with a TCP probe"),
):
    """Print every decoded message as it arrives."""
    configure_logging(settings.LOG_LEVEL)
    bus = MessageBus()
    bus.subscribe(lambda message: typer.echo(message))

    def make_feed(network):
        return RealtimeFeed(
            url,
            bus=bus,
            on_notice=lambda notice: typer.echo(f"[{notice.level}] {notice.title}: {notice.description}", err=True),
            network=network,
        )

    try:
        asyncio.run(_run_feed(make_feed, duration, probe, dashboard=False))
    except KeyboardInterrupt:
        pass


@app.command("close-codes")
def close_codes():
    """List the close codes the client understands."""
    table = Table(title="WebSocket close codes")
    table.add_column("Code", style="cyan", justify="right")
    table.add_column("Meaning", style="green")
    table.add_column("Retried", style="magenta")
    for code, meaning in CLOSE_REASONS.items():
        table.add_row(str(code), meaning, "no" if code == 1000 else "yes")
    Console().print(table)


if __name__ == "__main__":
    app()
