from realtime_link.client.connection_manager import ConnectionManager
from realtime_link.client.network_signal import NetworkProbe, NetworkSignal
from realtime_link.client.realtime_feed import RealtimeFeed
from realtime_link.shared.backoff import calculate_backoff_ms
from realtime_link.shared.codec import MessageCodec
from realtime_link.shared.models import ConnectionOptions, ConnectionStatus, Notice

__all__ = [
    "ConnectionManager",
    "ConnectionOptions",
    "ConnectionStatus",
    "MessageCodec",
    "NetworkProbe",
    "NetworkSignal",
    "Notice",
    "RealtimeFeed",
    "calculate_backoff_ms",
]
