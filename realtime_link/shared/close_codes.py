from realtime_link.shared.models import CONNECT_TIMEOUT_CLOSURE

CLOSE_REASONS: dict[int, str] = {
    1000: "Normal closure",
    1001: "Server going down or client navigating away",
    1002: "Protocol error",
    1003: "Unsupported data",
    1004: "Reserved",
    1005: "No status received",
    1006: "Abnormal closure, possibly network issue",
    1007: "Invalid frame payload data",
    1008: "Policy violation",
    1009: "Message too big",
    1010: "Missing extension",
    1011: "Internal server error",
    1012: "Service restart",
    1013: "Try again later",
    1014: "Bad gateway",
    1015: "TLS handshake failure",
    CONNECT_TIMEOUT_CLOSURE: "Connection timeout",
}

_TRANSIENT_MARKERS = ("timeout", "timed out", "network", "connection")


def describe_close_code(code: int) -> str:
    return CLOSE_REASONS.get(code, "Unknown close reason")


def is_recoverable_error(err: BaseException) -> bool:
    """Best guess at whether an error is transient. Errors without a message count as recoverable."""
    if isinstance(err, (TimeoutError, ConnectionError)):
        return True
    message = str(err).lower()
    if not message:
        return True
    return any(marker in message for marker in _TRANSIENT_MARKERS)
