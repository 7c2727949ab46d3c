BACKOFF_FACTOR = 1.5


def calculate_backoff_ms(base_interval_ms: float, attempt: int) -> float:
    """
    Delay before reconnect attempt number `attempt` (1-based).

    Grows by 1.5x per attempt with no jitter and no ceiling; the attempt
    budget is what bounds it.
    """
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")
    return base_interval_ms * BACKOFF_FACTOR ** (attempt - 1)
