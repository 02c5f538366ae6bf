import random
from datetime import datetime, timezone


def make_sync_stats() -> dict:
    """
    Returns a fresh stats dictionary with zeroed counters.
    The sync loop calls this once in __init__.
    Keys: batches_received, empty_batches, events_received, retry_count,
          last_batch_at, started_at.
    """
    return {
        "batches_received": 0,
        "empty_batches": 0,
        "events_received": 0,
        "retry_count": 0,
        "last_batch_at": None,
        "started_at": datetime.now(timezone.utc).isoformat(),
    }


MAX_BACKOFF_EXPONENT = 32


def backoff_delay(attempt: int, base_delay_s: float = 1.0, max_delay_s: float = 32.0) -> float:
    """
    Exponential backoff with up to 10% jitter: base * 2**attempt, capped at max.
    The exponent is clamped so an outage of any length never overflows the float math.
    Jitter keeps a fleet of clients from hammering a recovering server in lockstep.
    """
    exponent = min(max(attempt, 0), MAX_BACKOFF_EXPONENT)
    delay = min(base_delay_s * (2 ** exponent), max_delay_s)
    return delay + random.uniform(0, delay * 0.1)
