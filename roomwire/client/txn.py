"""
MODULE OVERVIEW:
Transaction ids for idempotent writes (`PUT /rooms/{roomId}/send/{type}/{txnId}`).

WHAT IS HAPPENING HERE:
The server deduplicates sends by (access token, txnId). Reusing an id for a
different message silently drops the second one, so ids must never repeat.
We keep the last issued value and, on each call, take the wall-clock
millisecond if it is ahead of it, otherwise last + 1. Two sends landing in the
same millisecond, or a clock that jumps backwards, still get strictly
increasing ids.

The compare-and-update is the only shared mutation in the client. CPython has
no user-level compare-and-swap on ints, so a lock guards exactly that one
comparison and assignment; nothing else ever runs while it is held.
Values are 64-bit in spirit: overflow past 2**63 - 1 is not reachable at any
realistic message rate.
"""
import threading
import time
from typing import Callable


def wall_clock_ms() -> int:
    return time.time_ns() // 1_000_000


class TransactionSequencer:
    def __init__(self, clock: Callable[[], int] = wall_clock_ms):
        self._clock = clock
        self._last = 0
        self._lock = threading.Lock()

    @property
    def last(self) -> int:
        return self._last

    def next(self) -> str:
        t = self._clock()
        with self._lock:
            self._last = t if t > self._last else self._last + 1
            issued = self._last
        return str(issued)
