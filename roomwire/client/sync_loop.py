"""
MODULE OVERVIEW:
The Sync Loop Driver: a standing long-poll against `GET /sync`.

WHAT IS HAPPENING HERE:
    IDLE -> POLLING -> DELIVERING -> POLLING -> ... -> STOPPED

Each poll asks "what happened since cursor X?". The server holds the request
open until something happens or its window elapses, then answers with a batch
and a new cursor (`next_batch`). We only adopt the new cursor after the
consumer has accepted the batch. If the consumer blows up halfway, the next
run starts from the old cursor and the batch is delivered again: at-least-once,
which is fine because applying a batch twice is harmless.

A long-poll that times out with nothing to say is normal. Timeouts, 5xx and
network errors send us back to POLLING with the same cursor after an
exponential backoff. Anything not retryable (401/403 revoked token, a 4xx,
a body we can't decode) stops the loop and is handed to the consumer as a
TerminalSyncError, so the app can ask the user to log in again instead of
spinning forever.

`cancel()` is checked before every poll and also races the in-flight request:
as soon as it fires we drop the request and any response that arrives later.
"""
import asyncio
from contextlib import suppress
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Protocol

from loguru import logger

from roomwire.shared.client_utils import backoff_delay, make_sync_stats
from roomwire.shared.config import Settings, settings as default_settings
from roomwire.shared.errors import ErrorDetail, TerminalSyncError
from roomwire.shared.models import SyncResponse
from roomwire.shared.result import Failure, OutcomeResult


class SyncState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    DELIVERING = "delivering"
    STOPPED = "stopped"


class SyncSource(Protocol):
    async def sync_events(self, since: str | None) -> OutcomeResult[SyncResponse]:
        ...


BatchConsumer = Callable[[SyncResponse], Awaitable[None]]
TerminalConsumer = Callable[[TerminalSyncError], Awaitable[None]]
StatusConsumer = Callable[[SyncState], Awaitable[None]]


class SyncLoopDriver:
    def __init__(
        self,
        source: SyncSource,
        on_batch: BatchConsumer,
        on_terminal: TerminalConsumer | None = None,
        on_status_change: StatusConsumer | None = None,
        since: str | None = None,
        settings: Settings | None = None,
    ):
        self.source = source
        self.on_batch = on_batch
        self.on_terminal = on_terminal
        self.on_status_change = on_status_change
        self.settings = settings or getattr(source, "settings", None) or default_settings

        self.cursor: str | None = since
        self.state = SyncState.IDLE
        self.terminal_error: ErrorDetail | None = None
        self.stats = make_sync_stats()
        self._cancelled = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Ask the loop to stop. Safe to call from any task, any number of times."""
        if not self._cancelled.is_set():
            logger.info(f"sync=cancel state={self.state.value} cursor={self.cursor}")
        self._cancelled.set()

    async def _emit_status(self, state: SyncState) -> None:
        self.state = state
        if self.on_status_change:
            await self.on_status_change(state)

    async def _poll_or_cancel(self, since: str | None) -> OutcomeResult[SyncResponse] | None:
        """Run one poll, racing it against cancel(). None means we were cancelled."""
        poll = asyncio.ensure_future(self.source.sync_events(since))
        cancel_wait = asyncio.ensure_future(self._cancelled.wait())
        try:
            done, _ = await asyncio.wait({poll, cancel_wait}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancel_wait.cancel()
            if not poll.done():
                poll.cancel()
                with suppress(asyncio.CancelledError):
                    await poll
        if poll in done and not poll.cancelled():
            return poll.result()
        return None

    async def _sleep_or_cancel(self, delay_s: float) -> None:
        with suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._cancelled.wait(), timeout=delay_s)

    def _retry_delay(self, attempt: int, error: ErrorDetail) -> float:
        delay = backoff_delay(attempt, self.settings.SYNC_BACKOFF_BASE_S, self.settings.SYNC_BACKOFF_MAX_S)
        if error.retry_after_ms:
            delay = max(delay, error.retry_after_ms / 1000.0)
        return delay

    async def _deliver(self, batch: SyncResponse) -> None:
        await self._emit_status(SyncState.DELIVERING)
        await self.on_batch(batch)
        # the consumer accepted the batch, only now does the cursor move
        self.cursor = batch.next_batch

        count = batch.event_count()
        self.stats["batches_received"] += 1
        self.stats["events_received"] += count
        self.stats["last_batch_at"] = datetime.now(timezone.utc).isoformat()
        if count == 0:
            self.stats["empty_batches"] += 1

    async def run(self) -> ErrorDetail | None:
        """
        Drive the loop until cancelled or terminally failed.
        Returns the terminal ErrorDetail, or None after a clean cancel.
        A consumer exception stops the loop and propagates with the cursor untouched.
        """
        if self.state is not SyncState.IDLE:
            raise RuntimeError(f"sync loop already {self.state.value}")

        attempt = 0
        try:
            while not self._cancelled.is_set():
                await self._emit_status(SyncState.POLLING)
                result = await self._poll_or_cancel(self.cursor)

                if result is None or self._cancelled.is_set():
                    logger.debug(f"sync=discard reason=cancelled cursor={self.cursor}")
                    break

                if isinstance(result, Failure):
                    error = result.error
                    if not error.retryable:
                        self.terminal_error = error
                        logger.error(f"sync=terminal cursor={self.cursor} {error}")
                        if self.on_terminal:
                            await self.on_terminal(TerminalSyncError(error))
                        return error

                    attempt += 1
                    self.stats["retry_count"] += 1
                    delay = self._retry_delay(attempt, error)
                    logger.warning(f"sync=retry attempt={attempt} delay_s={delay:.2f} cursor={self.cursor} {error}")
                    await self._sleep_or_cancel(delay)
                    continue

                attempt = 0
                await self._deliver(result.value)
            return None
        finally:
            await self._emit_status(SyncState.STOPPED)
            logger.info(
                f"sync=stopped cursor={self.cursor} batches={self.stats['batches_received']} "
                f"retries={self.stats['retry_count']}"
            )
