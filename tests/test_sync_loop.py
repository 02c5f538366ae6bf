import asyncio

import httpx
import pytest

from roomwire.client.sync_loop import SyncLoopDriver, SyncState
from roomwire.shared.errors import ErrorDetail, ErrorKind, TerminalSyncError
from roomwire.shared.models import SyncResponse
from roomwire.shared.result import Failure, Success


def batch(cursor: str, events: int = 0) -> SyncResponse:
    timeline = {"events": [{"type": "m.room.message", "sender": "@b:hs", "content": {"body": str(i)}} for i in range(events)]}
    return SyncResponse.model_validate({"next_batch": cursor, "rooms": {"join": {"!r:hs": {"timeline": timeline}}}})


def transient() -> Failure:
    return Failure(ErrorDetail(kind=ErrorKind.TRANSIENT, message="timed out", retryable=True))


class ScriptedSource:
    """Replays a fixed list of outcomes and records the cursor of every poll."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls: list[str | None] = []

    async def sync_events(self, since):
        self.calls.append(since)
        return self.outcomes.pop(0)


@pytest.mark.asyncio
async def test_cursor_advances_through_three_batches(settings):
    source = ScriptedSource(Success(batch("c1", 1)), Success(batch("c2", 2)), Success(batch("c3")))
    received: list[str] = []
    driver = None

    async def on_batch(b: SyncResponse):
        received.append(b.next_batch)
        if len(received) == 3:
            driver.cancel()

    driver = SyncLoopDriver(source, on_batch, settings=settings)
    assert driver.state is SyncState.IDLE
    assert await driver.run() is None

    assert source.calls == [None, "c1", "c2"]
    assert received == ["c1", "c2", "c3"]
    assert driver.cursor == "c3"
    assert driver.state is SyncState.STOPPED
    assert driver.stats["batches_received"] == 3
    assert driver.stats["events_received"] == 3
    assert driver.stats["empty_batches"] == 1


@pytest.mark.asyncio
async def test_resume_from_saved_cursor(settings):
    source = ScriptedSource(Success(batch("c9")))
    driver = None

    async def on_batch(b):
        driver.cancel()

    driver = SyncLoopDriver(source, on_batch, since="c8", settings=settings)
    await driver.run()
    assert source.calls == ["c8"]


@pytest.mark.asyncio
async def test_cancel_during_in_flight_poll_stops_without_another_poll(settings):
    started = asyncio.Event()
    release = asyncio.Event()
    calls = []
    delivered = []

    class HangingSource:
        async def sync_events(self, since):
            calls.append(since)
            started.set()
            await release.wait()
            return Success(batch("late"))

    async def on_batch(b):
        delivered.append(b)

    driver = SyncLoopDriver(HangingSource(), on_batch, settings=settings)
    task = asyncio.create_task(driver.run())
    await started.wait()
    assert driver.state is SyncState.POLLING

    driver.cancel()
    release.set()
    assert await asyncio.wait_for(task, timeout=1.0) is None

    assert driver.state is SyncState.STOPPED
    assert calls == [None]
    assert delivered == []
    assert driver.cursor is None


@pytest.mark.asyncio
async def test_response_completing_after_cancel_is_discarded(settings):
    delivered = []
    driver = None

    class RacingSource:
        calls = 0

        async def sync_events(self, since):
            RacingSource.calls += 1
            driver.cancel()  # owner cancels while the reply is already on its way
            return Success(batch("late", 5))

    async def on_batch(b):
        delivered.append(b)

    driver = SyncLoopDriver(RacingSource(), on_batch, settings=settings)
    await driver.run()
    assert RacingSource.calls == 1
    assert delivered == []
    assert driver.cursor is None
    assert driver.stats["batches_received"] == 0


@pytest.mark.asyncio
async def test_transient_failures_retry_with_same_cursor(settings):
    source = ScriptedSource(Success(batch("c1")), transient(), transient(), Success(batch("c2")))
    received = []
    driver = None

    async def on_batch(b):
        received.append(b.next_batch)
        if b.next_batch == "c2":
            driver.cancel()

    driver = SyncLoopDriver(source, on_batch, settings=settings)
    await driver.run()
    assert source.calls == [None, "c1", "c1", "c1"]
    assert received == ["c1", "c2"]
    assert driver.stats["retry_count"] == 2
    assert driver.terminal_error is None


@pytest.mark.asyncio
async def test_revoked_token_is_terminal_and_reported_once(settings):
    revoked = ErrorDetail(kind=ErrorKind.CLIENT, status=401, errcode="M_UNKNOWN_TOKEN", message="Invalid token")
    source = ScriptedSource(Success(batch("c1")), Failure(revoked))
    terminal: list[TerminalSyncError] = []
    states: list[SyncState] = []

    async def on_batch(b):
        pass

    async def on_terminal(err):
        terminal.append(err)

    async def on_status(state):
        states.append(state)

    driver = SyncLoopDriver(source, on_batch, on_terminal=on_terminal, on_status_change=on_status, settings=settings)
    result = await driver.run()

    assert result == revoked
    assert driver.terminal_error == revoked
    assert [t.detail for t in terminal] == [revoked]
    assert terminal[0].detail.is_auth_revoked
    assert source.calls == [None, "c1"]
    assert driver.cursor == "c1"
    assert states == [SyncState.POLLING, SyncState.DELIVERING, SyncState.POLLING, SyncState.STOPPED]


@pytest.mark.asyncio
async def test_protocol_error_is_not_retried(settings):
    bad = Failure(ErrorDetail(kind=ErrorKind.PROTOCOL, status=200, message="bad shape"))
    source = ScriptedSource(bad)

    async def on_batch(b):
        pass

    driver = SyncLoopDriver(source, on_batch, settings=settings)
    result = await driver.run()
    assert result.kind is ErrorKind.PROTOCOL
    assert source.calls == [None]


@pytest.mark.asyncio
async def test_consumer_crash_keeps_old_cursor(settings):
    source = ScriptedSource(Success(batch("c1")), Success(batch("c2")))
    seen = []

    async def on_batch(b):
        seen.append(b.next_batch)
        if b.next_batch == "c2":
            raise ValueError("consumer blew up")

    driver = SyncLoopDriver(source, on_batch, settings=settings)
    with pytest.raises(ValueError):
        await driver.run()
    assert driver.cursor == "c1"
    assert driver.state is SyncState.STOPPED


@pytest.mark.asyncio
async def test_run_twice_is_rejected(settings):
    source = ScriptedSource()
    driver = SyncLoopDriver(source, lambda b: None, settings=settings)
    driver.cancel()
    await driver.run()
    with pytest.raises(RuntimeError):
        await driver.run()
    assert source.calls == []


@pytest.mark.asyncio
async def test_sync_loop_over_http_uses_long_poll_profile(make_client, settings):
    seen: list[httpx.Request] = []
    replies = [
        httpx.Response(503),
        httpx.Response(200, json={"next_batch": "s1"}),
        httpx.Response(200, json={"next_batch": "s2"}),
    ]

    def responder(request):
        seen.append(request)
        return replies.pop(0)

    client, _ = make_client(responder)
    driver = None

    async def on_batch(b):
        if b.next_batch == "s2":
            driver.cancel()

    driver = SyncLoopDriver(client, on_batch)
    await driver.run()

    assert [r.url.params.get("since") for r in seen] == [None, None, "s1"]
    assert all(r.url.path == "/_matrix/client/r0/sync" for r in seen)
    assert seen[0].url.params["timeout"] == str(settings.long_poll_timeout_ms)
    assert seen[0].extensions["timeout"]["read"] > settings.LONG_POLL_TIMEOUT_S
    assert driver.cursor == "s2"


@pytest.mark.asyncio
async def test_outage_longer_than_a_thousand_retries_keeps_polling(settings, monkeypatch):
    failures = 1100
    source = ScriptedSource(*[transient() for _ in range(failures)], Success(batch("after-outage")))
    received = []
    driver = None

    async def on_batch(b):
        received.append(b.next_batch)
        driver.cancel()

    async def no_wait(delay_s):
        return None

    driver = SyncLoopDriver(source, on_batch, settings=settings)
    monkeypatch.setattr(driver, "_sleep_or_cancel", no_wait)

    assert await driver.run() is None
    assert received == ["after-outage"]
    assert len(source.calls) == failures + 1
    assert set(source.calls) == {None}
    assert driver.stats["retry_count"] == failures
    assert driver.terminal_error is None
