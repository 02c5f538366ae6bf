"""
MODULE OVERVIEW:
A Rich terminal dashboard for watching the sync loop.

WHAT IS HAPPENING HERE:
The driver runs in a background task. Its hooks push each batch and every
state change into small ring buffers, and a `Live` display redraws the layout
four times a second. Handy for checking that a token works and events flow.
"""
import asyncio
from collections import deque
from datetime import datetime

from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from roomwire.client.sync_loop import SyncLoopDriver, SyncState
from roomwire.shared.errors import TerminalSyncError
from roomwire.shared.models import SyncResponse

STATE_COLORS = {
    SyncState.IDLE: "yellow",
    SyncState.POLLING: "green",
    SyncState.DELIVERING: "cyan",
    SyncState.STOPPED: "red",
}


def summarize_batch(batch: SyncResponse) -> list[tuple[str, str, str]]:
    """One (room_id, sender, text) row per timeline event."""
    rows = []
    for room_id, room in batch.rooms.join.items():
        for event in room.timeline.events:
            body = str(event.get("content", {}).get("body", event.get("type", "")))
            rows.append((room_id, str(event.get("sender", "?")), body[:40] + "..." if len(body) > 40 else body))
    for room_id in batch.rooms.invite:
        rows.append((room_id, "-", "(invited)"))
    return rows


class Visualizer:
    def __init__(self, user_id: str):
        self.user_id = user_id
        self.state = SyncState.IDLE
        self.recent_events = deque(maxlen=12)
        self.timeline = deque(maxlen=6)
        self.terminal: TerminalSyncError | None = None

    async def on_status_change(self, state: SyncState) -> None:
        if state is not self.state:
            ts = datetime.now().strftime("%H:%M:%S")
            self.timeline.appendleft(f"[{ts}] {state.value}")
        self.state = state

    async def on_batch(self, batch: SyncResponse) -> None:
        ts = datetime.now().strftime("%H:%M:%S")
        for room_id, sender, text in summarize_batch(batch):
            self.recent_events.appendleft((ts, room_id, sender, text))

    async def on_terminal(self, error: TerminalSyncError) -> None:
        self.terminal = error

    def generate_layout(self, driver: SyncLoopDriver) -> Layout:
        layout = Layout()
        layout.split_column(Layout(name="header", size=3), Layout(name="main"))
        layout["main"].split_row(Layout(name="left", ratio=2), Layout(name="right", ratio=1))
        layout["right"].split_column(Layout(name="stats"), Layout(name="timeline"))

        color = STATE_COLORS[self.state]
        header = f"[{color} bold]{self.user_id} | sync: {self.state.value} | cursor: {driver.cursor or '-'}[/]"
        if self.terminal:
            header += f" [red]{self.terminal.detail}[/]"
        layout["header"].update(Panel(header, style=color))

        table = Table(title="Timeline", expand=True)
        table.add_column("Time", style="cyan", no_wrap=True)
        table.add_column("Room", style="magenta")
        table.add_column("Sender", style="blue")
        table.add_column("Body", style="green")
        for row in self.recent_events:
            table.add_row(*row)
        layout["left"].update(Panel(table, title="Feed"))

        stats = driver.stats
        layout["stats"].update(Panel(
            f"Batches: {stats['batches_received']}\n"
            f"Empty: {stats['empty_batches']}\n"
            f"Events: {stats['events_received']}\n"
            f"Retries: {stats['retry_count']}",
            title="Sync Stats",
        ))
        layout["timeline"].update(Panel("\n".join(self.timeline), title="States"))
        return layout

    async def run(self, driver: SyncLoopDriver, duration_s: float | None = None) -> None:
        driver.on_batch = self.on_batch
        driver.on_status_change = self.on_status_change
        driver.on_terminal = self.on_terminal

        task = asyncio.create_task(driver.run())
        loop = asyncio.get_running_loop()
        deadline = loop.time() + duration_s if duration_s else None
        try:
            with Live(self.generate_layout(driver), refresh_per_second=4) as live:
                while not task.done():
                    if deadline and loop.time() >= deadline:
                        driver.cancel()
                    live.update(self.generate_layout(driver))
                    await asyncio.sleep(0.25)
                live.update(self.generate_layout(driver))
        finally:
            driver.cancel()
            await task
