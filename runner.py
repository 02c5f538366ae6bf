"""
CLI entrypoint for roomwire.
"""
import asyncio

import typer

from roomwire.client.facade import RoomClient, login as password_login
from roomwire.client.sync_loop import SyncLoopDriver
from roomwire.client.visualizer import Visualizer
from roomwire.shared.config import settings
from roomwire.shared.log import configure_logging
from roomwire.shared.models import Credentials, Message
from roomwire.shared.result import Failure

app = typer.Typer(help="roomwire chat-room client CLI")


def _credentials(token: str, user_id: str, server: str | None) -> Credentials:
    return Credentials(access_token=token, user_id=user_id, server_base=server or settings.SERVER_BASE)


def _exit_on_failure(result) -> None:
    if isinstance(result, Failure):
        typer.echo(f"error: {result.error}", err=True)
        raise typer.Exit(1)


@app.callback()
def main(log_level: str = typer.Option(settings.LOG_LEVEL, help="Loguru level")):
    configure_logging(log_level)


@app.command()
def login(
    user: str = typer.Option(..., help="Localpart, without @ or :server"),
    password: str = typer.Option(..., prompt=True, hide_input=True),
    server: str = typer.Option(settings.SERVER_BASE, help="Homeserver base URL"),
):
    """Log in with a password and print the access token."""
    result = asyncio.run(password_login(user, password, server))
    _exit_on_failure(result)
    typer.echo(f"user_id={result.value.user_id}")
    typer.echo(f"access_token={result.value.access_token}")


@app.command()
def sync(
    token: str = typer.Option(..., envvar="ROOMWIRE_ACCESS_TOKEN"),
    user_id: str = typer.Option(..., envvar="ROOMWIRE_USER_ID"),
    server: str = typer.Option(None, help="Homeserver base URL"),
    since: str = typer.Option(None, help="Resume from this cursor"),
    duration: float = typer.Option(None, help="Stop after this many seconds"),
):
    """Run the sync loop with the live dashboard."""

    async def _run():
        async with RoomClient(_credentials(token, user_id, server)) as client:
            visualizer = Visualizer(user_id)
            driver = SyncLoopDriver(client, visualizer.on_batch, since=since)
            await visualizer.run(driver, duration)
            if driver.terminal_error:
                typer.echo(f"sync stopped: {driver.terminal_error}", err=True)
                raise typer.Exit(2)
            typer.echo(f"next cursor: {driver.cursor}")

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        pass


@app.command()
def send(
    room_id: str = typer.Argument(...),
    text: str = typer.Argument(...),
    token: str = typer.Option(..., envvar="ROOMWIRE_ACCESS_TOKEN"),
    user_id: str = typer.Option(..., envvar="ROOMWIRE_USER_ID"),
    server: str = typer.Option(None, help="Homeserver base URL"),
    txn_id: str = typer.Option(None, help="Reuse a transaction id to retry a send"),
):
    """Send a plain text message to a room."""

    async def _run():
        async with RoomClient(_credentials(token, user_id, server)) as client:
            return await client.send_message(room_id, Message(body=text), txn_id=txn_id)

    result = asyncio.run(_run())
    _exit_on_failure(result)
    typer.echo(f"event_id={result.value.event_id}")


@app.command()
def resolve(
    alias: str = typer.Argument(..., help="e.g. #room:example.org"),
    server: str = typer.Option(settings.SERVER_BASE, help="Homeserver base URL"),
):
    """Resolve a room alias to its room id (no login needed)."""

    async def _run():
        creds = Credentials(access_token="-", user_id="-", server_base=server)
        async with RoomClient(creds) as client:
            return await client.resolve_room_alias(alias)

    result = asyncio.run(_run())
    _exit_on_failure(result)
    typer.echo(f"room_id={result.value.room_id} servers={','.join(result.value.servers)}")


if __name__ == "__main__":
    app()
