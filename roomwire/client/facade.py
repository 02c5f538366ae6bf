"""
MODULE OVERVIEW:
The Facade: one method per thing a chat UI wants to do.

WHAT IS HAPPENING HERE:
`RoomClient` binds one set of credentials to the executor. Every method is the
same three steps: pick a descriptor from the catalog, execute it, hand back the
`Success`/`Failure`. No method raises for a failed request.

`send_message` is the only one with a twist: it asks the sequencer for a fresh
transaction id unless the caller passes one in. Passing the id from a previous
attempt is how a retry is made safe, since the server recognizes the repeat and
doesn't post the message twice.
"""
import asyncio
import mimetypes
from pathlib import Path
from urllib.parse import quote

import httpx
from loguru import logger
from pydantic import BaseModel

from roomwire.client import operations as ops
from roomwire.client.executor import Executor
from roomwire.client.request_builder import build_login
from roomwire.client.transport import TransportProvider
from roomwire.client.txn import TransactionSequencer
from roomwire.shared.config import Settings, settings as default_settings
from roomwire.shared.errors import ConfigurationError
from roomwire.shared.models import (
    AuthedUser,
    AvatarUrl,
    BanRoomResult,
    Chunked,
    ContextResponse,
    CreateRoomResult,
    CreateRoomSettings,
    Credentials,
    DiscoveredRoom,
    DisplayName,
    EmptyResult,
    FetchDirection,
    InviteMemResult,
    JoinRoomResult,
    LeaveRoomResult,
    Message,
    ResolveRoomAliasResult,
    RoomAvatarContent,
    RoomBatch,
    RoomCanonAliasContent,
    RoomDirectoryQuery,
    RoomEvent,
    RoomEventType,
    RoomNameContent,
    SendResult,
    SyncResponse,
    UploadResponse,
    UserPassword,
)
from roomwire.shared.result import Failure, OutcomeResult, Success, client_failure

MXC_SCHEME = "mxc://"


class RoomClient:
    def __init__(
        self,
        credentials: Credentials,
        provider: TransportProvider | None = None,
        settings: Settings | None = None,
        sequencer: TransactionSequencer | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not isinstance(credentials, Credentials):
            raise ConfigurationError("RoomClient needs Credentials from login()")
        self.credentials = credentials
        self._owns_provider = provider is None
        self.provider = provider or TransportProvider(credentials.server_base, settings, transport=transport)
        self.settings = self.provider.settings
        self.executor = Executor(self.provider)
        self.sequencer = sequencer or TransactionSequencer()

    @property
    def user_id(self) -> str:
        return self.credentials.user_id

    async def aclose(self) -> None:
        if self._owns_provider:
            await self.provider.aclose()

    async def __aenter__(self) -> "RoomClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _run(self, descriptor: ops.OperationDescriptor) -> OutcomeResult:
        return await self.executor.execute(descriptor, self.credentials)

    def next_transaction_id(self) -> str:
        return self.sequencer.next()

    # ==========================
    # ROOMS
    # ==========================
    async def create_room(self, room_settings: CreateRoomSettings) -> OutcomeResult[CreateRoomResult]:
        return await self._run(ops.create_room(room_settings))

    async def join_room(self, room_id: str) -> OutcomeResult[JoinRoomResult]:
        return await self._run(ops.join_room(room_id))

    async def leave_room(self, room_id: str) -> OutcomeResult[LeaveRoomResult]:
        return await self._run(ops.leave_room(room_id))

    async def invite_member(self, room_id: str, user_id: str) -> OutcomeResult[InviteMemResult]:
        return await self._run(ops.invite_user(room_id, user_id))

    async def ban_member(self, room_id: str, user_id: str, reason: str | None = None) -> OutcomeResult[BanRoomResult]:
        return await self._run(ops.ban_user(room_id, user_id, reason))

    # ==========================
    # MESSAGES & STATE
    # ==========================
    async def send_message(
        self,
        room_id: str,
        message: Message,
        txn_id: str | None = None,
    ) -> OutcomeResult[SendResult]:
        if txn_id is not None and not txn_id:
            return client_failure("transaction id must not be empty")
        tid = txn_id if txn_id is not None else self.sequencer.next()
        logger.info(f"op=send_message room_id={room_id} txn_id={tid} retry={txn_id is not None}")
        return await self._run(ops.send_message_event(room_id, tid, message))

    async def send_state_event(
        self,
        room_id: str,
        event_type: RoomEventType | str,
        content: BaseModel,
    ) -> OutcomeResult[SendResult]:
        return await self._run(ops.send_state_event(room_id, event_type, content))

    async def set_room_name(self, room_id: str, name: str) -> OutcomeResult[SendResult]:
        return await self.send_state_event(room_id, RoomEventType.NAME, RoomNameContent(name=name))

    async def set_room_icon(self, room_id: str, content: RoomAvatarContent) -> OutcomeResult[SendResult]:
        return await self.send_state_event(room_id, RoomEventType.AVATAR, content)

    async def set_room_canonical_alias(self, room_id: str, alias: str) -> OutcomeResult[SendResult]:
        return await self.send_state_event(room_id, RoomEventType.CANON_ALIAS, RoomCanonAliasContent(alias=alias))

    async def get_room_messages(
        self,
        room_id: str,
        from_token: str,
        direction: FetchDirection = FetchDirection.BACKWARD,
        limit: int = 100,
        to: str | None = None,
    ) -> OutcomeResult[Chunked[RoomEvent]]:
        return await self._run(ops.get_messages(room_id, from_token, direction, limit, to))

    async def get_event_context(self, room_id: str, event_id: str, limit: int = 2) -> OutcomeResult[ContextResponse]:
        return await self._run(ops.get_event_context(room_id, event_id, limit))

    async def sync_events(
        self,
        since: str | None,
        full_state: bool | None = None,
        filter: str | None = None,
    ) -> OutcomeResult[SyncResponse]:
        s = self.settings
        descriptor = ops.get_events(
            since,
            s.long_poll_timeout_ms,
            s.SYNC_FULL_STATE if full_state is None else full_state,
            filter if filter is not None else s.SYNC_FILTER,
        )
        return await self._run(descriptor)

    # ==========================
    # ALIASES & DIRECTORY
    # ==========================
    async def resolve_room_alias(self, alias: str) -> OutcomeResult[ResolveRoomAliasResult]:
        return await self._run(ops.resolve_room_alias(alias))

    async def put_room_alias(self, room_id: str, alias: str) -> OutcomeResult[EmptyResult]:
        return await self._run(ops.put_room_alias(alias, room_id))

    async def delete_room_alias(self, alias: str) -> OutcomeResult[EmptyResult]:
        return await self._run(ops.delete_room_alias(alias))

    async def public_rooms(self, since: str | None = None, limit: int = 20) -> OutcomeResult[RoomBatch[DiscoveredRoom]]:
        return await self._run(ops.public_rooms(since, limit))

    async def find_public_rooms(self, query: RoomDirectoryQuery) -> OutcomeResult[RoomBatch[DiscoveredRoom]]:
        return await self._run(ops.find_public_rooms(query))

    # ==========================
    # PROFILE
    # ==========================
    async def get_avatar(self, user_id: str | None = None) -> OutcomeResult[AvatarUrl]:
        return await self._run(ops.get_avatar(user_id or self.user_id))

    async def update_avatar(self, avatar_url: str) -> OutcomeResult[EmptyResult]:
        return await self._run(ops.update_avatar(self.user_id, AvatarUrl(avatar_url=avatar_url)))

    async def get_display_name(self, user_id: str | None = None) -> OutcomeResult[DisplayName]:
        return await self._run(ops.get_display_name(user_id or self.user_id))

    async def update_display_name(self, new_name: str) -> OutcomeResult[EmptyResult]:
        return await self._run(ops.update_display_name(self.user_id, DisplayName(displayname=new_name)))

    # ==========================
    # MEDIA
    # ==========================
    async def upload_bytes(self, content_type: str, data: bytes) -> OutcomeResult[UploadResponse]:
        return await self._run(ops.upload_media(content_type, data))

    async def upload_file(self, path: str | Path, content_type: str | None = None) -> OutcomeResult[UploadResponse]:
        path = Path(path)
        content_type = content_type or mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            return client_failure(f"cannot read {path}: {e}")
        return await self.upload_bytes(content_type, data)

    def media_url(self, address: str) -> OutcomeResult[httpx.URL]:
        """Turn `mxc://server/media_id` into the HTTP download URL on our homeserver."""
        if not address.startswith(MXC_SCHEME):
            return client_failure(f"not an mxc address: '{address}'")
        server, _, media_id = address[len(MXC_SCHEME):].partition("/")
        if not server or not media_id:
            return client_failure(f"malformed mxc address: '{address}'")
        media_base = self.provider.media_url
        path = f"{media_base.path}download/{quote(server, safe='')}/{quote(media_id, safe='')}"
        return Success(httpx.URL(str(media_base.copy_with(path="/")).rstrip("/") + path))


async def login(
    user: str,
    password: str,
    server_base: str,
    provider: TransportProvider | None = None,
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> OutcomeResult[Credentials]:
    """
    Password login. Returns Credentials ready for `RoomClient`.
    Reuses `provider`'s pool when given, otherwise opens and closes a short-lived one.
    """
    owns_provider = provider is None
    provider = provider or TransportProvider(server_base, settings or default_settings, transport=transport)
    try:
        prepared = build_login(UserPassword(user=user, password=password), server_base, provider.settings)
        result = await Executor(provider).send_prepared(prepared, AuthedUser)
    finally:
        if owns_provider:
            await provider.aclose()

    if isinstance(result, Failure):
        logger.info(f"op=login user={user} outcome=failure {result.error}")
        return result
    authed = result.value
    logger.info(f"op=login user_id={authed.user_id} outcome=success")
    return Success(Credentials(access_token=authed.access_token, user_id=authed.user_id, server_base=server_base))
