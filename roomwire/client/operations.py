"""
MODULE OVERVIEW:
The operation catalog: every server endpoint the client speaks, written down as data.

WHAT IS HAPPENING HERE:
Each function returns an `OperationDescriptor`, a plain frozen value naming
the HTTP method, the path template, ordered path/query parameters, the body,
the model the response should decode into, and which transport profile runs it.
Nothing here does I/O or knows the access token, so every endpoint's shape can
be asserted on in isolation. `executor.execute` is the one function that turns
a descriptor into a network call.

Paths are relative to the API base (or the media base for uploads).
"""
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from roomwire.client.transport import TransportProfile
from roomwire.shared.models import (
    AvatarUrl,
    BanRoomResult,
    Chunked,
    ContextResponse,
    CreateRoomResult,
    CreateRoomSettings,
    DiscoveredRoom,
    DisplayName,
    EmptyResult,
    FetchDirection,
    InviteMemResult,
    InviteUserData,
    JoinRoomResult,
    LeaveRoomResult,
    MemberBanishment,
    Message,
    ResolveRoomAliasResult,
    RoomBatch,
    RoomDirectoryQuery,
    RoomEvent,
    RoomEventType,
    RoomInfo,
    SendResult,
    SyncResponse,
    UploadResponse,
)

JSON = "application/json"


@dataclass(frozen=True)
class OperationDescriptor:
    name: str
    method: str
    path_template: str
    response_type: Any
    path_params: tuple[tuple[str, str], ...] = ()
    query_params: tuple[tuple[str, Any], ...] = ()
    body: BaseModel | bytes | None = None
    profile: TransportProfile = TransportProfile.STANDARD
    authenticated: bool = True
    content_type: str = JSON


def _event_type(value: RoomEventType | str) -> str:
    return value.value if isinstance(value, RoomEventType) else value


# ==========================
# ROOM PARTICIPATION
# ==========================
def create_room(room_settings: CreateRoomSettings) -> OperationDescriptor:
    return OperationDescriptor("create_room", "POST", "createRoom", CreateRoomResult, body=room_settings)


def join_room(room_id: str) -> OperationDescriptor:
    return OperationDescriptor("join_room", "POST", "rooms/{roomId}/join", JoinRoomResult, path_params=(("roomId", room_id),))


def leave_room(room_id: str) -> OperationDescriptor:
    return OperationDescriptor("leave_room", "POST", "rooms/{roomId}/leave", LeaveRoomResult, path_params=(("roomId", room_id),))


def invite_user(room_id: str, user_id: str) -> OperationDescriptor:
    return OperationDescriptor(
        "invite_user", "POST", "rooms/{roomId}/invite", InviteMemResult,
        path_params=(("roomId", room_id),),
        body=InviteUserData(user_id=user_id),
    )


def ban_user(room_id: str, user_id: str, reason: str | None = None) -> OperationDescriptor:
    return OperationDescriptor(
        "ban_user", "POST", "rooms/{roomId}/ban", BanRoomResult,
        path_params=(("roomId", room_id),),
        body=MemberBanishment(user_id=user_id, reason=reason),
    )


# ==========================
# ALIASES & DIRECTORY
# ==========================
def resolve_room_alias(alias: str) -> OperationDescriptor:
    return OperationDescriptor(
        "resolve_room_alias", "GET", "directory/room/{roomAlias}", ResolveRoomAliasResult,
        path_params=(("roomAlias", alias),),
        authenticated=False,
    )


def put_room_alias(alias: str, room_id: str) -> OperationDescriptor:
    return OperationDescriptor(
        "put_room_alias", "PUT", "directory/room/{roomAlias}", EmptyResult,
        path_params=(("roomAlias", alias),),
        body=RoomInfo(room_id=room_id),
    )


def delete_room_alias(alias: str) -> OperationDescriptor:
    return OperationDescriptor(
        "delete_room_alias", "DELETE", "directory/room/{roomAlias}", EmptyResult,
        path_params=(("roomAlias", alias),),
    )


def public_rooms(since: str | None = None, limit: int = 20) -> OperationDescriptor:
    return OperationDescriptor(
        "public_rooms", "GET", "publicRooms", RoomBatch[DiscoveredRoom],
        query_params=(("since", since), ("limit", limit)),
        authenticated=False,
    )


def find_public_rooms(query: RoomDirectoryQuery) -> OperationDescriptor:
    return OperationDescriptor("find_public_rooms", "POST", "publicRooms", RoomBatch[DiscoveredRoom], body=query)


# ==========================
# EVENTS
# ==========================
def get_messages(
    room_id: str,
    from_token: str,
    direction: FetchDirection,
    limit: int = 100,
    to: str | None = None,
) -> OperationDescriptor:
    return OperationDescriptor(
        "get_messages", "GET", "rooms/{roomId}/messages", Chunked[RoomEvent],
        path_params=(("roomId", room_id),),
        query_params=(("from", from_token), ("dir", direction), ("limit", limit), ("to", to)),
    )


def send_message_event(
    room_id: str,
    txn_id: str,
    message: Message,
    event_type: RoomEventType | str = RoomEventType.MESSAGE,
) -> OperationDescriptor:
    return OperationDescriptor(
        "send_message_event", "PUT", "rooms/{roomId}/send/{eventType}/{txnId}", SendResult,
        path_params=(("roomId", room_id), ("eventType", _event_type(event_type)), ("txnId", txn_id)),
        body=message,
    )


def send_state_event(room_id: str, event_type: RoomEventType | str, content: BaseModel) -> OperationDescriptor:
    return OperationDescriptor(
        "send_state_event", "PUT", "rooms/{roomId}/state/{eventType}", SendResult,
        path_params=(("roomId", room_id), ("eventType", _event_type(event_type))),
        body=content,
    )


def get_event_context(room_id: str, event_id: str, limit: int = 2) -> OperationDescriptor:
    return OperationDescriptor(
        "get_event_context", "GET", "rooms/{roomId}/context/{eventId}", ContextResponse,
        path_params=(("roomId", room_id), ("eventId", event_id)),
        query_params=(("limit", limit),),
    )


def get_events(
    since: str | None,
    timeout_ms: int,
    full_state: bool = False,
    filter: str | None = None,
) -> OperationDescriptor:
    return OperationDescriptor(
        "sync", "GET", "sync", SyncResponse,
        query_params=(("since", since), ("full_state", full_state), ("timeout", timeout_ms), ("filter", filter)),
        profile=TransportProfile.LONG_POLL,
    )


# ==========================
# PROFILE
# ==========================
def update_avatar(user_id: str, avatar: AvatarUrl) -> OperationDescriptor:
    return OperationDescriptor(
        "update_avatar", "PUT", "profile/{userId}/avatar_url", EmptyResult,
        path_params=(("userId", user_id),),
        body=avatar,
    )


def get_avatar(user_id: str) -> OperationDescriptor:
    return OperationDescriptor(
        "get_avatar", "GET", "profile/{userId}/avatar_url", AvatarUrl,
        path_params=(("userId", user_id),),
        authenticated=False,
    )


def update_display_name(user_id: str, name: DisplayName) -> OperationDescriptor:
    return OperationDescriptor(
        "update_display_name", "PUT", "profile/{userId}/displayname", EmptyResult,
        path_params=(("userId", user_id),),
        body=name,
    )


def get_display_name(user_id: str) -> OperationDescriptor:
    return OperationDescriptor(
        "get_display_name", "GET", "profile/{userId}/displayname", DisplayName,
        path_params=(("userId", user_id),),
        authenticated=False,
    )


# ==========================
# MEDIA
# ==========================
def upload_media(content_type: str, data: bytes) -> OperationDescriptor:
    return OperationDescriptor(
        "upload_media", "POST", "upload", UploadResponse,
        body=data,
        profile=TransportProfile.MEDIA,
        content_type=content_type,
    )
