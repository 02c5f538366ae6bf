"""
MODULE OVERVIEW:
The strictly typed request and response bodies exchanged with the homeserver,
powered by Pydantic v2.

WHAT IS HAPPENING HERE:
These models are the codec. The request builder serializes request models with
`model_dump_json`, and the response mapper validates raw bytes against the
response model an operation declares. Unknown fields are ignored so a newer
server that adds keys doesn't break decoding; a missing required key does,
and that is reported as a protocol error.
"""
from enum import Enum
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class FetchDirection(str, Enum):
    BACKWARD = "b"
    FORWARD = "f"


class RoomEventType(str, Enum):
    MESSAGE = "m.room.message"
    NAME = "m.room.name"
    TOPIC = "m.room.topic"
    AVATAR = "m.room.avatar"
    CANON_ALIAS = "m.room.canonical_alias"
    MEMBER = "m.room.member"
    JOIN_RULES = "m.room.join_rules"
    POWER_LEVELS = "m.room.power_levels"


# ==========================
# AUTH
# ==========================
class Credentials(BaseModel):
    """What a successful login leaves behind. Never mutated afterwards."""

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    server_base: str = Field(..., min_length=1)


class UserPassword(WireModel):
    type: Literal["m.login.password"] = "m.login.password"
    # localpart only, without @ or :server
    user: str
    password: str


class AuthedUser(WireModel):
    access_token: str
    user_id: str


# ==========================
# ROOM ADMIN
# ==========================
class CreateRoomSettings(WireModel):
    room_alias_name: str | None = None
    visibility: Literal["public", "private"] = "private"
    name: str | None = None
    topic: str | None = None
    invite: list[str] | None = None


class CreateRoomResult(WireModel):
    room_id: str


class JoinRoomResult(WireModel):
    room_id: str


class EmptyResult(WireModel):
    pass


class LeaveRoomResult(EmptyResult):
    pass


class InviteMemResult(EmptyResult):
    pass


class BanRoomResult(EmptyResult):
    pass


class InviteUserData(WireModel):
    user_id: str


class MemberBanishment(WireModel):
    user_id: str
    reason: str | None = None


# ==========================
# ALIASES & DIRECTORY
# ==========================
class RoomInfo(WireModel):
    room_id: str


class ResolveRoomAliasResult(WireModel):
    room_id: str
    servers: list[str] = Field(default_factory=list)


class DiscoveredRoom(WireModel):
    room_id: str
    aliases: list[str] = Field(default_factory=list)
    canonical_alias: str | None = None
    name: str | None = None
    topic: str | None = None
    num_joined_members: int = 0
    world_readable: bool = False
    guest_can_join: bool = False
    avatar_url: str | None = None


class RoomBatch(WireModel, Generic[T]):
    chunk: list[T] = Field(default_factory=list)
    next_batch: str | None = None
    prev_batch: str | None = None
    total_room_count_estimate: int | None = None


class DirectoryFilter(WireModel):
    generic_search_term: str | None = None


class RoomDirectoryQuery(WireModel):
    filter: DirectoryFilter | None = None
    limit: int | None = None
    since: str | None = None


# ==========================
# EVENTS
# ==========================
class RoomEvent(WireModel):
    event_id: str
    type: str
    sender: str
    origin_server_ts: int = 0
    content: dict[str, Any] = Field(default_factory=dict)
    state_key: str | None = None
    unsigned: dict[str, Any] | None = None


class Chunked(WireModel, Generic[T]):
    chunk: list[T] = Field(default_factory=list)
    start: str | None = None
    end: str | None = None


class Message(WireModel):
    """`m.room.message` content. Extra keys (formatted_body, info, url) pass through."""

    model_config = ConfigDict(extra="allow")

    msgtype: str = "m.text"
    body: str


class SendResult(WireModel):
    event_id: str


class ContextResponse(WireModel):
    start: str | None = None
    end: str | None = None
    event: RoomEvent | None = None
    events_before: list[RoomEvent] = Field(default_factory=list)
    events_after: list[RoomEvent] = Field(default_factory=list)
    state: list[RoomEvent] = Field(default_factory=list)


class RoomNameContent(WireModel):
    name: str


class RoomAvatarContent(WireModel):
    url: str


class RoomCanonAliasContent(WireModel):
    alias: str


# ==========================
# SYNC
# ==========================
class EventList(WireModel):
    events: list[dict[str, Any]] = Field(default_factory=list)


class Timeline(WireModel):
    events: list[dict[str, Any]] = Field(default_factory=list)
    limited: bool = False
    prev_batch: str | None = None


class JoinedRoom(WireModel):
    timeline: Timeline = Field(default_factory=Timeline)
    state: EventList = Field(default_factory=EventList)
    ephemeral: EventList = Field(default_factory=EventList)
    account_data: EventList = Field(default_factory=EventList)


class SyncRooms(WireModel):
    join: dict[str, JoinedRoom] = Field(default_factory=dict)
    invite: dict[str, dict[str, Any]] = Field(default_factory=dict)
    leave: dict[str, JoinedRoom] = Field(default_factory=dict)


class SyncResponse(WireModel):
    next_batch: str
    rooms: SyncRooms = Field(default_factory=SyncRooms)
    presence: EventList = Field(default_factory=EventList)
    account_data: EventList = Field(default_factory=EventList)

    def event_count(self) -> int:
        count = len(self.presence.events) + len(self.account_data.events)
        for room in list(self.rooms.join.values()) + list(self.rooms.leave.values()):
            count += len(room.timeline.events) + len(room.state.events)
        return count + len(self.rooms.invite)

    @property
    def is_empty(self) -> bool:
        return self.event_count() == 0


# ==========================
# PROFILE & MEDIA
# ==========================
class AvatarUrl(WireModel):
    avatar_url: str | None = None


class DisplayName(WireModel):
    displayname: str | None = None


class UploadResponse(WireModel):
    content_uri: str


class MatrixErrorBody(WireModel):
    errcode: str | None = None
    error: str | None = None
    retry_after_ms: int | None = None
