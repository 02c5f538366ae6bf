"""
MODULE OVERVIEW:
The Request Builder: descriptor + credentials in, fully-formed request out.

WHAT IS HAPPENING HERE:
Building is pure. We pick the base URL from the descriptor's profile, fill the
path template with URL-escaped values (room ids like `!abc:example.org`
contain characters that must not leak into the path), append query parameters
in their declared order while dropping the ones that are None, attach the
access token, and serialize the body through its Pydantic model.
No socket is touched until the transport handle sends the result.
"""
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import BaseModel

from roomwire.client.operations import JSON, OperationDescriptor
from roomwire.client.transport import TransportProfile, TransportProvider, validate_server_base
from roomwire.shared.config import Settings, settings as default_settings
from roomwire.shared.errors import ConfigurationError
from roomwire.shared.models import Credentials, UserPassword

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


@dataclass(frozen=True)
class PreparedRequest:
    method: str
    url: httpx.URL
    profile: TransportProfile
    headers: dict[str, str] = field(default_factory=dict)
    content: bytes | None = None


def render_path(template: str, path_params: tuple[tuple[str, str], ...]) -> str:
    values = dict(path_params)

    def substitute(match: re.Match) -> str:
        name = match.group(1)
        if name not in values:
            raise ValueError(f"path template '{template}' needs a value for '{name}'")
        return quote(str(values[name]), safe="")

    return _PLACEHOLDER.sub(substitute, template)


def render_query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def encode_body(body: BaseModel | bytes | None) -> bytes | None:
    if body is None:
        return None
    if isinstance(body, (bytes, bytearray)):
        return bytes(body)
    return body.model_dump_json(exclude_none=True, by_alias=True).encode("utf-8")


class RequestBuilder:
    def __init__(
        self,
        api_url: httpx.URL,
        media_url: httpx.URL,
        origin: httpx.URL,
        settings: Settings | None = None,
    ):
        self.settings = settings or default_settings
        self._bases = {
            TransportProfile.STANDARD: api_url,
            TransportProfile.LONG_POLL: api_url,
            TransportProfile.MEDIA: media_url,
        }
        self.origin = origin

    @classmethod
    def for_provider(cls, provider: TransportProvider) -> "RequestBuilder":
        return cls(provider.api_url, provider.media_url, provider.origin, provider.settings)

    def build(self, descriptor: OperationDescriptor, credentials: Credentials | None) -> PreparedRequest:
        base = str(self._bases[descriptor.profile])
        path = render_path(descriptor.path_template, descriptor.path_params)

        params = [(name, render_query_value(value)) for name, value in descriptor.query_params if value is not None]
        headers: dict[str, str] = {}

        if descriptor.authenticated:
            if credentials is None:
                raise ConfigurationError(f"operation {descriptor.name} requires credentials")
            if self.settings.AUTH_MODE == "header":
                headers["Authorization"] = f"Bearer {credentials.access_token}"
            else:
                params.append(("access_token", credentials.access_token))

        content = encode_body(descriptor.body)
        if content is not None:
            headers["Content-Type"] = descriptor.content_type

        url = httpx.URL(base + path, params=params) if params else httpx.URL(base + path)
        return PreparedRequest(descriptor.method, url, descriptor.profile, headers, content)

    def build_login(self, user_password: UserPassword) -> PreparedRequest:
        return build_login(user_password, str(self.origin), self.settings)


def build_login(user_password: UserPassword, server_base: str, settings: Settings | None = None) -> PreparedRequest:
    """Login targets the bare origin and carries no token."""
    settings = settings or default_settings
    origin = validate_server_base(server_base)
    url = origin.copy_with(path=origin.path.rstrip("/") + "/" + settings.LOGIN_PATH.strip("/"))
    return PreparedRequest(
        "POST",
        url,
        TransportProfile.STANDARD,
        {"Content-Type": JSON},
        encode_body(user_password),
    )
