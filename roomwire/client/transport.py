"""
MODULE OVERVIEW:
The Transport Provider: one pooled HTTPX client, three timeout/base-URL profiles.

WHAT IS HAPPENING HERE:
Ordinary calls, the /sync long-poll and media uploads all go through the same
`httpx.AsyncClient`, so they share keep-alive connections and TLS sessions.
What differs per profile is only the base URL and the timeout, and HTTPX lets
us override the timeout per request without touching the pool.

Notice the long-poll timeout is the standard timeout plus the server's hold
window plus a grace period (Server=30s, Client=50s by default). Each in-flight
request occupies its own pooled connection, so a /sync parked on the server
never blocks a short call issued meanwhile.
"""
from dataclasses import dataclass
from enum import Enum

import httpx
from loguru import logger

from roomwire.shared.config import Settings, settings as default_settings
from roomwire.shared.errors import ConfigurationError
from roomwire.shared.log import redact_token


class TransportProfile(str, Enum):
    STANDARD = "standard"
    LONG_POLL = "long_poll"
    MEDIA = "media"


def validate_server_base(server_base: str) -> httpx.URL:
    """Parse the homeserver address or fail fast with a ConfigurationError."""
    try:
        url = httpx.URL(server_base)
    except (httpx.InvalidURL, TypeError) as e:
        raise ConfigurationError(f"invalid server url '{server_base}': {e}") from e
    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigurationError(f"server url must be http(s)://host[:port], got '{server_base}'")
    if url.query or url.fragment:
        raise ConfigurationError(f"server url must not carry a query or fragment, got '{server_base}'")
    return url


def _join(base: httpx.URL, path: str) -> httpx.URL:
    prefix = base.path.rstrip("/")
    suffix = path.strip("/")
    return base.copy_with(path=f"{prefix}/{suffix}/" if suffix else f"{prefix}/")


@dataclass(frozen=True)
class TransportHandle:
    """One timeout policy + base URL bound to the shared client."""

    profile: TransportProfile
    base_url: httpx.URL
    timeout: httpx.Timeout
    client: httpx.AsyncClient
    max_body_bytes: int | None = None

    @property
    def timeout_s(self) -> float:
        return self.timeout.read

    async def send(self, method: str, url: httpx.URL, headers: dict[str, str], content: bytes | None) -> httpx.Response:
        request = self.client.build_request(method, url, headers=headers, content=content, timeout=self.timeout)
        logger.opt(lazy=True).debug(
            "profile={} method={} url={}",
            lambda: self.profile.value,
            lambda: method,
            lambda: redact_token(str(url)),
        )
        return await self.client.send(request)


class TransportProvider:
    def __init__(
        self,
        server_base: str | None = None,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or default_settings
        self.origin = validate_server_base(server_base or self.settings.SERVER_BASE)
        self.api_url = _join(self.origin, self.settings.API_PATH)
        self.media_url = _join(self.origin, self.settings.MEDIA_PATH)

        limits = httpx.Limits(
            max_connections=self.settings.MAX_CONNECTIONS,
            max_keepalive_connections=self.settings.MAX_KEEPALIVE,
        )
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.settings.REQUEST_TIMEOUT_S),
            limits=limits,
            transport=transport,
        )
        self._handles = {
            TransportProfile.STANDARD: TransportHandle(
                TransportProfile.STANDARD, self.api_url, httpx.Timeout(self.settings.REQUEST_TIMEOUT_S), self.client
            ),
            TransportProfile.LONG_POLL: TransportHandle(
                TransportProfile.LONG_POLL, self.api_url, httpx.Timeout(self.long_poll_timeout_s), self.client
            ),
            TransportProfile.MEDIA: TransportHandle(
                TransportProfile.MEDIA,
                self.media_url,
                httpx.Timeout(self.settings.MEDIA_TIMEOUT_S),
                self.client,
                max_body_bytes=self.settings.MEDIA_MAX_UPLOAD_BYTES,
            ),
        }
        logger.info(
            f"transport=ready origin={self.origin} standard_timeout_s={self.settings.REQUEST_TIMEOUT_S} "
            f"long_poll_timeout_s={self.long_poll_timeout_s}"
        )

    @property
    def long_poll_timeout_s(self) -> float:
        s = self.settings
        return s.REQUEST_TIMEOUT_S + s.LONG_POLL_TIMEOUT_S + s.LONG_POLL_GRACE_S

    def base(self, profile: TransportProfile) -> TransportHandle:
        return self._handles[TransportProfile(profile)]

    @property
    def closed(self) -> bool:
        return self.client.is_closed

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "TransportProvider":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
