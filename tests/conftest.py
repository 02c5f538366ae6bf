import json

import httpx
import pytest

from roomwire.client.facade import RoomClient
from roomwire.client.transport import TransportProvider
from roomwire.shared.config import Settings
from roomwire.shared.models import Credentials

SERVER = "https://hs.example.org"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        SERVER_BASE=SERVER,
        REQUEST_TIMEOUT_S=5.0,
        LONG_POLL_TIMEOUT_S=30.0,
        LONG_POLL_GRACE_S=10.0,
        MEDIA_MAX_UPLOAD_BYTES=1024,
        SYNC_BACKOFF_BASE_S=0.001,
        SYNC_BACKOFF_MAX_S=0.002,
    )


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(access_token="secret-token", user_id="@alice:hs.example.org", server_base=SERVER)


class Recorder:
    """Collects every request a MockTransport handler sees."""

    def __init__(self, responder):
        self.requests: list[httpx.Request] = []
        self._responder = responder

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responder(request)

    def json_bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests if r.content]


@pytest.fixture
def make_client(settings, credentials):
    """Build a RoomClient whose HTTP traffic goes to `responder(request) -> httpx.Response`."""
    created: list[RoomClient] = []

    def factory(responder):
        recorder = Recorder(responder)
        provider = TransportProvider(SERVER, settings, transport=httpx.MockTransport(recorder))
        client = RoomClient(credentials, provider=provider)
        created.append(client)
        return client, recorder

    return factory
