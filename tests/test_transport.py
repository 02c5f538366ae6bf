import sys

import httpx
import pytest
from loguru import logger

from roomwire.client import transport as transport_module
from roomwire.client.transport import TransportProfile, TransportProvider
from roomwire.shared.config import Settings
from roomwire.shared.errors import ConfigurationError


def test_long_poll_timeout_exceeds_server_window(settings):
    provider = TransportProvider("https://hs.example.org", settings)
    long_poll = provider.base(TransportProfile.LONG_POLL)
    assert long_poll.timeout_s > settings.LONG_POLL_TIMEOUT_S
    assert long_poll.timeout_s == settings.REQUEST_TIMEOUT_S + settings.LONG_POLL_TIMEOUT_S + settings.LONG_POLL_GRACE_S


def test_standard_timeout_ignores_long_poll_settings():
    a = TransportProvider("https://hs.example.org", Settings(REQUEST_TIMEOUT_S=7.0, LONG_POLL_TIMEOUT_S=30.0))
    b = TransportProvider("https://hs.example.org", Settings(REQUEST_TIMEOUT_S=7.0, LONG_POLL_TIMEOUT_S=300.0))
    assert a.base(TransportProfile.STANDARD).timeout_s == 7.0
    assert b.base(TransportProfile.STANDARD).timeout_s == 7.0
    assert b.base(TransportProfile.LONG_POLL).timeout_s > 300.0


def test_profiles_share_one_pool_and_differ_in_base_url(settings):
    provider = TransportProvider("https://hs.example.org", settings)
    standard = provider.base(TransportProfile.STANDARD)
    long_poll = provider.base(TransportProfile.LONG_POLL)
    media = provider.base(TransportProfile.MEDIA)

    assert standard.client is long_poll.client is media.client
    assert str(standard.base_url) == "https://hs.example.org/_matrix/client/r0/"
    assert long_poll.base_url == standard.base_url
    assert str(media.base_url) == "https://hs.example.org/_matrix/media/r0/"
    assert media.max_body_bytes == settings.MEDIA_MAX_UPLOAD_BYTES
    assert standard.max_body_bytes is None


def test_profile_lookup_accepts_plain_strings(settings):
    provider = TransportProvider("https://hs.example.org", settings)
    assert provider.base("long_poll").profile is TransportProfile.LONG_POLL


def test_server_under_a_path_prefix_keeps_the_prefix(settings):
    provider = TransportProvider("https://example.org/matrix", settings)
    assert str(provider.api_url) == "https://example.org/matrix/_matrix/client/r0/"


@pytest.mark.parametrize("bad", ["hs.example.org", "ftp://hs.example.org", "https://", "https://hs.example.org/?x=1"])
def test_malformed_server_url_fails_at_construction(bad, settings):
    with pytest.raises(ConfigurationError):
        TransportProvider(bad, settings)


@pytest.mark.asyncio
async def test_request_carries_the_profile_timeout(settings):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.extensions["timeout"]["read"])
        return httpx.Response(200, json={})

    provider = TransportProvider("https://hs.example.org", settings, transport=httpx.MockTransport(handler))
    async with provider:
        for profile in (TransportProfile.STANDARD, TransportProfile.LONG_POLL):
            handle = provider.base(profile)
            await handle.send("GET", handle.base_url.join("sync"), {}, None)
    assert seen == [5.0, 45.0]
    assert provider.closed


@pytest.fixture
def info_only_logging():
    logger.remove()
    logger.add(sys.stderr, level="INFO")
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.mark.asyncio
async def test_request_url_is_only_rendered_when_debug_is_enabled(settings, monkeypatch, info_only_logging):
    rendered = []

    def counting_redact(url: str) -> str:
        rendered.append(url)
        return url

    monkeypatch.setattr(transport_module, "redact_token", counting_redact)
    provider = TransportProvider("https://hs.example.org", settings,
                                 transport=httpx.MockTransport(lambda r: httpx.Response(200, json={})))
    async with provider:
        handle = provider.base(TransportProfile.STANDARD)
        await handle.send("GET", handle.base_url.join("sync?access_token=secret"), {}, None)
    assert rendered == []


@pytest.mark.asyncio
async def test_debug_log_hides_the_access_token(settings):
    lines: list[str] = []
    sink_id = logger.add(lines.append, level="DEBUG", format="{message}")
    try:
        provider = TransportProvider("https://hs.example.org", settings,
                                     transport=httpx.MockTransport(lambda r: httpx.Response(200, json={})))
        async with provider:
            handle = provider.base(TransportProfile.STANDARD)
            await handle.send("GET", handle.base_url.join("sync?access_token=secret"), {}, None)
    finally:
        logger.remove(sink_id)
    sent = [line for line in lines if "profile=standard" in line]
    assert sent and "access_token=<redacted>" in sent[0]
    assert not any("secret" in line for line in lines)
