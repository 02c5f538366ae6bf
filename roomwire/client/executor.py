"""
The single generic call path: build, send on the descriptor's profile, map.
"""
import httpx
from loguru import logger

from roomwire.client.operations import OperationDescriptor
from roomwire.client.request_builder import PreparedRequest, RequestBuilder
from roomwire.client.response_mapper import map_exception, map_response
from roomwire.client.transport import TransportProvider
from roomwire.shared.models import Credentials
from roomwire.shared.result import OutcomeResult, client_failure


class Executor:
    def __init__(self, provider: TransportProvider, builder: RequestBuilder | None = None):
        self.provider = provider
        self.builder = builder or RequestBuilder.for_provider(provider)

    async def send_prepared(self, prepared: PreparedRequest, expected_type) -> OutcomeResult:
        handle = self.provider.base(prepared.profile)
        if handle.max_body_bytes is not None and prepared.content is not None \
                and len(prepared.content) > handle.max_body_bytes:
            return client_failure(
                f"body of {len(prepared.content)} bytes exceeds the {handle.max_body_bytes} byte limit",
                status=413,
                errcode="M_TOO_LARGE",
            )
        try:
            response = await handle.send(prepared.method, prepared.url, prepared.headers, prepared.content)
        except httpx.HTTPError as e:
            return map_exception(e)
        return map_response(response, expected_type)

    async def execute(self, descriptor: OperationDescriptor, credentials: Credentials | None) -> OutcomeResult:
        prepared = self.builder.build(descriptor, credentials)
        result = await self.send_prepared(prepared, descriptor.response_type)
        if not result.ok:
            logger.debug(f"op={descriptor.name} outcome=failure {result.error}")
        return result
