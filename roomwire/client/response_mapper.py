"""
MODULE OVERVIEW:
The Response Mapper: raw HTTPX outcome in, `Success` or `Failure` out.

WHAT IS HAPPENING HERE:
There are exactly four ways a call can end, and each one gets one tag:
  2xx + decodable body     -> Success(model)
  2xx + undecodable body   -> Failure(protocol)   wrong server version, never retry
  4xx                      -> Failure(client)     our fault; 429 alone is retryable
  5xx / network / timeout  -> Failure(transient)  retryable
Nothing escapes this module as an exception; every call site gets a value.
"""
from functools import lru_cache
from typing import Any

import httpx
from loguru import logger
from pydantic import TypeAdapter, ValidationError

from roomwire.shared.errors import ErrorDetail, ErrorKind
from roomwire.shared.models import MatrixErrorBody
from roomwire.shared.result import Failure, OutcomeResult, Success


@lru_cache(maxsize=None)
def _adapter(expected_type: Any) -> TypeAdapter:
    return TypeAdapter(expected_type)


def _error_body(response: httpx.Response) -> MatrixErrorBody:
    try:
        return MatrixErrorBody.model_validate_json(response.content or b"{}")
    except ValidationError:
        return MatrixErrorBody()


def _reason(response: httpx.Response) -> str:
    return response.reason_phrase or f"HTTP {response.status_code}"


def map_response(response: httpx.Response, expected_type: Any) -> OutcomeResult:
    status = response.status_code

    if 200 <= status < 300:
        try:
            value = _adapter(expected_type).validate_json(response.content or b"{}")
        except ValidationError as e:
            detail = ErrorDetail(
                kind=ErrorKind.PROTOCOL,
                status=status,
                message=f"response does not match {getattr(expected_type, '__name__', expected_type)}: "
                        f"{e.error_count()} error(s)",
            )
            logger.error(f"mapper=protocol_error {detail}")
            return Failure(detail)
        return Success(value)

    if 400 <= status < 500:
        body = _error_body(response)
        detail = ErrorDetail(
            kind=ErrorKind.CLIENT,
            status=status,
            errcode=body.errcode,
            message=body.error or _reason(response),
            retryable=status == 429,
            retry_after_ms=body.retry_after_ms,
        )
        logger.info(f"mapper=client_error {detail}")
        return Failure(detail)

    if status >= 500:
        body = _error_body(response)
        detail = ErrorDetail(
            kind=ErrorKind.TRANSIENT,
            status=status,
            errcode=body.errcode,
            message=body.error or _reason(response),
            retryable=True,
        )
        logger.warning(f"mapper=server_error {detail}")
        return Failure(detail)

    # 1xx/3xx should have been consumed by the transport
    detail = ErrorDetail(kind=ErrorKind.PROTOCOL, status=status, message=f"unexpected status {status}")
    logger.error(f"mapper=protocol_error {detail}")
    return Failure(detail)


def map_exception(exc: httpx.HTTPError) -> Failure:
    """Connection refused, DNS failure, timeouts: nothing came back from the server."""
    if isinstance(exc, httpx.TimeoutException):
        message = f"timed out: {type(exc).__name__}"
    else:
        message = f"{type(exc).__name__}: {exc}"
    detail = ErrorDetail(kind=ErrorKind.TRANSIENT, message=message, retryable=True)
    logger.warning(f"mapper=transport_error {detail}")
    return Failure(detail)
