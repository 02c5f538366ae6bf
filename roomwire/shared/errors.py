"""
MODULE OVERVIEW:
The error taxonomy shared by every layer of the client.

WHAT IS HAPPENING HERE:
Only one kind of problem is raised as an exception: `ConfigurationError`, and
only while objects are being constructed (bad server URL, no credentials).
Everything that can go wrong during an actual call, a 404, a 502, a refused
connection, a body we can't decode, travels back as an `ErrorDetail` inside a
`Failure` value. Callers branch on `kind` and `retryable` instead of writing
try/except around every request.
"""
from enum import Enum

from pydantic import BaseModel, ConfigDict


class ConfigurationError(Exception):
    """Fatal setup problem. Raised at construction time, never per call."""


class ErrorKind(str, Enum):
    CLIENT = "client"        # 4xx: the request itself was wrong or not allowed
    TRANSIENT = "transient"  # network failure, timeout, 5xx
    PROTOCOL = "protocol"    # the response didn't have the shape we expected


class ErrorDetail(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    message: str
    status: int | None = None
    errcode: str | None = None
    retryable: bool = False
    retry_after_ms: int | None = None

    @property
    def is_client_fault(self) -> bool:
        return self.kind is ErrorKind.CLIENT

    @property
    def is_auth_revoked(self) -> bool:
        return self.status in (401, 403)

    def __str__(self) -> str:
        parts = [f"kind={self.kind.value}"]
        if self.status is not None:
            parts.append(f"status={self.status}")
        if self.errcode:
            parts.append(f"errcode={self.errcode}")
        parts.append(f"message='{self.message}'")
        return " ".join(parts)


class TerminalSyncError(Exception):
    """
    Handed to the sync consumer when the loop stops for good, e.g. the access
    token was revoked. The owner should re-authenticate rather than restart blindly.
    """

    def __init__(self, detail: ErrorDetail):
        super().__init__(str(detail))
        self.detail = detail
