"""
Error taxonomy and the upstream status / transport error -> outbound error table.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, NamedTuple

import httpx


class ErrorKind(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_ERROR = "AUTH_ERROR"
    RATE_LIMITED = "RATE_LIMITED"
    UPSTREAM_BAD_REQUEST = "UPSTREAM_BAD_REQUEST"
    TIMEOUT = "TIMEOUT"
    UPSTREAM_UNREACHABLE = "UPSTREAM_UNREACHABLE"
    UNEXPECTED = "UNEXPECTED"


class RejectReason(str, Enum):
    """Why a request was rejected locally, before any upstream call."""

    EMPTY_PROMPT = "EMPTY_PROMPT"
    PROMPT_TOO_LONG = "PROMPT_TOO_LONG"
    UNSUPPORTED_MODEL = "UNSUPPORTED_MODEL"
    UNSUPPORTED_SIZE = "UNSUPPORTED_SIZE"
    IMAGE_COUNT_OUT_OF_RANGE = "IMAGE_COUNT_OUT_OF_RANGE"
    MISSING_URL = "MISSING_URL"
    INVALID_URL = "INVALID_URL"
    MALFORMED_BODY = "MALFORMED_BODY"


class GatewayError(Exception):
    """Failure surfaced to the caller as a structured error response."""

    def __init__(
        self,
        kind: ErrorKind,
        status_code: int,
        message: str,
        *,
        details: Any = None,
        reason: RejectReason | None = None,
    ) -> None:
        self.kind = kind
        self.status_code = status_code
        self.message = message
        self.details = details
        self.reason = reason
        super().__init__(message)


class RequestRejected(GatewayError):
    """Local validation failure. Always 400; never reaches the upstream."""

    def __init__(self, reason: RejectReason, message: str, *, details: Any = None) -> None:
        super().__init__(
            ErrorKind.VALIDATION_ERROR,
            400,
            message,
            details=details,
            reason=reason,
        )


class MissingCredentialError(GatewayError):
    def __init__(self) -> None:
        super().__init__(
            ErrorKind.AUTH_ERROR,
            500,
            "Server misconfigured: upstream API key not found.",
        )


class OutboundError(NamedTuple):
    status_code: int
    kind: ErrorKind
    message: str


UPSTREAM_STATUS_MAP: dict[int, OutboundError] = {
    400: OutboundError(400, ErrorKind.UPSTREAM_BAD_REQUEST, "Invalid request parameters."),
    401: OutboundError(
        401,
        ErrorKind.AUTH_ERROR,
        "API authentication failed. Please check your API key configuration.",
    ),
    429: OutboundError(
        429,
        ErrorKind.RATE_LIMITED,
        "Rate limit exceeded. Please wait before making another request.",
    ),
}

UNMAPPED_UPSTREAM_STATUS = OutboundError(
    500, ErrorKind.UNEXPECTED, "Image generation failed due to server error."
)

TIMEOUT_ERROR = OutboundError(
    408, ErrorKind.TIMEOUT, "Request timeout. Image generation took too long. Please try again."
)
UNREACHABLE_ERROR = OutboundError(
    503,
    ErrorKind.UPSTREAM_UNREACHABLE,
    "Unable to connect to image generation service. Please try again later.",
)
UNEXPECTED_ERROR = OutboundError(500, ErrorKind.UNEXPECTED, "Internal server error.")


def upstream_detail(body: Any) -> str | None:
    """Pull a human-readable message out of an upstream error body, if any."""
    if isinstance(body, str):
        return body.strip() or None
    if not isinstance(body, dict):
        return None
    for key in ("error", "detail", "message"):
        value = body.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
        if isinstance(value, dict):
            nested = value.get("message")
            if isinstance(nested, str) and nested.strip():
                return nested.strip()
    return None


def map_upstream_status(status_code: int, body: Any = None) -> GatewayError:
    """Map a non-2xx upstream status to the outbound error."""
    outbound = UPSTREAM_STATUS_MAP.get(status_code, UNMAPPED_UPSTREAM_STATUS)
    message = outbound.message
    details: Any = None
    if outbound.kind is ErrorKind.UPSTREAM_BAD_REQUEST:
        message = upstream_detail(body) or message
    elif outbound.kind is ErrorKind.UNEXPECTED:
        details = {"upstream_status": status_code}
    return GatewayError(outbound.kind, outbound.status_code, message, details=details)


def classify_transport_error(exc: BaseException) -> OutboundError:
    # TimeoutException covers ConnectTimeout, so it must be checked before NetworkError.
    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError)):
        return TIMEOUT_ERROR
    # RemoteProtocolError: the upstream accepted the connection and dropped it unanswered.
    if isinstance(exc, (httpx.NetworkError, httpx.RemoteProtocolError)):
        return UNREACHABLE_ERROR
    return UNEXPECTED_ERROR


def map_transport_error(exc: BaseException, *, expose_detail: bool = False) -> GatewayError:
    """Map a local transport failure (no upstream status) to the outbound error."""
    outbound = classify_transport_error(exc)
    details = None
    if outbound.kind is ErrorKind.UNEXPECTED:
        details = str(exc) if expose_detail else "Internal server error"
    return GatewayError(outbound.kind, outbound.status_code, outbound.message, details=details)
