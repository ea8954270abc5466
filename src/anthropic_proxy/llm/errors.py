"""Error kinds shared by every layer of the proxy.

Callers only need to branch on four kinds: transport, serialization,
upstream and response_shape. Errors carry no retry state.
"""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from anthropic_proxy.llm.transport import HttpResponse

RETRYABLE_STATUSES = frozenset({429, 502, 503, 504, 529})


class ProxyError(Exception):
    kind = "proxy"
    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class TransportError(ProxyError):
    """Sending the request or connecting to the upstream failed."""

    kind = "transport"
    retryable = True

    def __str__(self) -> str:
        return f"HTTP error: {self.message}"


class RetryCancelledError(TransportError):
    retryable = False

    def __str__(self) -> str:
        return f"Request cancelled: {self.message}"


class SerializationError(ProxyError):
    """Outbound or inbound JSON could not be encoded/decoded."""

    kind = "serialization"

    def __str__(self) -> str:
        return f"JSON error: {self.message}"


class UnsupportedOperationError(SerializationError):
    def __str__(self) -> str:
        return f"Unsupported operation: {self.message}"


class UpstreamError(ProxyError):
    """Final non-200 response from the upstream API."""

    kind = "upstream"

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.retryable = status in RETRYABLE_STATUSES

    def __str__(self) -> str:
        return f"API error ({self.status}): {self.message}"

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["status"] = self.status
        return payload


class ResponseShapeError(ProxyError):
    """Well-formed JSON that is missing a required field or has the wrong type."""

    kind = "response_shape"

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field

    def __str__(self) -> str:
        return f"Invalid response: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        if self.field is not None:
            payload["field"] = self.field
        return payload


def upstream_error_from_response(response: "HttpResponse") -> UpstreamError:
    return UpstreamError(status=response.status, message=response.text)
