"""HTTP transport capability used by the client."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Protocol, runtime_checkable

import httpx

from anthropic_proxy.llm.errors import TransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HttpRequest:
    method: str
    url: str
    headers: dict[str, str]
    body: bytes | None = None


@dataclass(frozen=True)
class HttpResponse:
    status: int
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


@runtime_checkable
class Transport(Protocol):
    async def send(self, request: HttpRequest) -> HttpResponse:
        """Perform one HTTP exchange, raising TransportError on send failure."""

    async def aclose(self) -> None:
        """Release any underlying connection resources."""


class HttpxTransport:
    def __init__(
        self,
        *,
        timeout_s: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(timeout=timeout_s)

    async def send(self, request: HttpRequest) -> HttpResponse:
        try:
            response = await self._client.request(
                request.method,
                request.url,
                headers=request.headers,
                content=request.body,
            )
        except (httpx.HTTPError, httpx.InvalidURL, UnicodeEncodeError, OSError) as exc:
            logger.debug("Transport failure for %s %s: %s", request.method, request.url, exc)
            raise TransportError(str(exc) or exc.__class__.__name__) from exc
        return HttpResponse(
            status=response.status_code,
            body=response.content,
            headers=dict(response.headers),
        )

    async def aclose(self) -> None:
        await self._client.aclose()
