"""Anthropic Messages API client with retry, translation and parsing."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Protocol, runtime_checkable

from anthropic_proxy import catalog
from anthropic_proxy.llm.errors import (
    SerializationError,
    UnsupportedOperationError,
    upstream_error_from_response,
)
from anthropic_proxy.llm.parse import parse_completion_response, parse_model_list
from anthropic_proxy.llm.retry import Clock, RetryConfig, Sleep, execute_with_retry
from anthropic_proxy.llm.transport import HttpRequest, HttpResponse, HttpxTransport, Transport
from anthropic_proxy.llm.translate import build_request_body, encode_request_body
from anthropic_proxy.llm.types import CompletionRequest, CompletionResponse, ModelInfo

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.anthropic.com/v1"
DEFAULT_API_VERSION = "2023-06-01"
MODEL_SOURCES = ("live", "catalog")


@runtime_checkable
class LLMClient(Protocol):
    async def generate(
        self,
        request: CompletionRequest,
        *,
        cancel: asyncio.Event | None = None,
    ) -> CompletionResponse:
        """Execute a single completion request."""

    async def list_models(self, *, source: str = "live") -> list[ModelInfo]:
        """Return available models enriched with catalog data."""

    async def aclose(self) -> None:
        """Release any underlying client resources."""


def create_client(mode: str, **kwargs: Any) -> LLMClient:
    if mode == "mock":
        from anthropic_proxy.llm.mock import MockClient

        return MockClient(**kwargs)
    if mode == "anthropic":
        return AnthropicClient(**kwargs)
    raise ValueError(f"Unsupported LLM mode: {mode}")


class AnthropicClient:
    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        api_version: str = DEFAULT_API_VERSION,
        retry: RetryConfig | None = None,
        transport: Transport | None = None,
        timeout_s: float = 30.0,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
    ) -> None:
        if not api_key:
            raise ValueError("An Anthropic API key is required for AnthropicClient.")
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._api_version = api_version
        self._retry = (retry or RetryConfig()).validate()
        self._transport = transport or HttpxTransport(timeout_s=timeout_s)
        self._sleep = sleep
        self._clock = clock

    @property
    def retry_config(self) -> RetryConfig:
        return self._retry

    async def list_models(self, *, source: str = "live") -> list[ModelInfo]:
        if source not in MODEL_SOURCES:
            raise ValueError(f"Unsupported models source: {source}")
        if source == "catalog":
            logger.debug("Listing models from the static catalog")
            return catalog.catalog_models()

        logger.info("Listing available Anthropic models")
        request = HttpRequest(
            method="GET",
            url=f"{self._base_url}/models",
            headers={
                "x-api-key": self._api_key,
                "anthropic-version": self._api_version,
                "content-type": "application/json",
            },
        )
        response = await self._send(request)
        if response.status != 200:
            raise upstream_error_from_response(response)
        return [catalog.enrich(model_id, name) for model_id, name in parse_model_list(response.body)]

    async def generate(
        self,
        request: CompletionRequest,
        *,
        cancel: asyncio.Event | None = None,
    ) -> CompletionResponse:
        if request.stream or request.additional_params.get("stream"):
            raise UnsupportedOperationError("Streaming responses are not supported.")
        logger.info("Generating completion with model %s", request.model)

        body, overrides = build_request_body(request)
        if overrides:
            logger.debug("Request overrides: %s", overrides)
        http_request = HttpRequest(
            method="POST",
            url=f"{self._base_url}/messages",
            headers={
                "content-type": "application/json",
                "x-api-key": self._api_key,
                "anthropic-version": _header_value(
                    "anthropic_version", request.anthropic_version or self._api_version
                ),
            },
            body=encode_request_body(body),
        )
        response = await self._send(http_request, cancel=cancel)
        if response.status != 200:
            raise upstream_error_from_response(response)
        completion = parse_completion_response(response.body)
        logger.debug(
            "Completion %s stop_reason=%s usage=%s",
            completion.id,
            str(completion.stop_reason),
            completion.usage.to_dict(),
        )
        return completion

    async def stream(self, request: CompletionRequest) -> CompletionResponse:
        raise UnsupportedOperationError("Streaming responses are not supported.")

    async def aclose(self) -> None:
        await self._transport.aclose()

    async def __aenter__(self) -> "AnthropicClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def _send(
        self,
        request: HttpRequest,
        *,
        cancel: asyncio.Event | None = None,
    ) -> HttpResponse:
        async def operation() -> HttpResponse:
            return await self._transport.send(request)

        return await execute_with_retry(
            operation,
            self._retry,
            sleep=self._sleep,
            clock=self._clock,
            cancel=cancel,
        )


def _header_value(name: str, value: str) -> str:
    if not value.isascii() or any(ord(char) < 0x20 or ord(char) == 0x7F for char in value):
        raise SerializationError(f"{name} must be printable ASCII to be sent as a header: {value!r}")
    return value
