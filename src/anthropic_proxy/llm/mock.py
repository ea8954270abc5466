"""Mock client for offline testing."""

from __future__ import annotations

import asyncio
import hashlib
from typing import Any

from anthropic_proxy import catalog
from anthropic_proxy.llm.client import MODEL_SOURCES
from anthropic_proxy.llm.errors import TransportError, UnsupportedOperationError
from anthropic_proxy.llm.translate import build_request_body
from anthropic_proxy.llm.types import (
    CompletionRequest,
    CompletionResponse,
    ModelInfo,
    StopReason,
    Text,
    Usage,
)


class MockClient:
    def __init__(
        self,
        *,
        latency_ms: int = 0,
        error_rate: float = 0.0,
        **_: Any,
    ) -> None:
        self._latency_ms = latency_ms
        self._error_rate = error_rate

    async def generate(
        self,
        request: CompletionRequest,
        *,
        cancel: asyncio.Event | None = None,
    ) -> CompletionResponse:
        if request.stream or request.additional_params.get("stream"):
            raise UnsupportedOperationError("Streaming responses are not supported.")
        body, _overrides = build_request_body(request)
        model = str(body.get("model", request.model))
        seed = _stable_seed(body)
        if self._error_rate > 0 and seed[2] < int(self._error_rate * 255):
            raise TransportError("MockClient simulated transient error.")
        if self._latency_ms:
            await asyncio.sleep(self._latency_ms / 1000.0)

        text = _mock_text(seed, model)
        return CompletionResponse(
            id=f"msg_mock_{seed.hex()[:16]}",
            model=model,
            blocks=(Text(text=text),),
            stop_reason=StopReason.END_TURN,
            usage=_mock_usage(body, text),
        )

    async def list_models(self, *, source: str = "live") -> list[ModelInfo]:
        if source not in MODEL_SOURCES:
            raise ValueError(f"Unsupported models source: {source}")
        return catalog.catalog_models()

    async def aclose(self) -> None:
        return


def _stable_seed(body: dict[str, Any]) -> bytes:
    hasher = hashlib.sha256()
    hasher.update(str(body.get("model")).encode("utf-8"))
    for message in body.get("messages") or []:
        hasher.update(str(message).encode("utf-8"))
    if body.get("system") is not None:
        hasher.update(str(body["system"]).encode("utf-8"))
    return hasher.digest()


def _mock_text(seed: bytes, model: str) -> str:
    label = "YES" if seed[0] % 2 == 0 else "NO"
    return f"Decision: {label}\nRationale: mock response for {model}."


def _mock_usage(body: dict[str, Any], text: str) -> Usage:
    prompt_text = " ".join(str(message) for message in body.get("messages") or [])
    return Usage(
        input_tokens=max(1, len(prompt_text) // 4),
        output_tokens=max(1, len(text) // 4),
    )
