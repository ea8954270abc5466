from __future__ import annotations

import json
from typing import Any

import pytest

from anthropic_proxy.llm.retry import RetryConfig
from anthropic_proxy.llm.transport import HttpRequest, HttpResponse


class FakeClock:
    """Monotonic clock whose sleeps only advance virtual time."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedTransport:
    """Returns (or raises) scripted outcomes in order; the last one repeats."""

    def __init__(
        self,
        outcomes: list[HttpResponse | Exception],
        *,
        clock: FakeClock | None = None,
        latency_s: float = 0.0,
    ) -> None:
        self._outcomes = list(outcomes)
        self._clock = clock
        self._latency_s = latency_s
        self.requests: list[HttpRequest] = []
        self.closed = False

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def send(self, request: HttpRequest) -> HttpResponse:
        self.requests.append(request)
        if self._clock is not None and self._latency_s:
            self._clock.advance(self._latency_s)
        outcome = self._outcomes.pop(0) if len(self._outcomes) > 1 else self._outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def aclose(self) -> None:
        self.closed = True


def http_response(status: int, payload: Any = None) -> HttpResponse:
    if payload is None:
        body = b""
    elif isinstance(payload, (bytes, str)):
        body = payload.encode("utf-8") if isinstance(payload, str) else payload
    else:
        body = json.dumps(payload).encode("utf-8")
    return HttpResponse(status=status, body=body)


def completion_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": "msg_01",
        "type": "message",
        "role": "assistant",
        "model": "claude-3-5-haiku-20241022",
        "content": [{"type": "text", "text": "Hello there."}],
        "stop_reason": "end_turn",
        "stop_sequence": None,
        "usage": {"input_tokens": 12, "output_tokens": 4},
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def retry_config() -> RetryConfig:
    return RetryConfig(
        max_retries=3,
        initial_delay_ms=1000,
        max_delay_ms=30000,
        backoff_multiplier=2.0,
        max_total_timeout_ms=60000,
    )
