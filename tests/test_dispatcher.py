from __future__ import annotations

import json

import pytest

from anthropic_proxy.dispatcher import GenerateCompletion, ListModels, decode_envelope, handle_request
from anthropic_proxy.llm.client import AnthropicClient
from anthropic_proxy.llm.errors import SerializationError
from anthropic_proxy.llm.mock import MockClient
from tests.conftest import FakeClock, ScriptedTransport, completion_payload, http_response


def _generate_envelope(**request_overrides) -> bytes:
    request = {
        "model": "claude-3-5-haiku-20241022",
        "messages": [{"role": "user", "content": "Hi"}],
    }
    request.update(request_overrides)
    return json.dumps({"GenerateCompletion": {"request": request}}).encode("utf-8")


def _anthropic(outcomes) -> tuple[AnthropicClient, ScriptedTransport]:
    clock = FakeClock()
    transport = ScriptedTransport(outcomes)
    client = AnthropicClient(api_key="sk-test", transport=transport, sleep=clock.sleep, clock=clock)
    return client, transport


@pytest.mark.parametrize("data", [b'"ListModels"', b'{"ListModels": {}}', b'{"ListModels": null}'])
def test_decode_list_models_forms(data) -> None:
    assert decode_envelope(data) == ListModels()


def test_decode_generate_completion() -> None:
    envelope = decode_envelope(_generate_envelope(max_tokens=10))
    assert isinstance(envelope, GenerateCompletion)
    assert envelope.request.max_tokens == 10


@pytest.mark.parametrize(
    "data",
    [b"not json", b"{}", b'{"Unknown": {}}', b'{"GenerateCompletion": {}}', b'{"ListModels": {}, "x": 1}'],
)
def test_decode_rejects_malformed_envelopes(data) -> None:
    with pytest.raises(SerializationError):
        decode_envelope(data)


@pytest.mark.asyncio
async def test_invalid_envelope_becomes_error_response() -> None:
    response = json.loads(await handle_request(b"{broken", MockClient()))
    assert list(response) == ["Error"]
    assert response["Error"]["error"].startswith("Invalid request format:")


@pytest.mark.asyncio
async def test_list_models_from_catalog() -> None:
    client, transport = _anthropic([http_response(500)])
    response = json.loads(await handle_request(b'"ListModels"', client, models_source="catalog"))
    models = response["ListModels"]["models"]
    haiku = next(model for model in models if model["id"] == "claude-3-5-haiku-20241022")
    assert haiku["max_tokens"] == 200000
    assert haiku["pricing"] == {"input_cost_per_million_tokens": 0.8, "output_cost_per_million_tokens": 4.0}
    assert transport.calls == 0


@pytest.mark.asyncio
async def test_list_models_upstream_failure() -> None:
    client, _ = _anthropic([http_response(403, "forbidden")])
    response = json.loads(await handle_request(b'"ListModels"', client))
    assert response == {"Error": {"error": "Failed to list models: API error (403): forbidden"}}


@pytest.mark.asyncio
async def test_generate_completion_round_trip() -> None:
    client, transport = _anthropic([http_response(503), http_response(200, completion_payload())])
    response = json.loads(await handle_request(_generate_envelope(), client))
    completion = response["Completion"]["completion"]
    assert completion["id"] == "msg_01"
    assert completion["content"] == [{"type": "text", "text": "Hello there."}]
    assert completion["stop_reason"] == "end_turn"
    assert completion["usage"] == {"input_tokens": 12, "output_tokens": 4}
    assert transport.calls == 2


@pytest.mark.asyncio
async def test_generate_completion_upstream_error() -> None:
    client, _ = _anthropic([http_response(400, "messages: field required")])
    response = json.loads(await handle_request(_generate_envelope(), client))
    assert response["Error"]["error"] == "Completion generation failed: API error (400): messages: field required"


@pytest.mark.asyncio
async def test_streaming_request_surfaces_unsupported_error() -> None:
    response = json.loads(await handle_request(_generate_envelope(stream=True), MockClient()))
    assert "Unsupported operation" in response["Error"]["error"]


@pytest.mark.asyncio
@pytest.mark.parametrize("version", ["2023-06-01é", "2023-06-01\r\nx-injected: 1"])
async def test_unsendable_api_version_becomes_error_response(version) -> None:
    client, transport = _anthropic([http_response(200, completion_payload())])
    response = json.loads(await handle_request(_generate_envelope(anthropic_version=version), client))
    assert response["Error"]["error"].startswith("Completion generation failed: JSON error:")
    assert transport.calls == 0


@pytest.mark.asyncio
async def test_non_finite_temperature_becomes_error_response() -> None:
    client, transport = _anthropic([http_response(200, completion_payload())])
    data = _generate_envelope().replace(b'"messages"', b'"temperature": NaN, "messages"')
    response = json.loads(await handle_request(data, client))
    assert response["Error"]["error"].startswith("Completion generation failed: JSON error:")
    assert transport.calls == 0
