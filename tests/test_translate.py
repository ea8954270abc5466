from __future__ import annotations

import json

import pytest

from anthropic_proxy.llm.errors import SerializationError
from anthropic_proxy.llm.translate import (
    build_request_body,
    encode_request_body,
    message_to_wire,
    request_from_dict,
    response_to_dict,
)
from anthropic_proxy.llm.types import (
    CompletionRequest,
    CompletionResponse,
    Message,
    StopReason,
    Text,
    ToolChoice,
    ToolDefinition,
    ToolResult,
    ToolUse,
    Usage,
)


def _request(**kwargs) -> CompletionRequest:
    defaults = {
        "model": "claude-3-7-sonnet-20250219",
        "messages": (Message.user("Hi"),),
    }
    defaults.update(kwargs)
    return CompletionRequest(**defaults)


def test_minimal_body_has_defaults_and_no_nulls() -> None:
    body, overrides = build_request_body(_request())
    assert body == {
        "model": "claude-3-7-sonnet-20250219",
        "max_tokens": 4096,
        "messages": [{"role": "user", "content": "Hi"}],
    }
    assert overrides == []


def test_optional_fields_are_emitted_when_set() -> None:
    tool = ToolDefinition(name="calculate", description="math", input_schema={"type": "object"})
    body, _ = build_request_body(
        _request(
            max_tokens=128,
            temperature=0.2,
            top_p=0.9,
            system="Be brief.",
            tools=(tool,),
            tool_choice=ToolChoice.tool("calculate"),
            disable_parallel_tool_use=False,
        )
    )
    assert body["max_tokens"] == 128
    assert body["temperature"] == 0.2
    assert body["top_p"] == 0.9
    assert body["system"] == "Be brief."
    assert body["tools"] == [{"name": "calculate", "description": "math", "input_schema": {"type": "object"}}]
    assert body["tool_choice"] == {"type": "tool", "name": "calculate"}
    assert body["disable_parallel_tool_use"] is False


def test_messages_keep_order_and_content_forms() -> None:
    messages = (
        Message.user("What is 2 + 2?"),
        Message.assistant((Text("Let me check."), ToolUse(id="toolu_1", name="calculate", input={"expression": "2+2"}))),
        Message.user((ToolResult(tool_use_id="toolu_1", content="4"),)),
        Message(role="user"),
    )
    body, _ = build_request_body(_request(messages=messages))
    assert [message["role"] for message in body["messages"]] == ["user", "assistant", "user", "user"]
    assert body["messages"][1]["content"] == [
        {"type": "text", "text": "Let me check."},
        {"type": "tool_use", "id": "toolu_1", "name": "calculate", "input": {"expression": "2+2"}},
    ]
    assert body["messages"][2]["content"] == [{"type": "tool_result", "tool_use_id": "toolu_1", "content": "4"}]
    assert body["messages"][3]["content"] == [{"type": "text", "text": ""}]


def test_raw_string_wins_over_blocks() -> None:
    message = Message(role="user", text="plain", blocks=(Text("ignored"),))
    assert message_to_wire(message) == {"role": "user", "content": "plain"}


def test_empty_string_is_still_present() -> None:
    assert message_to_wire(Message(role="user", text="")) == {"role": "user", "content": ""}


def test_tool_result_error_flag() -> None:
    message = Message.user((ToolResult(tool_use_id="t", content=[{"type": "text", "text": "nope"}], is_error=True),))
    wire = message_to_wire(message)
    assert wire["content"][0]["is_error"] is True
    assert wire["content"][0]["content"] == [{"type": "text", "text": "nope"}]


def test_additional_params_merge_last_and_override_required_fields() -> None:
    body, overrides = build_request_body(
        _request(
            temperature=0.5,
            additional_params={"max_tokens": 10, "model": "claude-2.1", "metadata": {"user_id": "u1"}},
        )
    )
    assert body["max_tokens"] == 10
    assert body["model"] == "claude-2.1"
    assert body["metadata"] == {"user_id": "u1"}
    assert body["temperature"] == 0.5
    assert sorted(overrides) == ["max_tokens", "model"]


def test_encode_rejects_non_json_values() -> None:
    body, _ = build_request_body(_request(additional_params={"bad": object()}))
    with pytest.raises(SerializationError):
        encode_request_body(body)


@pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
def test_encode_rejects_non_finite_numbers(value) -> None:
    body, _ = build_request_body(_request(temperature=value))
    with pytest.raises(SerializationError):
        encode_request_body(body)


def test_encode_round_trips_unicode() -> None:
    body, _ = build_request_body(_request(messages=(Message.user("héllo ✓"),)))
    assert json.loads(encode_request_body(body))["messages"][0]["content"] == "héllo ✓"


def test_request_from_dict_decodes_envelope_request() -> None:
    request = request_from_dict(
        {
            "model": "claude-3-5-haiku-20241022",
            "messages": [
                {"role": "user", "content": "Hi"},
                {
                    "role": "assistant",
                    "content": [
                        {"type": "tool_use", "id": "toolu_9", "name": "calculate", "input": {"expression": "1"}},
                        {"type": "thinking", "thinking": "..."},
                        {"text": "untagged text"},
                    ],
                },
            ],
            "max_tokens": 256,
            "temperature": 1,
            "tool_choice": "auto",
            "tools": [{"name": "calculate", "input_schema": {"type": "object"}}],
            "additional_params": {"top_k": 5},
        }
    )
    assert request.model == "claude-3-5-haiku-20241022"
    assert request.messages[0] == Message(role="user", text="Hi")
    assert request.messages[1].blocks == (
        ToolUse(id="toolu_9", name="calculate", input={"expression": "1"}),
        Text("untagged text"),
    )
    assert request.max_tokens == 256
    assert request.temperature == 1.0
    assert request.tool_choice == ToolChoice.auto()
    assert request.tools[0].description == ""
    assert request.additional_params == {"top_k": 5}


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"messages": []},
        {"model": "m", "messages": "hi"},
        {"model": "m", "messages": [{"content": "no role"}]},
        {"model": "m", "messages": [{"role": "user", "content": [{"type": "tool_use", "name": "x"}]}]},
        {"model": "m", "messages": [], "max_tokens": "many"},
        {"model": "m", "messages": [], "tool_choice": {"type": "sometimes"}},
        {"model": "m", "messages": [], "tool_choice": {"type": "tool"}},
    ],
)
def test_request_from_dict_rejects_malformed(payload) -> None:
    with pytest.raises(SerializationError):
        request_from_dict(payload)


def test_response_to_dict_uses_wire_shape() -> None:
    response = CompletionResponse(
        id="msg_1",
        model="claude-3-5-haiku-20241022",
        blocks=(Text("hi"), ToolUse(id="t1", name="calculate", input={})),
        stop_reason=StopReason.TOOL_USE,
        usage=Usage(input_tokens=3, output_tokens=5),
    )
    payload = response_to_dict(response)
    assert payload["stop_reason"] == "tool_use"
    assert payload["content"][1] == {"type": "tool_use", "id": "t1", "name": "calculate", "input": {}}
    assert payload["usage"] == {"input_tokens": 3, "output_tokens": 5}
    assert payload["type"] == "message"
