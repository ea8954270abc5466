"""Conversion between the internal request/response model and JSON.

Outbound: ``build_request_body`` produces the upstream ``/messages`` payload.
Inbound: ``request_from_dict`` decodes the internal request envelope.
The wire shape never leaks past this module and ``parse``.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from anthropic_proxy.llm.errors import SerializationError
from anthropic_proxy.llm.types import (
    CompletionRequest,
    CompletionResponse,
    ContentBlock,
    Message,
    Text,
    ToolChoice,
    ToolDefinition,
    ToolResult,
    ToolUse,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 4096
TOOL_CHOICE_TYPES = frozenset({"auto", "any", "tool", "none"})


def build_request_body(request: CompletionRequest) -> tuple[dict[str, Any], list[str]]:
    """Build the upstream payload and report keys replaced by ``additional_params``.

    ``additional_params`` is merged last and wins over every computed key,
    including ``model``, ``messages`` and ``max_tokens``.
    """
    overrides: list[str] = []
    body: dict[str, Any] = {
        "model": request.model,
        "max_tokens": request.max_tokens if request.max_tokens is not None else DEFAULT_MAX_TOKENS,
        "messages": [message_to_wire(message) for message in request.messages],
    }

    def add_optional(key: str, value: Any) -> None:
        if value is not None:
            body[key] = value

    add_optional("temperature", request.temperature)
    add_optional("system", request.system)
    add_optional("top_p", request.top_p)
    if request.tools is not None:
        body["tools"] = [tool_to_wire(tool) for tool in request.tools]
    if request.tool_choice is not None:
        body["tool_choice"] = tool_choice_to_wire(request.tool_choice)
    add_optional("disable_parallel_tool_use", request.disable_parallel_tool_use)

    for key, value in request.additional_params.items():
        if key in body:
            overrides.append(key)
        body[key] = value

    if overrides:
        logger.warning("additional_params overrode computed fields: %s", ", ".join(sorted(overrides)))
    return body, overrides


def encode_request_body(body: dict[str, Any]) -> bytes:
    try:
        return json.dumps(body, ensure_ascii=False, allow_nan=False).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"Request body is not JSON serializable: {exc}") from exc


def message_to_wire(message: Message) -> dict[str, Any]:
    if message.text is not None:
        content: Any = message.text
    elif message.blocks:
        content = [block_to_wire(block) for block in message.blocks]
    else:
        content = [{"type": "text", "text": ""}]
    return {"role": message.role, "content": content}


def block_to_wire(block: ContentBlock) -> dict[str, Any]:
    if isinstance(block, Text):
        return {"type": "text", "text": block.text}
    if isinstance(block, ToolUse):
        return {"type": "tool_use", "id": block.id, "name": block.name, "input": block.input}
    if isinstance(block, ToolResult):
        payload = {"type": "tool_result", "tool_use_id": block.tool_use_id, "content": block.content}
        if block.is_error is not None:
            payload["is_error"] = block.is_error
        return payload
    raise SerializationError(f"Unsupported content block: {type(block).__name__}")


def tool_to_wire(tool: ToolDefinition) -> dict[str, Any]:
    return {
        "name": tool.name,
        "description": tool.description,
        "input_schema": tool.input_schema,
    }


def tool_choice_to_wire(choice: ToolChoice) -> dict[str, Any]:
    payload: dict[str, Any] = {"type": choice.type}
    if choice.type == "tool":
        payload["name"] = choice.name
    return payload


def response_to_dict(response: CompletionResponse) -> dict[str, Any]:
    return {
        "id": response.id,
        "type": response.message_type,
        "role": response.role,
        "model": response.model,
        "content": [block_to_wire(block) for block in response.blocks],
        "stop_reason": str(response.stop_reason),
        "stop_sequence": response.stop_sequence,
        "usage": response.usage.to_dict(),
    }


def request_from_dict(data: Any) -> CompletionRequest:
    """Decode an internal completion request; malformed input is a SerializationError."""
    if not isinstance(data, dict):
        raise SerializationError("Completion request must be an object.")
    model = _require_str(data, "model", "request")
    raw_messages = data.get("messages")
    if not isinstance(raw_messages, list):
        raise SerializationError("request.messages must be a list.")
    messages = tuple(_message_from_dict(item, idx) for idx, item in enumerate(raw_messages))

    tools = None
    raw_tools = data.get("tools")
    if raw_tools is not None:
        if not isinstance(raw_tools, list):
            raise SerializationError("request.tools must be a list.")
        tools = tuple(_tool_from_dict(item, idx) for idx, item in enumerate(raw_tools))

    additional = data.get("additional_params") or {}
    if not isinstance(additional, dict):
        raise SerializationError("request.additional_params must be an object.")

    return CompletionRequest(
        model=model,
        messages=messages,
        max_tokens=_optional_int(data, "max_tokens"),
        temperature=_optional_float(data, "temperature"),
        top_p=_optional_float(data, "top_p"),
        system=_optional_str(data, "system"),
        tools=tools,
        tool_choice=_tool_choice_from_dict(data.get("tool_choice")),
        disable_parallel_tool_use=_optional_bool(data, "disable_parallel_tool_use"),
        anthropic_version=_optional_str(data, "anthropic_version"),
        stream=bool(data.get("stream", False)),
        additional_params=dict(additional),
    )


def block_from_dict(data: Any, where: str = "block") -> ContentBlock | None:
    """Decode one content block; unknown tags decode to None and are dropped by callers."""
    if not isinstance(data, dict):
        raise SerializationError(f"{where} must be an object.")
    block_type = data.get("type", "text")
    if block_type == "text":
        return Text(text=_require_str(data, "text", where))
    if block_type == "tool_use":
        return ToolUse(
            id=_require_str(data, "id", where),
            name=_require_str(data, "name", where),
            input=data.get("input"),
        )
    if block_type == "tool_result":
        is_error = data.get("is_error")
        if is_error is not None and not isinstance(is_error, bool):
            raise SerializationError(f"{where}.is_error must be a boolean.")
        return ToolResult(
            tool_use_id=_require_str(data, "tool_use_id", where),
            content=data.get("content"),
            is_error=is_error,
        )
    logger.info("Dropping %s with unknown type %r", where, block_type)
    return None


def _message_from_dict(data: Any, idx: int) -> Message:
    where = f"messages[{idx}]"
    if not isinstance(data, dict):
        raise SerializationError(f"{where} must be an object.")
    role = _require_str(data, "role", where)
    content = data.get("content")
    text = data.get("content_str")
    if text is not None and not isinstance(text, str):
        raise SerializationError(f"{where}.content_str must be a string.")
    if isinstance(content, str):
        return Message(role=role, text=content if text is None else text)
    if content is None:
        return Message(role=role, text=text)
    if not isinstance(content, list):
        raise SerializationError(f"{where}.content must be a string or a list of blocks.")
    decoded = (
        block_from_dict(block, f"{where}.content[{block_idx}]") for block_idx, block in enumerate(content)
    )
    blocks = tuple(block for block in decoded if block is not None)
    return Message(role=role, text=text, blocks=blocks)


def _tool_from_dict(data: Any, idx: int) -> ToolDefinition:
    where = f"tools[{idx}]"
    if not isinstance(data, dict):
        raise SerializationError(f"{where} must be an object.")
    schema = data.get("input_schema", {"type": "object"})
    if not isinstance(schema, dict):
        raise SerializationError(f"{where}.input_schema must be an object.")
    description = data.get("description", "")
    if not isinstance(description, str):
        raise SerializationError(f"{where}.description must be a string.")
    return ToolDefinition(
        name=_require_str(data, "name", where),
        description=description,
        input_schema=schema,
    )


def _tool_choice_from_dict(data: Any) -> ToolChoice | None:
    if data is None:
        return None
    if isinstance(data, str):
        data = {"type": data}
    if not isinstance(data, dict):
        raise SerializationError("request.tool_choice must be an object.")
    choice_type = data.get("type")
    if choice_type not in TOOL_CHOICE_TYPES:
        raise SerializationError(f"request.tool_choice has unknown type {choice_type!r}.")
    if choice_type == "tool":
        return ToolChoice.tool(_require_str(data, "name", "request.tool_choice"))
    return ToolChoice(choice_type)


def _require_str(data: dict[str, Any], key: str, where: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise SerializationError(f"{where}.{key} must be a string.")
    return value


def _optional_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise SerializationError(f"request.{key} must be a string.")
    return value


def _optional_int(data: dict[str, Any], key: str) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise SerializationError(f"request.{key} must be an integer.")
    return value


def _optional_float(data: dict[str, Any], key: str) -> float | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SerializationError(f"request.{key} must be a number.")
    return float(value)


def _optional_bool(data: dict[str, Any], key: str) -> bool | None:
    value = data.get(key)
    if value is not None and not isinstance(value, bool):
        raise SerializationError(f"request.{key} must be a boolean.")
    return value
