"""Typed decoding of upstream response bodies."""

from __future__ import annotations

import json
import logging
from typing import Any

from anthropic_proxy.llm.errors import ResponseShapeError, SerializationError
from anthropic_proxy.llm.types import (
    CompletionResponse,
    ContentBlock,
    StopReason,
    Text,
    ToolResult,
    ToolUse,
    Usage,
)

logger = logging.getLogger(__name__)

_STOP_REASONS = {reason.value: reason for reason in StopReason}


def decode_json(body: bytes | str) -> Any:
    try:
        return json.loads(body)
    except (UnicodeDecodeError, ValueError) as exc:
        raise SerializationError(f"Response body is not valid JSON: {exc}") from exc


def parse_completion_response(body: bytes | str) -> CompletionResponse:
    data = decode_json(body)
    if not isinstance(data, dict):
        raise ResponseShapeError("Response must be a JSON object", field="$")

    message_id = _require_str(data, "id", "No message ID")
    model = _require_str(data, "model", "No model info")
    stop_reason_raw = _require_str(data, "stop_reason", "No stop reason")
    stop_reason: StopReason | str = _STOP_REASONS.get(stop_reason_raw, stop_reason_raw)
    if not isinstance(stop_reason, StopReason):
        logger.info("Unknown stop reason kept as-is: %s", stop_reason_raw)

    usage_raw = data.get("usage")
    if not isinstance(usage_raw, dict):
        raise ResponseShapeError("No usage info", field="usage")
    usage = Usage(
        input_tokens=_require_count(usage_raw, "input_tokens", "No input tokens"),
        output_tokens=_require_count(usage_raw, "output_tokens", "No output tokens"),
        cache_read_input_tokens=_optional_count(usage_raw, "cache_read_input_tokens"),
        cache_creation_input_tokens=_optional_count(usage_raw, "cache_creation_input_tokens"),
    )

    content = data.get("content")
    if isinstance(content, list):
        blocks: tuple[ContentBlock, ...] = parse_content_blocks(content)
    else:
        # null, missing or non-array content reads as one empty text block
        blocks = (Text(text=""),)

    return CompletionResponse(
        id=message_id,
        model=model,
        blocks=blocks,
        stop_reason=stop_reason,
        usage=usage,
        stop_sequence=_optional_str(data, "stop_sequence"),
        role=_optional_str(data, "role") or "assistant",
        message_type=_optional_str(data, "type") or "message",
    )


def parse_content_blocks(content: list[Any]) -> tuple[ContentBlock, ...]:
    """Decode content blocks in order, skipping tags this client does not know."""
    blocks: list[ContentBlock] = []
    for idx, block in enumerate(content):
        field = f"content[{idx}]"
        if not isinstance(block, dict):
            raise ResponseShapeError(f"Content block {idx} must be an object", field=field)
        block_type = block.get("type", "text")
        if block_type == "text":
            text = block.get("text")
            if not isinstance(text, str):
                raise ResponseShapeError(f"Missing text in text block {idx}", field=f"{field}.text")
            blocks.append(Text(text=text))
        elif block_type == "tool_use":
            tool_id = block.get("id")
            if not isinstance(tool_id, str):
                raise ResponseShapeError(f"Missing id in tool_use block {idx}", field=f"{field}.id")
            name = block.get("name")
            if not isinstance(name, str):
                raise ResponseShapeError(f"Missing name in tool_use block {idx}", field=f"{field}.name")
            blocks.append(ToolUse(id=tool_id, name=name, input=block.get("input")))
        elif block_type == "tool_result":
            tool_use_id = block.get("tool_use_id")
            if not isinstance(tool_use_id, str):
                raise ResponseShapeError(
                    f"Missing tool_use_id in tool_result block {idx}",
                    field=f"{field}.tool_use_id",
                )
            is_error = block.get("is_error")
            blocks.append(
                ToolResult(
                    tool_use_id=tool_use_id,
                    content=block.get("content"),
                    is_error=is_error if isinstance(is_error, bool) else None,
                )
            )
        else:
            logger.info("Unknown content block type: %s", block_type)
    return tuple(blocks)


def parse_model_list(body: bytes | str) -> list[tuple[str, str]]:
    """Return ``(id, display_name)`` pairs from a ``/models`` listing."""
    data = decode_json(body)
    if not isinstance(data, dict):
        raise ResponseShapeError("Model listing must be a JSON object", field="$")
    entries = data.get("data")
    if not isinstance(entries, list):
        return []
    models: list[tuple[str, str]] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        model_id = entry.get("id")
        name = entry.get("display_name")
        if isinstance(model_id, str) and isinstance(name, str):
            models.append((model_id, name))
        else:
            logger.debug("Skipping model entry without id/display_name: %r", entry)
    return models


def _require_str(data: dict[str, Any], key: str, message: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise ResponseShapeError(message, field=key)
    return value


def _require_count(usage: dict[str, Any], key: str, message: str) -> int:
    value = usage.get(key)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ResponseShapeError(message, field=f"usage.{key}")
    return value


def _optional_count(usage: dict[str, Any], key: str) -> int | None:
    value = usage.get(key)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return None
    return value


def _optional_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    return value if isinstance(value, str) else None
