"""Core request/response types for the Anthropic proxy."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


@dataclass(frozen=True)
class Text:
    text: str

    @property
    def type(self) -> str:
        return "text"


@dataclass(frozen=True)
class ToolUse:
    id: str
    name: str
    input: Any

    @property
    def type(self) -> str:
        return "tool_use"


@dataclass(frozen=True)
class ToolResult:
    tool_use_id: str
    content: Any
    is_error: bool | None = None

    @property
    def type(self) -> str:
        return "tool_result"


ContentBlock = Union[Text, ToolUse, ToolResult]


@dataclass(frozen=True)
class Message:
    """One conversation turn.

    ``text`` is the raw-string form of the content and wins when set;
    ``blocks`` is the structured form.
    """

    role: str
    text: str | None = None
    blocks: tuple[ContentBlock, ...] = ()

    @classmethod
    def user(cls, content: str | tuple[ContentBlock, ...] | list[ContentBlock]) -> "Message":
        return _message("user", content)

    @classmethod
    def assistant(cls, content: str | tuple[ContentBlock, ...] | list[ContentBlock]) -> "Message":
        return _message("assistant", content)


def _message(role: str, content: str | tuple[ContentBlock, ...] | list[ContentBlock]) -> Message:
    if isinstance(content, str):
        return Message(role=role, text=content)
    return Message(role=role, blocks=tuple(content))


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    input_schema: dict[str, Any]


@dataclass(frozen=True)
class ToolChoice:
    type: str
    name: str | None = None

    @classmethod
    def auto(cls) -> "ToolChoice":
        return cls("auto")

    @classmethod
    def any(cls) -> "ToolChoice":
        return cls("any")

    @classmethod
    def none(cls) -> "ToolChoice":
        return cls("none")

    @classmethod
    def tool(cls, name: str) -> "ToolChoice":
        return cls("tool", name)


@dataclass(frozen=True)
class CompletionRequest:
    model: str
    messages: tuple[Message, ...]
    max_tokens: int | None = None
    temperature: float | None = None
    top_p: float | None = None
    system: str | None = None
    tools: tuple[ToolDefinition, ...] | None = None
    tool_choice: ToolChoice | None = None
    disable_parallel_tool_use: bool | None = None
    anthropic_version: str | None = None
    stream: bool = False
    additional_params: dict[str, Any] = field(default_factory=dict)


class StopReason(str, Enum):
    END_TURN = "end_turn"
    MAX_TOKENS = "max_tokens"
    STOP_SEQUENCE = "stop_sequence"
    TOOL_USE = "tool_use"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Usage:
    input_tokens: int
    output_tokens: int
    cache_read_input_tokens: int | None = None
    cache_creation_input_tokens: int | None = None

    def to_dict(self) -> dict[str, int]:
        payload = {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
        }
        if self.cache_read_input_tokens is not None:
            payload["cache_read_input_tokens"] = self.cache_read_input_tokens
        if self.cache_creation_input_tokens is not None:
            payload["cache_creation_input_tokens"] = self.cache_creation_input_tokens
        return payload


@dataclass(frozen=True)
class CompletionResponse:
    id: str
    model: str
    blocks: tuple[ContentBlock, ...]
    # Unknown upstream values are kept as the raw string.
    stop_reason: StopReason | str
    usage: Usage
    stop_sequence: str | None = None
    role: str = "assistant"
    message_type: str = "message"

    @property
    def content(self) -> str | None:
        """Flattened text of the first block, kept for older consumers."""
        if self.blocks and isinstance(self.blocks[0], Text):
            return self.blocks[0].text
        return None


@dataclass(frozen=True)
class ModelPricing:
    input_cost_per_million_tokens: float
    output_cost_per_million_tokens: float

    def estimate_cost(self, usage: Usage) -> float:
        return (
            usage.input_tokens * self.input_cost_per_million_tokens
            + usage.output_tokens * self.output_cost_per_million_tokens
        ) / 1_000_000

    def to_dict(self) -> dict[str, float]:
        return {
            "input_cost_per_million_tokens": self.input_cost_per_million_tokens,
            "output_cost_per_million_tokens": self.output_cost_per_million_tokens,
        }


@dataclass(frozen=True)
class ModelInfo:
    id: str
    display_name: str
    max_tokens: int
    provider: str = "anthropic"
    pricing: ModelPricing | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "max_tokens": self.max_tokens,
            "provider": self.provider,
            "pricing": self.pricing.to_dict() if self.pricing is not None else None,
        }
