"""LLM client interfaces and implementations."""

from anthropic_proxy.llm.client import AnthropicClient, LLMClient, create_client
from anthropic_proxy.llm.errors import (
    ProxyError,
    ResponseShapeError,
    RetryCancelledError,
    SerializationError,
    TransportError,
    UnsupportedOperationError,
    UpstreamError,
)
from anthropic_proxy.llm.mock import MockClient
from anthropic_proxy.llm.retry import RetryConfig, compute_delay_ms, execute_with_retry
from anthropic_proxy.llm.types import (
    CompletionRequest,
    CompletionResponse,
    Message,
    ModelInfo,
    ModelPricing,
    StopReason,
    Text,
    ToolChoice,
    ToolDefinition,
    ToolResult,
    ToolUse,
    Usage,
)

__all__ = [
    "AnthropicClient",
    "CompletionRequest",
    "CompletionResponse",
    "LLMClient",
    "Message",
    "MockClient",
    "ModelInfo",
    "ModelPricing",
    "ProxyError",
    "ResponseShapeError",
    "RetryCancelledError",
    "RetryConfig",
    "SerializationError",
    "StopReason",
    "Text",
    "ToolChoice",
    "ToolDefinition",
    "ToolResult",
    "ToolUse",
    "TransportError",
    "UnsupportedOperationError",
    "UpstreamError",
    "Usage",
    "compute_delay_ms",
    "create_client",
    "execute_with_retry",
]
