"""Request/response envelope for hosts that exchange raw JSON bytes.

Requests are ``"ListModels"`` (or ``{"ListModels": {}}``) and
``{"GenerateCompletion": {"request": {...}}}``. Responses are
``{"ListModels": {"models": [...]}}``, ``{"Completion": {"completion": {...}}}``
and ``{"Error": {"error": "..."}}``.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
from typing import Any, Union

from anthropic_proxy.llm.client import LLMClient
from anthropic_proxy.llm.errors import ProxyError, SerializationError
from anthropic_proxy.llm.translate import request_from_dict, response_to_dict
from anthropic_proxy.llm.types import CompletionRequest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ListModels:
    pass


@dataclass(frozen=True)
class GenerateCompletion:
    request: CompletionRequest


Envelope = Union[ListModels, GenerateCompletion]


def decode_envelope(data: bytes | str) -> Envelope:
    try:
        raw = json.loads(data)
    except (UnicodeDecodeError, ValueError) as exc:
        raise SerializationError(str(exc)) from exc

    if raw == "ListModels":
        return ListModels()
    if not isinstance(raw, dict) or len(raw) != 1:
        raise SerializationError("Envelope must be \"ListModels\" or an object with a single tag.")
    (tag, payload), = raw.items()
    if tag == "ListModels":
        return ListModels()
    if tag == "GenerateCompletion":
        if not isinstance(payload, dict) or "request" not in payload:
            raise SerializationError("GenerateCompletion requires a 'request' field.")
        return GenerateCompletion(request=request_from_dict(payload["request"]))
    raise SerializationError(f"Unknown envelope tag: {tag}")


def encode_response(tag: str, payload: dict[str, Any]) -> bytes:
    return json.dumps({tag: payload}, ensure_ascii=False).encode("utf-8")


def error_response(message: str) -> bytes:
    return encode_response("Error", {"error": message})


async def handle_request(
    data: bytes | str,
    client: LLMClient,
    *,
    models_source: str = "live",
) -> bytes:
    """Decode one envelope, run it against ``client`` and encode the result.

    Never raises for bad input or upstream failures; those become ``Error``
    envelopes.
    """
    try:
        envelope = decode_envelope(data)
    except SerializationError as exc:
        logger.warning("Error parsing request: %s", exc.message)
        return error_response(f"Invalid request format: {exc.message}")

    if isinstance(envelope, ListModels):
        logger.info("Listing available models (source=%s)", models_source)
        try:
            models = await client.list_models(source=models_source)
        except ProxyError as exc:
            logger.error("Error listing models: %s", exc)
            return error_response(f"Failed to list models: {exc}")
        return encode_response("ListModels", {"models": [model.to_dict() for model in models]})

    logger.info("Generating completion with model: %s", envelope.request.model)
    try:
        completion = await client.generate(envelope.request)
    except ProxyError as exc:
        logger.error("Error generating completion: %s", exc)
        return error_response(f"Completion generation failed: {exc}")
    return encode_response("Completion", {"completion": response_to_dict(completion)})
