"""Static model catalog: context window and pricing per model id."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from importlib import resources
import json
from types import MappingProxyType
from typing import Any, Mapping

from anthropic_proxy.llm.types import ModelInfo, ModelPricing, Usage

DEFAULT_MAX_TOKENS = 100000
DEFAULT_PRICING = ModelPricing(
    input_cost_per_million_tokens=8.00,
    output_cost_per_million_tokens=24.00,
)
PROVIDER = "anthropic"


@dataclass(frozen=True)
class CatalogEntry:
    id: str
    display_name: str
    max_tokens: int
    pricing: ModelPricing


def lookup(model_id: str) -> tuple[int, ModelPricing]:
    entry = load_model_catalog().get(model_id)
    if entry is None:
        return DEFAULT_MAX_TOKENS, DEFAULT_PRICING
    return entry.max_tokens, entry.pricing


def max_tokens_for(model_id: str) -> int:
    return lookup(model_id)[0]


def pricing_for(model_id: str) -> ModelPricing:
    return lookup(model_id)[1]


def enrich(model_id: str, display_name: str) -> ModelInfo:
    max_tokens, pricing = lookup(model_id)
    return ModelInfo(
        id=model_id,
        display_name=display_name,
        max_tokens=max_tokens,
        provider=PROVIDER,
        pricing=pricing,
    )


def catalog_models() -> list[ModelInfo]:
    return [enrich(entry.id, entry.display_name) for entry in load_model_catalog().values()]


def estimate_cost(model_id: str, usage: Usage) -> float:
    return pricing_for(model_id).estimate_cost(usage)


@lru_cache(maxsize=1)
def load_model_catalog() -> Mapping[str, CatalogEntry]:
    data = resources.files(__name__).joinpath("models.json").read_text(encoding="utf-8")
    entries = _validate_catalog(json.loads(data))
    return MappingProxyType({entry.id: entry for entry in entries})


def _validate_catalog(data: Any) -> list[CatalogEntry]:
    if not isinstance(data, list):
        raise ValueError("Catalog must be a list of items.")
    items: list[CatalogEntry] = []
    for idx, raw in enumerate(data):
        if not isinstance(raw, dict):
            raise ValueError(f"Catalog item {idx} must be an object.")
        model_id = raw.get("id")
        if not isinstance(model_id, str) or not model_id.strip():
            raise ValueError(f"Catalog item {idx} missing 'id'.")
        name = raw.get("display_name")
        if not isinstance(name, str) or not name.strip():
            name = model_id
        max_tokens = raw.get("max_tokens")
        if not isinstance(max_tokens, int) or max_tokens <= 0:
            raise ValueError(f"Catalog item {idx} has invalid 'max_tokens'.")
        pricing = raw.get("pricing") or {}
        try:
            model_pricing = ModelPricing(
                input_cost_per_million_tokens=float(pricing["input"]),
                output_cost_per_million_tokens=float(pricing["output"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Catalog item {idx} has invalid 'pricing'.") from exc
        items.append(
            CatalogEntry(
                id=model_id.strip(),
                display_name=name.strip(),
                max_tokens=max_tokens,
                pricing=model_pricing,
            )
        )
    if not items:
        raise ValueError("Catalog is empty.")
    return items
