"""Normalize provider usage payloads into :class:`UsageEnvelope`.

Providers report prompt-cache reads under different names:

- Anthropic / Bedrock: ``cache_read_input_tokens``
- OpenAI: ``prompt_tokens_details.cached_tokens``
- Strands / Converse: ``inputTokens`` / ``outputTokens`` / ``cacheReadInputTokens``
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from cachewise.accounting.pricing import ModelPricing
from cachewise.models import MessageBlock, UsageEnvelope
from cachewise.tokenizer import TokenCounter


def _get(source: Any, name: str) -> Any:
    if source is None:
        return None
    if isinstance(source, dict):
        return source.get(name)
    return getattr(source, name, None)


def _int(value: Any) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


def _first(source: Any, *names: str) -> int:
    for name in names:
        value = _get(source, name)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return _int(value)
    return 0


def normalize_usage(raw: Any, pricing: Optional[ModelPricing] = None) -> UsageEnvelope:
    """Build a usage envelope from a dict or provider usage object.

    Missing or malformed fields count as zero. ``cost_estimate`` is filled in
    from ``pricing`` unless the payload already carries one.
    """
    prompt = _first(raw, "prompt_tokens", "inputTokens", "input_tokens")
    completion = _first(raw, "completion_tokens", "outputTokens", "output_tokens")
    total = _first(raw, "total_tokens", "totalTokens") or prompt + completion

    cached = _first(raw, "cached_tokens", "cache_read_input_tokens", "cacheReadInputTokens")
    if not cached:
        cached = _first(_get(raw, "prompt_tokens_details"), "cached_tokens")

    envelope = UsageEnvelope(
        total_tokens=total,
        cached_tokens=cached,
        prompt_tokens=prompt,
        completion_tokens=completion,
    )
    reported_cost = _get(raw, "cost_estimate")
    if isinstance(reported_cost, (int, float)) and reported_cost > 0:
        return UsageEnvelope(**{**envelope.to_dict(), "cost_estimate": float(reported_cost)})
    if pricing is not None:
        return UsageEnvelope(**{**envelope.to_dict(), "cost_estimate": pricing.cost(envelope)})
    return envelope


def estimate_usage(
    blocks: Sequence[MessageBlock],
    completion: str,
    counter: TokenCounter,
    pricing: Optional[ModelPricing] = None,
) -> UsageEnvelope:
    """Usage for a backend that reported none: counted locally, no cached tokens."""
    prompt_tokens = counter.count_blocks(blocks)
    completion_tokens = counter.count(completion)
    envelope = UsageEnvelope(
        total_tokens=prompt_tokens + completion_tokens,
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
    )
    if pricing is None:
        return envelope
    return UsageEnvelope(**{**envelope.to_dict(), "cost_estimate": pricing.cost(envelope)})
