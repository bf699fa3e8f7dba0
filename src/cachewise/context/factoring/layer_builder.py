"""Render composed MessageBlocks into LiteLLM/Anthropic-compatible messages.

System blocks are merged into one system message with one content block per
MessageBlock, so the provider sees the cached prefix as a distinct block::

    static template   →  [cache_control]   (byte-identical across requests)
    dynamic context   →  (no cache)         (timestamp, passages, history)
    user query        →  (no cache)         (plain user message)
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from cachewise.context.factoring.breakpoint_strategy import breakpoint_index, check_prefix_invariant
from cachewise.models import MessageBlock
from cachewise.tokenizer import TokenCounter


def render_messages(
    blocks: Sequence[MessageBlock],
    *,
    cache_control: bool = True,
    ttl_type: str = "ephemeral",
    min_cacheable_tokens: int = 0,
    counter: Optional[TokenCounter] = None,
) -> list[dict[str, Any]]:
    """Build the provider message list for a composed request.

    Args:
        blocks: Blocks produced by :class:`~cachewise.prompts.composer.PromptComposer`.
        cache_control: Emit a ``cache_control`` marker at the breakpoint.
        ttl_type: ``"ephemeral"`` (default) or ``"long"`` provider TTL.
        min_cacheable_tokens: Skip the marker when the cached prefix is
            shorter than this; providers ignore short prefixes anyway.
        counter: Token counter used for the minimum-length check.

    Returns:
        Message dicts ready for ``litellm.acompletion(messages=...)``.
    """
    check_prefix_invariant(blocks)
    marker_at = breakpoint_index(blocks) if cache_control else None
    if marker_at is not None and min_cacheable_tokens > 0:
        prefix_tokens = (counter or TokenCounter()).count_blocks(blocks[: marker_at + 1])
        if prefix_tokens < min_cacheable_tokens:
            marker_at = None

    messages: list[dict[str, Any]] = []
    system_content: list[dict[str, Any]] = []

    for i, block in enumerate(blocks):
        if block.role == "system":
            entry: dict[str, Any] = {"type": "text", "text": block.content}
            if i == marker_at:
                entry["cache_control"] = _marker(ttl_type)
            system_content.append(entry)
            continue
        if system_content:
            messages.append({"role": "system", "content": system_content})
            system_content = []
        messages.append({"role": block.role, "content": block.content})

    if system_content:
        messages.append({"role": "system", "content": system_content})
    return messages


def _marker(ttl_type: str) -> dict[str, str]:
    if ttl_type == "long":
        return {"type": "ephemeral", "ttl": "1h"}
    return {"type": "ephemeral"}
