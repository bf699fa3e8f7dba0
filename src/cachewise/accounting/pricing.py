"""Token pricing used to turn usage envelopes into cost figures."""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING

from cachewise.models import UsageEnvelope

if TYPE_CHECKING:
    from cachewise.core.config import PricingConfig

_PER_MTOK = 1_000_000


@dataclasses.dataclass(frozen=True)
class ModelPricing:
    """Per-million-token prices plus the provider's cache-read discount.

    ``cache_read_multiplier`` is the fraction of the input price charged for a
    token served from the prefix cache (0.1 means a 90% discount).
    """

    input_per_mtok: float = 3.0
    output_per_mtok: float = 15.0
    cache_read_multiplier: float = 0.1

    @classmethod
    def from_config(cls, config: PricingConfig) -> ModelPricing:
        return cls(
            input_per_mtok=config.input_per_mtok,
            output_per_mtok=config.output_per_mtok,
            cache_read_multiplier=config.cache_read_multiplier,
        )

    def cost(self, usage: UsageEnvelope) -> float:
        """Estimated dollar cost of one invocation."""
        prompt = usage.prompt_tokens
        completion = usage.completion_tokens
        if prompt == 0 and completion == 0:
            # Backends that only report a total: bill it all as input.
            prompt = usage.total_tokens
        cached = min(usage.cached_tokens, prompt)
        full_rate = (prompt - cached) * self.input_per_mtok
        cached_rate = cached * self.input_per_mtok * self.cache_read_multiplier
        output_rate = completion * self.output_per_mtok
        return (full_rate + cached_rate + output_rate) / _PER_MTOK

    def saved(self, usage: UsageEnvelope) -> float:
        """Dollar amount the cache saved compared with billing every token at full rate."""
        return usage.cached_tokens * self.input_per_mtok * (1.0 - self.cache_read_multiplier) / _PER_MTOK
