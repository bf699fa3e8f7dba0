"""CacheAccountant — process-wide prompt cache effectiveness counters.

Recording is purely observational: it never rejects input, never raises
into the caller and holds its lock only for a handful of integer additions.
Only completed invocations are recorded; the invocation service calls
``record`` after the upstream exchange finishes, so a cancelled or failed
invocation leaves the counters untouched.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Mapping, Optional, Union

from cachewise.accounting.pricing import ModelPricing
from cachewise.accounting.usage import normalize_usage
from cachewise.models import CacheStats, UsageEnvelope

log = logging.getLogger(__name__)


class CacheAccountant:
    """Thread-safe running totals of requests, cache hits, tokens and cost.

    A request is a cache hit when ``cached_tokens > 0``. The hit rate is
    ``cache_hits / requests_total`` whether the invocation ran through the
    local or the remote adapter.
    """

    def __init__(self, pricing: Optional[ModelPricing] = None) -> None:
        self._pricing = pricing or ModelPricing()
        self._lock = threading.Lock()
        self._requests_total = 0
        self._cache_hits = 0
        self._tokens_cached = 0
        self._tokens_total = 0
        self._cost = 0.0
        self._cost_saved = 0.0

    @property
    def pricing(self) -> ModelPricing:
        return self._pricing

    def record(self, usage: Union[UsageEnvelope, Mapping[str, Any]]) -> None:
        """Add one completed invocation to the totals."""
        envelope = usage if isinstance(usage, UsageEnvelope) else normalize_usage(usage)
        total = max(0, envelope.total_tokens)
        cached = max(0, envelope.cached_tokens)
        if cached > total:
            log.debug("cached_tokens=%d exceeds total_tokens=%d; counting total as cached", cached, total)
            total = cached
        clean = UsageEnvelope(
            total_tokens=total,
            cached_tokens=cached,
            prompt_tokens=max(0, envelope.prompt_tokens),
            completion_tokens=max(0, envelope.completion_tokens),
        )
        cost = envelope.cost_estimate if envelope.cost_estimate > 0 else self._pricing.cost(clean)
        saved = self._pricing.saved(clean)

        with self._lock:
            self._requests_total += 1
            if cached > 0:
                self._cache_hits += 1
            self._tokens_cached += cached
            self._tokens_total += total
            self._cost += cost
            self._cost_saved += saved

    def snapshot(self) -> CacheStats:
        """Consistent point-in-time copy of all counters."""
        with self._lock:
            return CacheStats(
                requests_total=self._requests_total,
                cache_hits=self._cache_hits,
                tokens_cached=self._tokens_cached,
                tokens_total=self._tokens_total,
                estimated_cost=self._cost,
                estimated_cost_saved=self._cost_saved,
            )

    def reset(self) -> CacheStats:
        """Administrative reset. Returns the totals as they were before clearing."""
        with self._lock:
            before = CacheStats(
                requests_total=self._requests_total,
                cache_hits=self._cache_hits,
                tokens_cached=self._tokens_cached,
                tokens_total=self._tokens_total,
                estimated_cost=self._cost,
                estimated_cost_saved=self._cost_saved,
            )
            self._requests_total = 0
            self._cache_hits = 0
            self._tokens_cached = 0
            self._tokens_total = 0
            self._cost = 0.0
            self._cost_saved = 0.0
        log.info("Cache stats reset after %d requests", before.requests_total)
        return before


_process_accountant: Optional[CacheAccountant] = None
_process_lock = threading.Lock()


def get_accountant(pricing: Optional[ModelPricing] = None) -> CacheAccountant:
    """Return the process-wide accountant, creating it on first use.

    ``pricing`` only applies to that first call.
    """
    global _process_accountant
    with _process_lock:
        if _process_accountant is None:
            _process_accountant = CacheAccountant(pricing)
        return _process_accountant
