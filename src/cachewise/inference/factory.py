"""Invocation adapter factory — resolves the variant from config at construction time."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

import httpx

from cachewise.accounting.pricing import ModelPricing
from cachewise.inference.local import LocalAdapter
from cachewise.inference.protocols import IInvocationAdapter
from cachewise.inference.remote import RemoteAdapter
from cachewise.tokenizer import TokenCounter

if TYPE_CHECKING:
    from cachewise.core.config import AppSettings

log = logging.getLogger(__name__)


def create_invocation_adapter(
    settings: AppSettings,
    *,
    counter: Optional[TokenCounter] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> IInvocationAdapter:
    """Create the adapter selected by ``settings.adapter.mode``.

    Args:
        settings: Application settings.
        counter: Token counter for usage estimates and cacheability checks.
        client: Optional shared HTTP client for the remote variant.

    Returns:
        A :class:`LocalAdapter` or :class:`RemoteAdapter`.
    """
    counter = counter or TokenCounter(method=settings.tokenizer.method, model=settings.tokenizer.model)
    pricing = ModelPricing.from_config(settings.pricing)

    if settings.adapter.mode == "remote":
        log.info("Using RemoteAdapter -> %s", settings.adapter.remote_url)
        return RemoteAdapter(
            settings.adapter.remote_url,
            max_attempts=settings.adapter.max_attempts,
            backoff_base_seconds=settings.adapter.backoff_base_seconds,
            backoff_max_seconds=settings.adapter.backoff_max_seconds,
            jitter_factor=settings.adapter.jitter_factor,
            timeout=settings.adapter.request_timeout,
            client=client,
            counter=counter,
            pricing=pricing,
        )

    log.info("Using LocalAdapter with model %s", settings.llm.model)
    return LocalAdapter(
        model=settings.llm.model,
        temperature=settings.llm.temperature,
        max_tokens=settings.llm.max_tokens,
        timeout=settings.llm.timeout,
        api_key=settings.llm.api_key,
        base_url=settings.llm.base_url,
        cache_control=settings.caching.enabled,
        ttl_type=settings.caching.ttl_type,
        min_cacheable_tokens=settings.caching.min_cacheable_tokens,
        max_attempts=settings.adapter.max_attempts,
        backoff_base_seconds=settings.adapter.backoff_base_seconds,
        backoff_max_seconds=settings.adapter.backoff_max_seconds,
        jitter_factor=settings.adapter.jitter_factor,
        counter=counter,
        pricing=pricing,
    )
