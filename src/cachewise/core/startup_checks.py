"""Startup validation: fail-fast on critical misconfigurations."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cachewise.core.config import AppSettings
    from cachewise.prompts.template import StaticTemplate
    from cachewise.tokenizer import TokenCounter

log = logging.getLogger(__name__)


def validate_settings(settings: AppSettings) -> None:
    """Validate application settings at startup. Raises ValueError on fatal misconfig."""
    _check_adapter(settings)
    _check_retrieval(settings)


def warn_if_uncacheable(
    settings: AppSettings,
    template: StaticTemplate,
    counter: TokenCounter,
) -> None:
    """Warn when caching is on but the static block is too short for the provider to cache."""
    if not settings.caching.enabled:
        return
    tokens = counter.count(template.text)
    if tokens < settings.caching.min_cacheable_tokens:
        log.warning(
            "Static template %r is ~%d tokens, below CACHEWISE_CACHING_MIN_CACHEABLE_TOKENS=%d; "
            "the provider will not cache it and every request will be a miss.",
            template.version, tokens, settings.caching.min_cacheable_tokens,
        )


def _check_adapter(settings: AppSettings) -> None:
    if settings.adapter.mode == "remote" and not settings.adapter.remote_url:
        raise ValueError(
            "CACHEWISE_ADAPTER_MODE=remote requires CACHEWISE_ADAPTER_REMOTE_URL."
        )
    if settings.adapter.max_attempts < 1:
        raise ValueError(
            f"CACHEWISE_ADAPTER_MAX_ATTEMPTS must be >= 1, got {settings.adapter.max_attempts}."
        )


def _check_retrieval(settings: AppSettings) -> None:
    if settings.aggregator.retrieval_backend == "http" and not settings.aggregator.retrieval_url:
        raise ValueError(
            "CACHEWISE_AGGREGATOR_RETRIEVAL_BACKEND=http requires CACHEWISE_AGGREGATOR_RETRIEVAL_URL."
        )
