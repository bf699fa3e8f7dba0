"""Nested pydantic-settings configuration for the application.

Each sub-config reads its own ``CACHEWISE_<GROUP>_*`` env vars, e.g.::

    export CACHEWISE_ADAPTER_MODE=remote
    export CACHEWISE_ADAPTER_REMOTE_URL=http://support-tool:8080/api/invoke
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class LLMConfig(BaseSettings):
    """Model backend used by the local adapter.

    Env vars use ``CACHEWISE_LLM_`` prefix::

        export CACHEWISE_LLM_MODEL=anthropic/claude-sonnet-4-20250514
    """

    model_config = {"env_prefix": "CACHEWISE_LLM_"}

    model: str = "anthropic/claude-sonnet-4-20250514"
    api_key: str = "no-key"
    base_url: Optional[str] = None
    temperature: float = 0.0
    timeout: float = 120.0
    max_tokens: int = 1024


class AdapterConfig(BaseSettings):
    """Invocation adapter selection and remote transport policy.

    Env vars use ``CACHEWISE_ADAPTER_`` prefix.
    """

    model_config = {"env_prefix": "CACHEWISE_ADAPTER_"}

    mode: Literal["local", "remote"] = "local"
    remote_url: str = ""
    max_attempts: int = 3
    backoff_base_seconds: float = 0.5
    backoff_max_seconds: float = 8.0
    jitter_factor: float = 0.5
    request_timeout: float = 60.0


class AggregatorConfig(BaseSettings):
    """Context aggregation configuration.

    Env vars use ``CACHEWISE_AGGREGATOR_`` prefix.
    """

    model_config = {"env_prefix": "CACHEWISE_AGGREGATOR_"}

    timeout_seconds: float = Field(default=2.0, gt=0.0)
    concurrent: bool = True
    retrieval_backend: Literal["none", "static", "http"] = "none"
    retrieval_url: str = ""
    retrieval_top_k: int = Field(default=4, ge=1)
    history_max_turns: int = Field(default=20, ge=0)


class ComposerConfig(BaseSettings):
    """Prompt composition configuration.

    Env vars use ``CACHEWISE_COMPOSER_`` prefix.
    """

    model_config = {"env_prefix": "CACHEWISE_COMPOSER_"}

    template_version: str = "support-v1"
    template_path: Optional[Path] = None
    passage_order: Literal["score", "source"] = "score"


class CachingConfig(BaseSettings):
    """Provider prompt caching configuration.

    Env vars use ``CACHEWISE_CACHING_`` prefix::

        export CACHEWISE_CACHING_ENABLED=true
        export CACHEWISE_CACHING_MIN_CACHEABLE_TOKENS=1024
    """

    model_config = {"env_prefix": "CACHEWISE_CACHING_"}

    enabled: bool = True
    min_cacheable_tokens: int = 1024
    ttl_type: Literal["ephemeral", "long"] = "ephemeral"


class PricingConfig(BaseSettings):
    """Per-million-token prices used for cost estimates.

    Env vars use ``CACHEWISE_PRICING_`` prefix.
    """

    model_config = {"env_prefix": "CACHEWISE_PRICING_"}

    input_per_mtok: float = 3.0
    output_per_mtok: float = 15.0
    cache_read_multiplier: float = Field(default=0.1, ge=0.0, le=1.0)


class TokenizerConfig(BaseSettings):
    """Tokenizer configuration.

    Env vars use ``CACHEWISE_TOKENIZER_`` prefix.
    """

    model_config = {"env_prefix": "CACHEWISE_TOKENIZER_"}

    method: Literal["approximate", "tiktoken"] = "approximate"
    model: str = "gpt-4o"


class ObservabilityConfig(BaseSettings):
    """Observability configuration.

    Env vars use ``CACHEWISE_OBSERVABILITY_`` prefix.
    """

    model_config = {"env_prefix": "CACHEWISE_OBSERVABILITY_"}

    service_name: str = "cachewise"
    log_level: str = "INFO"


class APIConfig(BaseSettings):
    """HTTP surface configuration.

    Env vars use ``CACHEWISE_API_`` prefix.
    """

    model_config = {"env_prefix": "CACHEWISE_API_"}

    title: str = "cachewise"
    description: str = "Cache-aware prompt composition and context aggregation"
    request_timeout_seconds: float = 90.0


class AppSettings(BaseSettings):
    """Top-level application settings aggregating all sub-configs."""

    llm: LLMConfig = LLMConfig()
    adapter: AdapterConfig = AdapterConfig()
    aggregator: AggregatorConfig = AggregatorConfig()
    composer: ComposerConfig = ComposerConfig()
    caching: CachingConfig = CachingConfig()
    pricing: PricingConfig = PricingConfig()
    tokenizer: TokenizerConfig = TokenizerConfig()
    observability: ObservabilityConfig = ObservabilityConfig()
    api: APIConfig = APIConfig()
