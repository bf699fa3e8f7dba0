"""In-process invocation adapter — calls the model through litellm.acompletion().

Rate limits, provider 5xx and connection errors are retried with the same
bounded backoff as the remote variant. Authentication, bad-request and other
provider errors fail on the first attempt. LiteLLM timeouts surface as
``InvocationTimeout`` and are not retried.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Sequence, Union

from cachewise.accounting.pricing import ModelPricing
from cachewise.accounting.usage import estimate_usage, normalize_usage
from cachewise.context.factoring.layer_builder import render_messages
from cachewise.exceptions import InvocationTimeout, NonRetryableError, RetryableError
from cachewise.inference.protocols import InvocationOptions
from cachewise.inference.retry import with_retries
from cachewise.inference.streaming import ChunkStream, StreamEvent
from cachewise.models import InvocationResult, MessageBlock, UsageEnvelope
from cachewise.tokenizer import TokenCounter

log = logging.getLogger(__name__)


class LocalAdapter:
    """Runs the model call inside this process via LiteLLM.

    Supports ``anthropic/``, ``bedrock/`` and ``openai/`` model prefixes; the
    cache breakpoint is rendered as ``cache_control`` on the static block.
    """

    def __init__(
        self,
        *,
        model: str,
        temperature: float = 0.0,
        max_tokens: int = 1024,
        timeout: float = 120.0,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        cache_control: bool = True,
        ttl_type: str = "ephemeral",
        min_cacheable_tokens: int = 0,
        max_attempts: int = 3,
        backoff_base_seconds: float = 0.5,
        backoff_max_seconds: float = 8.0,
        jitter_factor: float = 0.5,
        counter: Optional[TokenCounter] = None,
        pricing: Optional[ModelPricing] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._timeout = timeout
        self._api_key = api_key
        self._base_url = base_url
        self._cache_control = cache_control
        self._ttl_type = ttl_type
        self._min_cacheable_tokens = min_cacheable_tokens
        self._max_attempts = max_attempts
        self._backoff_base = backoff_base_seconds
        self._backoff_max = backoff_max_seconds
        self._jitter_factor = jitter_factor
        self._counter = counter or TokenCounter()
        self._pricing = pricing or ModelPricing()
        self._sleep = sleep

    @property
    def model(self) -> str:
        return self._model

    async def invoke(
        self,
        blocks: Sequence[MessageBlock],
        options: InvocationOptions = InvocationOptions(),
    ) -> Union[InvocationResult, ChunkStream]:
        """Single model call; streams when ``options.stream`` is set."""
        from litellm import acompletion

        remaining = options.remaining()
        timeout = remaining if remaining is not None else self._timeout
        kwargs = self._build_kwargs(blocks, options, timeout)

        if options.stream:
            kwargs["stream"] = True
            kwargs["stream_options"] = {"include_usage": True}
            response = await self._call(acompletion, kwargs, timeout)
            return ChunkStream(
                self._events(response),
                timeout=timeout,
                deadline=options.deadline,
                usage_fallback=lambda text: self._estimate_usage(blocks, text),
            )

        response = await self._call(acompletion, kwargs, timeout)
        content = response.choices[0].message.content or ""
        reason = response.choices[0].finish_reason
        raw_usage = getattr(response, "usage", None)
        usage = (
            normalize_usage(raw_usage, self._pricing)
            if raw_usage
            else self._estimate_usage(blocks, content)
        )
        return InvocationResult(
            content=content,
            usage=usage,
            finish_reason="max_output_reached" if reason == "length" else "finished",
        )

    async def aclose(self) -> None:
        """No-op — LiteLLM manages its own connection pooling."""

    # ── Internals ────────────────────────────────────────────────────

    def _build_kwargs(
        self,
        blocks: Sequence[MessageBlock],
        options: InvocationOptions,
        timeout: float,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": options.model or self._model,
            "messages": render_messages(
                blocks,
                cache_control=self._cache_control,
                ttl_type=self._ttl_type,
                min_cacheable_tokens=self._min_cacheable_tokens,
                counter=self._counter,
            ),
            "temperature": options.temperature if options.temperature is not None else self._temperature,
            "max_tokens": options.max_tokens or self._max_tokens,
            "timeout": timeout,
        }
        if self._api_key and self._api_key != "no-key":
            kwargs["api_key"] = self._api_key
        if self._base_url:
            kwargs["api_base"] = self._base_url
        return kwargs

    async def _call(self, acompletion: Any, kwargs: dict[str, Any], timeout: float) -> Any:
        # One deadline covers every attempt and the waits between them.
        try:
            return await asyncio.wait_for(
                with_retries(
                    lambda: self._attempt(acompletion, kwargs),
                    max_attempts=self._max_attempts,
                    backoff_base_seconds=self._backoff_base,
                    backoff_max_seconds=self._backoff_max,
                    jitter_factor=self._jitter_factor,
                    sleep=self._sleep,
                    label="Local model call",
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            raise InvocationTimeout(f"model {kwargs['model']} did not respond within {timeout:.1f}s") from None

    @staticmethod
    async def _attempt(acompletion: Any, kwargs: dict[str, Any]) -> Any:
        from litellm.exceptions import (
            APIConnectionError,
            InternalServerError,
            RateLimitError,
            ServiceUnavailableError,
        )
        from litellm.exceptions import Timeout as LLMTimeout

        try:
            return await acompletion(**kwargs)
        except LLMTimeout as e:
            raise InvocationTimeout(f"model {kwargs['model']} timed out: {e}") from e
        except (RateLimitError, ServiceUnavailableError, InternalServerError, APIConnectionError) as e:
            raise RetryableError(
                f"local model call failed: {e}", status_code=getattr(e, "status_code", None)
            ) from e
        except Exception as e:
            log.error("Local model call failed: %s", e)
            raise NonRetryableError(
                f"local model call failed: {e}", status_code=getattr(e, "status_code", None)
            ) from e

    async def _events(self, response: Any) -> AsyncIterator[StreamEvent]:
        usage: Optional[UsageEnvelope] = None
        async for chunk in response:
            choices = getattr(chunk, "choices", None) or []
            if choices:
                delta = getattr(choices[0], "delta", None)
                text = getattr(delta, "content", None)
                if isinstance(text, str) and text:
                    yield text
            raw_usage = getattr(chunk, "usage", None)
            if raw_usage:
                usage = normalize_usage(raw_usage, self._pricing)
        if usage is not None:
            yield usage

    def _estimate_usage(self, blocks: Sequence[MessageBlock], completion: str) -> UsageEnvelope:
        return estimate_usage(blocks, completion, self._counter, self._pricing)
