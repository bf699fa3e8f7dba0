"""InvocationService — caller → aggregate → compose → invoke → record.

Each call owns its request, bundle and blocks; nothing about a caller is
kept between calls. The accountant is touched only after the upstream
exchange has completed, so a call that times out, fails or is cancelled
leaves the cache statistics exactly as they were.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

import httpx

from cachewise.accounting.accountant import CacheAccountant, get_accountant
from cachewise.accounting.pricing import ModelPricing
from cachewise.context.aggregator import ContextAggregator
from cachewise.context.prefix.stabilizer import PrefixStabilizer
from cachewise.context.protocols import IRetrievalSource
from cachewise.context.sources import (
    HttpRetrievalSource,
    NullRetrievalSource,
    RequestHistorySource,
    StaticRetrievalSource,
)
from cachewise.exceptions import InvocationTimeout
from cachewise.hooks.invocation_context import bind_invocation, unbind_invocation
from cachewise.inference.factory import create_invocation_adapter
from cachewise.inference.protocols import IInvocationAdapter, InvocationOptions
from cachewise.inference.streaming import ChunkStream
from cachewise.models import InvocationResult, MessageBlock, ToolInvocationRequest
from cachewise.prompts import PromptComposer, StaticTemplate, load_template
from cachewise.tokenizer import TokenCounter

if TYPE_CHECKING:
    from cachewise.core.config import AppSettings

log = logging.getLogger(__name__)


class InvocationService:
    """The stateless tool surface exposed to the orchestrator.

    Usage::

        service = InvocationService.from_settings(AppSettings())
        result = await service.invoke(ToolInvocationRequest(message="Where is my order?"))
        print(result.content, service.accountant.snapshot().hit_rate)
    """

    def __init__(
        self,
        aggregator: ContextAggregator,
        composer: PromptComposer,
        adapter: IInvocationAdapter,
        accountant: CacheAccountant,
        *,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        self._aggregator = aggregator
        self._composer = composer
        self._adapter = adapter
        self._accountant = accountant
        self._timeout = timeout_seconds

    @classmethod
    def from_settings(
        cls,
        settings: AppSettings,
        *,
        adapter: Optional[IInvocationAdapter] = None,
        accountant: Optional[CacheAccountant] = None,
        retrieval: Optional[IRetrievalSource] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> InvocationService:
        """Wire every component from settings; explicit arguments override."""
        counter = TokenCounter(method=settings.tokenizer.method, model=settings.tokenizer.model)
        template = load_template(settings.composer.template_version, settings.composer.template_path)

        aggregator = ContextAggregator(
            history=RequestHistorySource(max_turns=settings.aggregator.history_max_turns),
            retrieval=retrieval or _retrieval_from_settings(settings, client),
            timeout_seconds=settings.aggregator.timeout_seconds,
            top_k=settings.aggregator.retrieval_top_k,
            concurrent=settings.aggregator.concurrent,
        )
        composer = PromptComposer(
            template,
            stabilizer=PrefixStabilizer(settings.composer.passage_order),
        )
        return cls(
            aggregator,
            composer,
            adapter or create_invocation_adapter(settings, counter=counter, client=client),
            accountant or get_accountant(ModelPricing.from_config(settings.pricing)),
            timeout_seconds=settings.api.request_timeout_seconds,
        )

    @property
    def accountant(self) -> CacheAccountant:
        return self._accountant

    @property
    def composer(self) -> PromptComposer:
        return self._composer

    async def invoke(
        self,
        request: ToolInvocationRequest,
        *,
        timeout: Optional[float] = None,
        template: Optional[StaticTemplate] = None,
    ) -> InvocationResult:
        """Run one non-streaming invocation end to end.

        Raises:
            CompositionInvariantViolation: The static prefix cannot be guaranteed.
            InvocationTransportFailure: The remote adapter exhausted its retries.
            InvocationTimeout: The whole invocation exceeded ``timeout``.
        """
        budget = self._timeout if timeout is None else timeout
        invocation_id = bind_invocation()
        try:
            if budget is None:
                return await self._run(request, None, template)
            return await asyncio.wait_for(self._run(request, budget, template), timeout=budget)
        except asyncio.TimeoutError:
            log.warning("Invocation %s exceeded %.1fs", invocation_id, budget)
            raise InvocationTimeout(f"invocation exceeded {budget:.1f}s") from None
        finally:
            unbind_invocation()

    async def stream(
        self,
        request: ToolInvocationRequest,
        *,
        timeout: Optional[float] = None,
        template: Optional[StaticTemplate] = None,
    ) -> ChunkStream:
        """Prepare a streaming invocation.

        Context gathering and composition happen before this returns; the
        returned stream records usage only when it reaches a clean end.
        ``timeout`` is one deadline, fixed now, shared by context gathering,
        opening the stream and reading every chunk.
        """
        budget = self._timeout if timeout is None else timeout
        invocation_id = bind_invocation()
        deadline = None if budget is None else asyncio.get_running_loop().time() + budget
        try:
            prepare = self.prepare(request, budget, template)
            blocks = await (prepare if budget is None else asyncio.wait_for(prepare, timeout=budget))
            options = InvocationOptions(stream=True, timeout=budget, request=request, deadline=deadline)
            opening = self._adapter.invoke(blocks, options)
            stream = await (opening if deadline is None else asyncio.wait_for(opening, timeout=options.remaining()))
        except asyncio.TimeoutError:
            log.warning("Invocation %s exceeded %.1fs before streaming", invocation_id, budget)
            raise InvocationTimeout(f"invocation exceeded {budget:.1f}s before streaming") from None
        finally:
            unbind_invocation()

        if not isinstance(stream, ChunkStream):
            raise TypeError(f"{type(self._adapter).__name__} returned {type(stream).__name__} for a streaming call")
        stream.on_complete(self._accountant.record)
        return stream

    async def prepare(
        self,
        request: ToolInvocationRequest,
        budget: Optional[float] = None,
        template: Optional[StaticTemplate] = None,
    ) -> list[MessageBlock]:
        """Gather context and compose the blocks without invoking anything."""
        bundle = await self._aggregator.gather(request, timeout=_context_budget(self._aggregator, budget))
        if bundle.degraded:
            log.info("Context degraded for: %s", ", ".join(sorted(bundle.degraded)))
        return self._composer.compose(request.message, bundle, template=template)

    async def _run(
        self,
        request: ToolInvocationRequest,
        budget: Optional[float],
        template: Optional[StaticTemplate],
    ) -> InvocationResult:
        blocks = await self.prepare(request, budget, template)
        result = await self._adapter.invoke(blocks, InvocationOptions(timeout=budget, request=request))
        if not isinstance(result, InvocationResult):
            raise TypeError(f"{type(self._adapter).__name__} returned {type(result).__name__} for a non-streaming call")
        self._accountant.record(result.usage)
        log.info(
            "Invocation complete: total_tokens=%d cached_tokens=%d cost=%.6f",
            result.usage.total_tokens, result.usage.cached_tokens, result.usage.cost_estimate,
        )
        return result

    async def aclose(self) -> None:
        await self._adapter.aclose()


def _context_budget(aggregator: ContextAggregator, budget: Optional[float]) -> Optional[float]:
    # The fetch deadline never exceeds the caller's overall deadline.
    if budget is None:
        return None
    return min(aggregator.timeout_seconds, budget)


def _retrieval_from_settings(
    settings: AppSettings,
    client: Optional[httpx.AsyncClient],
) -> IRetrievalSource:
    backend = settings.aggregator.retrieval_backend
    if backend == "http":
        return HttpRetrievalSource(
            settings.aggregator.retrieval_url,
            timeout=settings.aggregator.timeout_seconds,
            client=client,
        )
    if backend == "static":
        from cachewise.context.policy_corpus import DEFAULT_POLICY_PASSAGES

        return StaticRetrievalSource(DEFAULT_POLICY_PASSAGES)
    return NullRetrievalSource()
