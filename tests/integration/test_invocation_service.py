"""End-to-end tests: aggregate → compose → invoke → record, with fake adapters."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from cachewise.accounting.accountant import CacheAccountant
from cachewise.context.aggregator import ContextAggregator
from cachewise.core.config import AdapterConfig, AggregatorConfig, AppSettings
from cachewise.exceptions import CompositionInvariantViolation, InvocationTimeout, InvocationTransportFailure
from cachewise.inference.remote import RemoteAdapter
from cachewise.models import CacheStats, ToolInvocationRequest
from cachewise.prompts import PromptComposer, SUPPORT_AGENT_TEMPLATE, StaticTemplate
from cachewise.services.invocation_service import InvocationService
from tests.fakes.fake_adapter import FakeCachingAdapter
from tests.fakes.fake_sources import FakeHistorySource, FakeRetrievalSource


class TestColdThenWarm:
    @pytest.mark.asyncio
    async def test_order_scenario(
        self,
        service: InvocationService,
        fake_adapter: FakeCachingAdapter,
        order_request: ToolInvocationRequest,
    ) -> None:
        cold = await service.invoke(order_request)
        warm = await service.invoke(order_request)

        blocks = fake_adapter.calls[0]["blocks"]
        assert [(b.role, b.cache_eligible) for b in blocks] == [
            ("system", True),
            ("system", False),
            ("user", False),
        ]
        assert cold.usage.cached_tokens == 0
        assert warm.usage.cached_tokens == fake_adapter.static_tokens(blocks)
        assert warm.usage.cached_tokens > 0

        stats = service.accountant.snapshot()
        assert stats.requests_total == 2
        assert stats.cache_hits == 1
        assert stats.hit_rate == 0.5

    @pytest.mark.asyncio
    async def test_different_callers_share_prefix(
        self,
        service: InvocationService,
        fake_adapter: FakeCachingAdapter,
        order_request: ToolInvocationRequest,
        full_request: ToolInvocationRequest,
    ) -> None:
        await service.invoke(order_request)
        second = await service.invoke(full_request)
        assert second.usage.cached_tokens > 0
        first_static = fake_adapter.calls[0]["blocks"][0].content
        second_static = fake_adapter.calls[1]["blocks"][0].content
        assert first_static.encode("utf-8") == second_static.encode("utf-8")

    @pytest.mark.asyncio
    async def test_request_forwarded_to_adapter(
        self,
        service: InvocationService,
        fake_adapter: FakeCachingAdapter,
        order_request: ToolInvocationRequest,
    ) -> None:
        await service.invoke(order_request)
        assert fake_adapter.calls[0]["options"].request == order_request


class TestDegradedContext:
    @pytest.mark.asyncio
    async def test_retrieval_timeout_still_answers(
        self,
        composer: PromptComposer,
        fake_adapter: FakeCachingAdapter,
        accountant: CacheAccountant,
        order_request: ToolInvocationRequest,
    ) -> None:
        aggregator = ContextAggregator(retrieval=FakeRetrievalSource(delay=5.0), timeout_seconds=0.05)
        service = InvocationService(aggregator, composer, fake_adapter, accountant)

        result = await service.invoke(order_request)

        assert result.content
        dynamic = fake_adapter.calls[0]["blocks"][1].content
        assert "## Relevant policy passages\nNone." in dynamic
        assert '"status":"shipped"' in dynamic
        assert accountant.snapshot().requests_total == 1


class TestFailuresLeaveStatsUnchanged:
    @pytest.mark.asyncio
    async def test_remote_exhaustion(
        self,
        composer: PromptComposer,
        accountant: CacheAccountant,
        order_request: ToolInvocationRequest,
    ) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            raise httpx.ConnectError("connection refused", request=request)

        async def no_sleep(seconds: float) -> None:
            return None

        adapter = RemoteAdapter(
            "http://support-tool.test/api/invoke",
            max_attempts=3,
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            sleep=no_sleep,
        )
        service = InvocationService(ContextAggregator(), composer, adapter, accountant)

        with pytest.raises(InvocationTransportFailure):
            await service.invoke(order_request)

        assert calls == 3
        assert accountant.snapshot() == CacheStats()

    @pytest.mark.asyncio
    async def test_overall_timeout(
        self,
        composer: PromptComposer,
        accountant: CacheAccountant,
        order_request: ToolInvocationRequest,
    ) -> None:
        service = InvocationService(ContextAggregator(), composer, FakeCachingAdapter(delay=5.0), accountant)
        with pytest.raises(InvocationTimeout):
            await service.invoke(order_request, timeout=0.1)
        assert accountant.snapshot() == CacheStats()

    @pytest.mark.asyncio
    async def test_cancelled_invocation_records_nothing(
        self,
        composer: PromptComposer,
        accountant: CacheAccountant,
        order_request: ToolInvocationRequest,
    ) -> None:
        adapter = FakeCachingAdapter(delay=5.0)
        service = InvocationService(ContextAggregator(), composer, adapter, accountant)

        task = asyncio.create_task(service.invoke(order_request))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert len(adapter.calls) == 1
        assert accountant.snapshot() == CacheStats()

    @pytest.mark.asyncio
    async def test_template_drift_is_fatal(
        self,
        service: InvocationService,
        fake_adapter: FakeCachingAdapter,
        accountant: CacheAccountant,
        order_request: ToolInvocationRequest,
    ) -> None:
        drifted = StaticTemplate(version=SUPPORT_AGENT_TEMPLATE.version, text=SUPPORT_AGENT_TEMPLATE.text + "\n")
        with pytest.raises(CompositionInvariantViolation):
            await service.invoke(order_request, template=drifted)
        assert fake_adapter.calls == []
        assert accountant.snapshot() == CacheStats()


class TestStreaming:
    @pytest.mark.asyncio
    async def test_usage_recorded_after_last_chunk(
        self,
        service: InvocationService,
        accountant: CacheAccountant,
        order_request: ToolInvocationRequest,
    ) -> None:
        stream = await service.stream(order_request)
        chunks = []
        async for chunk in stream:
            chunks.append(chunk)
            assert accountant.snapshot().requests_total == 0

        assert "".join(chunks).strip() == "Your order #123 has shipped."
        assert accountant.snapshot().requests_total == 1

    @pytest.mark.asyncio
    async def test_abandoned_stream_records_nothing(
        self,
        service: InvocationService,
        accountant: CacheAccountant,
        order_request: ToolInvocationRequest,
    ) -> None:
        stream = await service.stream(order_request)
        async for _ in stream:
            break
        await stream.aclose()
        assert accountant.snapshot() == CacheStats()

    @pytest.mark.asyncio
    async def test_stream_timeout_records_nothing(
        self,
        composer: PromptComposer,
        accountant: CacheAccountant,
        order_request: ToolInvocationRequest,
    ) -> None:
        adapter = FakeCachingAdapter(content="one two three four", chunk_delay=0.1)
        service = InvocationService(ContextAggregator(), composer, adapter, accountant)
        stream = await service.stream(order_request, timeout=0.15)
        with pytest.raises(InvocationTimeout) as exc_info:
            async for _ in stream:
                pass
        assert exc_info.value.partial == "one "
        assert accountant.snapshot() == CacheStats()

    @pytest.mark.asyncio
    async def test_deadline_spans_context_and_stream(
        self,
        composer: PromptComposer,
        accountant: CacheAccountant,
        order_request: ToolInvocationRequest,
    ) -> None:
        aggregator = ContextAggregator(history=FakeHistorySource(delay=0.25), timeout_seconds=1.0)
        adapter = FakeCachingAdapter(content="one two three four five", chunk_delay=0.06)
        service = InvocationService(aggregator, composer, adapter, accountant)

        stream = await service.stream(order_request, timeout=0.4)
        received: list[str] = []
        with pytest.raises(InvocationTimeout) as exc_info:
            async for chunk in stream:
                received.append(chunk)

        assert adapter.calls[0]["options"].deadline is not None
        assert len(received) < 5
        assert exc_info.value.partial == "".join(received)
        assert stream.completed is False
        assert accountant.snapshot() == CacheStats()


class TestFromSettings:
    @pytest.mark.asyncio
    async def test_wires_remote_adapter(self) -> None:
        settings = AppSettings(
            adapter=AdapterConfig(mode="remote", remote_url="http://support-tool.test/api/invoke"),
            aggregator=AggregatorConfig(retrieval_backend="static"),
        )
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"response": "ok"}))
        )
        service = InvocationService.from_settings(settings, accountant=CacheAccountant(), client=client)
        result = await service.invoke(ToolInvocationRequest(message="How long does shipping take?"))
        assert result.content == "ok"
        assert service.accountant.snapshot().requests_total == 1
        await service.aclose()
        await client.aclose()

    @pytest.mark.asyncio
    async def test_prepare_uses_static_corpus(self) -> None:
        settings = AppSettings(aggregator=AggregatorConfig(retrieval_backend="static"))
        service = InvocationService.from_settings(settings, adapter=FakeCachingAdapter(), accountant=CacheAccountant())
        blocks = await service.prepare(ToolInvocationRequest(message="How long does shipping take?"))
        assert "shipping-policy" in blocks[1].content
        assert blocks[0].content == SUPPORT_AGENT_TEMPLATE.text
