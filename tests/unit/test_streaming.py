"""Tests for ChunkStream — single-pass chunks with end-of-stream usage."""

from __future__ import annotations

import asyncio
from typing import AsyncIterator

import pytest

from cachewise.exceptions import InvocationTimeout
from cachewise.inference.streaming import ChunkStream, StreamEvent
from cachewise.models import UsageEnvelope

_USAGE = UsageEnvelope(total_tokens=120, cached_tokens=100, prompt_tokens=110, completion_tokens=10)


async def _events(
    chunks: list[str],
    *,
    usage: UsageEnvelope | None = _USAGE,
    delay: float = 0.0,
    error: Exception | None = None,
) -> AsyncIterator[StreamEvent]:
    for chunk in chunks:
        if delay:
            await asyncio.sleep(delay)
        yield chunk
    if error is not None:
        raise error
    if usage is not None:
        yield usage


class TestIteration:
    @pytest.mark.asyncio
    async def test_yields_text_only(self) -> None:
        stream = ChunkStream(_events(["Your ", "order ", "shipped."]))
        chunks = [chunk async for chunk in stream]
        assert chunks == ["Your ", "order ", "shipped."]
        assert stream.text == "Your order shipped."

    @pytest.mark.asyncio
    async def test_usage_only_after_clean_end(self) -> None:
        stream = ChunkStream(_events(["a", "b"]))
        seen: list[object] = []
        async for _ in stream:
            seen.append(stream.usage)
        assert seen == [None, None]
        assert stream.completed is True
        assert stream.usage == _USAGE

    @pytest.mark.asyncio
    async def test_single_pass(self) -> None:
        stream = ChunkStream(_events(["a"]))
        async for _ in stream:
            pass
        with pytest.raises(RuntimeError, match="single-pass"):
            async for _ in stream:
                pass

    @pytest.mark.asyncio
    async def test_collect(self) -> None:
        result = await ChunkStream(_events(["x", "y"])).collect()
        assert result.content == "xy"
        assert result.usage == _USAGE

    @pytest.mark.asyncio
    async def test_fallback_when_upstream_reports_no_usage(self) -> None:
        stream = ChunkStream(
            _events(["abcd"], usage=None),
            usage_fallback=lambda text: UsageEnvelope(total_tokens=len(text)),
        )
        async for _ in stream:
            pass
        assert stream.usage == UsageEnvelope(total_tokens=4)

    @pytest.mark.asyncio
    async def test_empty_usage_without_fallback(self) -> None:
        stream = ChunkStream(_events(["abcd"], usage=None))
        async for _ in stream:
            pass
        assert stream.usage == UsageEnvelope()


class TestCompletionCallbacks:
    @pytest.mark.asyncio
    async def test_fired_once_on_clean_end(self) -> None:
        recorded: list[UsageEnvelope] = []
        stream = ChunkStream(_events(["a"]))
        stream.on_complete(recorded.append)
        await stream.collect()
        assert recorded == [_USAGE]

    @pytest.mark.asyncio
    async def test_not_fired_when_abandoned(self) -> None:
        recorded: list[UsageEnvelope] = []
        stream = ChunkStream(_events(["a", "b", "c"]))
        stream.on_complete(recorded.append)
        async for _ in stream:
            break
        await stream.aclose()
        assert recorded == []
        assert stream.completed is False
        assert stream.usage is None

    @pytest.mark.asyncio
    async def test_not_fired_on_upstream_error(self) -> None:
        recorded: list[UsageEnvelope] = []
        stream = ChunkStream(_events(["a"], error=ConnectionError("reset")))
        stream.on_complete(recorded.append)
        with pytest.raises(ConnectionError):
            async for _ in stream:
                pass
        assert recorded == []
        assert stream.usage is None


class TestTimeout:
    @pytest.mark.asyncio
    async def test_mid_stream_timeout_is_partial_failure(self) -> None:
        recorded: list[UsageEnvelope] = []
        stream = ChunkStream(_events(["one ", "two ", "three"], delay=0.1), timeout=0.15)
        stream.on_complete(recorded.append)
        received: list[str] = []
        with pytest.raises(InvocationTimeout) as exc_info:
            async for chunk in stream:
                received.append(chunk)

        assert exc_info.value.incomplete is True
        assert exc_info.value.partial == "".join(received)
        assert received == ["one "]
        assert stream.completed is False
        assert stream.usage is None
        assert recorded == []

    @pytest.mark.asyncio
    async def test_iteration_after_timeout_stops(self) -> None:
        stream = ChunkStream(_events(["a"], delay=0.2), timeout=0.01)
        with pytest.raises(InvocationTimeout):
            await stream.__anext__()
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()

    @pytest.mark.asyncio
    async def test_fast_stream_within_deadline(self) -> None:
        stream = ChunkStream(_events(["a", "b"], delay=0.001), timeout=1.0)
        result = await stream.collect()
        assert result.content == "ab"

    @pytest.mark.asyncio
    async def test_absolute_deadline_counts_time_before_first_read(self) -> None:
        loop = asyncio.get_running_loop()
        stream = ChunkStream(_events(["a", "b"], delay=0.05), timeout=10.0, deadline=loop.time() + 0.08)
        await asyncio.sleep(0.06)
        with pytest.raises(InvocationTimeout) as exc_info:
            await stream.collect()
        assert exc_info.value.partial == ""
        assert stream.completed is False


class TestCollect:
    @pytest.mark.asyncio
    async def test_abandoned_stream_cannot_be_collected(self) -> None:
        stream = ChunkStream(_events(["a"]))
        await stream.aclose()
        with pytest.raises(RuntimeError, match="without completing"):
            await stream.collect()
