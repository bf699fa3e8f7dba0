"""ChunkStream — lazy, finite, single-pass sequence of response text chunks.

Adapters feed a ChunkStream from an async generator that yields ``str``
chunks and, at most once and last, a :class:`UsageEnvelope`. The envelope is
held back until the generator is exhausted, so ``usage`` is ``None`` for the
whole stream and only appears after a clean end. A deadline that fires
mid-stream raises :class:`InvocationTimeout` carrying the partial text; that
is never confused with a clean end of stream.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Callable, Optional, Union

from cachewise.exceptions import InvocationTimeout
from cachewise.models import InvocationResult, UsageEnvelope

log = logging.getLogger(__name__)

StreamEvent = Union[str, UsageEnvelope]


class ChunkStream:
    """Async iterator over response chunks with end-of-stream usage.

    Args:
        events: Adapter generator of text chunks and a trailing usage envelope.
        timeout: Deadline in seconds for the whole stream, measured from the
            first read. ``None`` disables it.
        deadline: Absolute event-loop time by which the stream must end. It
            is fixed at construction and wins over ``timeout``, so time spent
            before the first read counts against the caller.
        usage_fallback: Builds an estimated envelope from the full text when
            the upstream reported no usage.
    """

    def __init__(
        self,
        events: AsyncIterator[StreamEvent],
        *,
        timeout: Optional[float] = None,
        deadline: Optional[float] = None,
        usage_fallback: Optional[Callable[[str], UsageEnvelope]] = None,
    ) -> None:
        self._events = events
        self._timeout = timeout
        self._usage_fallback = usage_fallback
        self._deadline: Optional[float] = deadline
        self._parts: list[str] = []
        self._usage: Optional[UsageEnvelope] = None
        self._started = False
        self._finished = False
        self._completed = False
        self._listeners: list[Callable[[UsageEnvelope], None]] = []

    # ── Public state ─────────────────────────────────────────────────

    @property
    def usage(self) -> Optional[UsageEnvelope]:
        """Usage envelope; ``None`` until the stream has completed cleanly."""
        return self._usage if self._completed else None

    @property
    def completed(self) -> bool:
        """True only after a clean end of stream."""
        return self._completed

    @property
    def text(self) -> str:
        """All text received so far."""
        return "".join(self._parts)

    def on_complete(self, callback: Callable[[UsageEnvelope], None]) -> None:
        """Register a callback fired once with the final usage after a clean end."""
        self._listeners.append(callback)

    # ── Iteration ────────────────────────────────────────────────────

    def __aiter__(self) -> ChunkStream:
        if self._started:
            raise RuntimeError("ChunkStream is single-pass and has already been iterated")
        self._started = True
        return self

    async def __anext__(self) -> str:
        if self._finished:
            raise StopAsyncIteration
        self._started = True
        loop = asyncio.get_running_loop()
        if self._timeout is not None and self._deadline is None:
            self._deadline = loop.time() + self._timeout

        while True:
            try:
                if self._deadline is None:
                    event = await self._events.__anext__()
                else:
                    remaining = self._deadline - loop.time()
                    if remaining <= 0:
                        raise asyncio.TimeoutError
                    event = await asyncio.wait_for(self._events.__anext__(), timeout=remaining)
            except StopAsyncIteration:
                self._finish_cleanly()
                raise
            except asyncio.TimeoutError:
                self._finished = True
                await self._close_events()
                log.warning("Stream timed out after %d chunks", len(self._parts))
                raise InvocationTimeout(
                    "stream did not complete before its deadline",
                    partial=self.text,
                ) from None
            except BaseException:
                self._finished = True
                await self._close_events()
                raise

            if isinstance(event, UsageEnvelope):
                self._usage = event
                continue
            if event:
                self._parts.append(event)
                return event

    async def collect(self) -> InvocationResult:
        """Drain the stream into a non-streaming result."""
        async for _ in self:
            pass
        if not self._completed or self._usage is None:
            raise RuntimeError("ChunkStream ended without completing")
        return InvocationResult(content=self.text, usage=self._usage)

    async def aclose(self) -> None:
        """Abandon the stream. Nothing is reported for an abandoned stream."""
        self._finished = True
        await self._close_events()

    # ── Internals ────────────────────────────────────────────────────

    def _finish_cleanly(self) -> None:
        self._finished = True
        if self._usage is None:
            self._usage = self._usage_fallback(self.text) if self._usage_fallback else UsageEnvelope()
        self._completed = True
        for callback in self._listeners:
            callback(self._usage)

    async def _close_events(self) -> None:
        aclose = getattr(self._events, "aclose", None)
        if aclose is None:
            return
        try:
            await aclose()
        except Exception as e:
            log.debug("Error closing upstream stream: %s", e)
