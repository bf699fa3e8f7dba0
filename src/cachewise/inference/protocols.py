"""Invocation adapter protocol — the one operation both variants implement."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Protocol, Sequence, Union, runtime_checkable

from cachewise.models import InvocationResult, MessageBlock, ToolInvocationRequest

if TYPE_CHECKING:
    from cachewise.inference.streaming import ChunkStream


@dataclass(frozen=True)
class InvocationOptions:
    """Per-call options.

    ``request`` is the original invocation request; the remote variant
    forwards its fields, the local variant ignores it.

    ``deadline`` is an absolute event-loop time (``loop.time()``) by which the
    whole invocation, stream included, must finish. When set it wins over
    ``timeout``.
    """

    stream: bool = False
    timeout: Optional[float] = None
    request: Optional[ToolInvocationRequest] = None
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    deadline: Optional[float] = None

    def remaining(self) -> Optional[float]:
        """Seconds left before ``deadline``, else ``timeout``. Never negative."""
        if self.deadline is None:
            return self.timeout
        return max(0.0, self.deadline - asyncio.get_running_loop().time())


@runtime_checkable
class IInvocationAdapter(Protocol):
    """Protocol for invocation adapters.

    The variant (in-process or network) is chosen when the adapter is built,
    never per call. Both return a complete :class:`InvocationResult`, or a
    :class:`ChunkStream` when ``options.stream`` is set.
    """

    async def invoke(
        self,
        blocks: Sequence[MessageBlock],
        options: InvocationOptions = InvocationOptions(),
    ) -> Union[InvocationResult, ChunkStream]:
        """Send a composed request downstream.

        Args:
            blocks: Composed blocks in cache order.
            options: Streaming, deadline and model overrides.

        Returns:
            The full result, or a lazy chunk stream when streaming.
        """
        ...

    async def aclose(self) -> None:
        """Release any connections the adapter owns."""
        ...
