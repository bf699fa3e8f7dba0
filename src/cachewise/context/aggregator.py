"""ContextAggregator — fan-out/fan-in fetch of the three context fragments.

History, metadata and retrieval are fetched as independent tasks joined
under one shared deadline. Any fetch that raises or misses the deadline
contributes its degraded default instead of failing the invocation, and the
bundle is only built once every fetch has either finished or degraded.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from cachewise.context.protocols import IHistorySource, IMetadataSource, IRetrievalSource
from cachewise.context.sources import NullRetrievalSource, RequestHistorySource, RequestMetadataSource
from cachewise.exceptions import DegradableContextFailure
from cachewise.models import ContextBundle, ConversationTurn, RetrievedPassage, ToolInvocationRequest

log = logging.getLogger(__name__)

_Fetch = Callable[[], Awaitable[Any]]

# Field order is fixed so the bundle never depends on completion order.
_FIELDS = ("history", "metadata", "retrieval")
_DEFAULTS: dict[str, Callable[[], Any]] = {
    "history": tuple,
    "metadata": dict,
    "retrieval": tuple,
}


class ContextAggregator:
    """Builds a :class:`ContextBundle` for one invocation.

    Usage::

        aggregator = ContextAggregator(retrieval=StaticRetrievalSource(corpus))
        bundle = await aggregator.gather(request, timeout=1.5)
    """

    def __init__(
        self,
        *,
        history: Optional[IHistorySource] = None,
        metadata: Optional[IMetadataSource] = None,
        retrieval: Optional[IRetrievalSource] = None,
        timeout_seconds: float = 2.0,
        top_k: int = 4,
        concurrent: bool = True,
    ) -> None:
        self._history = history or RequestHistorySource()
        self._metadata = metadata or RequestMetadataSource()
        self._retrieval = retrieval or NullRetrievalSource()
        self._timeout = timeout_seconds
        self._top_k = top_k
        self._concurrent = concurrent

    @property
    def timeout_seconds(self) -> float:
        return self._timeout

    async def gather(
        self,
        request: ToolInvocationRequest,
        *,
        timeout: Optional[float] = None,
    ) -> ContextBundle:
        """Fetch all three fragments and fold them into one bundle.

        Args:
            request: The invocation request; its query drives retrieval.
            timeout: Shared deadline for all fetches. Defaults to the
                aggregator's configured timeout.

        Returns:
            A fully-populated bundle. Fields whose fetch failed hold their
            empty default and are listed in ``bundle.degraded``.
        """
        budget = self._timeout if timeout is None else timeout
        fetches: dict[str, _Fetch] = {
            "history": lambda: self._fetch_history(request),
            "metadata": lambda: self._fetch_metadata(request),
            "retrieval": lambda: self._fetch_passages(request.message),
        }

        if self._concurrent:
            outcomes = await self._run_concurrent(fetches, budget)
        else:
            outcomes = await self._run_sequential(fetches, budget)

        values: dict[str, Any] = {}
        degraded: set[str] = set()
        for name in _FIELDS:
            outcome = outcomes[name]
            if isinstance(outcome, DegradableContextFailure):
                log.warning("%s; continuing with empty %s", outcome, name)
                values[name] = _DEFAULTS[name]()
                degraded.add(name)
            else:
                values[name] = outcome

        return ContextBundle(
            history=values["history"],
            metadata=values["metadata"],
            retrieved_passages=values["retrieval"],
            degraded=frozenset(degraded),
        )

    # ── Join strategies ──────────────────────────────────────────────

    async def _run_concurrent(self, fetches: dict[str, _Fetch], budget: float) -> dict[str, Any]:
        tasks = {name: asyncio.create_task(fetch(), name=f"context-{name}") for name, fetch in fetches.items()}
        try:
            _, pending = await asyncio.wait(tasks.values(), timeout=budget)
        finally:
            # Also reached when the caller cancels us: no fetch may outlive the join.
            for task in tasks.values():
                if not task.done():
                    task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        outcomes: dict[str, Any] = {}
        for name, task in tasks.items():
            if task in pending:
                outcomes[name] = DegradableContextFailure(name, f"timed out after {budget:.2f}s")
            elif task.exception() is not None:
                outcomes[name] = _as_failure(name, task.exception())
            else:
                outcomes[name] = task.result()
        return outcomes

    async def _run_sequential(self, fetches: dict[str, _Fetch], budget: float) -> dict[str, Any]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + budget
        outcomes: dict[str, Any] = {}
        for name, fetch in fetches.items():
            remaining = deadline - loop.time()
            if remaining <= 0:
                outcomes[name] = DegradableContextFailure(name, "deadline exhausted before fetch started")
                continue
            try:
                outcomes[name] = await asyncio.wait_for(fetch(), timeout=remaining)
            except asyncio.TimeoutError:
                outcomes[name] = DegradableContextFailure(name, f"timed out after {budget:.2f}s")
            except Exception as e:
                outcomes[name] = _as_failure(name, e)
        return outcomes

    # ── Individual fetches (normalize shapes inside the task) ────────

    async def _fetch_history(self, request: ToolInvocationRequest) -> tuple[ConversationTurn, ...]:
        turns = await self._history.fetch_history(request)
        return tuple(t if isinstance(t, ConversationTurn) else ConversationTurn.model_validate(t) for t in turns)

    async def _fetch_metadata(self, request: ToolInvocationRequest) -> dict[str, Any]:
        return dict(await self._metadata.fetch_metadata(request))

    async def _fetch_passages(self, query: str) -> tuple[RetrievedPassage, ...]:
        passages = await self._retrieval.retrieve(query, top_k=self._top_k)
        return tuple(passages[: self._top_k])


def _as_failure(name: str, exc: BaseException) -> DegradableContextFailure:
    if isinstance(exc, DegradableContextFailure):
        return exc
    return DegradableContextFailure(name, f"{type(exc).__name__}: {exc}")
