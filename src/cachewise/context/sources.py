"""Built-in context sources.

History and metadata are read from the request itself: persistence belongs
to the orchestrator, so this layer only sees what the caller passes in.
Retrieval can be disabled, served from an in-memory corpus, or delegated to
an HTTP search service.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, Mapping, Optional, Sequence

import httpx

from cachewise.models import ConversationTurn, RetrievedPassage, ToolInvocationRequest

log = logging.getLogger(__name__)

_WORD = re.compile(r"[a-z0-9]+")


class RequestHistorySource:
    """Serves the ``conversation_history`` carried on the request."""

    def __init__(self, max_turns: int = 20) -> None:
        self._max_turns = max_turns

    async def fetch_history(self, request: ToolInvocationRequest) -> Sequence[ConversationTurn]:
        history = request.conversation_history
        if self._max_turns == 0:
            return []
        return list(history[-self._max_turns:])


class RequestMetadataSource:
    """Serves ``user_metadata`` and ``order_context`` from the request.

    Empty mappings are left out so an absent field adds nothing to the prompt.
    """

    async def fetch_metadata(self, request: ToolInvocationRequest) -> Mapping[str, Any]:
        metadata: dict[str, Any] = {}
        if request.user_metadata:
            metadata["user_metadata"] = dict(request.user_metadata)
        if request.order_context:
            metadata["order_context"] = dict(request.order_context)
        return metadata


class NullRetrievalSource:
    """Retrieval disabled — always returns no passages."""

    async def retrieve(self, query: str, *, top_k: int) -> Sequence[RetrievedPassage]:
        return []


class StaticRetrievalSource:
    """Keyword-overlap retrieval over a fixed in-memory corpus.

    Scores are the fraction of query terms present in the passage, so they
    always lie in [0, 1]. Passages with no overlap are never returned.
    """

    def __init__(self, passages: Iterable[tuple[str, str]]) -> None:
        self._corpus = [(source, text, set(_WORD.findall(text.lower()))) for source, text in passages]

    async def retrieve(self, query: str, *, top_k: int) -> Sequence[RetrievedPassage]:
        terms = set(_WORD.findall(query.lower()))
        if not terms:
            return []
        scored: list[RetrievedPassage] = []
        for source, text, words in self._corpus:
            overlap = len(terms & words)
            if overlap:
                scored.append(RetrievedPassage(text=text, relevance_score=overlap / len(terms), source=source))
        scored.sort(key=lambda p: (-p.relevance_score, p.source))
        return scored[:top_k]


class HttpRetrievalSource:
    """Delegates retrieval to a search service.

    Contract: ``POST {url}`` with ``{"query": str, "top_k": int}`` returns
    ``{"passages": [{"text": str, "score": float, "source": str}, ...]}``.
    Errors propagate; the aggregator degrades them to an empty result.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._client = client

    async def retrieve(self, query: str, *, top_k: int) -> Sequence[RetrievedPassage]:
        payload = {"query": query, "top_k": top_k}
        if self._client is not None:
            response = await self._client.post(self._url, json=payload, timeout=self._timeout)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self._url, json=payload)
        response.raise_for_status()
        body = response.json()
        return [
            RetrievedPassage(
                text=str(item["text"]),
                relevance_score=float(item.get("score", 0.0)),
                source=str(item.get("source", "")),
            )
            for item in body.get("passages", [])[:top_k]
        ]
