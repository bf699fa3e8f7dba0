"""Context source protocols — call contracts for the three independent fetches.

The backends behind these (session store, order service, vector index) are
owned by other services. Only the call shape matters here.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol, Sequence, runtime_checkable

from cachewise.models import ConversationTurn, RetrievedPassage, ToolInvocationRequest


@runtime_checkable
class IHistorySource(Protocol):
    """Looks up the prior turns of the conversation."""

    async def fetch_history(self, request: ToolInvocationRequest) -> Sequence[ConversationTurn]:
        ...


@runtime_checkable
class IMetadataSource(Protocol):
    """Looks up user/order metadata for the request."""

    async def fetch_metadata(self, request: ToolInvocationRequest) -> Mapping[str, Any]:
        ...


@runtime_checkable
class IRetrievalSource(Protocol):
    """Semantic retrieval of passages relevant to the query."""

    async def retrieve(self, query: str, *, top_k: int) -> Sequence[RetrievedPassage]:
        """Return up to ``top_k`` passages, most relevant first.

        Args:
            query: The raw user query.
            top_k: Maximum number of passages to return.
        """
        ...
