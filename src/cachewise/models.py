"""Data models for cachewise.

The invocation request is a pydantic model since it crosses the process
boundary (HTTP, CLI, remote adapter). Everything derived from it inside a
single invocation is a frozen dataclass: built once, never mutated, never
shared with another invocation.
"""

from __future__ import annotations

import dataclasses
from types import MappingProxyType
from typing import Any, AsyncIterator, Literal, Mapping, Union

from pydantic import BaseModel, Field, field_validator

Role = Literal["system", "user", "assistant"]


# ── Invocation contract ──────────────────────────────────────────────


class ConversationTurn(BaseModel):
    """A single prior turn supplied by the orchestrator."""

    role: Role
    content: str


class ToolInvocationRequest(BaseModel):
    """The stable contract between any caller and this layer.

    Only ``message`` is required. Every optional field defaults to empty and
    may be omitted, or sent as ``null``, without failing validation.
    """

    message: str = Field(min_length=1)
    conversation_history: list[ConversationTurn] = Field(default_factory=list)
    order_context: dict[str, Any] = Field(default_factory=dict)
    user_metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("message")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("message must not be blank")
        return value

    @field_validator("conversation_history", "order_context", "user_metadata", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any, info: Any) -> Any:
        if value is None:
            return [] if info.field_name == "conversation_history" else {}
        return value


# ── Context bundle ───────────────────────────────────────────────────


@dataclasses.dataclass(frozen=True)
class RetrievedPassage:
    """A policy/knowledge passage returned by semantic retrieval."""

    text: str
    relevance_score: float
    source: str = ""


@dataclasses.dataclass(frozen=True)
class ContextBundle:
    """Immutable aggregate of everything fetched for one invocation."""

    history: tuple[ConversationTurn, ...] = ()
    metadata: Mapping[str, Any] = dataclasses.field(default_factory=lambda: MappingProxyType({}))
    retrieved_passages: tuple[RetrievedPassage, ...] = ()
    degraded: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        # Freeze caller-supplied containers so the bundle cannot be mutated after construction.
        object.__setattr__(self, "history", tuple(self.history))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))
        object.__setattr__(self, "retrieved_passages", tuple(self.retrieved_passages))
        object.__setattr__(self, "degraded", frozenset(self.degraded))


# ── Composed prompt ──────────────────────────────────────────────────


@dataclasses.dataclass(frozen=True)
class MessageBlock:
    """A single typed block of the composed request."""

    role: Role
    content: str
    cache_eligible: bool = False


# ── Invocation result / usage ────────────────────────────────────────


@dataclasses.dataclass(frozen=True)
class UsageEnvelope:
    """Token usage reported once the upstream exchange is complete."""

    total_tokens: int = 0
    cached_tokens: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    cost_estimate: float = 0.0

    @property
    def cache_hit(self) -> bool:
        return self.cached_tokens > 0

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


@dataclasses.dataclass(frozen=True)
class InvocationResult:
    """Result of a non-streaming invocation.

    Streaming invocations return a :class:`cachewise.inference.streaming.ChunkStream`
    instead; its ``usage`` becomes available only after the last chunk.
    """

    content: Union[str, AsyncIterator[str]]
    usage: UsageEnvelope = dataclasses.field(default_factory=UsageEnvelope)
    finish_reason: str = "finished"


# ── Accounting ───────────────────────────────────────────────────────


@dataclasses.dataclass(frozen=True)
class CacheStats:
    """Point-in-time copy of the process-wide cache counters."""

    requests_total: int = 0
    cache_hits: int = 0
    tokens_cached: int = 0
    tokens_total: int = 0
    estimated_cost: float = 0.0
    estimated_cost_saved: float = 0.0

    @property
    def hit_rate(self) -> float:
        """Fraction of recorded invocations that were served from a warm prefix."""
        if self.requests_total == 0:
            return 0.0
        return self.cache_hits / self.requests_total

    def to_dict(self) -> dict[str, Any]:
        data = dataclasses.asdict(self)
        data["hit_rate"] = self.hit_rate
        return data
