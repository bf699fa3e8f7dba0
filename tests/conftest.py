"""Shared fixtures for cachewise tests."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from cachewise.accounting.accountant import CacheAccountant
from cachewise.context.aggregator import ContextAggregator
from cachewise.models import ConversationTurn, RetrievedPassage, ToolInvocationRequest
from cachewise.prompts import PromptComposer, SUPPORT_AGENT_TEMPLATE
from cachewise.services.invocation_service import InvocationService
from tests.fakes.fake_adapter import FakeCachingAdapter
from tests.fakes.fake_sources import FakeRetrievalSource

FIXED_NOW = datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def order_request() -> ToolInvocationRequest:
    """The canonical "where is my order" request."""
    return ToolInvocationRequest(
        message="Where is my order?",
        order_context={"orders": [{"id": 123, "status": "shipped"}]},
    )


@pytest.fixture
def full_request() -> ToolInvocationRequest:
    """Request with every optional field populated."""
    return ToolInvocationRequest(
        message="Can I still cancel order 123?",
        conversation_history=[
            ConversationTurn(role="user", content="Hi, I placed an order yesterday."),
            ConversationTurn(role="assistant", content="Happy to help. What do you need?"),
        ],
        order_context={"orders": [{"id": 123, "status": "processing"}]},
        user_metadata={"tier": "gold", "locale": "en-US"},
    )


@pytest.fixture
def passages() -> list[RetrievedPassage]:
    return [
        RetrievedPassage(text="Orders can be cancelled before they ship.", relevance_score=0.5, source="cancellation"),
        RetrievedPassage(text="Standard shipping takes 3-5 business days.", relevance_score=0.9, source="shipping"),
    ]


@pytest.fixture
def composer() -> PromptComposer:
    """Composer on the built-in template with a frozen clock."""
    return PromptComposer(SUPPORT_AGENT_TEMPLATE, clock=lambda: FIXED_NOW)


@pytest.fixture
def fake_adapter() -> FakeCachingAdapter:
    return FakeCachingAdapter()


@pytest.fixture
def accountant() -> CacheAccountant:
    return CacheAccountant()


@pytest.fixture
def service(
    composer: PromptComposer,
    fake_adapter: FakeCachingAdapter,
    accountant: CacheAccountant,
    passages: list[RetrievedPassage],
) -> InvocationService:
    """Service wired with fakes: no network, no model."""
    aggregator = ContextAggregator(retrieval=FakeRetrievalSource(passages), timeout_seconds=1.0)
    return InvocationService(aggregator, composer, fake_adapter, accountant, timeout_seconds=5.0)
