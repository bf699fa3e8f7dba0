"""cachewise: cache-aware prompt composition and context aggregation.

Usage::

    from cachewise import AppSettings, InvocationService, ToolInvocationRequest

    service = InvocationService.from_settings(AppSettings())
    result = await service.invoke(ToolInvocationRequest(message="Where is my order?"))
    stats = service.accountant.snapshot()
"""

from __future__ import annotations

from cachewise.accounting import CacheAccountant, ModelPricing, get_accountant
from cachewise.context import ContextAggregator
from cachewise.core.config import AppSettings
from cachewise.exceptions import (
    CachewiseError,
    CompositionInvariantViolation,
    DegradableContextFailure,
    InvocationTimeout,
    InvocationTransportFailure,
)
from cachewise.inference import (
    ChunkStream,
    InvocationOptions,
    LocalAdapter,
    RemoteAdapter,
    create_invocation_adapter,
)
from cachewise.models import (
    CacheStats,
    ContextBundle,
    ConversationTurn,
    InvocationResult,
    MessageBlock,
    RetrievedPassage,
    ToolInvocationRequest,
    UsageEnvelope,
)
from cachewise.prompts import PromptComposer, StaticTemplate
from cachewise.services import InvocationService

__all__ = [
    # Settings / wiring
    "AppSettings",
    "InvocationService",
    "create_invocation_adapter",
    # Components
    "ContextAggregator",
    "PromptComposer",
    "StaticTemplate",
    "LocalAdapter",
    "RemoteAdapter",
    "ChunkStream",
    "InvocationOptions",
    "CacheAccountant",
    "ModelPricing",
    "get_accountant",
    # Models
    "ToolInvocationRequest",
    "ConversationTurn",
    "ContextBundle",
    "RetrievedPassage",
    "MessageBlock",
    "InvocationResult",
    "UsageEnvelope",
    "CacheStats",
    # Errors
    "CachewiseError",
    "DegradableContextFailure",
    "CompositionInvariantViolation",
    "InvocationTransportFailure",
    "InvocationTimeout",
]
