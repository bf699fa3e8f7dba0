"""Context engineering: aggregation, prefix stabilization and cache factoring."""

from __future__ import annotations

from cachewise.context.aggregator import ContextAggregator
from cachewise.context.protocols import IHistorySource, IMetadataSource, IRetrievalSource
from cachewise.context.sources import (
    HttpRetrievalSource,
    NullRetrievalSource,
    RequestHistorySource,
    RequestMetadataSource,
    StaticRetrievalSource,
)

__all__ = [
    "ContextAggregator",
    "IHistorySource",
    "IMetadataSource",
    "IRetrievalSource",
    "HttpRetrievalSource",
    "NullRetrievalSource",
    "RequestHistorySource",
    "RequestMetadataSource",
    "StaticRetrievalSource",
]
