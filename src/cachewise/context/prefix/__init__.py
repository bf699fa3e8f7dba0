"""Prefix stabilization for deterministic context ordering."""

from __future__ import annotations

from cachewise.context.prefix.sort_strategies import sort_by_score, sort_by_source
from cachewise.context.prefix.stabilizer import PrefixStabilizer

__all__ = [
    "PrefixStabilizer",
    "sort_by_score",
    "sort_by_source",
]
