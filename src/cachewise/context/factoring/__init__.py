"""Context factoring: single-breakpoint prompt cache layout."""

from __future__ import annotations

from cachewise.context.factoring.breakpoint_strategy import breakpoint_index, check_prefix_invariant
from cachewise.context.factoring.layer_builder import render_messages

__all__ = [
    "breakpoint_index",
    "check_prefix_invariant",
    "render_messages",
]
