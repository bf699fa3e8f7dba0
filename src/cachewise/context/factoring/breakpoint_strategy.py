"""Cache breakpoint placement and prefix invariant checks.

A composed request has exactly one cache breakpoint: the boundary after the
last cache-eligible block. Every cache-eligible block must come before every
dynamic block, and the request must end with the user query, otherwise the
provider cannot reuse the prefix and hit-rate accounting is meaningless.
"""

from __future__ import annotations

from typing import Optional, Sequence

from cachewise.exceptions import CompositionInvariantViolation
from cachewise.models import MessageBlock


def breakpoint_index(blocks: Sequence[MessageBlock]) -> Optional[int]:
    """Index of the last cache-eligible block, or None when nothing is cacheable."""
    index: Optional[int] = None
    for i, block in enumerate(blocks):
        if block.cache_eligible:
            index = i
    return index


def check_prefix_invariant(blocks: Sequence[MessageBlock]) -> None:
    """Raise :class:`CompositionInvariantViolation` if the block order is unsafe to cache."""
    if not blocks:
        raise CompositionInvariantViolation("composed request has no blocks")

    last = blocks[-1]
    if last.role != "user" or last.cache_eligible:
        raise CompositionInvariantViolation(
            "composed request must end with a non-cached user query block"
        )

    seen_dynamic = False
    for i, block in enumerate(blocks):
        if block.cache_eligible and seen_dynamic:
            raise CompositionInvariantViolation(
                f"cache-eligible block at position {i} follows a dynamic block; "
                "only one contiguous cached prefix is allowed"
            )
        if not block.cache_eligible:
            seen_dynamic = True
