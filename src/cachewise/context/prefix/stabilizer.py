"""PrefixStabilizer — deterministic serialization of per-request context."""

from __future__ import annotations

import json
from typing import Any, Iterable

from cachewise.context.prefix.sort_strategies import sort_by_score, sort_by_source
from cachewise.models import RetrievedPassage

_STRATEGIES = {
    "score": sort_by_score,
    "source": sort_by_source,
}


class PrefixStabilizer:
    """Applies a sort strategy to retrieved passages and canonicalizes JSON.

    Identical inputs always produce identical text, which keeps the dynamic
    block reproducible and lets tests compare bundles built under different
    fetch schedules.
    """

    def __init__(self, strategy: str = "score") -> None:
        if strategy not in _STRATEGIES:
            raise ValueError(
                f"Unknown sort strategy {strategy!r}. "
                f"Choose from: {', '.join(sorted(_STRATEGIES))}"
            )
        self._strategy = _STRATEGIES[strategy]
        self._strategy_name = strategy

    def stabilize(self, passages: Iterable[RetrievedPassage]) -> list[RetrievedPassage]:
        """Return a deterministically sorted copy of the passages."""
        return self._strategy(passages)

    @staticmethod
    def stabilize_json(data: Any) -> str:
        """Serialize data to deterministic JSON (sorted keys, no extra whitespace)."""
        return json.dumps(data, sort_keys=True, ensure_ascii=False, separators=(",", ":"), default=str)
