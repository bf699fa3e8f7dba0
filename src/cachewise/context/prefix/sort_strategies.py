"""Sort strategies for deterministic passage ordering.

Each strategy is a total order, so the same passage set always serializes to
the same text regardless of the order the retrieval backend returned it in.
"""

from __future__ import annotations

from typing import Iterable

from cachewise.models import RetrievedPassage


def sort_by_score(passages: Iterable[RetrievedPassage]) -> list[RetrievedPassage]:
    """Most relevant first; ties broken by (source, text)."""
    return sorted(passages, key=lambda p: (-p.relevance_score, p.source, p.text))


def sort_by_source(passages: Iterable[RetrievedPassage]) -> list[RetrievedPassage]:
    """Grouped by source document, then text."""
    return sorted(passages, key=lambda p: (p.source, p.text))
