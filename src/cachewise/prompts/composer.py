"""PromptComposer — turns a context bundle and query into ordered message blocks.

Every composed request has the same three-block shape::

    [0] system  static template      cache_eligible=True
    [1] system  per-request context  cache_eligible=False
    [2] user    raw query            cache_eligible=False

Per-request data (time, passages, metadata, history) only ever goes into
block 1, so block 0 stays byte-identical for every request on the same
template version.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from cachewise.context.factoring.breakpoint_strategy import check_prefix_invariant
from cachewise.context.prefix.stabilizer import PrefixStabilizer
from cachewise.exceptions import CompositionInvariantViolation
from cachewise.models import ContextBundle, MessageBlock
from cachewise.prompts.template import StaticTemplate

log = logging.getLogger(__name__)

_NONE = "None."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PromptComposer:
    """Assembles cache-aware message sequences.

    The templates the process may use are pinned at construction. A template
    presented at compose time must match the pinned bytes for its version;
    anything else would silently split the provider cache, so it is refused.

    Args:
        template: Default template, used when ``compose`` gets none.
        alternates: Further template versions allowed as per-call overrides.
        stabilizer: Orders passages and serializes metadata deterministically.
        clock: Source of the current time for the dynamic block.
    """

    def __init__(
        self,
        template: StaticTemplate,
        *,
        alternates: Iterable[StaticTemplate] = (),
        stabilizer: Optional[PrefixStabilizer] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        pinned: dict[str, str] = {}
        for tpl in (template, *alternates):
            existing = pinned.get(tpl.version)
            if existing is not None and existing != tpl.content_hash:
                raise CompositionInvariantViolation(
                    f"template version {tpl.version!r} registered twice with different content"
                )
            pinned[tpl.version] = tpl.content_hash
        self._template = template
        self._pinned = pinned
        self._stabilizer = stabilizer or PrefixStabilizer()
        self._clock = clock

    @property
    def template(self) -> StaticTemplate:
        return self._template

    def fingerprint(self, version: Optional[str] = None) -> str:
        """Content hash pinned for ``version`` (default template when omitted)."""
        return self._pinned[version or self._template.version]

    def compose(
        self,
        query: str,
        bundle: ContextBundle,
        *,
        template: Optional[StaticTemplate] = None,
    ) -> list[MessageBlock]:
        """Build the ordered blocks for one request.

        Raises:
            CompositionInvariantViolation: The template's bytes differ from
                those pinned for its version, or its version is unknown.
        """
        tpl = template or self._template
        self._verify(tpl)

        blocks = [
            MessageBlock(role="system", content=tpl.text, cache_eligible=True),
            MessageBlock(role="system", content=self.render_dynamic(bundle), cache_eligible=False),
            MessageBlock(role="user", content=query, cache_eligible=False),
        ]
        check_prefix_invariant(blocks)
        return blocks

    def render_dynamic(self, bundle: ContextBundle) -> str:
        """Serialize the per-request context block."""
        now = self._clock().astimezone(timezone.utc).isoformat(timespec="seconds")
        sections = [
            f"Current time (UTC): {now}",
            "## Customer and order records\n" + self._render_metadata(bundle),
            "## Relevant policy passages\n" + self._render_passages(bundle),
            "## Conversation so far\n" + self._render_history(bundle),
        ]
        return "\n\n".join(sections)

    def _verify(self, tpl: StaticTemplate) -> None:
        pinned = self._pinned.get(tpl.version)
        if pinned is None:
            log.error("Unregistered template version %r", tpl.version)
            raise CompositionInvariantViolation(
                f"template version {tpl.version!r} was not registered at startup"
            )
        actual = tpl.content_hash
        if actual != pinned:
            log.error(
                "Static template drift for version %r: pinned %s, got %s",
                tpl.version, pinned[:12], actual[:12],
            )
            raise CompositionInvariantViolation(
                f"static template for version {tpl.version!r} changed "
                f"(pinned {pinned[:12]}, got {actual[:12]}); cached prefix would not be reused"
            )

    def _render_metadata(self, bundle: ContextBundle) -> str:
        if not bundle.metadata:
            return _NONE
        return self._stabilizer.stabilize_json(dict(bundle.metadata))

    def _render_passages(self, bundle: ContextBundle) -> str:
        passages = self._stabilizer.stabilize(bundle.retrieved_passages)
        if not passages:
            return _NONE
        lines = []
        for i, passage in enumerate(passages, start=1):
            source = f"{passage.source}, " if passage.source else ""
            lines.append(f"[{i}] ({source}relevance {passage.relevance_score:.2f}) {passage.text}")
        return "\n".join(lines)

    @staticmethod
    def _render_history(bundle: ContextBundle) -> str:
        if not bundle.history:
            return _NONE
        return "\n".join(f"{turn.role}: {turn.content}" for turn in bundle.history)
