"""Token counting for cache accounting and cacheability checks.

Modes:
  - ``approximate``: chars / 4 (no dependencies, fast)
  - ``tiktoken``: OpenAI tiktoken (requires the ``tiktoken`` extra)

Counts are estimates used when a backend does not report usage itself, and
to decide whether the static block is long enough for the provider to cache.
"""

from __future__ import annotations

from typing import Iterable, Literal, Optional

from cachewise.exceptions import TokenizerError
from cachewise.models import MessageBlock

# tiktoken encoders are expensive to build; one per (model, fallback) pair
_encoders: dict[str, object] = {}


class TokenCounter:
    """Count tokens using the configured method."""

    def __init__(
        self,
        method: Literal["approximate", "tiktoken"] = "approximate",
        model: str = "gpt-4o",
        char_to_token_ratio: int = 4,
        fallback_encoding: str = "cl100k_base",
    ) -> None:
        self.method = method
        self.model = model
        self._char_to_token_ratio = char_to_token_ratio
        self._fallback_encoding = fallback_encoding

        if method == "tiktoken":
            try:
                import tiktoken  # noqa: F401
            except ImportError as e:
                raise TokenizerError(
                    "tiktoken not installed. Install with: pip install cachewise[tiktoken]"
                ) from e

    def count(self, text: str, model: Optional[str] = None) -> int:
        """Return the token count for *text*."""
        if not text:
            return 0
        if self.method == "approximate":
            return max(1, len(text) // self._char_to_token_ratio)
        return self._count_tiktoken(text, model or self.model)

    def count_blocks(self, blocks: Iterable[MessageBlock], *, cache_eligible_only: bool = False) -> int:
        """Sum token counts over message blocks, optionally just the cached prefix."""
        return sum(
            self.count(block.content)
            for block in blocks
            if block.cache_eligible or not cache_eligible_only
        )

    def _count_tiktoken(self, text: str, model: str) -> int:
        import tiktoken

        key = f"{model}:{self._fallback_encoding}"
        if key not in _encoders:
            try:
                _encoders[key] = tiktoken.encoding_for_model(model)
            except KeyError:
                _encoders[key] = tiktoken.get_encoding(self._fallback_encoding)
        return len(_encoders[key].encode(text))  # type: ignore[attr-defined]
