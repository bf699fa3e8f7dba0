"""Tests for context factoring — single-breakpoint prompt cache layout."""

from __future__ import annotations

import pytest

from cachewise.context.factoring.breakpoint_strategy import breakpoint_index, check_prefix_invariant
from cachewise.context.factoring.layer_builder import render_messages
from cachewise.exceptions import CompositionInvariantViolation
from cachewise.models import MessageBlock
from cachewise.tokenizer import TokenCounter

_STATIC = MessageBlock(role="system", content="S" * 400, cache_eligible=True)
_DYNAMIC = MessageBlock(role="system", content="Current time (UTC): now")
_QUERY = MessageBlock(role="user", content="Where is my order?")


class TestBreakpointIndex:
    def test_last_cache_eligible_block(self) -> None:
        assert breakpoint_index([_STATIC, _DYNAMIC, _QUERY]) == 0

    def test_none_when_nothing_cacheable(self) -> None:
        assert breakpoint_index([_DYNAMIC, _QUERY]) is None


class TestCheckPrefixInvariant:
    def test_valid_layout_passes(self) -> None:
        check_prefix_invariant([_STATIC, _DYNAMIC, _QUERY])

    def test_empty_rejected(self) -> None:
        with pytest.raises(CompositionInvariantViolation):
            check_prefix_invariant([])

    def test_must_end_with_user_query(self) -> None:
        with pytest.raises(CompositionInvariantViolation, match="user query"):
            check_prefix_invariant([_STATIC, _DYNAMIC])

    def test_cached_query_rejected(self) -> None:
        cached_query = MessageBlock(role="user", content="q", cache_eligible=True)
        with pytest.raises(CompositionInvariantViolation):
            check_prefix_invariant([_STATIC, cached_query])

    def test_cached_after_dynamic_rejected(self) -> None:
        with pytest.raises(CompositionInvariantViolation, match="follows a dynamic block"):
            check_prefix_invariant([_DYNAMIC, _STATIC, _QUERY])


class TestRenderMessages:
    def test_message_structure(self) -> None:
        messages = render_messages([_STATIC, _DYNAMIC, _QUERY])
        assert len(messages) == 2
        assert messages[0]["role"] == "system"
        assert isinstance(messages[0]["content"], list)
        assert [entry["text"] for entry in messages[0]["content"]] == [_STATIC.content, _DYNAMIC.content]
        assert messages[1] == {"role": "user", "content": "Where is my order?"}

    def test_cache_control_on_static_block_only(self) -> None:
        messages = render_messages([_STATIC, _DYNAMIC, _QUERY])
        static, dynamic = messages[0]["content"]
        assert static["cache_control"] == {"type": "ephemeral"}
        assert "cache_control" not in dynamic

    def test_long_ttl(self) -> None:
        messages = render_messages([_STATIC, _DYNAMIC, _QUERY], ttl_type="long")
        assert messages[0]["content"][0]["cache_control"] == {"type": "ephemeral", "ttl": "1h"}

    def test_caching_disabled(self) -> None:
        messages = render_messages([_STATIC, _DYNAMIC, _QUERY], cache_control=False)
        assert all("cache_control" not in entry for entry in messages[0]["content"])

    def test_prefix_below_minimum_not_marked(self) -> None:
        # 400 chars ~ 100 approximate tokens
        messages = render_messages(
            [_STATIC, _DYNAMIC, _QUERY],
            min_cacheable_tokens=1024,
            counter=TokenCounter(),
        )
        assert "cache_control" not in messages[0]["content"][0]

    def test_prefix_at_minimum_marked(self) -> None:
        messages = render_messages([_STATIC, _DYNAMIC, _QUERY], min_cacheable_tokens=100)
        assert "cache_control" in messages[0]["content"][0]

    def test_history_roles_preserved(self) -> None:
        blocks = [
            _STATIC,
            MessageBlock(role="assistant", content="Earlier reply"),
            _QUERY,
        ]
        messages = render_messages(blocks)
        assert [m["role"] for m in messages] == ["system", "assistant", "user"]

    def test_invalid_layout_rejected(self) -> None:
        with pytest.raises(CompositionInvariantViolation):
            render_messages([_STATIC, _DYNAMIC])
