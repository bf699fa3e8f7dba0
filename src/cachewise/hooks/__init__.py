"""Process-level hooks: logging setup and per-invocation log context."""

from __future__ import annotations

from cachewise.hooks.invocation_context import bind_invocation, unbind_invocation
from cachewise.hooks.logging_config import setup_logging

__all__ = [
    "bind_invocation",
    "setup_logging",
    "unbind_invocation",
]
