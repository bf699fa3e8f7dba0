"""Per-invocation log context.

Binds an ``invocation_id`` into structlog's contextvars so every log line
emitted while serving one request carries it. ContextVars are task-local, so
concurrent invocations never see each other's id.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog


def bind_invocation(invocation_id: Optional[str] = None) -> str:
    """Bind and return the invocation id for the current context."""
    invocation_id = invocation_id or uuid.uuid4().hex[:12]
    structlog.contextvars.bind_contextvars(invocation_id=invocation_id)
    return invocation_id


def unbind_invocation() -> None:
    structlog.contextvars.unbind_contextvars("invocation_id")
