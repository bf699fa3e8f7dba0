"""Service layer wiring the aggregator, composer, adapter and accountant."""

from __future__ import annotations

from cachewise.services.invocation_service import InvocationService

__all__ = ["InvocationService"]
