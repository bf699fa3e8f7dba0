"""Configuration and startup validation."""

from __future__ import annotations

from cachewise.core.config import AppSettings

__all__ = ["AppSettings"]
