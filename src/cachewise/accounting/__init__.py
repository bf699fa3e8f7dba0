"""Cache effectiveness and cost accounting."""

from __future__ import annotations

from cachewise.accounting.accountant import CacheAccountant, get_accountant
from cachewise.accounting.pricing import ModelPricing
from cachewise.accounting.usage import normalize_usage

__all__ = [
    "CacheAccountant",
    "ModelPricing",
    "get_accountant",
    "normalize_usage",
]
