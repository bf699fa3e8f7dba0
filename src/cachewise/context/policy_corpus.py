"""Small built-in policy corpus for ``CACHEWISE_AGGREGATOR_RETRIEVAL_BACKEND=static``.

Meant for local development and demos; production deployments point the
aggregator at the real search service with the ``http`` backend.
"""

from __future__ import annotations

DEFAULT_POLICY_PASSAGES: list[tuple[str, str]] = [
    (
        "shipping-policy",
        "Standard shipping takes 3 to 5 business days after an order is shipped. "
        "Express shipping takes 1 to 2 business days. Tracking updates can lag up to 24 hours.",
    ),
    (
        "returns-policy",
        "Items can be returned within 30 days of delivery if unused and in original packaging. "
        "Start a return from the order page to receive a prepaid return label.",
    ),
    (
        "refund-policy",
        "Refunds are issued to the original payment method within 5 to 10 business days "
        "after the returned item is received at the warehouse.",
    ),
    (
        "cancellation-policy",
        "An order can be cancelled free of charge while its status is processing. "
        "Once an order has shipped it cannot be cancelled and must be returned instead.",
    ),
    (
        "damaged-items",
        "Report a damaged or missing delivery within 14 days of the carrier delivery date "
        "so a replacement or refund can be arranged.",
    ),
]
