"""Prometheus metrics for the store service."""

from __future__ import annotations

from typing import Final

from prometheus_client import Counter, Histogram


STORE_ORDER_CREATED_TOTAL: Final = Counter(
    "store_order_created_total",
    "Number of orders committed.",
    labelnames=("payment_method",),
)

STORE_ORDER_CANCELLED_TOTAL: Final = Counter(
    "store_order_cancelled_total",
    "Number of orders cancelled with stock restored.",
)

STORE_OPERATION_REJECTED_TOTAL: Final = Counter(
    "store_operation_rejected_total",
    "Business operations rolled back before commit.",
    labelnames=("operation", "reason"),
)

STORE_LEDGER_MOVEMENTS_TOTAL: Final = Counter(
    "store_ledger_movements_total",
    "Ledger rows appended.",
    labelnames=("transaction_type",),
)

STORE_ORDER_TRANSACTION_SECONDS: Final = Histogram(
    "store_order_transaction_seconds",
    "Latency of order placement and cancellation transactions.",
    labelnames=("operation",),
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10),
)


def normalise_payment_method(value: str | None) -> str:
    if not value:
        return "unknown"
    return value.strip().lower() or "unknown"
