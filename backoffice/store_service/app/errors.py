"""Business errors raised by the store managers."""

from __future__ import annotations

from fastapi import status

from backoffice.common.errors import PersistenceError, StoreError


class ValidationFailed(StoreError):
    """Malformed input; nothing was written."""

    code = "validation_failed"
    status_code = status.HTTP_400_BAD_REQUEST


class InsufficientStock(ValidationFailed):
    """Applying the operation would drive a product's stock below zero."""

    code = "insufficient_stock"

    def __init__(self, product_id: int, *, requested: int, available: int) -> None:
        super().__init__(
            f"Insufficient stock for product {product_id}",
            productId=product_id,
            requested=requested,
            available=available,
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class NotFound(StoreError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class ProductNotFound(NotFound):
    code = "product_not_found"

    def __init__(self, product_id: int) -> None:
        super().__init__(f"Product not found: {product_id}", productId=product_id)
        self.product_id = product_id


class OrderNotFound(NotFound):
    code = "order_not_found"

    def __init__(self, order_id: int) -> None:
        super().__init__("Order not found", orderId=order_id)
        self.order_id = order_id


class CustomerNotFound(NotFound):
    code = "customer_not_found"

    def __init__(self, customer_id: int) -> None:
        super().__init__("Customer not found", customerId=customer_id)
        self.customer_id = customer_id


class CategoryNotFound(NotFound):
    code = "category_not_found"

    def __init__(self, category_id: int) -> None:
        super().__init__("Category not found", categoryId=category_id)
        self.category_id = category_id


class Conflict(StoreError):
    """The request clashes with existing state (duplicates, live references)."""

    code = "conflict"
    status_code = status.HTTP_409_CONFLICT


class OrderAlreadyCancelled(Conflict):
    code = "order_already_cancelled"

    def __init__(self, order_id: int) -> None:
        super().__init__(f"Order {order_id} is already cancelled", orderId=order_id)
        self.order_id = order_id


class LedgerImmutableError(PersistenceError):
    """Ledger rows are append-only."""

    code = "ledger_immutable"
