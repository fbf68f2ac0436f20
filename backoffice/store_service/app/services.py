"""Order placement and stock adjustment managers.

Every public operation runs inside a single ``transaction_scope``: either all
of its stock, order and ledger writes become visible together or none do.
"""

from __future__ import annotations

import logging
import random
import string
import time
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Literal

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backoffice.common import PersistenceError, StoreError, transaction_scope
from backoffice.common.tracing import traced

from .errors import (
    CategoryNotFound,
    Conflict,
    CustomerNotFound,
    InsufficientStock,
    OrderAlreadyCancelled,
    OrderNotFound,
    ProductNotFound,
    ValidationFailed,
)
from .metrics import (
    STORE_LEDGER_MOVEMENTS_TOTAL,
    STORE_OPERATION_REJECTED_TOTAL,
    STORE_ORDER_CANCELLED_TOTAL,
    STORE_ORDER_CREATED_TOTAL,
    STORE_ORDER_TRANSACTION_SECONDS,
    normalise_payment_method,
)
from .models import ORDER_STATUSES, PAYMENT_STATUSES, InventoryTransaction, Order, Product
from .repository import CatalogRepository, CustomerRepository, LedgerRepository, OrderRepository
from .schemas import OrderCreate, ProductCreate, ProductUpdate

_LOGGER = logging.getLogger(__name__)

_ORDER_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits
_NON_NULLABLE_PRODUCT_FIELDS = ("name", "sku", "price", "stock_quantity", "min_stock_level", "status")
_STOCK_EDIT_ATTEMPTS = 3


def to_cents(amount: Decimal) -> int:
    return int((amount * Decimal("100")).to_integral_value(rounding=ROUND_HALF_UP))


def from_cents(cents: int | None) -> Decimal:
    return (Decimal(cents or 0) / Decimal("100")).quantize(Decimal("0.01"))


def generate_order_number() -> str:
    """Build ``ORD-<last six digits of the ms clock>-<six base36 chars>``."""

    timestamp = str(int(time.time() * 1000))
    suffix = "".join(random.choices(_ORDER_SUFFIX_ALPHABET, k=6))
    return f"ORD-{timestamp[-6:]}-{suffix}"


def _record_rejection(operation: str, exc: StoreError) -> None:
    STORE_OPERATION_REJECTED_TOTAL.labels(operation=operation, reason=exc.code).inc()
    if exc.status_code < 500:
        _LOGGER.warning("%s rejected (%s): %s", operation, exc.code, exc.message)


def _record_movements(movements: Counter[str]) -> None:
    for transaction_type, count in movements.items():
        STORE_LEDGER_MOVEMENTS_TOTAL.labels(transaction_type=transaction_type).inc(count)


class OrderService:
    """Places, cancels and updates orders against the stock ledger."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        order_number_attempts: int = 5,
        order_number_factory: Callable[[], str] = generate_order_number,
    ) -> None:
        self.session_factory = session_factory
        self.order_number_attempts = order_number_attempts
        self.order_number_factory = order_number_factory

    async def _allocate_order_number(self, orders: OrderRepository) -> str:
        for _ in range(self.order_number_attempts):
            candidate = self.order_number_factory()
            if not await orders.order_number_exists(candidate):
                return candidate
        _LOGGER.error("Order number allocation failed after %d attempts", self.order_number_attempts)
        raise PersistenceError("Could not allocate a unique order number")

    @traced("store.create_order")
    async def create_order(self, payload: OrderCreate) -> Order:
        started = time.perf_counter()
        movements: Counter[str] = Counter()
        try:
            if not payload.items:
                raise ValidationFailed("Order must contain at least one item")
            for item in payload.items:
                if item.quantity <= 0:
                    raise ValidationFailed("Quantity must be a positive integer", productId=item.product_id)

            async with transaction_scope(self.session_factory) as session:
                catalog = CatalogRepository(session)
                orders = OrderRepository(session)
                ledger = LedgerRepository(session)

                if payload.customer_id is not None:
                    customer = await CustomerRepository(session).get_customer(payload.customer_id)
                    if customer is None:
                        raise CustomerNotFound(payload.customer_id)

                lines: list[tuple[Product, int, int]] = []
                subtotal_cents = 0
                for item in payload.items:
                    product = await catalog.get_product(item.product_id)
                    if product is None:
                        raise ProductNotFound(item.product_id)
                    unit_price_cents = (
                        to_cents(item.unit_price) if item.unit_price is not None else product.price_cents
                    )
                    lines.append((product, item.quantity, unit_price_cents))
                    subtotal_cents += unit_price_cents * item.quantity

                tax_cents = to_cents(payload.tax_amount)
                discount_cents = to_cents(payload.discount_amount)
                total_cents = subtotal_cents + tax_cents - discount_cents
                if total_cents < 0:
                    raise ValidationFailed("Discount exceeds order total")
                if payload.total_amount is not None and to_cents(payload.total_amount) != total_cents:
                    raise ValidationFailed(
                        "Total amount does not match line items",
                        expected=str(from_cents(total_cents)),
                        received=str(payload.total_amount),
                    )

                order_number = await self._allocate_order_number(orders)
                order = await orders.create_order(
                    order_number=order_number,
                    customer_id=payload.customer_id,
                    total_amount_cents=total_cents,
                    tax_amount_cents=tax_cents,
                    discount_amount_cents=discount_cents,
                    payment_method=payload.payment_method,
                    payment_status=payload.payment_status,
                    notes=payload.notes,
                )

                for product, quantity, unit_price_cents in lines:
                    if not await ledger.decrement_stock(product.id, quantity):
                        available = await ledger.current_stock(product.id)
                        raise InsufficientStock(product.id, requested=quantity, available=available or 0)
                    await orders.add_item(
                        order,
                        product=product,
                        quantity=quantity,
                        unit_price_cents=unit_price_cents,
                    )
                    await ledger.append(
                        product_id=product.id,
                        transaction_type="sale",
                        quantity=-quantity,
                        reference_id=order.id,
                        reference_type="order",
                        notes=f"Order {order_number}",
                    )
                    movements["sale"] += 1

                created = await orders.get_order(order.id, reload=True)
                assert created is not None
        except StoreError as exc:
            _record_rejection("create_order", exc)
            raise
        finally:
            STORE_ORDER_TRANSACTION_SECONDS.labels(operation="create_order").observe(time.perf_counter() - started)

        _record_movements(movements)
        STORE_ORDER_CREATED_TOTAL.labels(payment_method=normalise_payment_method(created.payment_method)).inc()
        _LOGGER.info("Order %s created with %d items", created.order_number, len(created.items))
        return created

    @traced("store.cancel_order")
    async def cancel_order(self, order_id: int) -> Order:
        """Cancel a live order and put every line's quantity back on the shelf.

        Cancelling is one-way: a second call raises ``OrderAlreadyCancelled``
        and leaves stock untouched.
        """

        started = time.perf_counter()
        movements: Counter[str] = Counter()
        try:
            async with transaction_scope(self.session_factory) as session:
                orders = OrderRepository(session)
                ledger = LedgerRepository(session)

                order = await orders.get_order(order_id)
                if order is None:
                    raise OrderNotFound(order_id)
                if not await orders.transition_status(order.id, status="cancelled"):
                    raise OrderAlreadyCancelled(order.id)

                for item in order.items:
                    await ledger.increment_stock(item.product_id, item.quantity)
                    await ledger.append(
                        product_id=item.product_id,
                        transaction_type="return",
                        quantity=item.quantity,
                        reference_id=order.id,
                        reference_type="order_cancellation",
                        notes=f"Order {order.order_number} cancelled",
                    )
                    movements["return"] += 1

                cancelled = await orders.get_order(order.id, reload=True)
                assert cancelled is not None
        except StoreError as exc:
            _record_rejection("cancel_order", exc)
            raise
        finally:
            STORE_ORDER_TRANSACTION_SECONDS.labels(operation="cancel_order").observe(time.perf_counter() - started)

        _record_movements(movements)
        STORE_ORDER_CANCELLED_TOTAL.inc()
        _LOGGER.info("Order %s cancelled, %d lines restocked", cancelled.order_number, len(cancelled.items))
        return cancelled

    @traced("store.update_status")
    async def update_status(self, order_id: int, status: str) -> Order:
        if status not in ORDER_STATUSES:
            raise ValidationFailed("Invalid order status", status=status)
        if status == "cancelled":
            return await self.cancel_order(order_id)

        try:
            async with transaction_scope(self.session_factory) as session:
                orders = OrderRepository(session)
                order = await orders.get_order(order_id)
                if order is None:
                    raise OrderNotFound(order_id)
                if not await orders.transition_status(order.id, status=status):
                    raise OrderAlreadyCancelled(order.id)
                updated = await orders.get_order(order.id, reload=True)
                assert updated is not None
        except StoreError as exc:
            _record_rejection("update_status", exc)
            raise

        _LOGGER.info("Order %s moved to %s", updated.order_number, status)
        return updated

    @traced("store.update_payment")
    async def update_payment(
        self,
        order_id: int,
        payment_status: str,
        payment_method: str | None = None,
    ) -> Order:
        if payment_status not in PAYMENT_STATUSES:
            raise ValidationFailed("Invalid payment status", paymentStatus=payment_status)

        try:
            async with transaction_scope(self.session_factory) as session:
                orders = OrderRepository(session)
                order = await orders.get_order(order_id)
                if order is None:
                    raise OrderNotFound(order_id)
                await orders.update_payment(order, payment_status=payment_status, payment_method=payment_method)
                updated = await orders.get_order(order.id, reload=True)
                assert updated is not None
        except StoreError as exc:
            _record_rejection("update_payment", exc)
            raise

        _LOGGER.info("Order %s payment marked %s", updated.order_number, payment_status)
        return updated


@dataclass
class StockAdjustment:
    transaction: InventoryTransaction
    new_stock: int


class StockService:
    """Manual stock movements and product lifecycle writes."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        default_min_stock_level: int = 10,
    ) -> None:
        self.session_factory = session_factory
        self.default_min_stock_level = default_min_stock_level

    @traced("store.adjust_stock")
    async def adjust_stock(
        self,
        product_id: int,
        quantity: int,
        direction: Literal["in", "out"],
        notes: str | None = None,
    ) -> StockAdjustment:
        if quantity <= 0:
            raise ValidationFailed("Quantity must be a positive integer")
        if direction not in ("in", "out"):
            raise ValidationFailed("Direction must be 'in' or 'out'", direction=direction)
        transaction_type = "adjustment_in" if direction == "in" else "adjustment_out"

        try:
            async with transaction_scope(self.session_factory) as session:
                ledger = LedgerRepository(session)
                if await ledger.current_stock(product_id) is None:
                    raise ProductNotFound(product_id)

                if direction == "out":
                    if not await ledger.decrement_stock(product_id, quantity):
                        available = await ledger.current_stock(product_id)
                        raise InsufficientStock(product_id, requested=quantity, available=available or 0)
                else:
                    await ledger.increment_stock(product_id, quantity)

                entry = await ledger.append(
                    product_id=product_id,
                    transaction_type=transaction_type,
                    quantity=quantity,
                    notes=notes,
                )
                await session.refresh(entry, attribute_names=["created_at"])
                new_stock = await ledger.current_stock(product_id)
        except StoreError as exc:
            _record_rejection("adjust_stock", exc)
            raise

        _record_movements(Counter({transaction_type: 1}))
        _LOGGER.info("Product %s adjusted %s by %d, stock now %d", product_id, direction, quantity, new_stock)
        return StockAdjustment(transaction=entry, new_stock=new_stock or 0)

    @traced("store.create_product")
    async def create_product(self, payload: ProductCreate) -> Product:
        try:
            async with transaction_scope(self.session_factory) as session:
                catalog = CatalogRepository(session)
                ledger = LedgerRepository(session)

                if payload.category_id is not None and await catalog.get_category(payload.category_id) is None:
                    raise CategoryNotFound(payload.category_id)
                if await catalog.get_by_sku(payload.sku) is not None:
                    raise Conflict("SKU already exists", sku=payload.sku)

                min_stock_level = payload.min_stock_level
                if min_stock_level is None:
                    min_stock_level = self.default_min_stock_level
                product = await catalog.create_product(
                    name=payload.name,
                    description=payload.description,
                    sku=payload.sku,
                    category_id=payload.category_id,
                    price_cents=to_cents(payload.price),
                    cost_cents=to_cents(payload.cost) if payload.cost is not None else None,
                    stock_quantity=payload.stock_quantity,
                    min_stock_level=min_stock_level,
                    image_url=payload.image_url,
                    status=payload.status,
                )
                if payload.stock_quantity > 0:
                    await ledger.append(
                        product_id=product.id,
                        transaction_type="initial_stock",
                        quantity=payload.stock_quantity,
                        notes="Initial stock entry",
                    )
                created = await catalog.get_product(product.id, reload=True)
                assert created is not None
        except StoreError as exc:
            _record_rejection("create_product", exc)
            raise

        if payload.stock_quantity > 0:
            _record_movements(Counter({"initial_stock": 1}))
        _LOGGER.info("Product %s created with stock %d", created.sku, created.stock_quantity)
        return created

    @traced("store.update_product")
    async def update_product(self, product_id: int, payload: ProductUpdate) -> Product:
        changes = payload.model_dump(exclude_unset=True)
        movements: Counter[str] = Counter()
        try:
            if not changes:
                raise ValidationFailed("No updates provided")
            for field in _NON_NULLABLE_PRODUCT_FIELDS:
                if field in changes and changes[field] is None:
                    raise ValidationFailed(f"{field} cannot be null", field=field)

            async with transaction_scope(self.session_factory) as session:
                catalog = CatalogRepository(session)
                ledger = LedgerRepository(session)

                product = await catalog.get_product(product_id)
                if product is None:
                    raise ProductNotFound(product_id)
                if changes.get("category_id") is not None and await catalog.get_category(changes["category_id"]) is None:
                    raise CategoryNotFound(changes["category_id"])
                if "sku" in changes and changes["sku"] != product.sku:
                    if await catalog.get_by_sku(changes["sku"]) is not None:
                        raise Conflict("SKU already exists", sku=changes["sku"])

                if "price" in changes:
                    changes["price_cents"] = to_cents(changes.pop("price"))
                if "cost" in changes:
                    cost = changes.pop("cost")
                    changes["cost_cents"] = to_cents(cost) if cost is not None else None

                target_stock = changes.pop("stock_quantity", None)
                if changes:
                    await catalog.update_product(product, **changes)

                if target_stock is not None:
                    # A failed compare-and-set still takes the SQLite write lock, so the retry reads settled stock.
                    for _ in range(_STOCK_EDIT_ATTEMPTS):
                        current = await ledger.current_stock(product_id) or 0
                        if await ledger.replace_stock(product_id, expected=current, target=target_stock):
                            break
                    else:
                        raise Conflict("Stock changed during update, retry", productId=product_id)
                    delta = target_stock - current
                    if delta:
                        transaction_type = "adjustment_in" if delta > 0 else "adjustment_out"
                        await ledger.append(
                            product_id=product_id,
                            transaction_type=transaction_type,
                            quantity=abs(delta),
                            notes="Manual stock adjustment",
                        )
                        movements[transaction_type] += 1

                updated = await catalog.get_product(product_id, reload=True)
                assert updated is not None
        except StoreError as exc:
            _record_rejection("update_product", exc)
            raise

        _record_movements(movements)
        _LOGGER.info("Product %s updated", updated.sku)
        return updated

    @traced("store.delete_product")
    async def delete_product(self, product_id: int) -> None:
        """Remove a product together with its own ledger history.

        Products referenced by any order line are kept.
        """

        try:
            async with transaction_scope(self.session_factory) as session:
                catalog = CatalogRepository(session)
                product = await catalog.get_product(product_id)
                if product is None:
                    raise ProductNotFound(product_id)
                if await catalog.has_order_items(product_id):
                    raise Conflict("Cannot delete product with existing orders", productId=product_id)
                await catalog.delete_product(product)
        except StoreError as exc:
            _record_rejection("delete_product", exc)
            raise

        _LOGGER.info("Product %s deleted", product_id)
