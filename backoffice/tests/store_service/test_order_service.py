from decimal import Decimal

import pytest
from sqlalchemy import func, select

from backoffice.common import OperationTimedOut, PersistenceError
from backoffice.store_service.app.errors import (
    CustomerNotFound,
    InsufficientStock,
    OrderAlreadyCancelled,
    OrderNotFound,
    ProductNotFound,
    ValidationFailed,
)
from backoffice.store_service.app.models import InventoryTransaction, Order, OrderItem, Product
from backoffice.store_service.app.reports import LedgerReports
from backoffice.store_service.app.schemas import OrderCreate, OrderItemPayload
from backoffice.store_service.app.services import OrderService, generate_order_number

from conftest import MetricTracker, locked_ledger_writes, make_product


def _order(*lines: tuple[int, int, str | None], total: str | None = None, **extra) -> OrderCreate:
    items = [
        OrderItemPayload(
            product_id=product_id,
            quantity=quantity,
            unit_price=Decimal(price) if price is not None else None,
        )
        for product_id, quantity, price in lines
    ]
    return OrderCreate(items=items, total_amount=Decimal(total) if total is not None else None, **extra)


async def _count(session_factory, statement) -> int:
    async with session_factory() as session:
        return (await session.execute(statement)).scalar_one()


async def _stock(session_factory, product_id: int) -> int:
    async with session_factory() as session:
        return (await session.execute(select(Product.stock_quantity).where(Product.id == product_id))).scalar_one()


async def _assert_reconciled(session_factory) -> None:
    async with session_factory() as session:
        rows = await LedgerReports(session).reconcile()
    assert rows
    assert all(row.drift == 0 for row in rows), rows


def test_order_number_format() -> None:
    number = generate_order_number()
    prefix, timestamp, suffix = number.split("-")
    assert prefix == "ORD"
    assert len(timestamp) == 6 and timestamp.isdigit()
    assert len(suffix) == 6 and suffix.isalnum() and suffix.upper() == suffix


@pytest.mark.asyncio
async def test_create_order_decrements_stock_and_writes_ledger(session_factory) -> None:
    product_a = await make_product(session_factory, sku="SKU-A", stock=10)
    product_b = await make_product(session_factory, sku="SKU-B", stock=4)
    created = MetricTracker("store_order_created_total", {"payment_method": "cash"})
    sales = MetricTracker("store_ledger_movements_total", {"transaction_type": "sale"})

    service = OrderService(session_factory)
    order = await service.create_order(
        _order((product_a.id, 2, "10.00"), (product_b.id, 1, "5.00"), total="25.00")
    )

    assert order.total_amount_cents == 2500
    assert order.status == "pending"
    assert order.payment_method == "cash"
    assert order.payment_status == "pending"
    assert order.order_number.startswith("ORD-")
    assert await _stock(session_factory, product_a.id) == 8
    assert await _stock(session_factory, product_b.id) == 3
    assert await _count(session_factory, select(func.count(OrderItem.id)).where(OrderItem.order_id == order.id)) == 2

    async with session_factory() as session:
        result = await session.execute(
            select(InventoryTransaction)
            .where(InventoryTransaction.reference_id == order.id)
            .order_by(InventoryTransaction.id)
        )
        entries = list(result.scalars())
    assert [(entry.transaction_type, entry.quantity) for entry in entries] == [("sale", -2), ("sale", -1)]
    assert all(entry.reference_type == "order" for entry in entries)
    assert entries[0].notes == f"Order {order.order_number}"

    assert created.delta() == 1
    assert sales.delta() == 2
    await _assert_reconciled(session_factory)


@pytest.mark.asyncio
async def test_create_order_rolls_back_everything_when_stock_runs_out(session_factory) -> None:
    product_a = await make_product(session_factory, sku="SKU-A", stock=10)
    product_b = await make_product(session_factory, sku="SKU-B", stock=1)
    rejected = MetricTracker(
        "store_operation_rejected_total",
        {"operation": "create_order", "reason": "insufficient_stock"},
    )

    service = OrderService(session_factory)
    with pytest.raises(InsufficientStock) as excinfo:
        await service.create_order(_order((product_a.id, 3, None), (product_b.id, 2, None)))

    assert excinfo.value.product_id == product_b.id
    assert excinfo.value.requested == 2
    assert excinfo.value.available == 1
    assert await _stock(session_factory, product_a.id) == 10
    assert await _stock(session_factory, product_b.id) == 1
    assert await _count(session_factory, select(func.count(Order.id))) == 0
    assert await _count(session_factory, select(func.count(OrderItem.id))) == 0
    assert await _count(
        session_factory,
        select(func.count(InventoryTransaction.id)).where(InventoryTransaction.transaction_type == "sale"),
    ) == 0
    assert rejected.delta() == 1


@pytest.mark.asyncio
async def test_repeated_product_lines_count_against_the_same_stock(session_factory) -> None:
    product = await make_product(session_factory, sku="SKU-A", stock=5)

    with pytest.raises(InsufficientStock):
        await OrderService(session_factory).create_order(_order((product.id, 3, None), (product.id, 3, None)))

    assert await _stock(session_factory, product.id) == 5
    assert await _count(session_factory, select(func.count(Order.id))) == 0


@pytest.mark.asyncio
async def test_order_items_keep_price_snapshot(session_factory) -> None:
    product = await make_product(session_factory, sku="SKU-A", stock=10, price="12.50")
    service = OrderService(session_factory)

    order = await service.create_order(_order((product.id, 3, "9.99"), (product.id, 1, None)))

    async with session_factory() as session:
        await session.execute(
            Product.__table__.update().where(Product.id == product.id).values(price_cents=9900)
        )
        await session.commit()

    async with session_factory() as session:
        result = await session.execute(
            select(OrderItem).where(OrderItem.order_id == order.id).order_by(OrderItem.id)
        )
        items = list(result.scalars())
    assert [(item.quantity, item.unit_price_cents, item.total_price_cents) for item in items] == [
        (3, 999, 2997),
        (1, 1250, 1250),
    ]
    assert order.total_amount_cents == 2997 + 1250


@pytest.mark.asyncio
async def test_create_order_applies_tax_and_discount(session_factory) -> None:
    product = await make_product(session_factory, sku="SKU-A", stock=10)

    order = await OrderService(session_factory).create_order(
        _order(
            (product.id, 2, "10.00"),
            total="21.50",
            tax_amount=Decimal("2.50"),
            discount_amount=Decimal("1.00"),
            payment_method="card",
            payment_status="paid",
        )
    )

    assert order.total_amount_cents == 2150
    assert order.tax_amount_cents == 250
    assert order.discount_amount_cents == 100
    assert order.payment_method == "card"
    assert order.payment_status == "paid"


@pytest.mark.asyncio
async def test_create_order_rejects_mismatched_total(session_factory) -> None:
    product = await make_product(session_factory, sku="SKU-A", stock=10)

    with pytest.raises(ValidationFailed) as excinfo:
        await OrderService(session_factory).create_order(_order((product.id, 2, "10.00"), total="19.00"))

    assert excinfo.value.details["expected"] == "20.00"
    assert await _stock(session_factory, product.id) == 10


@pytest.mark.asyncio
async def test_create_order_rejects_empty_and_non_positive_items(session_factory) -> None:
    product = await make_product(session_factory, sku="SKU-A", stock=10)
    service = OrderService(session_factory)

    with pytest.raises(ValidationFailed):
        await service.create_order(OrderCreate.model_construct(items=[]))

    bad_line = OrderItemPayload.model_construct(product_id=product.id, quantity=0, unit_price=None)
    with pytest.raises(ValidationFailed):
        await service.create_order(OrderCreate.model_construct(items=[bad_line]))

    assert await _stock(session_factory, product.id) == 10


@pytest.mark.asyncio
async def test_create_order_unknown_product_or_customer(session_factory) -> None:
    product = await make_product(session_factory, sku="SKU-A", stock=10)
    service = OrderService(session_factory)

    with pytest.raises(ProductNotFound) as missing_product:
        await service.create_order(_order((product.id, 1, None), (999, 1, None)))
    assert missing_product.value.product_id == 999

    with pytest.raises(CustomerNotFound):
        await service.create_order(_order((product.id, 1, None), customer_id=42))

    assert await _stock(session_factory, product.id) == 10
    assert await _count(session_factory, select(func.count(Order.id))) == 0


@pytest.mark.asyncio
async def test_order_number_collisions_are_retried(session_factory) -> None:
    product = await make_product(session_factory, sku="SKU-A", stock=10)
    numbers = iter(["ORD-000001-AAAAAA", "ORD-000001-AAAAAA", "ORD-000002-BBBBBB"])
    service = OrderService(session_factory, order_number_factory=lambda: next(numbers))

    first = await service.create_order(_order((product.id, 1, None)))
    second = await service.create_order(_order((product.id, 1, None)))

    assert first.order_number == "ORD-000001-AAAAAA"
    assert second.order_number == "ORD-000002-BBBBBB"


@pytest.mark.asyncio
async def test_order_number_exhaustion_is_a_persistence_error(session_factory) -> None:
    product = await make_product(session_factory, sku="SKU-A", stock=10)
    service = OrderService(
        session_factory,
        order_number_attempts=3,
        order_number_factory=lambda: "ORD-123456-SAME00",
    )
    await service.create_order(_order((product.id, 1, None)))

    with pytest.raises(PersistenceError):
        await service.create_order(_order((product.id, 1, None)))

    assert await _stock(session_factory, product.id) == 9


@pytest.mark.asyncio
async def test_create_order_rolls_back_when_a_later_ledger_write_times_out(session_factory) -> None:
    product_a = await make_product(session_factory, sku="SKU-A", stock=10)
    product_b = await make_product(session_factory, sku="SKU-B", stock=4)
    rejected = MetricTracker(
        "store_operation_rejected_total",
        {"operation": "create_order", "reason": "operation_timed_out"},
    )

    with locked_ledger_writes(session_factory, fail_on=2):
        with pytest.raises(OperationTimedOut):
            await OrderService(session_factory).create_order(_order((product_a.id, 3, None), (product_b.id, 2, None)))

    assert await _stock(session_factory, product_a.id) == 10
    assert await _stock(session_factory, product_b.id) == 4
    assert await _count(session_factory, select(func.count(Order.id))) == 0
    assert await _count(session_factory, select(func.count(OrderItem.id))) == 0
    assert await _count(session_factory, select(func.count(InventoryTransaction.id))) == 2
    assert rejected.delta() == 1
    await _assert_reconciled(session_factory)


@pytest.mark.asyncio
async def test_cancel_order_restores_stock_once(session_factory) -> None:
    product_a = await make_product(session_factory, sku="SKU-A", stock=10)
    product_b = await make_product(session_factory, sku="SKU-B", stock=5)
    service = OrderService(session_factory)
    order = await service.create_order(_order((product_a.id, 4, None), (product_b.id, 2, None)))
    cancelled_metric = MetricTracker("store_order_cancelled_total")

    cancelled = await service.cancel_order(order.id)

    assert cancelled.status == "cancelled"
    assert await _stock(session_factory, product_a.id) == 10
    assert await _stock(session_factory, product_b.id) == 5
    async with session_factory() as session:
        result = await session.execute(
            select(InventoryTransaction)
            .where(InventoryTransaction.transaction_type == "return")
            .order_by(InventoryTransaction.id)
        )
        returns = list(result.scalars())
    assert [(entry.product_id, entry.quantity) for entry in returns] == [(product_a.id, 4), (product_b.id, 2)]
    assert all(entry.reference_type == "order_cancellation" for entry in returns)

    with pytest.raises(OrderAlreadyCancelled):
        await service.cancel_order(order.id)

    assert await _stock(session_factory, product_a.id) == 10
    assert await _count(
        session_factory,
        select(func.count(InventoryTransaction.id)).where(InventoryTransaction.transaction_type == "return"),
    ) == 2
    assert cancelled_metric.delta() == 1
    await _assert_reconciled(session_factory)


@pytest.mark.asyncio
async def test_cancel_missing_order(session_factory) -> None:
    with pytest.raises(OrderNotFound):
        await OrderService(session_factory).cancel_order(404)


@pytest.mark.asyncio
async def test_update_status_and_payment(session_factory) -> None:
    product = await make_product(session_factory, sku="SKU-A", stock=10)
    service = OrderService(session_factory)
    order = await service.create_order(_order((product.id, 2, None)))

    shipped = await service.update_status(order.id, "shipped")
    assert shipped.status == "shipped"
    assert await _stock(session_factory, product.id) == 8

    paid = await service.update_payment(order.id, "paid", "card")
    assert paid.payment_status == "paid"
    assert paid.payment_method == "card"
    assert paid.status == "shipped"

    with pytest.raises(ValidationFailed):
        await service.update_status(order.id, "lost")
    with pytest.raises(ValidationFailed):
        await service.update_payment(order.id, "maybe")
    with pytest.raises(OrderNotFound):
        await service.update_status(999, "shipped")
    with pytest.raises(OrderNotFound):
        await service.update_payment(999, "paid")


@pytest.mark.asyncio
async def test_status_cancelled_restores_stock_and_is_terminal(session_factory) -> None:
    product = await make_product(session_factory, sku="SKU-A", stock=10)
    service = OrderService(session_factory)
    order = await service.create_order(_order((product.id, 3, None)))

    cancelled = await service.update_status(order.id, "cancelled")

    assert cancelled.status == "cancelled"
    assert await _stock(session_factory, product.id) == 10
    with pytest.raises(OrderAlreadyCancelled):
        await service.update_status(order.id, "processing")
    await _assert_reconciled(session_factory)
