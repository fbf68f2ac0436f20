"""Read-only stock ledger and dashboard queries."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Category, Customer, InventoryTransaction, Order, OrderItem, Product
from .repository import LedgerRepository, on_or_after

SALES_PERIODS: dict[str, timedelta] = {
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
    "1y": timedelta(days=365),
}


def utc_today() -> date:
    """Current UTC calendar day, the clock SQLite uses for ``CURRENT_TIMESTAMP``."""

    return datetime.now(timezone.utc).date()


def stock_status(stock_quantity: int, min_stock_level: int) -> str:
    if stock_quantity == 0:
        return "out_of_stock"
    if stock_quantity <= min_stock_level:
        return "low_stock"
    return "in_stock"


@dataclass
class StockLevel:
    id: int
    name: str
    sku: str
    stock_quantity: int
    min_stock_level: int
    category_name: str | None

    @property
    def is_low_stock(self) -> bool:
        return self.stock_quantity <= self.min_stock_level

    @property
    def stock_status(self) -> str:
        return stock_status(self.stock_quantity, self.min_stock_level)


@dataclass
class InventorySummary:
    total_products: int
    total_inventory_value_cents: int
    low_stock_products: int
    out_of_stock_products: int
    todays_transactions: int


@dataclass
class ReconciliationRow:
    product_id: int
    sku: str
    stock_quantity: int
    ledger_balance: int

    @property
    def drift(self) -> int:
        return self.stock_quantity - self.ledger_balance


class LedgerReports:
    """Stock ledger queries; no locking beyond what the database provides."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_transactions(
        self,
        *,
        product_id: int | None = None,
        transaction_type: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[tuple[InventoryTransaction, str, str]], int]:
        return await LedgerRepository(self.session).list_entries(
            product_id=product_id,
            transaction_type=transaction_type,
            limit=limit,
            offset=offset,
        )

    async def stock_levels(self, *, low_stock_only: bool = False, limit: int | None = None) -> list[StockLevel]:
        query = (
            select(
                Product.id,
                Product.name,
                Product.sku,
                Product.stock_quantity,
                Product.min_stock_level,
                Category.name,
            )
            .outerjoin(Category, Product.category_id == Category.id)
            .where(Product.status == "active")
        )
        if low_stock_only:
            query = query.where(Product.stock_quantity <= Product.min_stock_level)
        query = query.order_by(Product.stock_quantity.asc(), Product.name)
        if limit is not None:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return [StockLevel(*row) for row in result.all()]

    async def summary(self) -> InventorySummary:
        active = Product.status == "active"
        today = utc_today()
        query = select(
            select(func.count(Product.id)).where(active).scalar_subquery(),
            select(func.coalesce(func.sum(Product.price_cents * Product.stock_quantity), 0))
            .where(active)
            .scalar_subquery(),
            select(func.count(Product.id))
            .where(active, Product.stock_quantity <= Product.min_stock_level)
            .scalar_subquery(),
            select(func.count(Product.id)).where(active, Product.stock_quantity == 0).scalar_subquery(),
            select(func.count(InventoryTransaction.id))
            .where(on_or_after(InventoryTransaction.created_at, today))
            .scalar_subquery(),
        )
        row = (await self.session.execute(query)).one()
        return InventorySummary(*(int(value or 0) for value in row))

    async def reconcile(self) -> list[ReconciliationRow]:
        """Compare each product's counter with the signed sum of its ledger."""

        signed = case(
            (InventoryTransaction.transaction_type == "adjustment_out", -func.abs(InventoryTransaction.quantity)),
            else_=InventoryTransaction.quantity,
        )
        balance = (
            select(func.coalesce(func.sum(signed), 0))
            .where(InventoryTransaction.product_id == Product.id)
            .correlate(Product)
            .scalar_subquery()
        )
        result = await self.session.execute(
            select(Product.id, Product.sku, Product.stock_quantity, balance).order_by(Product.id)
        )
        return [ReconciliationRow(*row) for row in result.all()]


@dataclass
class DashboardOverview:
    total_revenue_cents: int
    total_orders: int
    total_customers: int
    total_products: int
    pending_orders: int
    low_stock_products: int
    today_revenue_cents: int
    today_orders: int


class DashboardReports:
    """Aggregates for the back-office dashboard."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def overview(self) -> DashboardOverview:
        live = Order.status != "cancelled"
        paid = Order.payment_status == "paid"
        today = on_or_after(Order.created_at, utc_today())
        revenue = func.coalesce(func.sum(Order.total_amount_cents), 0)
        query = select(
            select(revenue).where(live, paid).scalar_subquery(),
            select(func.count(Order.id)).where(live).scalar_subquery(),
            select(func.count(Customer.id)).scalar_subquery(),
            select(func.count(Product.id)).where(Product.status == "active").scalar_subquery(),
            select(func.count(Order.id)).where(Order.status == "pending").scalar_subquery(),
            select(func.count(Product.id))
            .where(Product.status == "active", Product.stock_quantity <= Product.min_stock_level)
            .scalar_subquery(),
            select(revenue).where(live, paid, today).scalar_subquery(),
            select(func.count(Order.id)).where(live, today).scalar_subquery(),
        )
        row = (await self.session.execute(query)).one()
        return DashboardOverview(*(int(value or 0) for value in row))

    async def sales(self, period: str) -> dict[str, list[tuple]]:
        if period not in SALES_PERIODS:
            period = "7d"
        since = on_or_after(Order.created_at, utc_today() - SALES_PERIODS[period])
        day = func.date(Order.created_at)

        by_day = await self.session.execute(
            select(day, func.count(Order.id), func.coalesce(func.sum(Order.total_amount_cents), 0))
            .where(since, Order.status != "cancelled")
            .group_by(day)
            .order_by(day.desc())
        )
        by_status = await self.session.execute(
            select(Order.status, func.count(Order.id), func.coalesce(func.sum(Order.total_amount_cents), 0))
            .where(since)
            .group_by(Order.status)
            .order_by(func.count(Order.id).desc())
        )
        quantity_sold = func.sum(OrderItem.quantity)
        top_products = await self.session.execute(
            select(Product.name, Product.sku, quantity_sold, func.sum(OrderItem.total_price_cents))
            .join(OrderItem, OrderItem.product_id == Product.id)
            .join(Order, OrderItem.order_id == Order.id)
            .where(since, Order.status != "cancelled")
            .group_by(Product.id, Product.name, Product.sku)
            .order_by(quantity_sold.desc())
            .limit(10)
        )
        return {
            "by_day": [tuple(row) for row in by_day.all()],
            "by_status": [tuple(row) for row in by_status.all()],
            "top_products": [tuple(row) for row in top_products.all()],
        }

    async def inventory(self) -> tuple[list[tuple], list[StockLevel], list[tuple[InventoryTransaction, str, str]]]:
        by_category = await self.session.execute(
            select(
                Category.name,
                func.count(Product.id),
                func.coalesce(func.sum(Product.stock_quantity), 0),
                func.coalesce(func.sum(Product.price_cents * Product.stock_quantity), 0),
            )
            .select_from(Product)
            .outerjoin(Category, Product.category_id == Category.id)
            .where(Product.status == "active")
            .group_by(Category.id, Category.name)
            .order_by(func.sum(Product.price_cents * Product.stock_quantity).desc())
        )
        ledger = LedgerReports(self.session)
        alerts = await ledger.stock_levels(low_stock_only=True, limit=20)
        recent, _ = await ledger.list_transactions(limit=10)
        return [tuple(row) for row in by_category.all()], alerts, recent

    async def customers(self) -> tuple[list[tuple], list[tuple]]:
        total_orders = func.count(Order.id)
        total_spent = func.coalesce(func.sum(Order.total_amount_cents), 0)
        top = await self.session.execute(
            select(
                Customer.id,
                Customer.first_name,
                Customer.last_name,
                Customer.email,
                total_orders,
                total_spent,
            )
            .join(Order, (Order.customer_id == Customer.id) & (Order.status != "cancelled"))
            .group_by(Customer.id)
            .order_by(total_spent.desc())
            .limit(10)
        )
        day = func.date(Customer.created_at)
        growth = await self.session.execute(
            select(day, func.count(Customer.id))
            .where(on_or_after(Customer.created_at, utc_today() - timedelta(days=30)))
            .group_by(day)
            .order_by(day.desc())
        )
        return [tuple(row) for row in top.all()], [tuple(row) for row in growth.all()]
