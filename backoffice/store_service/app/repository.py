"""Data access helpers for the store service."""

from __future__ import annotations

from datetime import date
from typing import Any

from sqlalchemy import ColumnElement, Select, and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from .models import Category, Customer, InventoryTransaction, Order, OrderItem, Product


def _like(term: str) -> str:
    return f"%{term}%"


def on_or_after(column, day: date) -> ColumnElement[bool]:
    """Match timestamps falling on ``day`` or later, compared by calendar date."""

    return func.date(column) >= day.isoformat()


def on_or_before(column, day: date) -> ColumnElement[bool]:
    return func.date(column) <= day.isoformat()


class CatalogRepository:
    """Persistence helpers for categories and products."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # Categories

    async def list_categories(self) -> list[tuple[Category, int]]:
        product_count = (
            select(func.count(Product.id))
            .where(Product.category_id == Category.id)
            .correlate(Category)
            .scalar_subquery()
        )
        result = await self.session.execute(select(Category, product_count).order_by(Category.name))
        return [(category, count) for category, count in result.all()]

    async def get_category(self, category_id: int) -> Category | None:
        result = await self.session.execute(select(Category).where(Category.id == category_id))
        return result.scalar_one_or_none()

    async def get_category_by_name(self, name: str) -> Category | None:
        result = await self.session.execute(select(Category).where(Category.name == name))
        return result.scalar_one_or_none()

    async def count_category_products(self, category_id: int) -> int:
        result = await self.session.execute(
            select(func.count(Product.id)).where(Product.category_id == category_id)
        )
        return result.scalar_one()

    async def create_category(self, *, name: str, description: str | None) -> Category:
        category = Category(name=name, description=description)
        self.session.add(category)
        await self.session.flush()
        await self.session.refresh(category, attribute_names=["created_at"])
        return category

    async def update_category(self, category: Category, *, name: str | None, description: str | None) -> Category:
        if name is not None:
            category.name = name
        if description is not None:
            category.description = description
        await self.session.flush()
        return category

    async def delete_category(self, category: Category) -> None:
        await self.session.delete(category)
        await self.session.flush()

    # Products

    async def get_product(self, product_id: int, *, reload: bool = False) -> Product | None:
        query = select(Product).where(Product.id == product_id)
        if reload:
            query = query.execution_options(populate_existing=True)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_sku(self, sku: str) -> Product | None:
        result = await self.session.execute(select(Product).where(Product.sku == sku))
        return result.scalar_one_or_none()

    async def list_products(
        self,
        *,
        limit: int,
        offset: int,
        search: str | None,
        category_id: int | None,
        status: str | None,
    ) -> tuple[list[Product], int]:
        base_query: Select[tuple[Product]] = select(Product)
        count_query: Select[tuple[int]] = select(func.count(Product.id))

        filters = []
        if search:
            pattern = _like(search)
            filters.append(
                or_(Product.name.like(pattern), Product.sku.like(pattern), Product.description.like(pattern))
            )
        if category_id is not None:
            filters.append(Product.category_id == category_id)
        if status is not None:
            filters.append(Product.status == status)

        if filters:
            base_query = base_query.where(and_(*filters))
            count_query = count_query.where(and_(*filters))

        total_result = await self.session.execute(count_query)
        total = total_result.scalar_one()

        result = await self.session.execute(
            base_query.order_by(Product.created_at.desc(), Product.id.desc()).offset(offset).limit(limit)
        )
        return list(result.scalars()), total

    async def list_low_stock(self) -> list[Product]:
        result = await self.session.execute(
            select(Product)
            .where(Product.status == "active", Product.stock_quantity <= Product.min_stock_level)
            .order_by(Product.stock_quantity.asc(), Product.name)
        )
        return list(result.scalars())

    async def create_product(self, **values: Any) -> Product:
        product = Product(**values)
        self.session.add(product)
        await self.session.flush()
        return product

    async def update_product(self, product: Product, **changes: Any) -> Product:
        for field, value in changes.items():
            setattr(product, field, value)
        await self.session.flush()
        return product

    async def has_order_items(self, product_id: int) -> bool:
        result = await self.session.execute(
            select(func.count(OrderItem.id)).where(OrderItem.product_id == product_id)
        )
        return result.scalar_one() > 0

    async def delete_product(self, product: Product) -> None:
        await self.session.delete(product)
        await self.session.flush()


class CustomerRepository:
    """Persistence helpers for customers."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @staticmethod
    def _totals_columns():
        total_orders = (
            select(func.count(Order.id))
            .where(Order.customer_id == Customer.id)
            .correlate(Customer)
            .scalar_subquery()
        )
        total_spent = (
            select(func.coalesce(func.sum(Order.total_amount_cents), 0))
            .where(Order.customer_id == Customer.id)
            .correlate(Customer)
            .scalar_subquery()
        )
        return total_orders, total_spent

    async def list_customers(
        self,
        *,
        limit: int,
        offset: int,
        search: str | None,
    ) -> tuple[list[tuple[Customer, int, int]], int]:
        total_orders, total_spent = self._totals_columns()
        base_query = select(Customer, total_orders, total_spent)
        count_query: Select[tuple[int]] = select(func.count(Customer.id))

        if search:
            pattern = _like(search)
            condition = or_(
                Customer.first_name.like(pattern),
                Customer.last_name.like(pattern),
                Customer.email.like(pattern),
                Customer.phone.like(pattern),
            )
            base_query = base_query.where(condition)
            count_query = count_query.where(condition)

        total_result = await self.session.execute(count_query)
        total = total_result.scalar_one()

        result = await self.session.execute(
            base_query.order_by(Customer.created_at.desc(), Customer.id.desc()).offset(offset).limit(limit)
        )
        return [(customer, orders, spent) for customer, orders, spent in result.all()], total

    async def get_customer(self, customer_id: int) -> Customer | None:
        result = await self.session.execute(select(Customer).where(Customer.id == customer_id))
        return result.scalar_one_or_none()

    async def get_customer_with_totals(self, customer_id: int) -> tuple[Customer, int, int] | None:
        total_orders, total_spent = self._totals_columns()
        result = await self.session.execute(
            select(Customer, total_orders, total_spent).where(Customer.id == customer_id)
        )
        row = result.one_or_none()
        if row is None:
            return None
        return row[0], row[1], row[2]

    async def recent_orders(self, customer_id: int, *, limit: int = 5) -> list[Order]:
        result = await self.session.execute(
            select(Order)
            .where(Order.customer_id == customer_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(limit)
        )
        return list(result.scalars())

    async def get_by_email(self, email: str) -> Customer | None:
        result = await self.session.execute(select(Customer).where(Customer.email == email))
        return result.scalar_one_or_none()

    async def has_orders(self, customer_id: int) -> bool:
        result = await self.session.execute(select(func.count(Order.id)).where(Order.customer_id == customer_id))
        return result.scalar_one() > 0

    async def create_customer(self, **values: Any) -> Customer:
        customer = Customer(**values)
        self.session.add(customer)
        await self.session.flush()
        await self.session.refresh(customer, attribute_names=["created_at", "updated_at"])
        return customer

    async def update_customer(self, customer: Customer, **changes: Any) -> Customer:
        for field, value in changes.items():
            setattr(customer, field, value)
        await self.session.flush()
        await self.session.refresh(customer, attribute_names=["updated_at"])
        return customer

    async def delete_customer(self, customer: Customer) -> None:
        await self.session.delete(customer)
        await self.session.flush()


class OrderRepository:
    """Persistence helpers for orders and their line items."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def order_number_exists(self, order_number: str) -> bool:
        result = await self.session.execute(
            select(func.count(Order.id)).where(Order.order_number == order_number)
        )
        return result.scalar_one() > 0

    async def create_order(self, **values: Any) -> Order:
        order = Order(**values)
        self.session.add(order)
        await self.session.flush()
        return order

    async def add_item(
        self,
        order: Order,
        *,
        product: Product,
        quantity: int,
        unit_price_cents: int,
    ) -> OrderItem:
        item = OrderItem(
            order_id=order.id,
            product=product,
            quantity=quantity,
            unit_price_cents=unit_price_cents,
            total_price_cents=unit_price_cents * quantity,
        )
        self.session.add(item)
        await self.session.flush()
        return item

    async def get_order(self, order_id: int, *, reload: bool = False) -> Order | None:
        query = (
            select(Order)
            .options(selectinload(Order.items).selectinload(OrderItem.product), selectinload(Order.customer))
            .where(Order.id == order_id)
        )
        if reload:
            query = query.execution_options(populate_existing=True)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_orders(
        self,
        *,
        status: str | None,
        customer: str | None,
        date_from: date | None,
        date_to: date | None,
        limit: int,
        offset: int,
    ) -> tuple[list[Order], int]:
        base: Select[tuple[Order]] = select(Order).outerjoin(Customer, Order.customer_id == Customer.id)
        count: Select[tuple[int]] = select(func.count(func.distinct(Order.id))).select_from(Order).outerjoin(
            Customer, Order.customer_id == Customer.id
        )

        filters = []
        if status is not None:
            filters.append(Order.status == status)
        if customer:
            pattern = _like(customer)
            filters.append(
                or_(Customer.first_name.like(pattern), Customer.last_name.like(pattern), Customer.email.like(pattern))
            )
        if date_from is not None:
            filters.append(on_or_after(Order.created_at, date_from))
        if date_to is not None:
            filters.append(on_or_before(Order.created_at, date_to))

        if filters:
            base = base.where(and_(*filters))
            count = count.where(and_(*filters))

        base = base.order_by(Order.created_at.desc(), Order.id.desc())

        total_result = await self.session.execute(count)
        total = total_result.scalar_one()

        result = await self.session.execute(
            base.options(selectinload(Order.items).selectinload(OrderItem.product)).offset(offset).limit(limit)
        )
        orders = list(result.scalars().unique())
        return orders, total

    async def transition_status(self, order_id: int, *, status: str) -> bool:
        """Move a non-cancelled order to ``status``; report whether a row changed."""

        result = await self.session.execute(
            update(Order)
            .where(Order.id == order_id, Order.status != "cancelled")
            .values(status=status)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def update_payment(self, order: Order, *, payment_status: str, payment_method: str | None) -> Order:
        order.payment_status = payment_status
        if payment_method is not None:
            order.payment_method = payment_method
        await self.session.flush()
        return order


class LedgerRepository:
    """Stock counters and the append-only inventory ledger."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def current_stock(self, product_id: int) -> int | None:
        result = await self.session.execute(select(Product.stock_quantity).where(Product.id == product_id))
        return result.scalar_one_or_none()

    async def decrement_stock(self, product_id: int, quantity: int) -> bool:
        """Take ``quantity`` units if that many are on hand; report whether it did."""

        result = await self.session.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock_quantity >= quantity)
            .values(stock_quantity=Product.stock_quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def replace_stock(self, product_id: int, *, expected: int, target: int) -> bool:
        """Set stock to ``target`` only if it still equals ``expected``."""

        result = await self.session.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock_quantity == expected)
            .values(stock_quantity=target)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def increment_stock(self, product_id: int, quantity: int) -> None:
        await self.session.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(stock_quantity=Product.stock_quantity + quantity)
            .execution_options(synchronize_session=False)
        )

    async def append(
        self,
        *,
        product_id: int,
        transaction_type: str,
        quantity: int,
        reference_id: int | None = None,
        reference_type: str | None = None,
        notes: str | None = None,
    ) -> InventoryTransaction:
        entry = InventoryTransaction(
            product_id=product_id,
            transaction_type=transaction_type,
            quantity=quantity,
            reference_id=reference_id,
            reference_type=reference_type,
            notes=notes,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list_entries(
        self,
        *,
        product_id: int | None,
        transaction_type: str | None,
        limit: int,
        offset: int,
    ) -> tuple[list[tuple[InventoryTransaction, str, str]], int]:
        base = select(InventoryTransaction, Product.name, Product.sku).join(
            Product, InventoryTransaction.product_id == Product.id
        )
        count: Select[tuple[int]] = select(func.count(InventoryTransaction.id))

        filters = []
        if product_id is not None:
            filters.append(InventoryTransaction.product_id == product_id)
        if transaction_type is not None:
            filters.append(InventoryTransaction.transaction_type == transaction_type)
        if filters:
            base = base.where(and_(*filters))
            count = count.where(and_(*filters))

        total_result = await self.session.execute(count)
        total = total_result.scalar_one()

        result = await self.session.execute(
            base.order_by(InventoryTransaction.created_at.desc(), InventoryTransaction.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return [(entry, name, sku) for entry, name, sku in result.all()], total
