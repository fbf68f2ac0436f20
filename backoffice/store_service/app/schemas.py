"""Pydantic schemas for the store service."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, PositiveInt, field_validator

OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
PaymentStatus = Literal["pending", "paid", "failed", "refunded"]
ProductStatus = Literal["active", "inactive"]
TransactionType = Literal["initial_stock", "sale", "return", "adjustment_in", "adjustment_out"]
StockStatus = Literal["out_of_stock", "low_stock", "in_stock"]
SalesPeriod = Literal["7d", "30d", "90d", "1y"]


def _strip_required(value: str) -> str:
    cleaned = value.strip()
    if not cleaned:
        msg = "value must be non-empty"
        raise ValueError(msg)
    return cleaned


def _validate_email(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    if cleaned.count("@") != 1:
        msg = "invalid email format"
        raise ValueError(msg)
    local, domain = cleaned.split("@")
    if not local or not domain or "." not in domain:
        msg = "invalid email format"
        raise ValueError(msg)
    return cleaned


class Page(BaseModel):
    total: int
    limit: int
    offset: int


# --- Categories -------------------------------------------------------------


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        return _strip_required(value)


class CategoryUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str | None) -> str | None:
        return None if value is None else _strip_required(value)


class CategoryResponse(BaseModel):
    id: PositiveInt
    name: str
    description: str | None
    product_count: int = Field(alias="productCount")
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(populate_by_name=True)


class CategoryListResponse(BaseModel):
    items: list[CategoryResponse]


# --- Products ---------------------------------------------------------------


class ProductCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    sku: str = Field(min_length=1, max_length=64)
    category_id: PositiveInt | None = Field(default=None, alias="categoryId")
    price: Decimal = Field(ge=Decimal("0"), max_digits=12, decimal_places=2)
    cost: Decimal | None = Field(default=None, ge=Decimal("0"), max_digits=12, decimal_places=2)
    stock_quantity: NonNegativeInt = Field(default=0, alias="stockQuantity")
    min_stock_level: NonNegativeInt | None = Field(default=None, alias="minStockLevel")
    image_url: str | None = Field(default=None, max_length=512, alias="imageUrl")
    status: ProductStatus = "active"

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("name", "sku")
    @classmethod
    def _strip(cls, value: str) -> str:
        return _strip_required(value)


class ProductUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    sku: str | None = Field(default=None, min_length=1, max_length=64)
    category_id: PositiveInt | None = Field(default=None, alias="categoryId")
    price: Decimal | None = Field(default=None, ge=Decimal("0"), max_digits=12, decimal_places=2)
    cost: Decimal | None = Field(default=None, ge=Decimal("0"), max_digits=12, decimal_places=2)
    stock_quantity: NonNegativeInt | None = Field(default=None, alias="stockQuantity")
    min_stock_level: NonNegativeInt | None = Field(default=None, alias="minStockLevel")
    image_url: str | None = Field(default=None, max_length=512, alias="imageUrl")
    status: ProductStatus | None = None

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("name", "sku")
    @classmethod
    def _strip(cls, value: str | None) -> str | None:
        return None if value is None else _strip_required(value)


class ProductResponse(BaseModel):
    id: PositiveInt
    name: str
    description: str | None
    sku: str
    category_id: int | None = Field(alias="categoryId")
    category_name: str | None = Field(alias="categoryName")
    price: Decimal
    cost: Decimal | None
    stock_quantity: int = Field(alias="stockQuantity")
    min_stock_level: int = Field(alias="minStockLevel")
    image_url: str | None = Field(alias="imageUrl")
    status: str
    low_stock: bool = Field(alias="lowStock")
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)


class ProductListResponse(Page):
    items: list[ProductResponse]


# --- Customers --------------------------------------------------------------


class CustomerCreate(BaseModel):
    first_name: str = Field(min_length=1, max_length=100, alias="firstName")
    last_name: str = Field(min_length=1, max_length=100, alias="lastName")
    email: str | None = None
    phone: str | None = Field(default=None, max_length=32)
    address: str | None = None
    city: str | None = None
    postal_code: str | None = Field(default=None, alias="postalCode")
    country: str | None = None

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("first_name", "last_name")
    @classmethod
    def _strip(cls, value: str) -> str:
        return _strip_required(value)

    @field_validator("email")
    @classmethod
    def _email(cls, value: str | None) -> str | None:
        return _validate_email(value)


class CustomerUpdate(BaseModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=100, alias="firstName")
    last_name: str | None = Field(default=None, min_length=1, max_length=100, alias="lastName")
    email: str | None = None
    phone: str | None = Field(default=None, max_length=32)
    address: str | None = None
    city: str | None = None
    postal_code: str | None = Field(default=None, alias="postalCode")
    country: str | None = None

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("first_name", "last_name")
    @classmethod
    def _strip(cls, value: str | None) -> str | None:
        return None if value is None else _strip_required(value)

    @field_validator("email")
    @classmethod
    def _email(cls, value: str | None) -> str | None:
        return _validate_email(value)


class CustomerOrderSummary(BaseModel):
    id: PositiveInt
    order_number: str = Field(alias="orderNumber")
    status: str
    total_amount: Decimal = Field(alias="totalAmount")
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(populate_by_name=True)


class CustomerResponse(BaseModel):
    id: PositiveInt
    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")
    email: str | None
    phone: str | None
    address: str | None
    city: str | None
    postal_code: str | None = Field(alias="postalCode")
    country: str | None
    total_orders: int = Field(alias="totalOrders")
    total_spent: Decimal = Field(alias="totalSpent")
    recent_orders: list[CustomerOrderSummary] | None = Field(default=None, alias="recentOrders")
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)


class CustomerListResponse(Page):
    items: list[CustomerResponse]


# --- Orders -----------------------------------------------------------------


class OrderItemPayload(BaseModel):
    product_id: PositiveInt = Field(alias="productId")
    quantity: PositiveInt
    unit_price: Decimal | None = Field(
        default=None, gt=Decimal("0"), max_digits=12, decimal_places=2, alias="unitPrice"
    )

    model_config = ConfigDict(populate_by_name=True)


class OrderCreate(BaseModel):
    customer_id: PositiveInt | None = Field(default=None, alias="customerId")
    items: list[OrderItemPayload] = Field(min_length=1)
    total_amount: Decimal | None = Field(
        default=None, ge=Decimal("0"), max_digits=12, decimal_places=2, alias="totalAmount"
    )
    tax_amount: Decimal = Field(default=Decimal("0"), ge=Decimal("0"), max_digits=12, decimal_places=2, alias="taxAmount")
    discount_amount: Decimal = Field(
        default=Decimal("0"), ge=Decimal("0"), max_digits=12, decimal_places=2, alias="discountAmount"
    )
    payment_method: str = Field(default="cash", min_length=1, max_length=32, alias="paymentMethod")
    payment_status: PaymentStatus = Field(default="pending", alias="paymentStatus")
    notes: str | None = None

    model_config = ConfigDict(populate_by_name=True)


class OrderUpdateStatus(BaseModel):
    status: OrderStatus


class OrderUpdatePayment(BaseModel):
    payment_status: PaymentStatus = Field(alias="paymentStatus")
    payment_method: str | None = Field(default=None, min_length=1, max_length=32, alias="paymentMethod")

    model_config = ConfigDict(populate_by_name=True)


class OrderItemResponse(BaseModel):
    id: PositiveInt
    product_id: PositiveInt = Field(alias="productId")
    product_name: str = Field(alias="productName")
    product_sku: str = Field(alias="productSku")
    quantity: int
    unit_price: Decimal = Field(alias="unitPrice")
    total_price: Decimal = Field(alias="totalPrice")

    model_config = ConfigDict(populate_by_name=True)


class OrderResponse(BaseModel):
    id: PositiveInt
    order_number: str = Field(alias="orderNumber")
    customer_id: int | None = Field(alias="customerId")
    customer_name: str | None = Field(alias="customerName")
    status: str
    payment_status: str = Field(alias="paymentStatus")
    payment_method: str | None = Field(alias="paymentMethod")
    total_amount: Decimal = Field(alias="totalAmount")
    tax_amount: Decimal = Field(alias="taxAmount")
    discount_amount: Decimal = Field(alias="discountAmount")
    notes: str | None
    item_count: int = Field(alias="itemCount")
    items: list[OrderItemResponse]
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)


class OrderListResponse(Page):
    items: list[OrderResponse]


# --- Inventory --------------------------------------------------------------


class StockAdjustmentRequest(BaseModel):
    product_id: PositiveInt = Field(alias="productId")
    quantity: PositiveInt
    type: Literal["in", "out", "adjustment_in", "adjustment_out"]
    notes: str | None = None

    model_config = ConfigDict(populate_by_name=True)

    @property
    def direction(self) -> Literal["in", "out"]:
        return "in" if self.type in ("in", "adjustment_in") else "out"


class StockAdjustmentResponse(BaseModel):
    transaction_id: PositiveInt = Field(alias="transactionId")
    product_id: PositiveInt = Field(alias="productId")
    type: TransactionType
    quantity: int
    notes: str | None
    new_stock: int = Field(alias="newStock")

    model_config = ConfigDict(populate_by_name=True)


class LedgerEntryResponse(BaseModel):
    id: PositiveInt
    product_id: PositiveInt = Field(alias="productId")
    product_name: str = Field(alias="productName")
    product_sku: str = Field(alias="productSku")
    transaction_type: TransactionType = Field(alias="transactionType")
    quantity: int
    reference_id: int | None = Field(alias="referenceId")
    reference_type: str | None = Field(alias="referenceType")
    notes: str | None
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(populate_by_name=True)


class LedgerListResponse(Page):
    items: list[LedgerEntryResponse]


class StockLevelResponse(BaseModel):
    id: PositiveInt
    name: str
    sku: str
    stock_quantity: int = Field(alias="stockQuantity")
    min_stock_level: int = Field(alias="minStockLevel")
    category_name: str | None = Field(alias="categoryName")
    is_low_stock: bool = Field(alias="isLowStock")
    stock_status: StockStatus = Field(alias="stockStatus")

    model_config = ConfigDict(populate_by_name=True)


class StockLevelListResponse(BaseModel):
    items: list[StockLevelResponse]


class InventorySummaryResponse(BaseModel):
    total_products: int = Field(alias="totalProducts")
    total_inventory_value: Decimal = Field(alias="totalInventoryValue")
    low_stock_products: int = Field(alias="lowStockProducts")
    out_of_stock_products: int = Field(alias="outOfStockProducts")
    todays_transactions: int = Field(alias="todaysTransactions")

    model_config = ConfigDict(populate_by_name=True)


class ReconciliationEntry(BaseModel):
    product_id: PositiveInt = Field(alias="productId")
    sku: str
    stock_quantity: int = Field(alias="stockQuantity")
    ledger_balance: int = Field(alias="ledgerBalance")
    drift: int

    model_config = ConfigDict(populate_by_name=True)


class ReconciliationResponse(BaseModel):
    consistent: bool
    items: list[ReconciliationEntry]


# --- Dashboard --------------------------------------------------------------


class DashboardOverviewResponse(BaseModel):
    total_revenue: Decimal = Field(alias="totalRevenue")
    total_orders: int = Field(alias="totalOrders")
    total_customers: int = Field(alias="totalCustomers")
    total_products: int = Field(alias="totalProducts")
    pending_orders: int = Field(alias="pendingOrders")
    low_stock_products: int = Field(alias="lowStockProducts")
    today_revenue: Decimal = Field(alias="todayRevenue")
    today_orders: int = Field(alias="todayOrders")

    model_config = ConfigDict(populate_by_name=True)


class SalesByDay(BaseModel):
    day: date = Field(alias="date")
    orders: int
    revenue: Decimal

    model_config = ConfigDict(populate_by_name=True)


class SalesByStatus(BaseModel):
    status: str
    count: int
    revenue: Decimal


class TopProduct(BaseModel):
    name: str
    sku: str
    quantity_sold: int = Field(alias="quantitySold")
    revenue: Decimal

    model_config = ConfigDict(populate_by_name=True)


class SalesAnalyticsResponse(BaseModel):
    period: SalesPeriod
    sales_by_day: list[SalesByDay] = Field(alias="salesByDay")
    sales_by_status: list[SalesByStatus] = Field(alias="salesByStatus")
    top_products: list[TopProduct] = Field(alias="topProducts")

    model_config = ConfigDict(populate_by_name=True)


class CategoryValue(BaseModel):
    category: str | None
    product_count: int = Field(alias="productCount")
    total_quantity: int = Field(alias="totalQuantity")
    total_value: Decimal = Field(alias="totalValue")

    model_config = ConfigDict(populate_by_name=True)


class InventoryAnalyticsResponse(BaseModel):
    inventory_by_category: list[CategoryValue] = Field(alias="inventoryByCategory")
    stock_alerts: list[StockLevelResponse] = Field(alias="stockAlerts")
    recent_transactions: list[LedgerEntryResponse] = Field(alias="recentTransactions")

    model_config = ConfigDict(populate_by_name=True)


class TopCustomer(BaseModel):
    id: PositiveInt
    name: str
    email: str | None
    total_orders: int = Field(alias="totalOrders")
    total_spent: Decimal = Field(alias="totalSpent")

    model_config = ConfigDict(populate_by_name=True)


class CustomerGrowth(BaseModel):
    day: date = Field(alias="date")
    new_customers: int = Field(alias="newCustomers")

    model_config = ConfigDict(populate_by_name=True)


class CustomerAnalyticsResponse(BaseModel):
    top_customers: list[TopCustomer] = Field(alias="topCustomers")
    customer_growth: list[CustomerGrowth] = Field(alias="customerGrowth")

    model_config = ConfigDict(populate_by_name=True)
