"""HTTP routes for dashboard analytics."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from ..dependencies import get_dashboard_reports
from ..reports import DashboardReports
from ..schemas import (
    CustomerAnalyticsResponse,
    DashboardOverviewResponse,
    InventoryAnalyticsResponse,
    SalesAnalyticsResponse,
    SalesPeriod,
)
from ..services import from_cents
from .inventory import serialize_ledger_entry, serialize_stock_level

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/overview", response_model=DashboardOverviewResponse)
async def overview(reports: DashboardReports = Depends(get_dashboard_reports)) -> DashboardOverviewResponse:
    data = await reports.overview()
    return DashboardOverviewResponse.model_validate(
        {
            "totalRevenue": from_cents(data.total_revenue_cents),
            "totalOrders": data.total_orders,
            "totalCustomers": data.total_customers,
            "totalProducts": data.total_products,
            "pendingOrders": data.pending_orders,
            "lowStockProducts": data.low_stock_products,
            "todayRevenue": from_cents(data.today_revenue_cents),
            "todayOrders": data.today_orders,
        }
    )


@router.get("/sales", response_model=SalesAnalyticsResponse)
async def sales(
    period: SalesPeriod = Query(default="7d"),
    reports: DashboardReports = Depends(get_dashboard_reports),
) -> SalesAnalyticsResponse:
    data = await reports.sales(period)
    return SalesAnalyticsResponse.model_validate(
        {
            "period": period,
            "salesByDay": [
                {"date": day, "orders": orders, "revenue": from_cents(revenue)}
                for day, orders, revenue in data["by_day"]
            ],
            "salesByStatus": [
                {"status": order_status, "count": count, "revenue": from_cents(revenue)}
                for order_status, count, revenue in data["by_status"]
            ],
            "topProducts": [
                {"name": name, "sku": sku, "quantitySold": quantity, "revenue": from_cents(revenue)}
                for name, sku, quantity, revenue in data["top_products"]
            ],
        }
    )


@router.get("/inventory", response_model=InventoryAnalyticsResponse)
async def inventory(reports: DashboardReports = Depends(get_dashboard_reports)) -> InventoryAnalyticsResponse:
    by_category, alerts, recent = await reports.inventory()
    return InventoryAnalyticsResponse.model_validate(
        {
            "inventoryByCategory": [
                {
                    "category": category,
                    "productCount": product_count,
                    "totalQuantity": total_quantity,
                    "totalValue": from_cents(total_value),
                }
                for category, product_count, total_quantity, total_value in by_category
            ],
            "stockAlerts": [serialize_stock_level(level) for level in alerts],
            "recentTransactions": [serialize_ledger_entry(*row) for row in recent],
        }
    )


@router.get("/customers", response_model=CustomerAnalyticsResponse)
async def customers(reports: DashboardReports = Depends(get_dashboard_reports)) -> CustomerAnalyticsResponse:
    top, growth = await reports.customers()
    return CustomerAnalyticsResponse.model_validate(
        {
            "topCustomers": [
                {
                    "id": customer_id,
                    "name": f"{first_name} {last_name}",
                    "email": email,
                    "totalOrders": total_orders,
                    "totalSpent": from_cents(total_spent),
                }
                for customer_id, first_name, last_name, email, total_orders, total_spent in top
            ],
            "customerGrowth": [{"date": day, "newCustomers": count} for day, count in growth],
        }
    )
