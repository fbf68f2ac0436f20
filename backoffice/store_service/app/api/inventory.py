"""HTTP routes for stock movements and the inventory ledger."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from ..dependencies import get_ledger_reports, get_stock_service
from ..models import InventoryTransaction
from ..reports import LedgerReports, StockLevel
from ..schemas import (
    InventorySummaryResponse,
    LedgerEntryResponse,
    LedgerListResponse,
    ReconciliationEntry,
    ReconciliationResponse,
    StockAdjustmentRequest,
    StockAdjustmentResponse,
    StockLevelListResponse,
    StockLevelResponse,
    TransactionType,
)
from ..services import StockService, from_cents

router = APIRouter(prefix="/inventory", tags=["inventory"])


def serialize_ledger_entry(entry: InventoryTransaction, product_name: str, product_sku: str) -> dict[str, object]:
    return {
        "id": entry.id,
        "productId": entry.product_id,
        "productName": product_name,
        "productSku": product_sku,
        "transactionType": entry.transaction_type,
        "quantity": entry.quantity,
        "referenceId": entry.reference_id,
        "referenceType": entry.reference_type,
        "notes": entry.notes,
        "createdAt": entry.created_at,
    }


def serialize_stock_level(level: StockLevel) -> dict[str, object]:
    return {
        "id": level.id,
        "name": level.name,
        "sku": level.sku,
        "stockQuantity": level.stock_quantity,
        "minStockLevel": level.min_stock_level,
        "categoryName": level.category_name,
        "isLowStock": level.is_low_stock,
        "stockStatus": level.stock_status,
    }


@router.get("/transactions", response_model=LedgerListResponse)
async def list_transactions(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    product_id: int | None = Query(default=None, alias="productId"),
    transaction_type: TransactionType | None = Query(default=None, alias="type"),
    reports: LedgerReports = Depends(get_ledger_reports),
) -> LedgerListResponse:
    rows, total = await reports.list_transactions(
        product_id=product_id,
        transaction_type=transaction_type,
        limit=limit,
        offset=offset,
    )
    items = [LedgerEntryResponse.model_validate(serialize_ledger_entry(*row)) for row in rows]
    return LedgerListResponse(items=items, total=total, limit=limit, offset=offset)


@router.post("/adjust", response_model=StockAdjustmentResponse, status_code=status.HTTP_201_CREATED)
async def adjust_stock(
    payload: StockAdjustmentRequest,
    service: StockService = Depends(get_stock_service),
) -> StockAdjustmentResponse:
    adjustment = await service.adjust_stock(
        payload.product_id,
        payload.quantity,
        payload.direction,
        payload.notes,
    )
    entry = adjustment.transaction
    return StockAdjustmentResponse.model_validate(
        {
            "transactionId": entry.id,
            "productId": entry.product_id,
            "type": entry.transaction_type,
            "quantity": entry.quantity,
            "notes": entry.notes,
            "newStock": adjustment.new_stock,
        }
    )


@router.get("/stock-levels", response_model=StockLevelListResponse)
async def stock_levels(
    low_stock_only: bool = Query(default=False, alias="lowStockOnly"),
    reports: LedgerReports = Depends(get_ledger_reports),
) -> StockLevelListResponse:
    levels = await reports.stock_levels(low_stock_only=low_stock_only)
    return StockLevelListResponse(
        items=[StockLevelResponse.model_validate(serialize_stock_level(level)) for level in levels]
    )


@router.get("/summary", response_model=InventorySummaryResponse)
async def inventory_summary(
    reports: LedgerReports = Depends(get_ledger_reports),
) -> InventorySummaryResponse:
    summary = await reports.summary()
    return InventorySummaryResponse.model_validate(
        {
            "totalProducts": summary.total_products,
            "totalInventoryValue": from_cents(summary.total_inventory_value_cents),
            "lowStockProducts": summary.low_stock_products,
            "outOfStockProducts": summary.out_of_stock_products,
            "todaysTransactions": summary.todays_transactions,
        }
    )


@router.get("/reconciliation", response_model=ReconciliationResponse)
async def reconciliation(
    drift_only: bool = Query(default=False, alias="driftOnly"),
    reports: LedgerReports = Depends(get_ledger_reports),
) -> ReconciliationResponse:
    rows = await reports.reconcile()
    entries = [
        ReconciliationEntry(
            product_id=row.product_id,
            sku=row.sku,
            stock_quantity=row.stock_quantity,
            ledger_balance=row.ledger_balance,
            drift=row.drift,
        )
        for row in rows
        if row.drift or not drift_only
    ]
    return ReconciliationResponse(consistent=all(row.drift == 0 for row in rows), items=entries)
