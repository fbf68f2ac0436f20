"""HTTP routes for order placement and lifecycle."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query, status

from ..dependencies import get_order_repository, get_order_service
from ..errors import OrderNotFound
from ..models import Order
from ..repository import OrderRepository
from ..schemas import (
    OrderCreate,
    OrderListResponse,
    OrderResponse,
    OrderStatus,
    OrderUpdatePayment,
    OrderUpdateStatus,
)
from ..services import OrderService, from_cents

router = APIRouter(prefix="/orders", tags=["orders"])


def _customer_name(order: Order) -> str | None:
    if order.customer is None:
        return None
    return f"{order.customer.first_name} {order.customer.last_name}"


def _serialize_order(order: Order) -> dict[str, object]:
    return {
        "id": order.id,
        "orderNumber": order.order_number,
        "customerId": order.customer_id,
        "customerName": _customer_name(order),
        "status": order.status,
        "paymentStatus": order.payment_status,
        "paymentMethod": order.payment_method,
        "totalAmount": from_cents(order.total_amount_cents),
        "taxAmount": from_cents(order.tax_amount_cents),
        "discountAmount": from_cents(order.discount_amount_cents),
        "notes": order.notes,
        "itemCount": len(order.items),
        "items": [
            {
                "id": item.id,
                "productId": item.product_id,
                "productName": item.product.name,
                "productSku": item.product.sku,
                "quantity": item.quantity,
                "unitPrice": from_cents(item.unit_price_cents),
                "totalPrice": from_cents(item.total_price_cents),
            }
            for item in order.items
        ],
        "createdAt": order.created_at,
        "updatedAt": order.updated_at,
    }


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    payload: OrderCreate,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    order = await service.create_order(payload)
    return OrderResponse.model_validate(_serialize_order(order))


@router.get("", response_model=OrderListResponse)
async def list_orders(
    limit: int = Query(default=10, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    status: OrderStatus | None = Query(default=None),
    customer: str | None = Query(default=None),
    date_from: date | None = Query(default=None, alias="dateFrom"),
    date_to: date | None = Query(default=None, alias="dateTo"),
    repository: OrderRepository = Depends(get_order_repository),
) -> OrderListResponse:
    orders, total = await repository.list_orders(
        status=status,
        customer=customer.strip() if customer else None,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )
    items = [OrderResponse.model_validate(_serialize_order(order)) for order in orders]
    return OrderListResponse(items=items, total=total, limit=limit, offset=offset)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int,
    repository: OrderRepository = Depends(get_order_repository),
) -> OrderResponse:
    order = await repository.get_order(order_id)
    if order is None:
        raise OrderNotFound(order_id)
    return OrderResponse.model_validate(_serialize_order(order))


@router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: int,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    order = await service.cancel_order(order_id)
    return OrderResponse.model_validate(_serialize_order(order))


@router.delete("/{order_id}", response_model=OrderResponse)
async def delete_order(
    order_id: int,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    order = await service.cancel_order(order_id)
    return OrderResponse.model_validate(_serialize_order(order))


@router.put("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: int,
    payload: OrderUpdateStatus,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    order = await service.update_status(order_id, payload.status)
    return OrderResponse.model_validate(_serialize_order(order))


@router.put("/{order_id}/payment", response_model=OrderResponse)
async def update_order_payment(
    order_id: int,
    payload: OrderUpdatePayment,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    order = await service.update_payment(order_id, payload.payment_status, payload.payment_method)
    return OrderResponse.model_validate(_serialize_order(order))
