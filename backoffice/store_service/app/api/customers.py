"""HTTP routes for customer records."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status

from ..dependencies import get_customer_repository
from ..errors import Conflict, CustomerNotFound
from ..models import Customer, Order
from ..repository import CustomerRepository
from ..schemas import CustomerCreate, CustomerListResponse, CustomerResponse, CustomerUpdate
from ..services import from_cents

router = APIRouter(prefix="/customers", tags=["customers"])


def _serialize_recent_order(order: Order) -> dict[str, object]:
    return {
        "id": order.id,
        "orderNumber": order.order_number,
        "status": order.status,
        "totalAmount": from_cents(order.total_amount_cents),
        "createdAt": order.created_at,
    }


def _serialize_customer(
    customer: Customer,
    *,
    total_orders: int = 0,
    total_spent_cents: int = 0,
    recent_orders: list[Order] | None = None,
) -> dict[str, object]:
    return {
        "id": customer.id,
        "firstName": customer.first_name,
        "lastName": customer.last_name,
        "email": customer.email,
        "phone": customer.phone,
        "address": customer.address,
        "city": customer.city,
        "postalCode": customer.postal_code,
        "country": customer.country,
        "totalOrders": total_orders,
        "totalSpent": from_cents(total_spent_cents),
        "recentOrders": (
            [_serialize_recent_order(order) for order in recent_orders] if recent_orders is not None else None
        ),
        "createdAt": customer.created_at,
        "updatedAt": customer.updated_at,
    }


@router.get("", response_model=CustomerListResponse)
async def list_customers(
    limit: int = Query(default=10, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    search: str | None = Query(default=None),
    repository: CustomerRepository = Depends(get_customer_repository),
) -> CustomerListResponse:
    rows, total = await repository.list_customers(
        limit=limit,
        offset=offset,
        search=search.strip() if search else None,
    )
    items = [
        CustomerResponse.model_validate(
            _serialize_customer(customer, total_orders=orders, total_spent_cents=spent)
        )
        for customer, orders, spent in rows
    ]
    return CustomerListResponse(items=items, total=total, limit=limit, offset=offset)


@router.get("/{customer_id}", response_model=CustomerResponse)
async def get_customer(
    customer_id: int,
    repository: CustomerRepository = Depends(get_customer_repository),
) -> CustomerResponse:
    row = await repository.get_customer_with_totals(customer_id)
    if row is None:
        raise CustomerNotFound(customer_id)
    customer, total_orders, total_spent = row
    recent = await repository.recent_orders(customer.id)
    return CustomerResponse.model_validate(
        _serialize_customer(
            customer,
            total_orders=total_orders,
            total_spent_cents=total_spent,
            recent_orders=recent,
        )
    )


@router.post("", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
async def create_customer(
    payload: CustomerCreate,
    repository: CustomerRepository = Depends(get_customer_repository),
) -> CustomerResponse:
    if payload.email and await repository.get_by_email(payload.email) is not None:
        raise Conflict("Customer with this email already exists", email=payload.email)
    customer = await repository.create_customer(**payload.model_dump())
    return CustomerResponse.model_validate(_serialize_customer(customer))


@router.put("/{customer_id}", response_model=CustomerResponse)
async def update_customer(
    customer_id: int,
    payload: CustomerUpdate,
    repository: CustomerRepository = Depends(get_customer_repository),
) -> CustomerResponse:
    row = await repository.get_customer_with_totals(customer_id)
    if row is None:
        raise CustomerNotFound(customer_id)
    customer, total_orders, total_spent = row

    changes = payload.model_dump(exclude_unset=True)
    for field in ("first_name", "last_name"):
        if field in changes and changes[field] is None:
            changes.pop(field)
    if changes.get("email") and changes["email"] != customer.email:
        if await repository.get_by_email(changes["email"]) is not None:
            raise Conflict("Customer with this email already exists", email=changes["email"])

    updated = await repository.update_customer(customer, **changes)
    return CustomerResponse.model_validate(
        _serialize_customer(updated, total_orders=total_orders, total_spent_cents=total_spent)
    )


@router.delete("/{customer_id}")
async def delete_customer(
    customer_id: int,
    repository: CustomerRepository = Depends(get_customer_repository),
) -> Response:
    customer = await repository.get_customer(customer_id)
    if customer is None:
        raise CustomerNotFound(customer_id)
    if await repository.has_orders(customer.id):
        raise Conflict("Cannot delete customer with existing orders", customerId=customer_id)
    await repository.delete_customer(customer)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
