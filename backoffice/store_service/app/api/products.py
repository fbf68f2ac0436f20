"""HTTP routes for product management."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status

from ..dependencies import get_catalog_repository, get_stock_service
from ..errors import ProductNotFound
from ..models import Product
from ..repository import CatalogRepository
from ..schemas import ProductCreate, ProductListResponse, ProductResponse, ProductStatus, ProductUpdate
from ..services import StockService, from_cents

router = APIRouter(prefix="/products", tags=["products"])


def _serialize_product(product: Product) -> dict[str, object]:
    return {
        "id": product.id,
        "name": product.name,
        "description": product.description,
        "sku": product.sku,
        "categoryId": product.category_id,
        "categoryName": product.category.name if product.category is not None else None,
        "price": from_cents(product.price_cents),
        "cost": from_cents(product.cost_cents) if product.cost_cents is not None else None,
        "stockQuantity": product.stock_quantity,
        "minStockLevel": product.min_stock_level,
        "imageUrl": product.image_url,
        "status": product.status,
        "lowStock": product.stock_quantity <= product.min_stock_level,
        "createdAt": product.created_at,
        "updatedAt": product.updated_at,
    }


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    payload: ProductCreate,
    service: StockService = Depends(get_stock_service),
) -> ProductResponse:
    product = await service.create_product(payload)
    return ProductResponse.model_validate(_serialize_product(product))


@router.get("", response_model=ProductListResponse)
async def list_products(
    limit: int = Query(default=10, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    search: str | None = Query(default=None),
    category_id: int | None = Query(default=None, alias="categoryId"),
    product_status: ProductStatus | None = Query(default=None, alias="status"),
    repository: CatalogRepository = Depends(get_catalog_repository),
) -> ProductListResponse:
    products, total = await repository.list_products(
        limit=limit,
        offset=offset,
        search=search.strip() if search else None,
        category_id=category_id,
        status=product_status,
    )
    items = [ProductResponse.model_validate(_serialize_product(product)) for product in products]
    return ProductListResponse(items=items, total=total, limit=limit, offset=offset)


@router.get("/alerts/low-stock", response_model=list[ProductResponse])
async def low_stock_alerts(
    repository: CatalogRepository = Depends(get_catalog_repository),
) -> list[ProductResponse]:
    products = await repository.list_low_stock()
    return [ProductResponse.model_validate(_serialize_product(product)) for product in products]


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: int,
    repository: CatalogRepository = Depends(get_catalog_repository),
) -> ProductResponse:
    product = await repository.get_product(product_id)
    if product is None:
        raise ProductNotFound(product_id)
    return ProductResponse.model_validate(_serialize_product(product))


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: int,
    payload: ProductUpdate,
    service: StockService = Depends(get_stock_service),
) -> ProductResponse:
    product = await service.update_product(product_id, payload)
    return ProductResponse.model_validate(_serialize_product(product))


@router.delete("/{product_id}")
async def delete_product(
    product_id: int,
    service: StockService = Depends(get_stock_service),
) -> Response:
    await service.delete_product(product_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
