"""HTTP routes for product categories."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from ..dependencies import get_catalog_repository
from ..errors import CategoryNotFound, Conflict
from ..models import Category
from ..repository import CatalogRepository
from ..schemas import CategoryCreate, CategoryListResponse, CategoryResponse, CategoryUpdate

router = APIRouter(prefix="/categories", tags=["categories"])


def _serialize_category(category: Category, product_count: int) -> dict[str, object]:
    return {
        "id": category.id,
        "name": category.name,
        "description": category.description,
        "productCount": product_count,
        "createdAt": category.created_at,
    }


async def _require_category(repository: CatalogRepository, category_id: int) -> Category:
    category = await repository.get_category(category_id)
    if category is None:
        raise CategoryNotFound(category_id)
    return category


@router.get("", response_model=CategoryListResponse)
async def list_categories(
    repository: CatalogRepository = Depends(get_catalog_repository),
) -> CategoryListResponse:
    rows = await repository.list_categories()
    items = [CategoryResponse.model_validate(_serialize_category(category, count)) for category, count in rows]
    return CategoryListResponse(items=items)


@router.get("/{category_id}", response_model=CategoryResponse)
async def get_category(
    category_id: int,
    repository: CatalogRepository = Depends(get_catalog_repository),
) -> CategoryResponse:
    category = await _require_category(repository, category_id)
    count = await repository.count_category_products(category.id)
    return CategoryResponse.model_validate(_serialize_category(category, count))


@router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: CategoryCreate,
    repository: CatalogRepository = Depends(get_catalog_repository),
) -> CategoryResponse:
    if await repository.get_category_by_name(payload.name) is not None:
        raise Conflict("Category name already exists", name=payload.name)
    category = await repository.create_category(name=payload.name, description=payload.description)
    return CategoryResponse.model_validate(_serialize_category(category, 0))


@router.put("/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: int,
    payload: CategoryUpdate,
    repository: CatalogRepository = Depends(get_catalog_repository),
) -> CategoryResponse:
    category = await _require_category(repository, category_id)
    if payload.name is not None and payload.name != category.name:
        if await repository.get_category_by_name(payload.name) is not None:
            raise Conflict("Category name already exists", name=payload.name)
    updated = await repository.update_category(category, name=payload.name, description=payload.description)
    count = await repository.count_category_products(updated.id)
    return CategoryResponse.model_validate(_serialize_category(updated, count))


@router.delete("/{category_id}")
async def delete_category(
    category_id: int,
    repository: CatalogRepository = Depends(get_catalog_repository),
) -> Response:
    category = await _require_category(repository, category_id)
    if await repository.count_category_products(category.id):
        raise Conflict("Cannot delete category with existing products", categoryId=category_id)
    await repository.delete_category(category)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
