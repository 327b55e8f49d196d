from fastapi import APIRouter, Depends, Request, status
from typing import List

from storefront.dependencies import get_product_store
from storefront.shared.security_config import CATALOG_LIMIT, limiter
from storefront.shared.utils import SuccessResponse, require_admin
from storefront.products.schemas import (
    ProductCreate, ProductUpdate, ProductResponse, ProductFilters
)
from storefront.products.store import ProductStore

router = APIRouter(prefix="/api/products", tags=["products"])


@router.get("", response_model=SuccessResponse[List[ProductResponse]])
@limiter.limit(CATALOG_LIMIT)
async def list_products(request: Request, store: ProductStore = Depends(get_product_store)):
    products = await store.list_all()
    return SuccessResponse(count=len(products), data=products)

@router.get("/category/{category}", response_model=SuccessResponse[List[ProductResponse]])
@limiter.limit(CATALOG_LIMIT)
async def list_products_by_category(category: str, request: Request, store: ProductStore = Depends(get_product_store)):
    products = await store.list_by_category(category)
    return SuccessResponse(count=len(products), data=products)

@router.get("/filters/{category}", response_model=SuccessResponse[ProductFilters])
@limiter.limit(CATALOG_LIMIT)
async def get_filters(category: str, request: Request, store: ProductStore = Depends(get_product_store)):
    return SuccessResponse(data=await store.filters(category))

@router.get("/{product_id}", response_model=SuccessResponse[ProductResponse])
@limiter.limit(CATALOG_LIMIT)
async def get_product(product_id: int, request: Request, store: ProductStore = Depends(get_product_store)):
    return SuccessResponse(data=await store.get(product_id))

# Admin

@router.post("", response_model=SuccessResponse[ProductResponse], status_code=status.HTTP_201_CREATED)
async def create_product(
    product: ProductCreate,
    admin: dict = Depends(require_admin),
    store: ProductStore = Depends(get_product_store)
):
    created = await store.create(product)
    return SuccessResponse(data=created, message="Product created successfully")

@router.put("/{product_id}", response_model=SuccessResponse[ProductResponse])
async def update_product(
    product_id: int,
    product_update: ProductUpdate,
    admin: dict = Depends(require_admin),
    store: ProductStore = Depends(get_product_store)
):
    updated = await store.update(product_id, product_update)
    return SuccessResponse(data=updated, message="Product updated successfully")

@router.delete("/{product_id}", response_model=SuccessResponse[dict])
async def delete_product(
    product_id: int,
    admin: dict = Depends(require_admin),
    store: ProductStore = Depends(get_product_store)
):
    await store.delete(product_id)
    return SuccessResponse(data={"id": product_id}, message="Product deleted successfully")
