"""
Product catalog.

Public routes list a store's products for the storefront; owner routes
manage the catalog of the caller's own store.
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .auth import require_store_owner
from .core.db import get_session
from .models import Product, ProductStatus, Store
from .tenancy.context import StoreContext, StoreResolutionSource
from .tenancy.queries import list_products, require_owned


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["products"])


# === Request/Response Models ===

class ProductCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    price_cents: int = Field(..., ge=0)
    compare_at_price_cents: Optional[int] = Field(None, ge=0)
    inventory: int = Field(default=0, ge=0)
    category: str = Field(default="Other", max_length=100)
    status: ProductStatus = ProductStatus.DRAFT
    image_url: Optional[str] = Field(None, max_length=500)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Product name is required")
        return v.strip()


class ProductUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    price_cents: Optional[int] = Field(None, ge=0)
    compare_at_price_cents: Optional[int] = Field(None, ge=0)
    inventory: Optional[int] = Field(None, ge=0)
    category: Optional[str] = Field(None, max_length=100)
    status: Optional[ProductStatus] = None
    image_url: Optional[str] = Field(None, max_length=500)


class ProductResponse(BaseModel):
    id: int
    store_id: int
    name: str
    description: Optional[str]
    price_cents: int
    compare_at_price_cents: Optional[int]
    inventory: int
    category: str
    status: str
    image_url: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


NON_NULLABLE_FIELDS = {"name", "price_cents", "inventory", "category", "status"}


# === Public Endpoints ===

@router.get("/store/{store_id}", response_model=list[ProductResponse])
async def get_store_products(store_id: int, db: AsyncSession = Depends(get_session)):
    """Every product of a store, newest first."""
    products = await list_products(db, store_id)
    return [ProductResponse.model_validate(p) for p in products]


@router.get("/store/{store_id}/active", response_model=list[ProductResponse])
async def get_store_active_products(store_id: int, db: AsyncSession = Depends(get_session)):
    """Products visible on the public storefront."""
    products = await list_products(db, store_id, active_only=True)
    return [ProductResponse.model_validate(p) for p in products]


# === Owner Endpoints ===

@router.get("/my-products", response_model=list[ProductResponse])
async def get_my_products(
    store: Store = Depends(require_store_owner),
    db: AsyncSession = Depends(get_session),
):
    products = await list_products(db, store.id)
    return [ProductResponse.model_validate(p) for p in products]


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: int, db: AsyncSession = Depends(get_session)):
    result = await db.execute(select(Product).where(Product.id == product_id))
    product = result.scalar_one_or_none()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return ProductResponse.model_validate(product)


@router.post("", response_model=ProductResponse, status_code=201)
async def create_product(
    request: ProductCreateRequest,
    store: Store = Depends(require_store_owner),
    db: AsyncSession = Depends(get_session),
):
    ctx = StoreContext.from_store(store, StoreResolutionSource.OWNER)
    product = Product(
        store_id=ctx.store_id,
        name=request.name,
        description=request.description,
        price_cents=request.price_cents,
        compare_at_price_cents=request.compare_at_price_cents,
        inventory=request.inventory,
        category=request.category or "Other",
        status=request.status.value,
        image_url=request.image_url,
    )
    db.add(product)
    await db.commit()
    await db.refresh(product)

    logger.info(f"Product {product.id} '{product.name}' created in store {ctx.store_slug}")
    return ProductResponse.model_validate(product)


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: int,
    request: ProductUpdateRequest,
    store: Store = Depends(require_store_owner),
    db: AsyncSession = Depends(get_session),
):
    product = await require_owned(db, Product, product_id, store.id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    for field, value in request.model_dump(exclude_unset=True).items():
        if value is None and field in NON_NULLABLE_FIELDS:
            continue
        if isinstance(value, ProductStatus):
            value = value.value
        setattr(product, field, value)

    await db.commit()
    await db.refresh(product)
    return ProductResponse.model_validate(product)


@router.delete("/{product_id}")
async def delete_product(
    product_id: int,
    store: Store = Depends(require_store_owner),
    db: AsyncSession = Depends(get_session),
):
    """Delete a product. Orders keep their line-item snapshots."""
    product = await require_owned(db, Product, product_id, store.id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    await db.delete(product)
    await db.commit()

    logger.info(f"Product {product_id} deleted from store {store.id}")
    return {"success": True, "message": "Product deleted"}
