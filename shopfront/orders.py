"""
Orders: public checkout, manual entry, status transitions, dashboard stats.

Order creation rules:
    - Line items are snapshots. Items that reference a product copy that
      product's current name and price; items without a product_id keep the
      submitted name and price.
    - The order total is always recomputed from the snapshots. A total sent
      by the client is ignored.
    - order_id is allocated by identifiers.allocate_order_id and regenerated
      when the insert hits the unique index.
    - Inventory of referenced products is decremented, floored at zero.
"""
import logging
from collections import defaultdict
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy import case, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .auth import require_store_owner
from .core.config import get_settings
from .core.db import get_session
from .core.errors import PersistenceConflict, ValidationError
from .identifiers import allocate_order_id
from .models import (
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
    Product,
    ProductStatus,
    Store,
)
from .reporting import build_dashboard_stats
from .tenancy.context import StoreContext, StoreResolutionSource
from .tenancy.queries import (
    count_orders,
    count_products,
    get_products_by_ids,
    list_orders,
    require_owned,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


# === Request/Response Models ===

class CustomerInfo(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Customer name is required")
        return v.strip()


class OrderItemRequest(BaseModel):
    product_id: Optional[int] = None
    name: Optional[str] = Field(None, max_length=255)
    price_cents: Optional[int] = Field(None, ge=0)
    quantity: int = Field(..., ge=1)


class ManualOrderRequest(BaseModel):
    """Order entered by the store owner from the dashboard."""
    customer: CustomerInfo
    items: list[OrderItemRequest] = Field(..., min_length=1)
    shipping_address: Optional[str] = None
    total_cents: Optional[int] = Field(None, description="Ignored; the total is computed from the items")


class CheckoutRequest(ManualOrderRequest):
    """Public storefront checkout (no account required)."""
    store_id: int
    shipping_address: str = Field(..., min_length=1)

    @field_validator("shipping_address")
    @classmethod
    def validate_address(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Shipping address is required")
        return v.strip()


class OrderItemResponse(BaseModel):
    product_id: Optional[int]
    name: str
    price_cents: int
    quantity: int

    model_config = {"from_attributes": True}


class OrderResponse(BaseModel):
    id: int
    order_id: str
    store_id: int
    customer_name: str
    customer_email: str
    shipping_address: Optional[str]
    items: list[OrderItemResponse]
    total_cents: int
    status: str
    payment_status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class StatusUpdateRequest(BaseModel):
    status: OrderStatus


class PaymentUpdateRequest(BaseModel):
    payment_status: PaymentStatus


class DailySalesResponse(BaseModel):
    date: str
    amount_cents: int


class DashboardStatsResponse(BaseModel):
    total_sales_cents: int
    total_orders: int
    total_products: int
    total_customers: int
    recent_sales: list[DailySalesResponse]


# === Order Creation ===

async def build_line_items(
    session: AsyncSession,
    ctx: StoreContext,
    items: list[OrderItemRequest],
    require_active: bool,
) -> list[OrderItem]:
    """
    Snapshot the requested items.

    Raises:
        ValidationError: Unknown/unavailable product, or a free-form item
            without a name and price
    """
    product_ids = sorted({item.product_id for item in items if item.product_id is not None})
    products = {p.id: p for p in await get_products_by_ids(session, ctx.store_id, product_ids)}

    line_items = []
    for item in items:
        if item.product_id is not None:
            product = products.get(item.product_id)
            if product is None or (require_active and product.status != ProductStatus.ACTIVE.value):
                raise ValidationError(
                    f"Product {item.product_id} is not available in this store",
                    field="items",
                )
            line_items.append(
                OrderItem(
                    product_id=product.id,
                    name=product.name,
                    price_cents=product.price_cents,
                    quantity=item.quantity,
                )
            )
            continue

        if not item.name or not item.name.strip() or item.price_cents is None:
            raise ValidationError(
                "Items without a product_id need a name and price_cents",
                field="items",
            )
        line_items.append(
            OrderItem(
                product_id=None,
                name=item.name.strip(),
                price_cents=item.price_cents,
                quantity=item.quantity,
            )
        )

    return line_items


async def decrement_inventory(session: AsyncSession, store_id: int, line_items: list[OrderItem]) -> None:
    """Decrement stock of referenced products, never below zero. No locking."""
    quantities: dict[int, int] = defaultdict(int)
    for item in line_items:
        if item.product_id is not None:
            quantities[item.product_id] += item.quantity

    for product_id, quantity in quantities.items():
        await session.execute(
            update(Product)
            .where(Product.id == product_id, Product.store_id == store_id)
            .values(
                inventory=case(
                    (Product.inventory >= quantity, Product.inventory - quantity),
                    else_=0,
                )
            )
            .execution_options(synchronize_session=False)
        )


async def create_order(
    session: AsyncSession,
    ctx: StoreContext,
    request: ManualOrderRequest,
    require_active: bool = True,
) -> Order:
    """Create an order for ctx's store. See the module docstring for the rules."""
    line_items = await build_line_items(session, ctx, request.items, require_active)
    total_cents = sum(item.price_cents * item.quantity for item in line_items)

    if request.total_cents is not None and request.total_cents != total_cents:
        logger.warning(
            f"Client total {request.total_cents} ignored for store {ctx.store_slug}; computed {total_cents}"
        )

    async def store_order_count() -> int:
        return await count_orders(session, ctx.store_id)

    async def insert_order(order_id: str) -> Order:
        order = Order(
            order_id=order_id,
            store_id=ctx.store_id,
            customer_name=request.customer.name,
            customer_email=str(request.customer.email).lower(),
            shipping_address=request.shipping_address,
            total_cents=total_cents,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            items=[
                OrderItem(
                    product_id=item.product_id,
                    name=item.name,
                    price_cents=item.price_cents,
                    quantity=item.quantity,
                )
                for item in line_items
            ],
        )
        session.add(order)
        try:
            await session.flush()
        except IntegrityError as e:
            await session.rollback()
            raise PersistenceConflict(order_id) from e
        return order

    order = await allocate_order_id(store_order_count, insert_order)
    await decrement_inventory(session, ctx.store_id, line_items)
    await session.commit()
    await session.refresh(order)

    logger.info(
        f"Order {order.order_id} created in store {ctx.store_slug}: "
        f"{len(line_items)} items, total {total_cents} cents"
    )
    return order


# === Public Endpoints ===

@router.post("", response_model=OrderResponse, status_code=201)
async def checkout(
    request: CheckoutRequest,
    db: AsyncSession = Depends(get_session),
):
    """
    Public checkout for a storefront customer.

    Error Codes:
    - 400: Unknown or inactive product, malformed free-form item
    - 404: Store not found or inactive
    - 422: Missing customer, items or shipping address
    """
    result = await db.execute(
        select(Store).where(Store.id == request.store_id, Store.is_active.is_(True))
    )
    store = result.scalar_one_or_none()
    if not store:
        raise HTTPException(status_code=404, detail="Store not found")

    ctx = StoreContext.from_store(store, StoreResolutionSource.STORE_ID)
    order = await create_order(db, ctx, request, require_active=True)
    return OrderResponse.model_validate(order)


# === Owner Endpoints ===

@router.post("/manual", response_model=OrderResponse, status_code=201)
async def create_manual_order(
    request: ManualOrderRequest,
    store: Store = Depends(require_store_owner),
    db: AsyncSession = Depends(get_session),
):
    """Owner-entered order; products in any lifecycle status may be used."""
    ctx = StoreContext.from_store(store, StoreResolutionSource.OWNER)
    order = await create_order(db, ctx, request, require_active=False)
    return OrderResponse.model_validate(order)


@router.get("/my-orders", response_model=list[OrderResponse])
async def get_my_orders(
    store: Store = Depends(require_store_owner),
    db: AsyncSession = Depends(get_session),
):
    orders = await list_orders(db, store.id)
    return [OrderResponse.model_validate(o) for o in orders]


@router.get("/stats/dashboard", response_model=DashboardStatsResponse)
async def get_dashboard_stats(
    store: Store = Depends(require_store_owner),
    db: AsyncSession = Depends(get_session),
):
    """Totals and the recent daily sales series for the owner dashboard."""
    settings = get_settings()
    orders = await list_orders(db, store.id)
    product_count = await count_products(db, store.id)

    stats = build_dashboard_stats(
        orders,
        product_count,
        window_days=settings.stats_window_days,
        rule=settings.revenue_recognition_rule,
    )
    return stats.to_dict()


@router.get("/{order_pk}", response_model=OrderResponse)
async def get_order(
    order_pk: int,
    store: Store = Depends(require_store_owner),
    db: AsyncSession = Depends(get_session),
):
    order = await require_owned(db, Order, order_pk, store.id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return OrderResponse.model_validate(order)


@router.put("/{order_pk}/status", response_model=OrderResponse)
async def update_order_status(
    order_pk: int,
    request: StatusUpdateRequest,
    store: Store = Depends(require_store_owner),
    db: AsyncSession = Depends(get_session),
):
    order = await require_owned(db, Order, order_pk, store.id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")

    previous = order.status
    order.status = request.status.value
    await db.commit()
    await db.refresh(order)

    logger.info(f"Order {order.order_id} status {previous} -> {order.status}")
    return OrderResponse.model_validate(order)


@router.put("/{order_pk}/payment", response_model=OrderResponse)
async def update_payment_status(
    order_pk: int,
    request: PaymentUpdateRequest,
    store: Store = Depends(require_store_owner),
    db: AsyncSession = Depends(get_session),
):
    order = await require_owned(db, Order, order_pk, store.id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")

    previous = order.payment_status
    order.payment_status = request.payment_status.value
    await db.commit()
    await db.refresh(order)

    logger.info(f"Order {order.order_id} payment {previous} -> {order.payment_status}")
    return OrderResponse.model_validate(order)
