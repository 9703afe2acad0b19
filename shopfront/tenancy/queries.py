"""
Tenant-scoped query helpers.

Every query for Product or Order rows MUST use these helpers or filter on
store_id explicitly.

Usage:
    from shopfront.tenancy.queries import scoped_select, require_owned

    stmt = scoped_select(Product, ctx.store_id).where(Product.status == "active")
    product = await require_owned(session, Product, product_id, ctx.store_id)
"""

from typing import Optional, Sequence, Type, TypeVar

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import DeclarativeBase

from ..models import Order, Product, ProductStatus, Store

# Type variable for generic model functions
T = TypeVar("T", bound=DeclarativeBase)


# ────────────────────────────────────────────────────────────────
# Composable Query Helpers
# ────────────────────────────────────────────────────────────────

def scoped_select(model: Type[T], store_id: int) -> Select:
    """SELECT pre-filtered by store_id."""
    return select(model).where(model.store_id == store_id)


async def require_owned(
    session: AsyncSession,
    model: Type[T],
    entity_id: int,
    store_id: int,
) -> Optional[T]:
    """
    Fetch an entity by ID, validating store ownership.
    Returns None if not found or owned by another store.
    """
    result = await session.execute(
        select(model).where(
            model.id == entity_id,
            model.store_id == store_id,
        )
    )
    return result.scalar_one_or_none()


# ────────────────────────────────────────────────────────────────
# Store identifiers
# ────────────────────────────────────────────────────────────────

async def store_identifier_taken(
    session: AsyncSession,
    value: str,
    exclude_store_id: Optional[int] = None,
) -> bool:
    """True if any store uses value as its slug or its subdomain."""
    stmt = select(Store.id).where(or_(Store.slug == value, Store.subdomain == value))
    if exclude_store_id is not None:
        stmt = stmt.where(Store.id != exclude_store_id)
    result = await session.execute(stmt.limit(1))
    return result.scalar_one_or_none() is not None


# ────────────────────────────────────────────────────────────────
# Products
# ────────────────────────────────────────────────────────────────

async def list_products(
    session: AsyncSession,
    store_id: int,
    active_only: bool = False,
) -> Sequence[Product]:
    stmt = scoped_select(Product, store_id)
    if active_only:
        stmt = stmt.where(Product.status == ProductStatus.ACTIVE.value)
    result = await session.execute(stmt.order_by(Product.created_at.desc(), Product.id.desc()))
    return result.scalars().all()


async def get_products_by_ids(
    session: AsyncSession,
    store_id: int,
    product_ids: Sequence[int],
) -> Sequence[Product]:
    """Get multiple products by IDs, scoped to store."""
    if not product_ids:
        return []
    result = await session.execute(
        select(Product).where(
            Product.store_id == store_id,
            Product.id.in_(product_ids),
        )
    )
    return result.scalars().all()


async def count_products(session: AsyncSession, store_id: int) -> int:
    result = await session.execute(
        select(func.count(Product.id)).where(Product.store_id == store_id)
    )
    return result.scalar_one()


# ────────────────────────────────────────────────────────────────
# Orders
# ────────────────────────────────────────────────────────────────

async def list_orders(session: AsyncSession, store_id: int) -> Sequence[Order]:
    result = await session.execute(
        scoped_select(Order, store_id).order_by(Order.created_at.desc(), Order.id.desc())
    )
    return result.scalars().all()


async def count_orders(session: AsyncSession, store_id: int) -> int:
    result = await session.execute(
        select(func.count(Order.id)).where(Order.store_id == store_id)
    )
    return result.scalar_one()
