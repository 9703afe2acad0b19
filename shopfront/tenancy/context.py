"""
Store context resolution.

A StoreContext identifies the tenant a request operates on. Public
storefront routes resolve it from a slug or subdomain; dashboard routes
resolve it from the authenticated owner.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Store


logger = logging.getLogger(__name__)


class StoreResolutionSource(str, Enum):
    """How the store context was determined."""

    STORE_ID = "store_id"       # Public checkout, store_id in the request body
    OWNER = "owner"             # Authenticated store owner


@dataclass(frozen=True)
class StoreContext:
    """
    Immutable context representing the current tenant for a request.

    Attributes:
        store_id: stores.id
        store_slug: URL-safe identifier (e.g., "demo-store")
        store_name: Display name
        currency: ISO currency code used for prices
        source: How this context was determined (for logging)
    """

    store_id: int
    store_slug: str
    store_name: str
    currency: str = "TND"
    source: StoreResolutionSource = StoreResolutionSource.STORE_ID

    def __post_init__(self):
        if self.store_id <= 0:
            raise ValueError(f"store_id must be positive, got {self.store_id}")

    @classmethod
    def from_store(cls, store: Store, source: StoreResolutionSource) -> "StoreContext":
        return cls(
            store_id=store.id,
            store_slug=store.slug,
            store_name=store.name,
            currency=store.currency,
            source=source,
        )


async def resolve_store_from_slug(
    session: AsyncSession,
    slug: str,
    active_only: bool = True,
) -> Optional[Store]:
    """Exact-match lookup by slug. Returns None if not found."""
    stmt = select(Store).where(Store.slug == slug)
    if active_only:
        stmt = stmt.where(Store.is_active.is_(True))
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def resolve_store_from_subdomain(
    session: AsyncSession,
    subdomain: str,
    active_only: bool = True,
) -> Optional[Store]:
    """Exact-match lookup by subdomain. Returns None if not found."""
    stmt = select(Store).where(Store.subdomain == subdomain)
    if active_only:
        stmt = stmt.where(Store.is_active.is_(True))
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_store_for_owner(session: AsyncSession, owner_user_id: str) -> Optional[Store]:
    result = await session.execute(
        select(Store).where(Store.owner_user_id == owner_user_id).order_by(Store.id).limit(1)
    )
    return result.scalar_one_or_none()


async def require_owner_store(session: AsyncSession, owner_user_id: str) -> Store:
    """
    Load the store owned by the caller.

    Raises:
        HTTPException 404: If the user has not registered a store
    """
    store = await get_store_for_owner(session, owner_user_id)
    if not store:
        logger.warning(f"User {owner_user_id} has no store")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Store not found",
        )

    logger.debug(f"Resolved store {store.id} ({store.slug}) for owner {owner_user_id}")
    return store
