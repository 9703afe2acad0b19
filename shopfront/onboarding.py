"""
Store onboarding and public store registry.

These endpoints DO NOT require a store context: registration creates the
store itself, and the registry resolves stores for the public storefront.
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .auth import get_current_user_id
from .core.config import get_settings
from .core.db import get_session
from .core.errors import PersistenceConflict
from .identifiers import (
    allocate_and_persist,
    is_reserved_subdomain,
    registration_slug_candidate,
    validate_subdomain,
)
from .models import Store
from .tenancy.context import (
    get_store_for_owner,
    resolve_store_from_slug,
    resolve_store_from_subdomain,
)
from .tenancy.queries import store_identifier_taken


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stores", tags=["stores"])

DEFAULT_STORE_DESCRIPTION = "Welcome to my store!"


# === Request/Response Models ===

class CreateStoreRequest(BaseModel):
    """Request to register a new store for the calling user."""
    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Ensure name is not just whitespace."""
        if not v.strip():
            raise ValueError("Store name cannot be empty or whitespace")
        return v.strip()


class StoreResponse(BaseModel):
    """Store information (owner ID is never exposed)."""
    id: int
    slug: str
    subdomain: str
    name: str
    email: Optional[str]
    phone: Optional[str]
    address: Optional[str]
    logo_url: Optional[str]
    theme_color: str
    currency: str
    timezone: str
    description: Optional[str]
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class SubdomainAvailability(BaseModel):
    subdomain: str
    available: bool
    is_reserved: bool
    reason: Optional[str] = None


# === Endpoints ===

@router.post("", response_model=StoreResponse, status_code=201)
async def create_store(
    request: CreateStoreRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """
    Register a store for the calling user.

    Process:
    1. Reject if the user already owns a store (409)
    2. Derive a slug candidate from the store name
    3. Allocate a free slug (name, name-1, name-2, ...) and insert;
       a duplicate slug at commit re-runs allocation; a duplicate owner is a 409
    4. subdomain starts out identical to slug
    """
    if await get_store_for_owner(db, user_id):
        raise HTTPException(
            status_code=409,
            detail="You already have a store",
        )

    settings = get_settings()

    async def slug_taken(value: str) -> bool:
        return await store_identifier_taken(db, value)

    async def insert_store(slug: str) -> Store:
        store = Store(
            slug=slug,
            subdomain=slug,
            owner_user_id=user_id,
            name=request.name,
            email=request.email.lower() if request.email else None,
            phone=request.phone,
            address=request.address,
            description=request.description or DEFAULT_STORE_DESCRIPTION,
            currency=settings.default_currency,
            timezone=settings.default_timezone,
            is_active=True,
        )
        db.add(store)
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            # A concurrent registration by the same owner won the race
            if await get_store_for_owner(db, user_id):
                logger.warning(f"User {user_id} registered a store concurrently; rejecting '{slug}'")
                raise HTTPException(status_code=409, detail="You already have a store") from e
            raise PersistenceConflict(slug) from e
        await db.refresh(store)
        return store

    candidate = registration_slug_candidate(request.name)
    store = await allocate_and_persist(candidate, exists=slug_taken, persist=insert_store)

    logger.info(f"Registered store {store.id} '{store.name}' as '{store.slug}' for user {user_id}")
    return StoreResponse.model_validate(store)


@router.get("", response_model=list[StoreResponse])
async def list_stores(db: AsyncSession = Depends(get_session)):
    """Public store directory: every active store, newest first."""
    result = await db.execute(
        select(Store)
        .where(Store.is_active.is_(True))
        .order_by(Store.created_at.desc(), Store.id.desc())
    )
    return [StoreResponse.model_validate(store) for store in result.scalars().all()]


@router.get("/slug/{slug}", response_model=StoreResponse)
async def get_store_by_slug(
    slug: str,
    db: AsyncSession = Depends(get_session),
):
    """
    Resolve an active store by slug (path-based storefront URLs).

    Returns:
    - 200: Store found
    - 404: Store not found or inactive
    """
    store = await resolve_store_from_slug(db, slug)
    if not store:
        raise HTTPException(status_code=404, detail="Store not found")
    return StoreResponse.model_validate(store)


@router.get("/subdomain/{subdomain}", response_model=StoreResponse)
async def get_store_by_subdomain(
    subdomain: str,
    db: AsyncSession = Depends(get_session),
):
    """Resolve an active store by subdomain."""
    store = await resolve_store_from_subdomain(db, subdomain)
    if not store:
        raise HTTPException(status_code=404, detail="Store not found")
    return StoreResponse.model_validate(store)


@router.get("/check-subdomain/{subdomain}", response_model=SubdomainAvailability)
async def check_subdomain(
    subdomain: str,
    exclude_store_id: Optional[int] = Query(None, description="Ignore this store (the caller's own)"),
    db: AsyncSession = Depends(get_session),
):
    """
    Check whether a subdomain could be claimed.

    The value is lower-cased before lookup. available is False when the
    value is malformed, reserved, or used by another store.
    """
    normalized = subdomain.strip().lower()
    check = validate_subdomain(normalized)
    reserved = is_reserved_subdomain(normalized)

    if not check.valid:
        return SubdomainAvailability(
            subdomain=normalized,
            available=False,
            is_reserved=reserved,
            reason=check.reason,
        )

    if await store_identifier_taken(db, normalized, exclude_store_id=exclude_store_id):
        return SubdomainAvailability(
            subdomain=normalized,
            available=False,
            is_reserved=False,
            reason="Subdomain is already taken",
        )

    return SubdomainAvailability(subdomain=normalized, available=True, is_reserved=False)
