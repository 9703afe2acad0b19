"""
Store settings for the owner dashboard.

All routes act on the store owned by the authenticated caller.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .auth import require_store_owner
from .core.db import get_session
from .identifiers import ensure_valid_subdomain
from .models import Store
from .onboarding import StoreResponse
from .tenancy.queries import store_identifier_taken


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stores/my-store", tags=["store-settings"])

NON_NULLABLE_SETTINGS = {"name", "theme_color", "currency", "timezone"}


class UpdateStoreRequest(BaseModel):
    """Partial update; omitted fields are left unchanged."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None
    logo_url: Optional[str] = Field(None, max_length=500)
    theme_color: Optional[str] = Field(None, pattern=r"^#[0-9a-fA-F]{6}$")
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    timezone: Optional[str] = Field(None, max_length=64)
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Store name cannot be empty or whitespace")
        return v.strip() if v else v


class UpdateSubdomainRequest(BaseModel):
    subdomain: str = Field(..., max_length=100)

    @field_validator("subdomain")
    @classmethod
    def strip_subdomain(cls, v: str) -> str:
        return v.strip()


class SubdomainUpdated(BaseModel):
    success: bool
    subdomain: str
    slug: str


@router.get("", response_model=StoreResponse)
async def get_my_store(store: Store = Depends(require_store_owner)):
    return StoreResponse.model_validate(store)


@router.put("", response_model=StoreResponse)
async def update_my_store(
    request: UpdateStoreRequest,
    store: Store = Depends(require_store_owner),
    db: AsyncSession = Depends(get_session),
):
    """Update display and contact settings. slug/subdomain have their own route."""
    updates = {
        field: value
        for field, value in request.model_dump(exclude_unset=True).items()
        if value is not None or field not in NON_NULLABLE_SETTINGS
    }
    if "email" in updates and updates["email"]:
        updates["email"] = updates["email"].lower()
    if "currency" in updates and updates["currency"]:
        updates["currency"] = updates["currency"].upper()

    for field, value in updates.items():
        setattr(store, field, value)

    await db.commit()
    await db.refresh(store)

    logger.info(f"Store {store.id} settings updated: {sorted(updates)}")
    return StoreResponse.model_validate(store)


@router.put("/subdomain", response_model=SubdomainUpdated)
async def update_my_subdomain(
    request: UpdateSubdomainRequest,
    store: Store = Depends(require_store_owner),
    db: AsyncSession = Depends(get_session),
):
    """
    Change the store's subdomain; the slug follows it.

    Error Codes:
    - 400: Malformed or reserved subdomain
    - 409: Another store already uses it
    """
    subdomain = ensure_valid_subdomain(request.subdomain)

    if subdomain == store.subdomain and subdomain == store.slug:
        return SubdomainUpdated(success=True, subdomain=store.subdomain, slug=store.slug)

    if await store_identifier_taken(db, subdomain, exclude_store_id=store.id):
        raise HTTPException(status_code=409, detail="Subdomain is already taken")

    store_id = store.id
    previous = store.subdomain
    store.subdomain = subdomain
    store.slug = subdomain
    try:
        await db.commit()
    except IntegrityError:
        # Claimed by a concurrent request between the check and the commit
        await db.rollback()
        logger.warning(f"Subdomain '{subdomain}' was claimed concurrently; store {store_id} keeps '{previous}'")
        raise HTTPException(status_code=409, detail="Subdomain is already taken")

    await db.refresh(store)
    logger.info(f"Store {store.id} subdomain changed '{previous}' -> '{store.subdomain}'")
    return SubdomainUpdated(success=True, subdomain=store.subdomain, slug=store.slug)
