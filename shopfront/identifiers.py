"""
Store slug / subdomain and order ID allocation.

Slugs are derived from a human-supplied store name and made unique against
whatever existence check the caller passes in. Order IDs are human-facing
references of the form ORD-<BASE36 MILLIS>-<NNNN>.

Uniqueness here is optimistic (check-then-act). The unique indexes on
stores.slug, stores.subdomain and orders.order_id are the real guarantee;
a duplicate-key failure surfaces as PersistenceConflict and is retried
within the same attempt budget.

Usage:
    from shopfront.identifiers import registration_slug_candidate, allocate_and_persist

    store = await allocate_and_persist(
        registration_slug_candidate(name),
        exists=slug_taken,
        persist=insert_store,
    )
"""

import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional, TypeVar

from .core.config import get_settings
from .core.errors import AllocationExhausted, PersistenceConflict, ValidationError


logger = logging.getLogger(__name__)

T = TypeVar("T")

ExistsFn = Callable[[str], Awaitable[bool]]


# Canonical reserved set, shared by every place that validates a subdomain
RESERVED_SUBDOMAINS: frozenset[str] = frozenset({
    "www", "app", "api", "admin", "dashboard", "store", "stores",
    "login", "register", "help", "support",
    "mail", "email", "ftp", "cdn", "static", "assets",
})

SUBDOMAIN_MIN_LENGTH = 3
SUBDOMAIN_MAX_LENGTH = 30
SUBDOMAIN_PATTERN = re.compile(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$")

# Leaves room for a "-NNNNN" suffix inside SUBDOMAIN_MAX_LENGTH
REGISTRATION_SLUG_MAX_LENGTH = 24

ORDER_ID_PREFIX = "ORD"
ORDER_COUNTER_WIDTH = 4

_WHITESPACE_RUN = re.compile(r"\s+")
_SLUG_DISALLOWED = re.compile(r"[^a-z0-9-]")
_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


# ────────────────────────────────────────────────────────────────
# Slugs
# ────────────────────────────────────────────────────────────────

def derive_slug(name: str) -> str:
    """
    Normalize arbitrary text into a slug candidate.

    Lower-cases, turns each whitespace run into a single hyphen, and drops
    every character outside [a-z0-9-]. Idempotent on its own output.

    Examples:
        "My Cool Store" -> "my-cool-store"
        "Café  Déco!"   -> "caf-dco"
        ""              -> ""
    """
    slug = _WHITESPACE_RUN.sub("-", name.lower())
    return _SLUG_DISALLOWED.sub("", slug)


def registration_slug_candidate(store_name: str) -> str:
    """
    Slug candidate for a newly registered store.

    Builds on derive_slug but also guarantees the base passes
    validate_subdomain: edge hyphens are trimmed, the length is capped, and
    bases that are too short or reserved get a "-shop" suffix.
    """
    slug = derive_slug(store_name).strip("-")
    slug = slug[:REGISTRATION_SLUG_MAX_LENGTH].rstrip("-")

    if not slug:
        return "my-shop"
    if len(slug) < SUBDOMAIN_MIN_LENGTH or slug in RESERVED_SUBDOMAINS:
        return f"{slug}-shop"
    return slug


async def _first_free(
    candidate: str,
    exists: ExistsFn,
    budget: int,
) -> tuple[Optional[str], int]:
    """Walk candidate, candidate-1, candidate-2, ... Returns (value or None, checks used)."""
    attempt = candidate
    counter = 1
    used = 0

    while used < budget:
        used += 1
        if not await exists(attempt):
            return attempt, used
        attempt = f"{candidate}-{counter}"
        counter += 1

    return None, used


async def allocate_unique_slug(
    candidate: str,
    exists: ExistsFn,
    max_attempts: Optional[int] = None,
) -> str:
    """
    Return candidate, or candidate-N for the smallest N >= 1, that `exists` reports as free.

    Args:
        candidate: Normalized slug candidate (see derive_slug)
        exists: Async exact-match lookup against the persistent store
        max_attempts: Cap on existence checks (defaults to IDENTIFIER_MAX_ATTEMPTS)

    Raises:
        AllocationExhausted: If every checked value was taken
    """
    limit = get_settings().identifier_max_attempts if max_attempts is None else max_attempts
    value, _ = await _first_free(candidate, exists, limit)

    if value is None:
        logger.error(f"Slug allocation exhausted for '{candidate}' after {limit} attempts")
        raise AllocationExhausted(candidate, limit)

    return value


async def allocate_and_persist(
    candidate: str,
    exists: ExistsFn,
    persist: Callable[[str], Awaitable[T]],
    max_attempts: Optional[int] = None,
) -> T:
    """
    Allocate a slug and persist it, retrying when the insert hits a duplicate key.

    `persist` must raise PersistenceConflict when the store rejects the value.
    A rejected value is treated as taken on the next pass. Pre-checks share a
    single attempt budget, so a store that keeps rejecting inserts still ends
    in AllocationExhausted.

    Returns whatever `persist` returns.
    """
    limit = get_settings().identifier_max_attempts if max_attempts is None else max_attempts
    rejected: set[str] = set()

    async def taken(value: str) -> bool:
        return value in rejected or await exists(value)

    remaining = limit
    while remaining > 0:
        value, used = await _first_free(candidate, taken, remaining)
        remaining -= used
        if value is None:
            break

        try:
            return await persist(value)
        except PersistenceConflict:
            logger.warning(f"Duplicate key on '{value}' despite free pre-check, retrying allocation")
            rejected.add(value)

    logger.error(f"Slug allocation exhausted for '{candidate}' after {limit} attempts")
    raise AllocationExhausted(candidate, limit)


# ────────────────────────────────────────────────────────────────
# Subdomain validation
# ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SubdomainCheck:
    """Outcome of validate_subdomain; reason names the first violated rule."""

    valid: bool
    reason: Optional[str] = None


def validate_subdomain(value: Optional[str]) -> SubdomainCheck:
    """
    Validate a subdomain a store owner picked explicitly.

    Rules, first failure wins:
        1. non-empty
        2. 3 to 30 characters
        3. lowercase letters, digits and hyphens, no leading/trailing hyphen
        4. not reserved
    """
    if not value:
        return SubdomainCheck(False, "Subdomain is required")

    if len(value) < SUBDOMAIN_MIN_LENGTH:
        return SubdomainCheck(False, f"Subdomain must be at least {SUBDOMAIN_MIN_LENGTH} characters")

    if len(value) > SUBDOMAIN_MAX_LENGTH:
        return SubdomainCheck(False, f"Subdomain must be {SUBDOMAIN_MAX_LENGTH} characters or less")

    if not SUBDOMAIN_PATTERN.match(value):
        return SubdomainCheck(
            False,
            "Subdomain can only contain lowercase letters, numbers, and hyphens. "
            "Cannot start or end with a hyphen.",
        )

    if is_reserved_subdomain(value):
        return SubdomainCheck(False, "This subdomain is reserved and cannot be used")

    return SubdomainCheck(True)


def is_reserved_subdomain(value: str) -> bool:
    return value.lower() in RESERVED_SUBDOMAINS


def ensure_valid_subdomain(value: Optional[str]) -> str:
    """validate_subdomain, raising ValidationError on failure."""
    check = validate_subdomain(value)
    if not check.valid:
        raise ValidationError(check.reason, field="subdomain")
    return value


# ────────────────────────────────────────────────────────────────
# Order IDs
# ────────────────────────────────────────────────────────────────

def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError(f"base36 value must be non-negative, got {value}")
    if value == 0:
        return "0"

    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def generate_order_id(store_order_count: int, now: Optional[datetime] = None) -> str:
    """
    Build a human-facing order reference.

    Format: ORD-<UPPERCASE BASE36 EPOCH MILLIS>-<store_order_count + 1, zero-padded to 4>

    The counter is per store, so uniqueness across stores comes from the
    timestamp. Two orders for one store in the same millisecond that read the
    same count collide; the unique index on orders.order_id catches that.

    Example:
        generate_order_id(41) -> "ORD-LZ3K9F2A-0042"
    """
    if now is None:
        millis = time.time_ns() // 1_000_000
    else:
        millis = int(now.timestamp() * 1000)

    sequence = str(store_order_count + 1).zfill(ORDER_COUNTER_WIDTH)
    return f"{ORDER_ID_PREFIX}-{to_base36(millis).upper()}-{sequence}"


async def allocate_order_id(
    count_orders: Callable[[], Awaitable[int]],
    persist: Callable[[str], Awaitable[T]],
    max_attempts: Optional[int] = None,
) -> T:
    """
    Generate an order ID and persist it, regenerating on duplicate key.

    The store's order count is re-read on every attempt, so a conflict caused
    by a concurrent checkout moves the counter forward.
    """
    limit = get_settings().identifier_max_attempts if max_attempts is None else max_attempts

    for attempt in range(1, limit + 1):
        order_id = generate_order_id(await count_orders())
        try:
            return await persist(order_id)
        except PersistenceConflict:
            logger.warning(f"Order ID {order_id} already taken (attempt {attempt}/{limit}), regenerating")

    logger.error(f"Order ID allocation exhausted after {limit} attempts")
    raise AllocationExhausted(ORDER_ID_PREFIX, limit)
