"""
Multi-tenancy package.

Modules:
    context: StoreContext resolution (slug, subdomain, owner)
    queries: Tenant-scoped query helpers
"""

from .context import (
    StoreContext,
    StoreResolutionSource,
    resolve_store_from_slug,
    resolve_store_from_subdomain,
    get_store_for_owner,
    require_owner_store,
)

from .queries import (
    # Composable helpers
    scoped_select,
    require_owned,
    # Store identifiers
    store_identifier_taken,
    # Product queries
    list_products,
    get_products_by_ids,
    count_products,
    # Order queries
    list_orders,
    count_orders,
)

__all__ = [
    # Context
    "StoreContext",
    "StoreResolutionSource",
    "resolve_store_from_slug",
    "resolve_store_from_subdomain",
    "get_store_for_owner",
    "require_owner_store",
    # Query helpers
    "scoped_select",
    "require_owned",
    "store_identifier_taken",
    "list_products",
    "get_products_by_ids",
    "count_products",
    "list_orders",
    "count_orders",
]
