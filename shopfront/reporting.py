"""
Dashboard Reporting

Pure functions that summarize a store's orders for the owner dashboard.
No I/O: callers load the orders and pass them in.

Revenue recognition:
    PAYMENT      an order counts toward sales once payment_status == "paid"
    FULFILLMENT  an order counts toward sales once status == "delivered"

Example:
    >>> summary = summarize(orders, window_days=7)
    >>> summary.total_sales_cents
    15000
    >>> [day.amount_cents for day in summary.sales_by_day]
    [0, 0, 0, 0, 0, 5000, 10000]
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Iterable, Mapping, Optional


logger = logging.getLogger(__name__)


class RevenueRecognitionRule(str, Enum):
    PAYMENT = "payment"
    FULFILLMENT = "fulfillment"


@dataclass(frozen=True)
class DailySales:
    date: date
    amount_cents: int

    def to_dict(self) -> dict:
        return {"date": self.date.isoformat(), "amount_cents": self.amount_cents}


@dataclass
class OrderSummary:
    total_sales_cents: int = 0
    total_orders: int = 0
    unique_customers: int = 0
    sales_by_day: list[DailySales] = field(default_factory=list)


@dataclass
class DashboardStats:
    """What GET /orders/stats/dashboard returns."""

    total_sales_cents: int
    total_orders: int
    total_products: int
    total_customers: int
    recent_sales: list[DailySales]

    def to_dict(self) -> dict:
        return {
            "total_sales_cents": self.total_sales_cents,
            "total_orders": self.total_orders,
            "total_products": self.total_products,
            "total_customers": self.total_customers,
            "recent_sales": [day.to_dict() for day in self.recent_sales],
        }


def _field(order: Any, name: str) -> Any:
    """Read a field from an ORM object or a mapping."""
    if isinstance(order, Mapping):
        return order.get(name)
    return getattr(order, name, None)


def _total_cents(order: Any) -> int:
    value = _field(order, "total_cents")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return int(value)


def _order_date(order: Any) -> Optional[date]:
    """UTC calendar date of created_at. Naive datetimes are taken as UTC."""
    created_at = _field(order, "created_at")

    if isinstance(created_at, str):
        if created_at.endswith(("Z", "z")):
            created_at = created_at[:-1] + "+00:00"
        try:
            created_at = datetime.fromisoformat(created_at)
        except ValueError:
            return None

    if isinstance(created_at, datetime):
        if created_at.tzinfo is not None:
            created_at = created_at.astimezone(timezone.utc)
        return created_at.date()

    if isinstance(created_at, date):
        return created_at

    return None


def is_revenue_recognized(order: Any, rule: RevenueRecognitionRule) -> bool:
    if rule == RevenueRecognitionRule.FULFILLMENT:
        return _field(order, "status") == "delivered"
    return _field(order, "payment_status") == "paid"


def summarize(
    orders: Iterable[Any],
    window_days: int = 7,
    rule: RevenueRecognitionRule | str = RevenueRecognitionRule.PAYMENT,
    today: Optional[date] = None,
) -> OrderSummary:
    """
    Summarize a store's orders.

    Args:
        orders: Every order of one store (ORM rows or mappings with
            total_cents, status, payment_status, customer_email, created_at)
        window_days: Number of days in sales_by_day, ending today inclusive
        rule: Which orders count as revenue
        today: Last day of the window (defaults to the current UTC date)

    Returns:
        OrderSummary. sales_by_day always has exactly window_days entries in
        ascending date order. Customer emails are compared as stored, so
        "A@x.com" and "a@x.com" are two customers.
    """
    rule = RevenueRecognitionRule(rule)
    if today is None:
        today = datetime.now(timezone.utc).date()

    first_day = today - timedelta(days=window_days - 1)
    buckets: dict[date, int] = {
        first_day + timedelta(days=offset): 0 for offset in range(window_days)
    }

    total_sales = 0
    total_orders = 0
    customers: set[str] = set()

    for order in orders:
        total_orders += 1

        email = _field(order, "customer_email")
        if isinstance(email, str) and email:
            customers.add(email)

        if not is_revenue_recognized(order, rule):
            continue

        amount = _total_cents(order)
        total_sales += amount

        day = _order_date(order)
        if day in buckets:
            buckets[day] += amount

    return OrderSummary(
        total_sales_cents=total_sales,
        total_orders=total_orders,
        unique_customers=len(customers),
        sales_by_day=[DailySales(day, amount) for day, amount in sorted(buckets.items())],
    )


def build_dashboard_stats(
    orders: Iterable[Any],
    product_count: int,
    window_days: int = 7,
    rule: RevenueRecognitionRule | str = RevenueRecognitionRule.PAYMENT,
    today: Optional[date] = None,
) -> DashboardStats:
    """Shape a summary for the owner dashboard."""
    summary = summarize(orders, window_days=window_days, rule=rule, today=today)
    logger.debug(
        f"Dashboard stats: {summary.total_orders} orders, "
        f"{summary.total_sales_cents} cents recognized under '{RevenueRecognitionRule(rule).value}'"
    )
    return DashboardStats(
        total_sales_cents=summary.total_sales_cents,
        total_orders=summary.total_orders,
        total_products=product_count,
        total_customers=summary.unique_customers,
        recent_sales=summary.sales_by_day,
    )
