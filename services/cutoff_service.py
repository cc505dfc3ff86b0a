"""
Edit permissions for orders.

A draft is fully editable. A sent order accepts changes until its cutoff,
and only upwards: every product in the baseline is floored at its baseline
quantity. Archived orders are read-only.
"""

from datetime import datetime
from typing import Mapping, Optional

from models.order import Order, OrderStatus
from services.calendar_service import (
    cutoff_instant,
    DEFAULT_CUTOFF_HOUR,
    DEFAULT_CUTOFF_MINUTE,
)


def is_sent(order: Optional[Order]) -> bool:
    """True once the order left the draft state."""
    return order is not None and order.status != OrderStatus.DRAFT


def order_cutoff(
    order: Order,
    cutoff_hour: int = DEFAULT_CUTOFF_HOUR,
    cutoff_minute: int = DEFAULT_CUTOFF_MINUTE,
    tz=None,
) -> datetime:
    """Stored cutoff, or the computed one for orders sent without it."""
    if order.cutoff_at is not None:
        return order.cutoff_at
    return cutoff_instant(order.delivery_date, cutoff_hour, cutoff_minute, tz=tz)


def can_modify(
    order: Optional[Order],
    now: datetime,
    cutoff_hour: int = DEFAULT_CUTOFF_HOUR,
    cutoff_minute: int = DEFAULT_CUTOFF_MINUTE,
) -> bool:
    """
    Whether lines may still change.

    Drafts: always. Sent: while now <= cutoff (inclusive). Archived: never.
    """
    if not is_sent(order):
        return True
    if order.status == OrderStatus.ARCHIVED:
        return False

    cutoff = order_cutoff(order, cutoff_hour, cutoff_minute, tz=now.tzinfo)

    # Mixed naive/aware values are read in the same wall-clock zone
    if cutoff.tzinfo is None and now.tzinfo is not None:
        cutoff = cutoff.replace(tzinfo=now.tzinfo)
    elif now.tzinfo is None and cutoff.tzinfo is not None:
        now = now.replace(tzinfo=cutoff.tzinfo)

    return now <= cutoff


def minimum_qty(
    product_id: str,
    order: Optional[Order],
    baseline: Mapping[str, int],
) -> int:
    """Lowest quantity allowed for a product (its baseline once sent)."""
    if not is_sent(order):
        return 0
    return max(0, int(baseline.get(str(product_id), 0) or 0))


def locked_product(
    product_id: str,
    order: Optional[Order],
    baseline: Mapping[str, int],
) -> bool:
    """True when the product cannot be removed or lowered."""
    return is_sent(order) and minimum_qty(product_id, order, baseline) > 0


def locked_products(order: Optional[Order], baseline: Mapping[str, int]) -> list[str]:
    """Ids of every locked product, sorted."""
    return sorted(pid for pid in baseline if locked_product(pid, order, baseline))
