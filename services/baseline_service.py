"""
Baseline store: the frozen "as sent" quantities of an order.

Captured once when an order is sent, replaced only when a rajout is
confirmed by the supplier (absorb). Baselines live in the local snapshot
store of the device that sent the order; a device that has none for a sent
order initializes it from the current line totals.
"""

from datetime import datetime, timezone
from typing import Any, Iterable, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from models.order import Baseline, BaselineItem
from services.selection_service import line_totals
from services.snapshot_store import SnapshotStore, baseline_key, get_snapshot_store
from exceptions import InvalidOrderIdError

logger = structlog.get_logger(__name__)


def _check_order_id(order_id: Any) -> str:
    if isinstance(order_id, bool) or not isinstance(order_id, (str, int)) or not str(order_id).strip():
        raise InvalidOrderIdError(order_id)
    return str(order_id).strip()


def _items_from_snapshot(raw_items: list) -> list[BaselineItem]:
    """Baseline items from stored JSON, summed per product."""
    totals = line_totals(item for item in raw_items if isinstance(item, dict))
    return [BaselineItem(product_id=pid, qty=qty) for pid, qty in sorted(totals.items())]


class BaselineStore:
    """
    Baseline persistence on top of a snapshot store.

    Reads never fail: an absent or unreadable snapshot is None.
    """

    def __init__(self, store: Optional[SnapshotStore] = None):
        self.store = store or get_snapshot_store()

    def capture(self, order_id: str, lines: Iterable[Any]) -> Baseline:
        """
        Store lines (aggregated per product) as the baseline of order_id.

        Raises:
            InvalidOrderIdError: If order_id is missing
        """
        oid = _check_order_id(order_id)
        totals = line_totals(lines)
        baseline = Baseline(
            order_id=oid,
            items=[BaselineItem(product_id=pid, qty=qty) for pid, qty in sorted(totals.items())],
            captured_at=datetime.now(timezone.utc),
        )
        self.store.set(baseline_key(oid), baseline.model_dump(mode="json"))

        logger.info(
            "baseline_captured",
            order_id=oid,
            item_count=len(baseline.items)
        )
        return baseline

    def read(self, order_id: str) -> Optional[Baseline]:
        """Stored baseline, or None when absent."""
        oid = _check_order_id(order_id)
        raw = self.store.get(baseline_key(oid))
        if not isinstance(raw, dict) or not isinstance(raw.get("items"), list):
            return None
        try:
            return Baseline(
                order_id=oid,
                items=_items_from_snapshot(raw["items"]),
                captured_at=raw.get("captured_at"),
            )
        except PydanticValidationError as e:
            logger.warning("baseline_unreadable", order_id=oid, error=str(e))
            return None

    def ensure(self, order_id: str, current_lines: Iterable[Any]) -> Baseline:
        """
        Existing baseline, or one captured from current_lines.

        Used the first time a sent order is seen on this device. An empty
        stored baseline counts as absent.
        """
        existing = self.read(order_id)
        if existing is not None and existing.items:
            return existing

        logger.info("baseline_initialized_from_current", order_id=str(order_id))
        return self.capture(order_id, current_lines)

    def absorb(self, order_id: str, current_lines: Iterable[Any]) -> Baseline:
        """Replace the baseline with current totals (rajout confirmed)."""
        baseline = self.capture(order_id, current_lines)
        logger.info("baseline_absorbed", order_id=baseline.order_id)
        return baseline

