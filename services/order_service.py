"""
Order service: remote store access for orders and order_items.

Every Supabase failure is re-raised as PersistenceError so callers get a
short explanation they can show as is. Absent rows are not errors: lookups
return None or an empty list.
"""

from datetime import date, datetime
from typing import Optional

import structlog

from config import get_supabase_client
from models.order import Order, OrderLine, OrderStatus
from exceptions import OrderLockedError, OrderNotFoundError, PersistenceError

logger = structlog.get_logger(__name__)

ORDER_COLUMNS = "id, supplier_key, delivery_date, status, sent_at, cutoff_at, created_at"
LINE_COLUMNS = "id, order_id, product_id, product_name, unit_price, qty"


def _iso(value) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


class OrderService:
    """
    Order persistence.

    One order per (supplier_key, delivery_date); lines hold one row per
    product with the total desired quantity.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "orders"
        self.items_table = "order_items"

    # ===================
    # READ OPERATIONS
    # ===================

    def find_current(self, supplier_key: str, delivery_date: date) -> Optional[Order]:
        """
        Latest draft or sent order for a supplier and delivery date.

        Returns:
            Order or None when nothing was started yet
        """
        return self._find(
            supplier_key,
            delivery_date,
            [OrderStatus.DRAFT.value, OrderStatus.SENT.value]
        )

    def _find(
        self,
        supplier_key: str,
        delivery_date: date,
        statuses: Optional[list[str]] = None
    ) -> Optional[Order]:
        logger.debug(
            "finding_order",
            supplier_key=supplier_key,
            delivery_date=str(delivery_date),
            statuses=statuses
        )

        try:
            query = (
                self.db.table(self.table)
                .select(ORDER_COLUMNS)
                .eq("supplier_key", supplier_key)
                .eq("delivery_date", delivery_date.isoformat())
            )
            if statuses:
                query = query.in_("status", statuses)
            result = query.order("created_at", desc=True).limit(1).execute()
        except Exception as e:
            logger.error("find_order_failed", supplier_key=supplier_key, error=str(e))
            raise PersistenceError("select", e)

        if not result.data:
            return None
        return Order(**result.data[0])

    def get_by_id(self, order_id: str) -> Order:
        """
        Get an order by id.

        Raises:
            OrderNotFoundError: If the order doesn't exist
        """
        try:
            result = (
                self.db.table(self.table)
                .select(ORDER_COLUMNS)
                .eq("id", order_id)
                .execute()
            )
        except Exception as e:
            logger.error("get_order_failed", order_id=order_id, error=str(e))
            raise PersistenceError("select", e)

        if not result.data:
            raise OrderNotFoundError(order_id)
        return Order(**result.data[0])

    def get_lines(self, order_id: str) -> list[OrderLine]:
        """All line rows of an order (not aggregated)."""
        try:
            result = (
                self.db.table(self.items_table)
                .select(LINE_COLUMNS)
                .eq("order_id", order_id)
                .execute()
            )
        except Exception as e:
            logger.error("get_order_lines_failed", order_id=order_id, error=str(e))
            raise PersistenceError("select", e)

        lines = []
        for row in result.data or []:
            qty = int(float(row.get("qty") or 0))
            if not row.get("product_id") or qty < 1:
                continue
            lines.append(OrderLine(
                order_id=str(row.get("order_id") or order_id),
                product_id=str(row["product_id"]),
                product_name=row.get("product_name") or "",
                unit_price=row.get("unit_price") or 0,
                qty=qty,
            ))
        return lines

    def list_past_orders(
        self,
        supplier_key: str,
        since: date,
        before: date
    ) -> list[Order]:
        """Orders with since <= delivery_date < before, newest first."""
        try:
            result = (
                self.db.table(self.table)
                .select(ORDER_COLUMNS)
                .eq("supplier_key", supplier_key)
                .gte("delivery_date", since.isoformat())
                .lt("delivery_date", before.isoformat())
                .order("delivery_date", desc=True)
                .execute()
            )
        except Exception as e:
            logger.error("list_past_orders_failed", supplier_key=supplier_key, error=str(e))
            raise PersistenceError("select", e)

        return [Order(**row) for row in result.data or []]

    def last_delivered(self, supplier_key: str, before: date) -> Optional[Order]:
        """Most recent order delivered strictly before the given date."""
        try:
            result = (
                self.db.table(self.table)
                .select(ORDER_COLUMNS)
                .eq("supplier_key", supplier_key)
                .lt("delivery_date", before.isoformat())
                .order("delivery_date", desc=True)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("last_delivered_failed", supplier_key=supplier_key, error=str(e))
            raise PersistenceError("select", e)

        if not result.data:
            return None
        return Order(**result.data[0])

    # ===================
    # WRITE OPERATIONS
    # ===================

    def ensure_order(self, supplier_key: str, delivery_date: date) -> Order:
        """
        Existing order for (supplier, delivery date), or a new draft.

        Upserts on the natural key so two devices racing here end up with
        the same row.

        Raises:
            OrderLockedError: If the order for that date is already archived
        """
        existing = self._find(supplier_key, delivery_date)
        if existing is not None and existing.status == OrderStatus.ARCHIVED:
            raise OrderLockedError(existing.id)
        if existing is not None:
            return existing

        try:
            result = (
                self.db.table(self.table)
                .upsert(
                    {
                        "supplier_key": supplier_key,
                        "delivery_date": delivery_date.isoformat(),
                        "status": OrderStatus.DRAFT.value,
                    },
                    on_conflict="supplier_key,delivery_date"
                )
                .execute()
            )
        except Exception as e:
            logger.error("ensure_order_failed", supplier_key=supplier_key, error=str(e))
            raise PersistenceError("upsert", e)

        row = result.data[0] if result.data else None
        if row is not None and row.get("id") is not None:
            order = Order(**row)
        else:
            # RLS may accept the insert and still hide the returned row
            order = self._find(supplier_key, delivery_date)
            if order is None:
                logger.error(
                    "ensure_order_unreadable",
                    supplier_key=supplier_key,
                    delivery_date=str(delivery_date)
                )
                raise PersistenceError(
                    "upsert",
                    f"no order row returned for {supplier_key}/{delivery_date.isoformat()}"
                )

        logger.info(
            "order_created",
            order_id=order.id,
            supplier_key=supplier_key,
            delivery_date=str(delivery_date)
        )
        return order

    def mark_sent(self, order_id: str, sent_at: datetime, cutoff_at: datetime) -> Order:
        """Move an order to sent and stamp sent_at / cutoff_at."""
        return self._update(order_id, {
            "status": OrderStatus.SENT.value,
            "sent_at": _iso(sent_at),
            "cutoff_at": _iso(cutoff_at),
        })

    def archive(self, order_id: str) -> Order:
        """Move an order to archived (terminal)."""
        return self._update(order_id, {"status": OrderStatus.ARCHIVED.value})

    def _update(self, order_id: str, data: dict) -> Order:
        try:
            result = (
                self.db.table(self.table)
                .update(data)
                .eq("id", order_id)
                .execute()
            )
        except Exception as e:
            logger.error("update_order_failed", order_id=order_id, error=str(e))
            raise PersistenceError("update", e)

        if not result.data:
            raise OrderNotFoundError(order_id)

        logger.info("order_updated", order_id=order_id, status=data.get("status"))
        return Order(**result.data[0])

    def replace_lines(self, order_id: str, lines: list[OrderLine]) -> int:
        """
        Make the stored lines equal to lines.

        Desired rows are upserted first, then rows of products no longer
        desired are deleted, so a still-desired line is never missing.

        Returns:
            Number of rows deleted
        """
        desired = {line.product_id for line in lines}
        rows = [{**line.to_row(), "order_id": order_id} for line in lines]

        try:
            if rows:
                (
                    self.db.table(self.items_table)
                    .upsert(rows, on_conflict="order_id,product_id")
                    .execute()
                )

            existing = (
                self.db.table(self.items_table)
                .select("id, product_id")
                .eq("order_id", order_id)
                .execute()
            )
            stale_ids = [
                row["id"] for row in existing.data or []
                if str(row.get("product_id")) not in desired
            ]
            if stale_ids:
                (
                    self.db.table(self.items_table)
                    .delete()
                    .in_("id", stale_ids)
                    .execute()
                )
        except Exception as e:
            logger.error("replace_lines_failed", order_id=order_id, error=str(e))
            raise PersistenceError("replace", e)

        logger.info(
            "order_lines_replaced",
            order_id=order_id,
            line_count=len(rows),
            deleted=len(stale_ids)
        )
        return len(stale_ids)

    def upsert_totals(self, order_id: str, lines: list[OrderLine]) -> int:
        """
        Upsert lines as running totals keyed by (order_id, product_id).

        Returns:
            Number of rows written
        """
        if not lines:
            return 0

        rows = [{**line.to_row(), "order_id": order_id} for line in lines]
        try:
            (
                self.db.table(self.items_table)
                .upsert(rows, on_conflict="order_id,product_id")
                .execute()
            )
        except Exception as e:
            logger.error("upsert_totals_failed", order_id=order_id, error=str(e))
            raise PersistenceError("upsert", e)

        logger.info("order_totals_upserted", order_id=order_id, line_count=len(rows))
        return len(rows)


# Singleton instance
_order_service: Optional[OrderService] = None


def get_order_service() -> OrderService:
    """Get or create OrderService instance."""
    global _order_service
    if _order_service is None:
        _order_service = OrderService()
    return _order_service
