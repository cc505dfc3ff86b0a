"""
Order history for a supplier.

Only past deliveries (delivery_date < today) are listed. Legacy "ghost"
rows whose product name contains the word rajout duplicated real lines and
are ignored everywhere here.
"""

from datetime import date
from typing import Optional

import structlog

from config import get_supplier
from models.order import HistoryEntry, HistoryMonth, OrderLine, PreviousOrder
from services.calendar_service import local_now, previous_allowed_date
from services.order_service import OrderService, get_order_service
from services.product_service import ProductService, get_product_service
from services.selection_service import is_ghost_line, line_totals

logger = structlog.get_logger(__name__)

HISTORY_MONTHS = 12


def _one_year_before(day: date) -> date:
    try:
        return day.replace(year=day.year - 1)
    except ValueError:
        # 29 February
        return day.replace(year=day.year - 1, day=28)


class HistoryService:
    """Past orders grouped by month and the last delivered order."""

    def __init__(
        self,
        order_service: Optional[OrderService] = None,
        product_service: Optional[ProductService] = None,
    ):
        self.order_service = order_service or get_order_service()
        self.product_service = product_service or get_product_service()

    def get_history(self, supplier_key: str, today: Optional[date] = None) -> list[HistoryMonth]:
        """
        Past orders of the last 12 months, newest month first.

        Each entry counts the distinct products of the order.
        """
        supplier = get_supplier(supplier_key)
        today = today or local_now().date()
        orders = self.order_service.list_past_orders(
            supplier.key,
            since=_one_year_before(today),
            before=today,
        )

        months: dict[tuple[int, int], list[HistoryEntry]] = {}
        for order in orders:
            products = {
                line.product_id
                for line in self.order_service.get_lines(order.id)
                if not is_ghost_line(line)
            }
            entry = HistoryEntry(
                order_id=order.id,
                delivery_date=order.delivery_date,
                status=order.status,
                product_count=len(products),
            )
            key = (order.delivery_date.year, order.delivery_date.month)
            months.setdefault(key, []).append(entry)

        history = [
            HistoryMonth(
                year=year,
                month=month,
                orders=sorted(entries, key=lambda e: e.delivery_date, reverse=True),
            )
            for (year, month), entries in sorted(months.items(), reverse=True)
        ]

        logger.info(
            "history_loaded",
            supplier_key=supplier.key,
            order_count=len(orders),
            month_count=len(history)
        )
        return history

    def get_last_delivered(self, supplier_key: str, today: Optional[date] = None) -> PreviousOrder:
        """
        Last order delivered before today, lines aggregated per product.

        When there is none, the expected previous delivery day is returned
        with no order and no lines.
        """
        supplier = get_supplier(supplier_key)
        today = today or local_now().date()

        order = self.order_service.last_delivered(supplier.key, before=today)
        if order is None:
            return PreviousOrder(
                delivery_date=previous_allowed_date(today, supplier.allowed_weekdays),
            )

        raw_lines = self.order_service.get_lines(order.id)
        totals = line_totals(raw_lines)
        names = {
            line.product_id: line.product_name
            for line in raw_lines
            if line.product_name and not is_ghost_line(line)
        }
        catalog = self.product_service.get_catalog_map(supplier.key) if totals else {}

        lines = []
        for pid, qty in sorted(totals.items()):
            if qty <= 0:
                continue
            product = catalog.get(pid)
            lines.append(OrderLine(
                order_id=order.id,
                product_id=pid,
                product_name=names.get(pid) or (product.name if product else ""),
                unit_price=product.unit_price if product else 0,
                qty=qty,
                department=product.department if product else "uncat",
            ))

        return PreviousOrder(delivery_date=order.delivery_date, order=order, lines=lines)


# Singleton instance
_history_service: Optional[HistoryService] = None


def get_history_service() -> HistoryService:
    """Get or create HistoryService instance."""
    global _history_service
    if _history_service is None:
        _history_service = HistoryService()
    return _history_service
