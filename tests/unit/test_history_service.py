"""
Unit tests for HistoryService.

Run: pytest tests/unit/test_history_service.py -v
"""

import pytest
from datetime import date

from models.order import Department
from services.history_service import HistoryService
from services.order_service import OrderService
from services.product_service import ProductService
from exceptions import SupplierNotFoundError
from tests.factories import LineFactory, OrderFactory

TODAY = date(2025, 10, 13)


@pytest.fixture
def service(mock_db, mock_supabase, becus_products):
    mock_supabase.set_table_data("products", becus_products)
    mock_supabase.set_table_data("orders", [
        OrderFactory.create(id="o-old", delivery_date="2024-09-26", status="archived"),
        OrderFactory.create(id="o-sep1", delivery_date="2025-09-25", status="archived"),
        OrderFactory.create(id="o-sep2", delivery_date="2025-09-18", status="archived"),
        OrderFactory.create(id="o-oct", delivery_date="2025-10-09", status="sent"),
        OrderFactory.create(id="o-next", delivery_date="2025-10-16"),
    ])
    mock_supabase.set_table_data("order_items", [
        LineFactory.create("o-oct", "p-croissant", qty=10, product_name="Croissant"),
        LineFactory.create("o-oct", "p-croissant", qty=2, product_name="Croissant"),
        LineFactory.create("o-oct", "p-croissant", qty=2, product_name="Rajout Croissant"),
        LineFactory.create("o-oct", "p-baguette", qty=20, product_name="Baguette"),
        LineFactory.create("o-sep1", "p-levure", qty=1, product_name="Levure"),
    ])
    return HistoryService(OrderService(), ProductService())


class TestGetHistory:
    """Tests for HistoryService.get_history()"""

    def test_groups_past_orders_by_month(self, service):
        history = service.get_history("becus", today=TODAY)

        assert [(m.year, m.month) for m in history] == [(2025, 10), (2025, 9)]
        assert [o.order_id for o in history[1].orders] == ["o-sep1", "o-sep2"]

    def test_counts_distinct_products_without_ghosts(self, service):
        history = service.get_history("becus", today=TODAY)

        october = history[0].orders[0]
        assert october.order_id == "o-oct"
        assert october.product_count == 2

    def test_excludes_future_and_older_than_a_year(self, service):
        ids = [o.order_id for m in service.get_history("becus", today=TODAY) for o in m.orders]

        assert "o-next" not in ids
        assert "o-old" not in ids

    def test_unknown_supplier(self, service):
        with pytest.raises(SupplierNotFoundError):
            service.get_history("nobody", today=TODAY)


class TestGetLastDelivered:
    """Tests for HistoryService.get_last_delivered()"""

    def test_aggregates_lines(self, service):
        previous = service.get_last_delivered("becus", today=TODAY)

        assert previous.delivery_date == date(2025, 10, 9)
        assert previous.order.id == "o-oct"
        by_id = {l.product_id: l for l in previous.lines}
        assert by_id["p-croissant"].qty == 12
        assert by_id["p-croissant"].department == Department.PATISS
        assert by_id["p-baguette"].qty == 20

    def test_no_previous_order(self, service, mock_supabase):
        mock_supabase.set_table_data("orders", [])

        previous = service.get_last_delivered("becus", today=TODAY)

        assert previous.order is None
        assert previous.lines == []
        assert previous.delivery_date == date(2025, 10, 9)
