"""
Unit tests for rajout (delta) calculation.

Run: pytest tests/unit/test_delta_service.py -v
"""

from decimal import Decimal

from models.order import Department, SelectionEntry
from models.product import Product
from services.delta_service import compute_delta


def on(qty: int) -> SelectionEntry:
    return SelectionEntry(checked=True, qty=qty)


PRODUCTS = {
    "A": Product(id="A", name="Croissant", unit_price=Decimal("0.45"), department=Department.PATISS),
    "B": Product(id="B", name="Baguette", unit_price=Decimal("0.30"), department=Department.BOULANGER),
}


class TestComputeDelta:
    """Tests for compute_delta()"""

    def test_positive_differences_only(self):
        delta = compute_delta({"A": 3, "B": 0}, {"A": on(5), "B": on(2)}, PRODUCTS)

        assert {(d.product_id, d.delta) for d in delta} == {("A", 2), ("B", 2)}

    def test_ordered_by_department_then_name(self):
        delta = compute_delta({"A": 3, "B": 0}, {"A": on(5), "B": on(2)}, PRODUCTS)

        # "boulanger" sorts before "patiss"
        assert [d.product_id for d in delta] == ["B", "A"]

    def test_deterministic_across_input_order(self):
        first = compute_delta({"A": 3}, {"A": on(5), "B": on(2)}, PRODUCTS)
        second = compute_delta({"A": 3}, {"B": on(2), "A": on(5)}, PRODUCTS)

        assert first == second

    def test_unchecked_and_non_positive_ignored(self):
        selection = {
            "A": on(3),
            "B": SelectionEntry(checked=False, qty=9),
        }

        assert compute_delta({"A": 3}, selection, PRODUCTS) == []

    def test_carries_base_and_desired(self):
        delta = compute_delta({"A": 3}, {"A": on(5)}, PRODUCTS)

        assert delta[0].base == 3
        assert delta[0].desired == 5
        assert delta[0].product_name == "Croissant"

    def test_idempotent_once_absorbed(self):
        selection = {"A": on(5), "B": on(2)}
        delta = compute_delta({"A": 3}, selection, PRODUCTS)

        new_baseline = {d.product_id: d.desired for d in delta}

        assert compute_delta(new_baseline, selection, PRODUCTS) == []

    def test_unknown_products_are_uncat(self):
        delta = compute_delta({}, {"Z": on(1), "A": on(1)}, PRODUCTS)

        assert delta[-1].product_id == "Z"
        assert delta[-1].department == Department.UNCAT

    def test_empty_inputs(self):
        assert compute_delta({}, {}) == []
