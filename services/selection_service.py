"""
Selection handling: merge, edit operations and projections.

The selection (product_id -> checked/qty) is the only mutable editor state.
Every function here returns a new dict and leaves its input untouched.
Quantity edits go through the cutoff minimums so a sent product can never
drop under its baseline.
"""

import re
from collections import defaultdict
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional

from models.order import (
    DEPARTMENT_ORDER,
    Order,
    OrderLine,
    OrderSummary,
    SelectionEntry,
    Selection,
    SummaryGroup,
)
from models.product import Product
from services.cutoff_service import minimum_qty
from utils.text_utils import fold

# Legacy ledger rows named "... Rajout ..." duplicated real lines
GHOST_LINE_RE = re.compile(r"\brajout\b", re.IGNORECASE)


def _field(item: Any, name: str, default: Any = None) -> Any:
    if isinstance(item, Mapping):
        return item.get(name, default)
    return getattr(item, name, default)


def _to_int(value: Any) -> int:
    try:
        return max(0, int(float(value)))
    except (TypeError, ValueError):
        return 0


def is_ghost_line(item: Any) -> bool:
    """True for legacy rows whose product name contains the word rajout."""
    return bool(GHOST_LINE_RE.search(str(_field(item, "product_name", "") or "")))


def line_totals(lines: Iterable[Any]) -> dict[str, int]:
    """
    Total quantity per product.

    Accepts OrderLine / BaselineItem objects or raw rows. Rows without a
    product id and ghost rows are skipped; negative quantities count as 0.
    """
    totals: dict[str, int] = defaultdict(int)
    for item in lines or []:
        pid = str(_field(item, "product_id", "") or "")
        if not pid or is_ghost_line(item):
            continue
        totals[pid] += _to_int(_field(item, "qty", 0))
    return dict(totals)


def clean_selection(raw: Any) -> Selection:
    """
    Rebuild a selection from untrusted data (cache JSON, request body).

    qty is clamped at 0 and checked only holds when qty > 0.
    """
    cleaned: Selection = {}
    if not isinstance(raw, Mapping):
        return cleaned
    for pid, value in raw.items():
        qty = _to_int(_field(value, "qty", 0))
        checked = bool(_field(value, "checked", False)) and qty > 0
        cleaned[str(pid)] = SelectionEntry(checked=checked, qty=qty)
    return cleaned


def selection_from_totals(totals: Mapping[str, int]) -> Selection:
    """Selection holding every product with a positive total."""
    return {
        str(pid): SelectionEntry(checked=True, qty=qty)
        for pid, qty in totals.items()
        if qty > 0
    }


def merge_selection(server_totals: Mapping[str, int], cached: Mapping[str, Any]) -> Selection:
    """
    Reconcile remote line totals with a possibly stale cached selection.

    Server products start checked at their total. A cached entry that is
    checked with qty > 0 lifts its product to max(server, cached). Unchecked
    cached entries never override the server.
    """
    merged = selection_from_totals(server_totals)
    for pid, entry in clean_selection(cached).items():
        if not entry.is_on:
            continue
        current = merged[pid].qty if pid in merged else 0
        merged[pid] = SelectionEntry(checked=True, qty=max(current, entry.qty))
    return merged


def active_quantities(selection: Mapping[str, SelectionEntry]) -> dict[str, int]:
    """Quantities of checked products only."""
    return {pid: entry.qty for pid, entry in selection.items() if entry.is_on}


# ===================
# EDIT OPERATIONS
# ===================

def _released(minimum: int) -> SelectionEntry:
    """Entry left behind when a product is unchecked."""
    if minimum > 0:
        return SelectionEntry(checked=True, qty=minimum)
    return SelectionEntry(checked=False, qty=0)


def toggle_product(
    selection: Selection,
    product_id: str,
    order: Optional[Order],
    baseline: Mapping[str, int],
) -> Selection:
    """
    Check or uncheck a product.

    Unchecking a locked product reverts it to its baseline quantity.
    """
    pid = str(product_id)
    minimum = minimum_qty(pid, order, baseline)
    current = selection.get(pid)
    updated = dict(selection)

    if current is not None and current.is_on:
        updated[pid] = _released(minimum)
    else:
        start = current.qty if current is not None else 0
        updated[pid] = SelectionEntry(checked=True, qty=max(minimum, start, 1))
    return updated


def set_quantity(
    selection: Selection,
    product_id: str,
    qty: int,
    order: Optional[Order],
    baseline: Mapping[str, int],
) -> Selection:
    """Set a product's total quantity; zero or less removes it."""
    pid = str(product_id)
    if qty <= 0:
        return remove_product(selection, pid, order, baseline)

    minimum = minimum_qty(pid, order, baseline)
    updated = dict(selection)
    updated[pid] = SelectionEntry(checked=True, qty=max(minimum, int(qty)))
    return updated


def remove_product(
    selection: Selection,
    product_id: str,
    order: Optional[Order],
    baseline: Mapping[str, int],
) -> Selection:
    """Remove a product, or pull it back to its baseline when locked."""
    pid = str(product_id)
    updated = dict(selection)
    updated[pid] = _released(minimum_qty(pid, order, baseline))
    return updated


def set_rajout(
    selection: Selection,
    product_id: str,
    delta: int,
    order: Optional[Order],
    baseline: Mapping[str, int],
) -> Selection:
    """Ask for delta more than the baseline (at least 1)."""
    pid = str(product_id)
    base = minimum_qty(pid, order, baseline)
    updated = dict(selection)
    updated[pid] = SelectionEntry(checked=True, qty=base + max(1, int(delta)))
    return updated


def remove_rajout(
    selection: Selection,
    product_id: str,
    order: Optional[Order],
    baseline: Mapping[str, int],
) -> Selection:
    """Drop the extra quantity of a product, back to its baseline."""
    return remove_product(selection, product_id, order, baseline)


def enforce_minimums(
    selection: Mapping[str, Any],
    order: Optional[Order],
    baseline: Mapping[str, int],
) -> Selection:
    """
    Clean a full selection and floor every locked product at its baseline.

    Used when a whole selection is replaced at once.
    """
    enforced = clean_selection(selection)
    for pid in baseline:
        minimum = minimum_qty(pid, order, baseline)
        if minimum <= 0:
            continue
        entry = enforced.get(pid)
        current = entry.qty if entry is not None and entry.is_on else 0
        enforced[pid] = SelectionEntry(checked=True, qty=max(minimum, current))
    return enforced


def carry_over(
    selection: Selection,
    previous_lines: Iterable[OrderLine],
    product_ids: Optional[Iterable[str]] = None,
) -> Selection:
    """
    Add products of a previous order that are not selected yet.

    Products already checked are left alone, never doubled.
    """
    wanted = {str(pid) for pid in product_ids} if product_ids is not None else None
    updated = dict(selection)
    for line in previous_lines:
        pid = str(line.product_id)
        if wanted is not None and pid not in wanted:
            continue
        current = updated.get(pid)
        if current is not None and current.is_on:
            continue
        updated[pid] = SelectionEntry(checked=True, qty=line.qty)
    return updated


# ===================
# PROJECTIONS
# ===================

def selection_to_lines(
    selection: Mapping[str, SelectionEntry],
    products: Mapping[str, Product],
    order_id: Optional[str] = None,
) -> list[OrderLine]:
    """
    Order lines for every checked product, sorted by product id.

    qty is the total desired quantity, never a delta.
    """
    lines = []
    for pid in sorted(selection):
        entry = selection[pid]
        if not entry.is_on:
            continue
        product = products.get(pid)
        lines.append(OrderLine(
            order_id=order_id,
            product_id=pid,
            product_name=product.name if product else "",
            unit_price=product.unit_price if product else Decimal("0"),
            qty=max(1, entry.qty),
            department=product.department if product else "uncat",
        ))
    return lines


def summarize(lines: Iterable[OrderLine]) -> OrderSummary:
    """Lines grouped by department (fixed order) with the price total."""
    by_department = defaultdict(list)
    total = Decimal("0")
    count = 0
    for line in lines:
        by_department[line.department].append(line)
        total += line.unit_price * line.qty
        count += 1

    groups = [
        SummaryGroup(
            department=department,
            lines=sorted(by_department[department], key=lambda l: (fold(l.product_name), l.product_id)),
        )
        for department in DEPARTMENT_ORDER
        if by_department.get(department)
    ]
    return OrderSummary(groups=groups, line_count=count, total=total)
