"""
Rajout (delta) calculation.

The rajout is what the bakery asks for on top of what the supplier already
received: desired - baseline, per checked product, only when positive.
"""

from typing import Mapping, Optional

from models.order import DeltaLine, SelectionEntry
from models.product import Product
from utils.text_utils import fold


def compute_delta(
    baseline: Mapping[str, int],
    selection: Mapping[str, SelectionEntry],
    products: Optional[Mapping[str, Product]] = None,
) -> list[DeltaLine]:
    """
    Positive differences between selection and baseline.

    Ordered by department tag, then product name, then product id so the
    result is identical across runs for identical input.

    Returns:
        Empty list when the selection matches the baseline.
    """
    products = products or {}
    lines = []

    for pid, entry in selection.items():
        if not entry.checked:
            continue
        base = max(0, int(baseline.get(pid, 0) or 0))
        delta = entry.qty - base
        if delta <= 0:
            continue

        product = products.get(pid)
        lines.append(DeltaLine(
            product_id=pid,
            product_name=product.name if product else "",
            department=product.department if product else "uncat",
            delta=delta,
            base=base,
            desired=entry.qty,
        ))

    lines.sort(key=lambda l: (l.department.value, fold(l.product_name), l.product_id))
    return lines
