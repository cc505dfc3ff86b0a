"""
Department classification and product field normalization.

Product rows come from a table that grew many alternative column names over
time. Every lookup below walks an explicit, documented field-priority list
and takes the first usable value. All functions are pure and never raise.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from models.order import Department
from utils.text_utils import fold

# Fields that may carry a department/category, highest priority first
DEPARTMENT_FIELDS = (
    "dept",
    "department",
    "departement",
    "category",
    "categorie",
    "type",
    "section",
    "family",
    "famille",
)

NAME_FIELDS = (
    "name",
    "title",
    "label",
    "designation",
    "description",
    "ref",
    "code",
    "id",
)

PRICE_FIELDS = (
    "price",
    "unit_price",
    "unitPrice",
    "tarif",
    "prix",
    "cost",
    "amount",
)

EMOJI_FIELDS = ("emoji", "icon")

DEFAULT_NAME = "Produit"
DEFAULT_EMOJI = "🧺"

# Matched in order against the folded (lower-case, accent-free) value
DEPARTMENT_PATTERNS = (
    (Department.VENTE, re.compile(r"vent|sale|store|magasin")),
    (Department.PATISS, re.compile(r"patis|dessert|sucr")),
    (Department.BOULANGER, re.compile(r"boul|bread|pain")),
)


def _first_filled(row: Mapping[str, Any], fields: tuple[str, ...]) -> Optional[Any]:
    """First value among fields that is not None and not blank."""
    for field in fields:
        value = row.get(field)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def department_key(raw: Any) -> Department:
    """
    Map a free-form category value to a department.

    Examples:
        "Pâtisserie" → patiss
        "VENTE magasin" → vente
        "Pain" → boulanger
        None → uncat
    """
    text = fold(raw)
    if not text:
        return Department.UNCAT
    for department, pattern in DEPARTMENT_PATTERNS:
        if pattern.search(text):
            return department
    return Department.UNCAT


def classify_department(product: Optional[Mapping[str, Any]]) -> Department:
    """Department of a raw product row, uncat when nothing matches."""
    if not product:
        return Department.UNCAT
    try:
        return department_key(_first_filled(product, DEPARTMENT_FIELDS))
    except Exception:
        return Department.UNCAT


def product_name(product: Optional[Mapping[str, Any]]) -> str:
    """Display name of a raw product row."""
    if not product:
        return DEFAULT_NAME
    value = _first_filled(product, NAME_FIELDS)
    return str(value).strip() if value is not None else DEFAULT_NAME


def product_price(product: Optional[Mapping[str, Any]]) -> Decimal:
    """
    Unit price of a raw product row.

    Accepts numbers and strings with a decimal comma ("1,20").
    Fields that do not parse are skipped; defaults to 0.
    """
    if not product:
        return Decimal("0")
    for field in PRICE_FIELDS:
        value = product.get(field)
        if value is None or isinstance(value, bool):
            continue
        try:
            price = Decimal(str(value).strip().replace(",", "."))
        except (InvalidOperation, ValueError):
            continue
        if price.is_finite():
            return price
    return Decimal("0")


def product_emoji(product: Optional[Mapping[str, Any]]) -> str:
    """Emoji of a raw product row."""
    if not product:
        return DEFAULT_EMOJI
    value = _first_filled(product, EMOJI_FIELDS)
    return str(value) if value is not None else DEFAULT_EMOJI


def is_active_product(product: Optional[Mapping[str, Any]]) -> bool:
    """
    Whether a raw product row can be ordered.

    Inactive when is_active or active is explicitly False, or archived is True.
    """
    if not product:
        return False
    return (
        product.get("is_active") is not False
        and product.get("active") is not False
        and product.get("archived") is not True
    )
