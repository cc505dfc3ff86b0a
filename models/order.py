"""
Order, line, baseline and selection schemas.

See models/supplier.py for supplier configuration.
"""

from pydantic import Field, field_validator
from typing import Literal, Optional
from enum import Enum
from datetime import date, datetime
from decimal import Decimal

from models.base import BaseSchema, Money


class OrderStatus(str, Enum):
    """Order status values."""
    DRAFT = "draft"
    SENT = "sent"
    ARCHIVED = "archived"


# Status order for transition validation (lower index = earlier in flow)
STATUS_ORDER = {
    OrderStatus.DRAFT: 0,
    OrderStatus.SENT: 1,
    OrderStatus.ARCHIVED: 2,
}


def is_valid_status_transition(current: OrderStatus, new: OrderStatus) -> bool:
    """
    Check if status transition is valid.

    Rules:
    - DRAFT → SENT (send)
    - SENT → ARCHIVED (reception checked)
    - Never backward, never skipping SENT, ARCHIVED is terminal
    """
    if current == OrderStatus.ARCHIVED:
        return False  # Terminal state

    return STATUS_ORDER[new] == STATUS_ORDER[current] + 1


class Department(str, Enum):
    """Catalog departments used for grouping."""
    VENTE = "vente"
    PATISS = "patiss"
    BOULANGER = "boulanger"
    UNCAT = "uncat"


# Grouping order for summaries and supplier messages
DEPARTMENT_ORDER = [
    Department.VENTE,
    Department.PATISS,
    Department.BOULANGER,
    Department.UNCAT,
]


class UrgencyStage(str, Enum):
    """Where we are in the week before delivery."""
    CALM = "calm"
    FINALIZE = "finalize"
    LAST_CALL = "last_call"
    LOCKED = "locked"


# ===================
# ORDER SCHEMAS
# ===================

class Order(BaseSchema):
    """Order header as stored in the orders table."""

    id: str = Field(..., min_length=1, description="Order id")
    supplier_key: str = Field(..., description="Supplier key")
    delivery_date: date = Field(..., description="Delivery date")
    status: OrderStatus = Field(default=OrderStatus.DRAFT, description="Current status")
    sent_at: Optional[datetime] = Field(None, description="When the order was sent")
    cutoff_at: Optional[datetime] = Field(None, description="Last instant lines can change")
    created_at: Optional[datetime] = Field(None, description="Created timestamp")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        """Numeric ids are accepted and kept as strings."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class OrderLine(BaseSchema):
    """
    One product line of an order.

    qty is always the total desired quantity for the product.
    """

    order_id: Optional[str] = Field(None, description="Parent order id")
    product_id: str = Field(..., min_length=1, description="Product id")
    product_name: str = Field(default="", description="Product name at write time")
    unit_price: Money = Field(default=Decimal("0"), description="Unit price at write time")
    qty: int = Field(..., ge=1, description="Total desired quantity")
    department: Department = Field(
        default=Department.UNCAT,
        description="Department (display only, not persisted)"
    )

    def to_row(self) -> dict:
        """Row payload for order_items."""
        return {
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "unit_price": float(self.unit_price),
            "qty": self.qty,
        }


# ===================
# BASELINE SCHEMAS
# ===================

class BaselineItem(BaseSchema):
    """Quantity of one product as communicated to the supplier."""

    product_id: str = Field(..., min_length=1)
    qty: int = Field(..., ge=0)


class Baseline(BaseSchema):
    """Frozen "as sent" snapshot of an order."""

    order_id: str = Field(..., min_length=1)
    items: list[BaselineItem] = Field(default_factory=list)
    captured_at: Optional[datetime] = None

    def as_map(self) -> dict[str, int]:
        """Quantities keyed by product id."""
        return {item.product_id: item.qty for item in self.items}


# ===================
# SELECTION SCHEMAS
# ===================

class SelectionEntry(BaseSchema):
    """Working state of one product in the editor."""

    checked: bool = False
    qty: int = Field(default=0, ge=0)

    @property
    def is_on(self) -> bool:
        return self.checked and self.qty > 0


# product_id -> entry
Selection = dict[str, SelectionEntry]


class SelectionUpdate(BaseSchema):
    """Full selection sent by the editor."""

    selection: dict[str, SelectionEntry] = Field(default_factory=dict)


class ItemEdit(BaseSchema):
    """One editor action on one product."""

    action: Literal["toggle", "set_quantity", "remove", "set_rajout", "remove_rajout"]
    qty: Optional[int] = Field(
        None,
        description="Total quantity for set_quantity, extra quantity for set_rajout"
    )


class CarryOverRequest(BaseSchema):
    """Products of the previous order to add to the current one."""

    product_ids: Optional[list[str]] = Field(
        None,
        description="Subset to carry over; all missing products when omitted"
    )


# ===================
# DERIVED VIEWS
# ===================

class DeltaLine(BaseSchema):
    """Quantity requested on top of the baseline for one product."""

    product_id: str
    product_name: str = ""
    department: Department = Department.UNCAT
    delta: int = Field(..., gt=0)
    base: int = Field(..., ge=0)
    desired: int = Field(..., gt=0)


class SummaryGroup(BaseSchema):
    """Lines of one department."""

    department: Department
    lines: list[OrderLine] = Field(default_factory=list)


class OrderSummary(BaseSchema):
    """Selection grouped by department with a price total."""

    groups: list[SummaryGroup] = Field(default_factory=list)
    line_count: int = 0
    total: Money = Decimal("0")


class OrderView(BaseSchema):
    """
    Everything the editor needs for one (supplier, delivery date).

    All fields except selection are derived and recomputed on every load.
    """

    supplier_key: str
    supplier_label: str
    delivery_date: date
    order: Optional[Order] = None
    is_sent: bool = False
    can_modify: bool = True
    stage: UrgencyStage = UrgencyStage.CALM
    cutoff_at: datetime
    selection: dict[str, SelectionEntry] = Field(default_factory=dict)
    baseline: dict[str, int] = Field(default_factory=dict)
    rajout: list[DeltaLine] = Field(default_factory=list)
    locked_products: list[str] = Field(default_factory=list)
    summary: OrderSummary = Field(default_factory=OrderSummary)


class OutboundMessage(BaseSchema):
    """Text to hand over to the chat or e-mail transport."""

    kind: Literal["initial", "rajout"]
    subject: str
    text: str
    line_count: int = 0


# ===================
# HISTORY SCHEMAS
# ===================

class HistoryEntry(BaseSchema):
    """One past order in the history list."""

    order_id: str
    delivery_date: date
    status: OrderStatus
    product_count: int = 0


class HistoryMonth(BaseSchema):
    """Past orders of one calendar month."""

    year: int
    month: int
    orders: list[HistoryEntry] = Field(default_factory=list)


class PreviousOrder(BaseSchema):
    """Last delivered order with its aggregated lines."""

    delivery_date: date
    order: Optional[Order] = None
    lines: list[OrderLine] = Field(default_factory=list)
