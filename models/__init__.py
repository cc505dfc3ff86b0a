"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema, Money
from models.order import (
    OrderStatus,
    Department,
    DEPARTMENT_ORDER,
    UrgencyStage,
    is_valid_status_transition,
    Order,
    OrderLine,
    BaselineItem,
    Baseline,
    SelectionEntry,
    Selection,
    SelectionUpdate,
    ItemEdit,
    CarryOverRequest,
    DeltaLine,
    SummaryGroup,
    OrderSummary,
    OrderView,
    OutboundMessage,
    HistoryEntry,
    HistoryMonth,
    PreviousOrder,
)
from models.product import Product
from models.supplier import (
    SupplierConfig,
    SupplierCalendarResponse,
    DeliveryDates,
)

__all__ = [
    # Base
    "BaseSchema",
    "Money",

    # Orders
    "OrderStatus",
    "Department",
    "DEPARTMENT_ORDER",
    "UrgencyStage",
    "is_valid_status_transition",
    "Order",
    "OrderLine",
    "BaselineItem",
    "Baseline",
    "SelectionEntry",
    "Selection",
    "SelectionUpdate",
    "ItemEdit",
    "CarryOverRequest",
    "DeltaLine",
    "SummaryGroup",
    "OrderSummary",
    "OrderView",
    "OutboundMessage",
    "HistoryEntry",
    "HistoryMonth",
    "PreviousOrder",

    # Products
    "Product",

    # Suppliers
    "SupplierConfig",
    "SupplierCalendarResponse",
    "DeliveryDates",
]
