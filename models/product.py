"""
Product schema as used by the ordering screens.

Raw product rows carry many optional field names; they are normalized by
services/department_service.py before reaching this schema.
"""

from pydantic import Field
from decimal import Decimal

from models.base import BaseSchema, Money
from models.order import Department


class Product(BaseSchema):
    """Normalized catalog product."""

    id: str = Field(..., min_length=1, description="Product id")
    supplier_key: str = Field(default="", description="Supplier key")
    name: str = Field(default="Produit", description="Display name")
    unit_price: Money = Field(default=Decimal("0"), description="Unit price")
    department: Department = Field(default=Department.UNCAT, description="Department")
    emoji: str = Field(default="🧺", description="Emoji shown next to the name")
    active: bool = Field(default=True, description="Whether the product can be ordered")
