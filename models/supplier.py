"""
Supplier configuration and calendar schemas.
"""

from pydantic import Field, field_validator
from datetime import date, datetime

from models.base import BaseSchema
from models.order import UrgencyStage


class SupplierConfig(BaseSchema):
    """
    Ordering rules for one supplier.

    Weekdays use 0 = Sunday ... 6 = Saturday (Thursday = 4).
    """

    key: str = Field(..., min_length=1, description="Supplier key (e.g. becus)")
    label: str = Field(..., min_length=1, description="Display label")
    allowed_weekdays: list[int] = Field(
        default_factory=list,
        description="Delivery weekdays, 0 = Sunday"
    )
    cutoff_hour: int = Field(default=12, ge=0, le=23)
    cutoff_minute: int = Field(default=0, ge=0, le=59)

    @field_validator("allowed_weekdays")
    @classmethod
    def check_weekdays(cls, v: list[int]) -> list[int]:
        """Weekdays must be 0..6, stored sorted and unique."""
        for day in v:
            if day < 0 or day > 6:
                raise ValueError("Weekdays must be between 0 (Sunday) and 6 (Saturday)")
        return sorted(set(v))


class SupplierCalendarResponse(BaseSchema):
    """Delivery calendar for a supplier as of today."""

    supplier_key: str
    delivery_date: date = Field(..., description="Normalized delivery date")
    last_delivery_date: date = Field(..., description="Most recent past delivery day")
    today: date
    cutoff_at: datetime = Field(..., description="Last instant a sent order can change")
    stage: UrgencyStage
    allowed_weekdays: list[int]


class DeliveryDates(BaseSchema):
    """Result of delivery date normalization."""

    delivery_date: date
    last_delivery_date: date
    today: date
