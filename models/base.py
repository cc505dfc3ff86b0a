"""
Base schema and shared field types.
"""

from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, PlainSerializer

# Prices stay Decimal in Python; JSON clients get plain numbers
Money = Annotated[
    Decimal,
    PlainSerializer(lambda v: float(v), return_type=float, when_used="json"),
]


class BaseSchema(BaseModel):
    """
    Base for all schemas.

    Strings are trimmed (product names and ids come from hand-edited
    catalog rows) and assignments are validated.
    """
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
        validate_assignment=True
    )
