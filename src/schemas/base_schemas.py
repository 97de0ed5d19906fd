# src/schemas/base_schemas.py
from decimal import Decimal, ROUND_HALF_UP
from pydantic import BaseModel, ConfigDict, PlainSerializer
from typing import Annotated, Optional, Any
from datetime import datetime
from uuid import UUID

TWO_PLACES = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    """Quantize any numeric input to a two-place decimal"""
    return Decimal(str(value)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


# Monetary values always leave the API as two-place decimal strings
Money = Annotated[
    Decimal,
    PlainSerializer(lambda v: f"{to_money(v):.2f}", return_type=str, when_used="json"),
]


class BaseSchema(BaseModel):
    """Base schema with common configuration"""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        use_enum_values=True,
        arbitrary_types_allowed=True,
    )


class TimestampMixin(BaseSchema):
    """Mixin for timestamps"""

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class IDMixin(BaseSchema):
    """Mixin for ID field"""

    id: UUID
