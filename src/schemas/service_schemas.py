# src/schemas/service_schemas.py
from pydantic import field_validator
from typing import Optional
from uuid import UUID
from decimal import Decimal
from models.service import ServiceCategory
from .base_schemas import BaseSchema, Money, TimestampMixin, IDMixin, to_money


class ServiceBase(BaseSchema):
    """Base service schema"""

    name: str
    description: Optional[str] = None
    category: ServiceCategory
    sub_category: Optional[str] = None
    price: Decimal

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v:
            raise ValueError("Service name is required")
        if len(v) > 100:
            raise ValueError("Service name must be at most 100 characters")
        return v

    @field_validator("price")
    @classmethod
    def validate_price(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Price cannot be negative")
        return to_money(v)


class ServiceCreate(ServiceBase):
    """Schema for creating a service"""


class ServiceUpdate(BaseSchema):
    """Schema for updating a service; prices apply to new order lines only"""

    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[ServiceCategory] = None
    sub_category: Optional[str] = None
    price: Optional[Decimal] = None
    is_active: Optional[bool] = None

    @field_validator("name", "category", "is_active")
    @classmethod
    def reject_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

    @field_validator("price")
    @classmethod
    def validate_price(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is None:
            raise ValueError("price cannot be null")
        if v < 0:
            raise ValueError("Price cannot be negative")
        return to_money(v)


class ServicePublic(IDMixin, TimestampMixin):
    """Public service schema"""

    name: str
    description: Optional[str] = None
    category: ServiceCategory
    sub_category: Optional[str] = None
    price: Money
    is_active: bool


class ServiceDeleteResult(BaseSchema):
    service_id: UUID
    outcome: str  # "deleted" or "deactivated"


class ServiceCategorySummary(BaseSchema):
    """Service category summary"""

    category: ServiceCategory
    total_services: int
    active_services: int
    average_price: Money
