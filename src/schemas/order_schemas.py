# src/schemas/order_schemas.py
from pydantic import Field, field_validator, model_validator
from typing import Optional, List
from datetime import date, datetime
from uuid import UUID
from models.order import OrderStatus, InspectionStatus, PaymentMethod, LineKind
from models.service import ServiceCategory
from .appointment_schemas import AppointmentPublic, ServiceTransferPublic
from .base_schemas import BaseSchema, Money, IDMixin


class OrderCreate(BaseSchema):
    """Booking request"""

    vehicle_id: UUID
    service_id: Optional[UUID] = None
    inspection_type_id: Optional[UUID] = None
    time_slot: Optional[str] = None
    inspection_date: Optional[date] = Field(None, alias="date")
    payment_method: PaymentMethod = PaymentMethod.CASH
    additional_service_ids: List[UUID] = []
    notes: Optional[str] = None
    # Staff booking on behalf of a walk-in customer
    customer_id: Optional[UUID] = None

    @model_validator(mode="after")
    def validate_booking(self):
        if self.service_id is None and self.inspection_type_id is None:
            raise ValueError("Select at least one service or an inspection")
        if self.inspection_type_id is not None and (
            self.inspection_date is None or not self.time_slot
        ):
            raise ValueError("Inspection bookings require a date and a time slot")
        return self


class OrderCreated(BaseSchema):
    order_id: UUID
    status: OrderStatus
    total_amount: Money


class ServiceLinePublic(BaseSchema):
    """Captured catalog snapshot on an order"""

    id: UUID
    service_id: UUID
    kind: LineKind
    service_name: str
    category: ServiceCategory
    sub_category: Optional[str] = None
    price: Money
    notes: Optional[str] = None
    is_inspection: bool = False

    @model_validator(mode="after")
    def derive_inspection_flag(self):
        self.is_inspection = self.category == ServiceCategory.INSPECTION
        return self


class InspectionPublic(IDMixin):
    order_id: UUID
    service_id: UUID
    service_name: str
    sub_category: Optional[str] = None
    scheduled_date: date
    time_slot: str
    status: InspectionStatus
    body_condition: Optional[str] = None
    engine_condition: Optional[str] = None
    electrical_condition: Optional[str] = None
    tire_condition: Optional[str] = None
    brake_condition: Optional[str] = None
    transmission_condition: Optional[str] = None
    interior_condition: Optional[str] = None
    suspension_condition: Optional[str] = None
    notes: Optional[str] = None
    price: Money
    completed_at: Optional[datetime] = None


class InspectionReport(BaseSchema):
    """Condition grades recorded by the mechanic"""

    body_condition: Optional[str] = None
    engine_condition: Optional[str] = None
    electrical_condition: Optional[str] = None
    tire_condition: Optional[str] = None
    brake_condition: Optional[str] = None
    transmission_condition: Optional[str] = None
    interior_condition: Optional[str] = None
    suspension_condition: Optional[str] = None
    notes: Optional[str] = None


class OrderDetail(IDMixin):
    customer_id: UUID
    vehicle_id: UUID
    status: OrderStatus
    payment_method: PaymentMethod
    includes_inspection: bool
    notes: Optional[str] = None
    total_amount: Money
    order_date: Optional[datetime] = None
    version_id: int
    primary_service: Optional[ServiceLinePublic] = None
    additional_services: List[ServiceLinePublic] = []
    inspection: Optional[InspectionPublic] = None
    appointment: Optional[AppointmentPublic] = None
    transfer: Optional[ServiceTransferPublic] = None
    invoice_id: Optional[UUID] = None

    @classmethod
    def from_order(cls, order) -> "OrderDetail":
        primary = order.primary_line
        return cls(
            id=order.id,
            customer_id=order.customer_id,
            vehicle_id=order.vehicle_id,
            status=order.status,
            payment_method=order.payment_method,
            includes_inspection=order.includes_inspection,
            notes=order.notes,
            total_amount=order.total_amount,
            order_date=order.order_date,
            version_id=order.version_id,
            primary_service=(
                ServiceLinePublic.model_validate(primary) if primary else None
            ),
            additional_services=[
                ServiceLinePublic.model_validate(line) for line in order.additional_lines
            ],
            inspection=(
                InspectionPublic.model_validate(order.inspection)
                if order.inspection
                else None
            ),
            appointment=(
                AppointmentPublic.model_validate(order.appointment)
                if order.appointment
                else None
            ),
            transfer=(
                ServiceTransferPublic.model_validate(order.transfer)
                if order.transfer
                else None
            ),
            invoice_id=order.invoice_id,
        )


class OrderResponse(BaseSchema):
    order: OrderDetail


class AddServiceRequest(BaseSchema):
    service_id: UUID
    notes: Optional[str] = None


class AddServiceResponse(BaseSchema):
    added_service: ServiceLinePublic
    total_amount: Money


class OrderStatusUpdate(BaseSchema):
    """Explicit status transition; expected_version guards against stale reads"""

    status: OrderStatus
    expected_version: Optional[int] = None

    @field_validator("expected_version")
    @classmethod
    def validate_version(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("expected_version must be positive")
        return v
