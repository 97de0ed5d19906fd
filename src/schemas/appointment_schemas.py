# src/schemas/appointment_schemas.py
from typing import Optional
from pydantic import Field
from datetime import date, datetime
from uuid import UUID
from models.appointment import AppointmentStatus, TransferStatus
from .base_schemas import BaseSchema, TimestampMixin, IDMixin


class AssignMechanicRequest(BaseSchema):
    """Assign a mechanic to an order in a slot"""

    mechanic_id: UUID
    slot: str
    appointment_date: Optional[date] = Field(None, alias="date")
    notes: Optional[str] = None


class AppointmentReschedule(BaseSchema):
    appointment_date: date
    time_slot: str


class AppointmentPublic(IDMixin, TimestampMixin):
    """Public appointment schema"""

    order_id: UUID
    mechanic_id: UUID
    appointment_date: date
    time_slot: str
    status: AppointmentStatus
    notes: Optional[str] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    version_id: int


class ServiceTransferPublic(IDMixin, TimestampMixin):
    """Service engagement created from a completed inspection"""

    order_id: UUID
    appointment_id: UUID
    mechanic_id: UUID
    status: TransferStatus
    notes: Optional[str] = None
    eta: Optional[str] = None


class TransferStatusUpdate(BaseSchema):
    """Mechanic progress update on a transferred service"""

    status: TransferStatus
    notes: Optional[str] = None
    eta: Optional[str] = None
