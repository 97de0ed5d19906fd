# src/models/__init__.py
"""
Models initialization file to handle circular dependencies
"""

# Import all models first
from .service import Service, ServiceCategory
from .order import (
    Order,
    OrderServiceLine,
    Inspection,
    OrderStatus,
    InspectionStatus,
    PaymentMethod,
    LineKind,
)
from .appointment import (
    Appointment,
    AppointmentStatus,
    ServiceTransfer,
    TransferStatus,
)
from .time_slot import SlotBucket, SlotReservation
from .invoice import Invoice, InvoiceItem, InvoiceStatus, Payment

# Configure all mappers once every class is registered
from sqlalchemy.orm import configure_mappers

configure_mappers()

__all__ = [
    "Service",
    "ServiceCategory",
    "Order",
    "OrderServiceLine",
    "Inspection",
    "OrderStatus",
    "InspectionStatus",
    "PaymentMethod",
    "LineKind",
    "Appointment",
    "AppointmentStatus",
    "ServiceTransfer",
    "TransferStatus",
    "SlotBucket",
    "SlotReservation",
    "Invoice",
    "InvoiceItem",
    "InvoiceStatus",
    "Payment",
]
