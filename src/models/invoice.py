# src/models/invoice.py
import uuid
from sqlalchemy import (
    Column,
    ForeignKey,
    Date,
    DateTime,
    String,
    Numeric,
    Text,
    Enum,
    Integer,
    Uuid,
)
from sqlalchemy.orm import relationship
from enum import Enum as PyEnum
from db.database import Base
from models.order import PaymentMethod
from utils.clock import today, utcnow


class InvoiceStatus(str, PyEnum):
    ISSUED = "issued"
    PENDING_CASH = "pending_cash"
    PAID = "paid"
    # Never stored: derived on read from due_date
    OVERDUE = "overdue"


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(
        Uuid(as_uuid=True), ForeignKey("orders.id"), nullable=False, unique=True
    )
    customer_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    vehicle_id = Column(Uuid(as_uuid=True), nullable=False)

    # Invoice details
    invoice_number = Column(String(50), nullable=False, unique=True)
    status = Column(Enum(InvoiceStatus), nullable=False, default=InvoiceStatus.ISSUED)
    payment_method = Column(Enum(PaymentMethod), nullable=False)

    # Financial details, frozen at generation time
    sub_total = Column(Numeric(10, 2), nullable=False)
    tax_rate = Column(Numeric(5, 4), nullable=False)
    tax_amount = Column(Numeric(10, 2), nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)

    # Dates
    invoice_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    notes = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    version_id = Column(Integer, nullable=False, default=1)

    # Relationships
    order = relationship("Order", back_populates="invoice")
    items = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.position",
        lazy="selectin",
    )
    payments = relationship(
        "Payment",
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def is_overdue_on(self, on_date) -> bool:
        if self.status == InvoiceStatus.PAID:
            return False
        return on_date > self.due_date

    @property
    def is_overdue(self) -> bool:
        return self.is_overdue_on(today())

    @property
    def effective_status(self) -> InvoiceStatus:
        return InvoiceStatus.OVERDUE if self.is_overdue else self.status


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    invoice_id = Column(Uuid(as_uuid=True), ForeignKey("invoices.id"), nullable=False)

    # Item details
    description = Column(String(200), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    # Relationships
    invoice = relationship("Invoice", back_populates="items")


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # One settling payment per invoice
    invoice_id = Column(
        Uuid(as_uuid=True), ForeignKey("invoices.id"), nullable=False, unique=True
    )

    # Payment details
    amount = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(Enum(PaymentMethod), nullable=False)
    reference_number = Column(String(100), nullable=True)
    recorded_by = Column(Uuid(as_uuid=True), nullable=True)

    # Timestamps
    payment_date = Column(DateTime(timezone=True), default=utcnow)

    # Relationships
    invoice = relationship("Invoice", back_populates="payments")
