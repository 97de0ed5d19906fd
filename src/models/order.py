# src/models/order.py
import uuid
from decimal import Decimal
from sqlalchemy import (
    Column,
    ForeignKey,
    Date,
    DateTime,
    String,
    Numeric,
    Text,
    Enum,
    Boolean,
    Integer,
    Uuid,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from enum import Enum as PyEnum
from db.database import Base
from models.service import ServiceCategory
from utils.clock import utcnow


class OrderStatus(str, PyEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class InspectionStatus(str, PyEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentMethod(str, PyEnum):
    CASH = "cash"
    ONLINE = "online"


class LineKind(str, PyEnum):
    PRIMARY = "primary"
    ADDITIONAL = "additional"


class Order(Base):
    __tablename__ = "orders"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # External references (customer and vehicle records live elsewhere)
    customer_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    vehicle_id = Column(Uuid(as_uuid=True), nullable=False)

    status = Column(Enum(OrderStatus), nullable=False, default=OrderStatus.PENDING)
    payment_method = Column(Enum(PaymentMethod), nullable=False, default=PaymentMethod.CASH)
    includes_inspection = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)

    # Derived from the service lines, never written from input
    total_amount = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))

    order_date = Column(DateTime(timezone=True), default=utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    version_id = Column(Integer, nullable=False, default=1)

    # Relationships
    service_lines = relationship(
        "OrderServiceLine",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderServiceLine.position",
        lazy="selectin",
    )
    inspection = relationship(
        "Inspection",
        back_populates="order",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    appointment = relationship(
        "Appointment", back_populates="order", uselist=False, lazy="selectin"
    )
    transfer = relationship(
        "ServiceTransfer", back_populates="order", uselist=False, lazy="selectin"
    )
    invoice = relationship(
        "Invoice", back_populates="order", uselist=False, lazy="selectin"
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def primary_line(self):
        return next(
            (line for line in self.service_lines if line.kind == LineKind.PRIMARY), None
        )

    @property
    def additional_lines(self):
        return [line for line in self.service_lines if line.kind == LineKind.ADDITIONAL]

    @property
    def is_inspection_only(self) -> bool:
        return self.includes_inspection and self.primary_line is None

    @property
    def is_terminal(self) -> bool:
        return self.status in (OrderStatus.COMPLETED, OrderStatus.CANCELLED)

    @property
    def invoice_id(self):
        return self.invoice.id if self.invoice is not None else None

    def __repr__(self):
        return f"<Order {self.id} [{self.status}] total={self.total_amount}>"


class OrderServiceLine(Base):
    """Price snapshot of a catalog service attached to an order"""

    __tablename__ = "order_service_lines"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(Uuid(as_uuid=True), ForeignKey("orders.id"), nullable=False, index=True)
    service_id = Column(Uuid(as_uuid=True), ForeignKey("services.id"), nullable=False)

    kind = Column(Enum(LineKind), nullable=False)
    service_name = Column(String(100), nullable=False)
    category = Column(Enum(ServiceCategory), nullable=False)
    sub_category = Column(String(100), nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    notes = Column(Text, nullable=True)
    position = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), default=utcnow)

    order = relationship("Order", back_populates="service_lines")

    __table_args__ = (
        UniqueConstraint("order_id", "service_id", name="uq_order_line_service"),
    )


class Inspection(Base):
    __tablename__ = "inspections"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(
        Uuid(as_uuid=True), ForeignKey("orders.id"), nullable=False, unique=True
    )
    # The inspection-type catalog entry this was booked from
    service_id = Column(Uuid(as_uuid=True), ForeignKey("services.id"), nullable=False)
    service_name = Column(String(100), nullable=False)
    sub_category = Column(String(100), nullable=True)

    scheduled_date = Column(Date, nullable=False)
    time_slot = Column(String(32), nullable=False)
    status = Column(Enum(InspectionStatus), nullable=False, default=InspectionStatus.PENDING)

    # Component grades, free text (e.g. "good", "fair", "poor")
    body_condition = Column(String(50), nullable=True)
    engine_condition = Column(String(50), nullable=True)
    electrical_condition = Column(String(50), nullable=True)
    tire_condition = Column(String(50), nullable=True)
    brake_condition = Column(String(50), nullable=True)
    transmission_condition = Column(String(50), nullable=True)
    interior_condition = Column(String(50), nullable=True)
    suspension_condition = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)

    # Captured at booking time
    price = Column(Numeric(10, 2), nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    order = relationship("Order", back_populates="inspection")


CONDITION_FIELDS = (
    "body_condition",
    "engine_condition",
    "electrical_condition",
    "tire_condition",
    "brake_condition",
    "transmission_condition",
    "interior_condition",
    "suspension_condition",
)
