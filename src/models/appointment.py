# src/models/appointment.py
import uuid
from sqlalchemy import (
    Column,
    ForeignKey,
    Date,
    DateTime,
    String,
    Enum,
    Text,
    Index,
    Integer,
    Uuid,
)
from sqlalchemy.orm import relationship
from enum import Enum as PyEnum
from db.database import Base
from utils.clock import utcnow


class AppointmentStatus(str, PyEnum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TransferStatus(str, PyEnum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(
        Uuid(as_uuid=True), ForeignKey("orders.id"), nullable=False, unique=True
    )
    # Mechanic records live with the external user service
    mechanic_id = Column(Uuid(as_uuid=True), nullable=False, index=True)

    # Timing
    appointment_date = Column(Date, nullable=False)
    time_slot = Column(String(32), nullable=False)

    # Status
    status = Column(
        Enum(AppointmentStatus), nullable=False, default=AppointmentStatus.SCHEDULED
    )
    notes = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    version_id = Column(Integer, nullable=False, default=1)

    # Relationships
    order = relationship("Order", back_populates="appointment")

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self):
        return (
            f"<Appointment {self.id} mechanic={self.mechanic_id} "
            f"{self.appointment_date} {self.time_slot}>"
        )


# One live appointment per mechanic and slot
Index(
    "uq_appointments_mechanic_slot",
    Appointment.mechanic_id,
    Appointment.appointment_date,
    Appointment.time_slot,
    unique=True,
    postgresql_where=Appointment.status != AppointmentStatus.CANCELLED,
    sqlite_where=Appointment.status != AppointmentStatus.CANCELLED,
)


class ServiceTransfer(Base):
    """Active service engagement that follows a completed inspection"""

    __tablename__ = "service_transfers"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(
        Uuid(as_uuid=True), ForeignKey("orders.id"), nullable=False, unique=True
    )
    appointment_id = Column(
        Uuid(as_uuid=True), ForeignKey("appointments.id"), nullable=False
    )
    mechanic_id = Column(Uuid(as_uuid=True), nullable=False, index=True)

    status = Column(Enum(TransferStatus), nullable=False, default=TransferStatus.IN_PROGRESS)
    notes = Column(Text, nullable=True)
    eta = Column(String(50), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    order = relationship("Order", back_populates="transfer")
