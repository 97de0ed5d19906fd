# src/models/time_slot.py
import uuid
from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Uuid,
    CheckConstraint,
    UniqueConstraint,
)
from utils.clock import utcnow
from db.database import Base


class SlotBucket(Base):
    """Booking counter for one labelled slot on one calendar day.

    The rows sharing a ``slot_date`` form that day's slot table.
    ``reserved_count`` only moves through the scheduler's reserve/release.
    """

    __tablename__ = "slot_buckets"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    slot_date = Column(Date, nullable=False, index=True)
    slot_label = Column(String(32), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    total_capacity = Column(Integer, nullable=False)
    reserved_count = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("slot_date", "slot_label", name="uq_slot_bucket_day_label"),
        CheckConstraint(
            "reserved_count >= 0 AND reserved_count <= total_capacity",
            name="ck_slot_bucket_within_capacity",
        ),
    )

    @property
    def available_count(self) -> int:
        return self.total_capacity - self.reserved_count


class SlotReservation(Base):
    """A held reservation against a slot bucket (the reservation token)"""

    __tablename__ = "slot_reservations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    slot_date = Column(Date, nullable=False)
    slot_label = Column(String(32), nullable=False)

    order_id = Column(Uuid(as_uuid=True), ForeignKey("orders.id"), nullable=True, index=True)
    appointment_id = Column(
        Uuid(as_uuid=True), ForeignKey("appointments.id"), nullable=True, index=True
    )

    created_at = Column(DateTime(timezone=True), default=utcnow)
    released_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def is_held(self) -> bool:
        return self.released_at is None

    def __repr__(self):
        return f"<SlotReservation {self.id} {self.slot_date} {self.slot_label}>"
