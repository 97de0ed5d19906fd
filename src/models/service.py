# src/models/service.py
import uuid
from sqlalchemy import (
    Column,
    String,
    Text,
    Numeric,
    Boolean,
    Enum,
    DateTime,
    Uuid,
    CheckConstraint,
)
from utils.clock import utcnow
from enum import Enum as PyEnum
from db.database import Base


class ServiceCategory(str, PyEnum):
    REPAIR = "repair"
    MAINTENANCE = "maintenance"
    INSPECTION = "inspection"


class Service(Base):
    __tablename__ = "services"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Service identification
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(Enum(ServiceCategory), nullable=False, index=True)
    # Free-form for inspections, e.g. "EngineInspection"
    sub_category = Column(String(100), nullable=True)

    # Pricing
    price = Column(Numeric(10, 2), nullable=False)

    # Soft delete once referenced by historical orders
    is_active = Column(Boolean, default=True, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (CheckConstraint("price >= 0", name="ck_service_price_non_negative"),)

    @property
    def is_inspection(self) -> bool:
        return self.category == ServiceCategory.INSPECTION

    def __repr__(self):
        return f"<Service {self.id} {self.name} ({self.category})>"
