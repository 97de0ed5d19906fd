# src/schemas/time_slot_schemas.py
from .base_schemas import BaseSchema


class SlotAvailability(BaseSchema):
    """Availability of one slot on one day"""

    slot_label: str
    available_slots: int
    total_slots: int
