# src/routes/time_slots.py
from datetime import date
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Any
from db.database import get_db
from schemas.time_slot_schemas import SlotAvailability
from services.scheduler_service import scheduler_service

router = APIRouter(prefix="/time-slots", tags=["time-slots"])


@router.get(
    "/availability",
    response_model=List[SlotAvailability],
    summary="Slot availability",
    description="Remaining capacity of every slot on a day, in display order",
)
async def get_availability(
    slot_date: date = Query(..., alias="date", description="Day to check (YYYY-MM-DD)"),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return await scheduler_service.get_availability(db, slot_date)
