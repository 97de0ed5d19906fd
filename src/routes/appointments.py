# src/routes/appointments.py
from datetime import date
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional, Any
from uuid import UUID
from core.dependencies import get_current_principal, require_staff
from db.database import get_db
from models.appointment import AppointmentStatus
from schemas.appointment_schemas import AppointmentPublic, AppointmentReschedule
from schemas.auth_schemas import Principal
from services.appointment_service import appointment_service

router = APIRouter(prefix="/appointments", tags=["appointments"])


@router.get(
    "",
    response_model=List[AppointmentPublic],
    summary="List appointments",
    description="Mechanics see their own schedule",
)
async def list_appointments(
    skip: int = 0,
    limit: int = 100,
    mechanic_id: Optional[UUID] = Query(None, description="Filter by mechanic"),
    appointment_status: Optional[AppointmentStatus] = Query(None, alias="status"),
    appointment_date: Optional[date] = Query(None, alias="date"),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Any:
    appointments = await appointment_service.list_appointments(
        db,
        principal,
        mechanic_id=mechanic_id,
        status=appointment_status,
        appointment_date=appointment_date,
        skip=skip,
        limit=limit,
    )
    return [AppointmentPublic.model_validate(a) for a in appointments]


@router.put(
    "/{appointment_id}/reschedule",
    response_model=AppointmentPublic,
    summary="Reschedule appointment",
    description="Move a scheduled appointment to another slot",
)
async def reschedule_appointment(
    appointment_id: UUID,
    body: AppointmentReschedule,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_staff),
) -> Any:
    appointment = await appointment_service.reschedule(
        db, principal, appointment_id, body
    )
    return AppointmentPublic.model_validate(appointment)
