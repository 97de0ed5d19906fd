# src/routes/inspections.py
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any
from uuid import UUID
from core.dependencies import require_staff
from db.database import get_db
from schemas.auth_schemas import Principal
from schemas.order_schemas import InspectionPublic, InspectionReport
from services.order_service import order_service

router = APIRouter(prefix="/inspections", tags=["inspections"])


@router.post(
    "/{inspection_id}/report",
    response_model=InspectionPublic,
    summary="Submit inspection report",
    description="Record the condition grades and complete the inspection",
)
async def submit_report(
    inspection_id: UUID,
    report: InspectionReport,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_staff),
) -> Any:
    inspection = await order_service.submit_inspection_report(
        db, principal, inspection_id, report
    )
    return InspectionPublic.model_validate(inspection)
