# src/routes/service_transfers.py
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any
from uuid import UUID
from core.dependencies import require_staff
from db.database import get_db
from schemas.appointment_schemas import ServiceTransferPublic, TransferStatusUpdate
from schemas.auth_schemas import Principal
from services.appointment_service import appointment_service

router = APIRouter(prefix="/service-transfers", tags=["service-transfers"])


@router.put(
    "/{transfer_id}/status",
    response_model=ServiceTransferPublic,
    summary="Update service status",
    description="Report progress on a transferred service; completion closes the order",
)
async def update_transfer_status(
    transfer_id: UUID,
    body: TransferStatusUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_staff),
) -> Any:
    transfer = await appointment_service.update_transfer_status(
        db, principal, transfer_id, body
    )
    return ServiceTransferPublic.model_validate(transfer)
