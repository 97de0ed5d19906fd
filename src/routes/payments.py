# src/routes/payments.py
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Any
from core.dependencies import get_current_principal, require_admin
from db.database import get_db
from schemas.auth_schemas import Principal
from schemas.invoice_schemas import (
    CashPaymentRequest,
    OnlinePaymentRequest,
    PaymentPublic,
    PaymentResponse,
)
from services.payment_service import payment_service
from utils.rate_limiter import limiter

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post(
    "/process-cash-payment",
    response_model=PaymentResponse,
    summary="Record cash payment",
    description="Settle a pending-cash invoice",
)
@limiter.limit("30/minute")
async def process_cash_payment(
    request: Request,
    body: CashPaymentRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_admin),
) -> Any:
    payment = await payment_service.process_cash_payment(db, principal, body.invoice_id)
    return PaymentResponse(payment=PaymentPublic.model_validate(payment))


@router.post(
    "/process-online-payment",
    response_model=PaymentResponse,
    summary="Record online payment",
    description="Settle an issued invoice with a gateway reference",
)
@limiter.limit("30/minute")
async def process_online_payment(
    request: Request,
    body: OnlinePaymentRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Any:
    payment = await payment_service.process_online_payment(
        db, principal, body.invoice_id, body.payment_reference
    )
    return PaymentResponse(payment=PaymentPublic.model_validate(payment))


@router.get(
    "",
    response_model=List[PaymentPublic],
    summary="List payments",
)
async def list_payments(
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Any:
    payments = await payment_service.list_payments(db, principal, skip=skip, limit=limit)
    return [PaymentPublic.model_validate(p) for p in payments]
