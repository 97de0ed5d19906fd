# src/routes/invoices.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional, Any
from uuid import UUID
from core.dependencies import get_current_principal, require_admin
from db.database import get_db
from models.invoice import Invoice, InvoiceStatus
from schemas.auth_schemas import Principal
from schemas.invoice_schemas import (
    InvoiceDetail,
    InvoiceGenerateResponse,
    InvoiceItemPublic,
    InvoicePublic,
    InvoiceSummary,
    PartyRef,
    PaymentPublic,
)
from services.invoice_service import invoice_service

router = APIRouter(prefix="/invoices", tags=["invoices"])


def _detail(invoice: Invoice) -> InvoiceDetail:
    return InvoiceDetail(
        invoice=InvoicePublic.from_invoice(invoice),
        invoice_items=[InvoiceItemPublic.model_validate(i) for i in invoice.items],
        customer=PartyRef(id=invoice.customer_id),
        vehicle=PartyRef(id=invoice.vehicle_id),
        payments=[PaymentPublic.model_validate(p) for p in invoice.payments],
    )


@router.post(
    "/generate-from-order/{order_id}",
    response_model=InvoiceGenerateResponse,
    summary="Generate invoice",
    description="Invoice a completed order; repeated calls return the same invoice",
)
async def generate_from_order(
    order_id: UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_admin),
) -> Any:
    invoice, is_existing = await invoice_service.generate_from_order(
        db, principal, order_id
    )
    return InvoiceGenerateResponse(
        invoice=InvoicePublic.from_invoice(invoice),
        invoice_items=[InvoiceItemPublic.model_validate(i) for i in invoice.items],
        is_existing=is_existing,
        payment_method=invoice.payment_method,
    )


@router.get(
    "",
    response_model=List[InvoicePublic],
    summary="List invoices",
    description="Get list of invoices; status=overdue selects unpaid invoices past due",
)
async def list_invoices(
    skip: int = 0,
    limit: int = 50,
    invoice_status: Optional[InvoiceStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Any:
    """List invoices endpoint"""
    invoices = await invoice_service.list_invoices(
        db, principal, status=invoice_status, skip=skip, limit=limit
    )
    return [InvoicePublic.from_invoice(invoice) for invoice in invoices]


@router.get(
    "/summary/dashboard",
    response_model=InvoiceSummary,
    summary="Get invoice summary",
    description="Totals for the finance dashboard",
)
async def get_invoice_summary(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_admin),
) -> Any:
    return await invoice_service.get_invoice_summary(db, principal)


@router.get(
    "/{invoice_id}",
    response_model=InvoiceDetail,
    summary="Get invoice",
    description="Invoice with its items, payments and party references",
)
async def get_invoice(
    invoice_id: UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Any:
    invoice = await invoice_service.get_invoice(db, principal, invoice_id)
    return _detail(invoice)
