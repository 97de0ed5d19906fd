# src/schemas/invoice_schemas.py
from typing import Optional, List
from datetime import date, datetime
from uuid import UUID
from decimal import Decimal
from models.invoice import InvoiceStatus
from models.order import PaymentMethod
from .base_schemas import BaseSchema, Money, IDMixin


class InvoiceItemPublic(BaseSchema):
    """Invoice line snapshot"""

    description: str
    quantity: int
    unit_price: Money
    total_price: Money


class InvoicePublic(IDMixin):
    """Public invoice schema; status reports overdue when past due"""

    invoice_number: str
    order_id: UUID
    customer_id: UUID
    vehicle_id: UUID
    status: InvoiceStatus
    stored_status: InvoiceStatus
    payment_method: PaymentMethod
    sub_total: Money
    tax_rate: Decimal
    tax_amount: Money
    total_amount: Money
    invoice_date: date
    due_date: date
    paid_at: Optional[datetime] = None
    is_overdue: bool
    notes: Optional[str] = None

    @classmethod
    def from_invoice(cls, invoice) -> "InvoicePublic":
        return cls(
            id=invoice.id,
            invoice_number=invoice.invoice_number,
            order_id=invoice.order_id,
            customer_id=invoice.customer_id,
            vehicle_id=invoice.vehicle_id,
            status=invoice.effective_status,
            stored_status=invoice.status,
            payment_method=invoice.payment_method,
            sub_total=invoice.sub_total,
            tax_rate=invoice.tax_rate,
            tax_amount=invoice.tax_amount,
            total_amount=invoice.total_amount,
            invoice_date=invoice.invoice_date,
            due_date=invoice.due_date,
            paid_at=invoice.paid_at,
            is_overdue=invoice.is_overdue,
            notes=invoice.notes,
        )


class InvoiceGenerateResponse(BaseSchema):
    invoice: InvoicePublic
    invoice_items: List[InvoiceItemPublic]
    is_existing: bool
    payment_method: PaymentMethod


class PartyRef(BaseSchema):
    """Reference to a record owned by an external collaborator"""

    id: UUID


class InvoiceDetail(BaseSchema):
    """Detailed invoice schema"""

    invoice: InvoicePublic
    invoice_items: List[InvoiceItemPublic]
    customer: PartyRef
    vehicle: PartyRef
    payments: List["PaymentPublic"] = []


class PaymentPublic(IDMixin):
    """Public payment schema"""

    invoice_id: UUID
    amount: Money
    payment_method: PaymentMethod
    reference_number: Optional[str] = None
    payment_date: Optional[datetime] = None


class CashPaymentRequest(BaseSchema):
    invoice_id: UUID


class OnlinePaymentRequest(BaseSchema):
    invoice_id: UUID
    payment_reference: str


class PaymentResponse(BaseSchema):
    success: bool = True
    payment: PaymentPublic


class InvoiceSummary(BaseSchema):
    """Invoice summary for the finance dashboard"""

    total_invoices: int
    total_revenue: Money
    pending_invoices: int
    overdue_invoices: int
    average_invoice_amount: Money


InvoiceDetail.model_rebuild()
