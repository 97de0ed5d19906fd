# src/services/invoice_service.py
from typing import List, Optional, Tuple
from uuid import UUID
from datetime import date, timedelta
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from core.config import settings
from models.invoice import Invoice, InvoiceStatus, InvoiceItem
from models.order import OrderStatus, PaymentMethod
from schemas.auth_schemas import Principal, UserRole
from schemas.base_schemas import to_money
from schemas.invoice_schemas import InvoiceSummary
from utils.clock import today
from utils.exceptions import (
    ConcurrentModification,
    IllegalTransition,
    handle_db_exception,
)
from utils.logger import setup_logger
from .base_service import BaseService
from .order_service import order_service
from .service_lines import invoice_items, order_lines

logger = setup_logger("INVOICE_SERVICE")

UNPAID_STATUSES = (InvoiceStatus.ISSUED, InvoiceStatus.PENDING_CASH)


class InvoiceService(BaseService):
    def __init__(self):
        super().__init__(Invoice)

    async def generate_invoice_number(self, db: AsyncSession, on_date: date) -> str:
        """Generate unique invoice number"""
        # Format: INV-YYYYMMDD-XXXX
        date_part = on_date.strftime("%Y%m%d")

        # Count invoices for the day
        result = await db.execute(
            select(func.count(Invoice.id)).where(Invoice.invoice_date == on_date)
        )
        count_today = result.scalar() or 0

        sequence = count_today + 1
        return f"INV-{date_part}-{sequence:04d}"

    async def get_by_order(self, db: AsyncSession, order_id: UUID) -> Optional[Invoice]:
        result = await db.execute(
            select(Invoice)
            .where(Invoice.order_id == order_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def generate_from_order(
        self, db: AsyncSession, principal: Principal, order_id: UUID
    ) -> Tuple[Invoice, bool]:
        """Freeze a completed order into an invoice.

        Idempotent: an order that already has an invoice gets that invoice
        back unchanged, flagged as existing.
        """
        principal.require(UserRole.ADMIN, action="generate invoices")
        order = await order_service.get_or_404(db, order_id, refresh=True)

        if order.invoice is not None:
            logger.info(f"Invoice already exists for order {order_id}")
            return order.invoice, True

        if order.status != OrderStatus.COMPLETED:
            raise IllegalTransition(
                f"Only completed orders can be invoiced, order {order_id} is "
                f"{OrderStatus(order.status).value}"
            )

        drafts = invoice_items(order_lines(order))
        sub_total = to_money(order.total_amount)
        tax_amount = to_money(sub_total * settings.TAX_RATE)
        invoice_date = today()

        try:
            invoice = Invoice(
                order_id=order.id,
                customer_id=order.customer_id,
                vehicle_id=order.vehicle_id,
                invoice_number=await self.generate_invoice_number(db, invoice_date),
                status=(
                    InvoiceStatus.PENDING_CASH
                    if order.payment_method == PaymentMethod.CASH
                    else InvoiceStatus.ISSUED
                ),
                payment_method=order.payment_method,
                sub_total=sub_total,
                tax_rate=settings.TAX_RATE,
                tax_amount=tax_amount,
                total_amount=to_money(sub_total + tax_amount),
                invoice_date=invoice_date,
                due_date=invoice_date + timedelta(days=settings.INVOICE_DUE_DAYS),
                items=[
                    InvoiceItem(
                        description=draft.description,
                        quantity=draft.quantity,
                        unit_price=draft.unit_price,
                        total_price=draft.total_price,
                        position=position,
                    )
                    for position, draft in enumerate(drafts)
                ],
            )
            db.add(invoice)
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            existing = await self.get_by_order(db, order_id)
            if existing is not None:
                logger.info(f"Concurrent invoice for order {order_id} already stored")
                return existing, True
            logger.warning(f"Invoice number clash for order {order_id}: {e}")
            raise ConcurrentModification("Invoice numbering clashed, retry the request")
        except SQLAlchemyError as e:
            await handle_db_exception(db, logger, "generate invoice", e)

        logger.info(
            f"Generated invoice {invoice.invoice_number} for order {order_id}: "
            f"sub_total={sub_total} tax={tax_amount} total={invoice.total_amount}"
        )
        return await self.get_or_404(db, invoice.id, refresh=True), False

    async def get_invoice(
        self, db: AsyncSession, principal: Principal, invoice_id: UUID
    ) -> Invoice:
        invoice = await self.get_or_404(db, invoice_id, refresh=True)
        if not principal.is_admin:
            principal.require(UserRole.CUSTOMER, action="view invoices")
            principal.require_owner_or_staff(invoice.customer_id, action="view this invoice")
        return invoice

    async def list_invoices(
        self,
        db: AsyncSession,
        principal: Principal,
        status: Optional[InvoiceStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Invoice]:
        """List invoices; ``overdue`` selects unpaid invoices past their due date"""
        try:
            query = select(Invoice)
            if not principal.is_admin:
                principal.require(UserRole.CUSTOMER, action="list invoices")
                query = query.where(Invoice.customer_id == principal.user_id)

            if status == InvoiceStatus.OVERDUE:
                query = query.where(
                    Invoice.status.in_(UNPAID_STATUSES), Invoice.due_date < today()
                )
            elif status is not None:
                query = query.where(Invoice.status == status)

            result = await db.execute(
                query.order_by(Invoice.invoice_date.desc(), Invoice.invoice_number.desc())
                .offset(skip)
                .limit(limit)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            await handle_db_exception(db, logger, "list invoices", e)
            return []

    async def get_invoice_summary(
        self, db: AsyncSession, principal: Principal
    ) -> InvoiceSummary:
        """Get invoice summary for dashboard"""
        principal.require(UserRole.ADMIN, action="view the finance dashboard")
        try:
            # Total invoices
            total_result = await db.execute(select(func.count(Invoice.id)))
            total_invoices = total_result.scalar()

            # Total revenue
            revenue_result = await db.execute(
                select(func.sum(Invoice.total_amount)).where(
                    Invoice.status == InvoiceStatus.PAID
                )
            )
            total_revenue = revenue_result.scalar() or Decimal("0.00")

            # Pending invoices
            pending_result = await db.execute(
                select(func.count(Invoice.id)).where(
                    Invoice.status.in_(UNPAID_STATUSES)
                )
            )
            pending_invoices = pending_result.scalar()

            # Overdue invoices
            overdue_result = await db.execute(
                select(func.count(Invoice.id)).where(
                    Invoice.status.in_(UNPAID_STATUSES),
                    Invoice.due_date < today(),
                )
            )
            overdue_invoices = overdue_result.scalar()

            # Average invoice amount
            avg_result = await db.execute(
                select(func.avg(Invoice.total_amount)).where(
                    Invoice.status == InvoiceStatus.PAID
                )
            )
            avg_invoice_amount = avg_result.scalar() or Decimal("0.00")

            return InvoiceSummary(
                total_invoices=total_invoices,
                total_revenue=to_money(total_revenue),
                pending_invoices=pending_invoices,
                overdue_invoices=overdue_invoices,
                average_invoice_amount=to_money(avg_invoice_amount),
            )
        except SQLAlchemyError as e:
            await handle_db_exception(db, logger, "invoice summary", e)


invoice_service = InvoiceService()
