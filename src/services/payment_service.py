# src/services/payment_service.py
from typing import List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError
from models.invoice import Invoice, InvoiceStatus, Payment
from models.order import PaymentMethod
from schemas.auth_schemas import Principal, UserRole
from utils.clock import utcnow
from utils.exceptions import (
    AlreadyPaid,
    ConcurrentModification,
    ForbiddenException,
    IllegalTransition,
    handle_db_exception,
)
from utils.logger import setup_logger
from .invoice_service import invoice_service

logger = setup_logger("PAYMENT_SERVICE")


class PaymentService:
    """Settles invoices. One payment closes an invoice for good."""

    async def _settle(
        self,
        db: AsyncSession,
        principal: Principal,
        invoice: Invoice,
        method: PaymentMethod,
        reference: Optional[str] = None,
    ) -> Payment:
        invoice_id = invoice.id
        try:
            payment = Payment(
                invoice_id=invoice_id,
                amount=invoice.total_amount,
                payment_method=method,
                reference_number=reference,
                recorded_by=principal.user_id,
            )
            db.add(payment)
            invoice.status = InvoiceStatus.PAID
            invoice.paid_at = utcnow()
            await db.commit()
        except (IntegrityError, StaleDataError) as e:
            # Lost the race against another payment for the same invoice
            await db.rollback()
            current = await invoice_service.get(db, invoice_id, refresh=True)
            if current is not None and current.status == InvoiceStatus.PAID:
                logger.warning(f"Invoice {invoice_id} was paid concurrently")
                raise AlreadyPaid(f"Invoice {invoice_id} is already paid")
            logger.warning(f"Concurrent update while paying invoice {invoice_id}: {e}")
            raise ConcurrentModification()
        except SQLAlchemyError as e:
            await handle_db_exception(db, logger, "settle invoice", e)

        logger.info(
            f"Invoice {invoice_id} paid by {PaymentMethod(method).value}: "
            f"{payment.amount}"
        )
        return payment

    async def process_cash_payment(
        self, db: AsyncSession, principal: Principal, invoice_id: UUID
    ) -> Payment:
        """Record cash collected at the counter"""
        principal.require(UserRole.ADMIN, action="record cash payments")
        invoice = await invoice_service.get_or_404(db, invoice_id, refresh=True)

        if invoice.status == InvoiceStatus.PAID:
            logger.warning(f"Cash payment refused: invoice {invoice_id} already paid")
            raise AlreadyPaid(f"Invoice {invoice_id} is already paid")
        if invoice.status != InvoiceStatus.PENDING_CASH:
            raise IllegalTransition(
                f"Invoice {invoice_id} is not awaiting a cash payment"
            )

        return await self._settle(db, principal, invoice, PaymentMethod.CASH)

    async def process_online_payment(
        self,
        db: AsyncSession,
        principal: Principal,
        invoice_id: UUID,
        payment_reference: str,
    ) -> Payment:
        """Record a confirmed online payment against an issued invoice"""
        invoice = await invoice_service.get_or_404(db, invoice_id, refresh=True)
        if not principal.is_admin and principal.user_id != invoice.customer_id:
            raise ForbiddenException("Only the invoice owner can pay online")

        if invoice.status == InvoiceStatus.PAID:
            logger.warning(f"Online payment refused: invoice {invoice_id} already paid")
            raise AlreadyPaid(f"Invoice {invoice_id} is already paid")
        if invoice.status != InvoiceStatus.ISSUED:
            raise IllegalTransition(
                f"Invoice {invoice_id} is not open for online payment"
            )

        return await self._settle(
            db, principal, invoice, PaymentMethod.ONLINE, reference=payment_reference
        )

    async def list_payments(
        self,
        db: AsyncSession,
        principal: Principal,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Payment]:
        try:
            query = select(Payment)
            if not principal.is_admin:
                principal.require(UserRole.CUSTOMER, action="list payments")
                query = query.join(Invoice, Invoice.id == Payment.invoice_id).where(
                    Invoice.customer_id == principal.user_id
                )
            result = await db.execute(
                query.order_by(Payment.payment_date.desc()).offset(skip).limit(limit)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            await handle_db_exception(db, logger, "list payments", e)
            return []


payment_service = PaymentService()
