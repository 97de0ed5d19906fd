import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from models.invoice import InvoiceStatus, Payment
from models.order import OrderStatus, PaymentMethod
from schemas.auth_schemas import Principal, UserRole
from schemas.invoice_schemas import InvoicePublic
from services.invoice_service import invoice_service
from services.order_service import order_service
from services.payment_service import payment_service
from utils.clock import today
from utils.exceptions import AlreadyPaid, ForbiddenException, IllegalTransition


@pytest.fixture
def completed_order(db, make_order, admin):
    async def _complete(**overrides):
        order = await make_order(**overrides)
        order_id = order.id
        await order_service.set_status(db, admin, order_id, OrderStatus.IN_PROGRESS)
        await order_service.set_status(db, admin, order_id, OrderStatus.COMPLETED)
        return order_id

    return _complete


async def _payment_count(db, invoice_id):
    result = await db.execute(
        select(func.count(Payment.id)).where(Payment.invoice_id == invoice_id)
    )
    return result.scalar_one()


async def test_invoice_freezes_order_with_tax(db, completed_order, admin, customer):
    order_id = await completed_order()

    invoice, is_existing = await invoice_service.generate_from_order(db, admin, order_id)

    assert not is_existing
    assert invoice.sub_total == Decimal("2800.00")
    assert invoice.tax_amount == Decimal("504.00")
    assert invoice.total_amount == Decimal("3304.00")
    assert invoice.status == InvoiceStatus.PENDING_CASH
    assert invoice.customer_id == customer.user_id
    assert invoice.invoice_number == f"INV-{today():%Y%m%d}-0001"
    assert invoice.due_date == today() + timedelta(days=7)
    assert [item.description for item in invoice.items] == [
        "Oil Change",
        "Inspection fee - EngineInspection",
        "Brake Pad Replacement",
    ]
    assert sum(item.total_price for item in invoice.items) == invoice.sub_total


async def test_regenerating_returns_the_same_invoice(db, completed_order, admin):
    order_id = await completed_order()
    first, _ = await invoice_service.generate_from_order(db, admin, order_id)
    first_id, first_number = first.id, first.invoice_number

    again, is_existing = await invoice_service.generate_from_order(db, admin, order_id)

    assert is_existing
    assert again.id == first_id
    assert again.invoice_number == first_number
    assert len(await invoice_service.list_invoices(db, admin)) == 1


async def test_invoice_numbers_count_up_within_a_day(db, completed_order, admin):
    numbers = []
    for _ in range(2):
        order_id = await completed_order()
        invoice, _ = await invoice_service.generate_from_order(db, admin, order_id)
        numbers.append(invoice.invoice_number)

    assert [n.rsplit("-", 1)[1] for n in numbers] == ["0001", "0002"]


async def test_only_completed_orders_are_invoiced(db, make_order, admin):
    order = await make_order()

    with pytest.raises(IllegalTransition):
        await invoice_service.generate_from_order(db, admin, order.id)


async def test_only_admins_generate_invoices(db, completed_order, customer):
    order_id = await completed_order()

    with pytest.raises(ForbiddenException):
        await invoice_service.generate_from_order(db, customer, order_id)


async def test_online_orders_are_issued(db, completed_order, admin):
    order_id = await completed_order(payment_method=PaymentMethod.ONLINE)

    invoice, _ = await invoice_service.generate_from_order(db, admin, order_id)

    assert invoice.status == InvoiceStatus.ISSUED
    assert invoice.payment_method == PaymentMethod.ONLINE


async def test_cash_payment_settles_once(db, completed_order, admin):
    order_id = await completed_order()
    invoice, _ = await invoice_service.generate_from_order(db, admin, order_id)
    invoice_id = invoice.id

    payment = await payment_service.process_cash_payment(db, admin, invoice_id)

    assert payment.amount == Decimal("3304.00")
    assert payment.payment_method == PaymentMethod.CASH
    invoice = await invoice_service.get_or_404(db, invoice_id, refresh=True)
    assert invoice.status == InvoiceStatus.PAID
    assert invoice.paid_at is not None

    with pytest.raises(AlreadyPaid):
        await payment_service.process_cash_payment(db, admin, invoice_id)
    assert await _payment_count(db, invoice_id) == 1


async def test_online_payment_requires_issued_invoice(db, completed_order, admin, customer):
    cash_order_id = await completed_order()
    cash_invoice, _ = await invoice_service.generate_from_order(db, admin, cash_order_id)
    cash_invoice_id = cash_invoice.id

    with pytest.raises(IllegalTransition):
        await payment_service.process_online_payment(
            db, customer, cash_invoice_id, "PAY-123"
        )
    assert await _payment_count(db, cash_invoice_id) == 0


async def test_online_payment_by_owner(db, completed_order, admin, customer):
    order_id = await completed_order(payment_method=PaymentMethod.ONLINE)
    invoice, _ = await invoice_service.generate_from_order(db, admin, order_id)
    invoice_id = invoice.id

    payment = await payment_service.process_online_payment(
        db, customer, invoice_id, "PAY-123"
    )

    assert payment.reference_number == "PAY-123"
    assert payment.recorded_by == customer.user_id
    with pytest.raises(AlreadyPaid):
        await payment_service.process_online_payment(db, customer, invoice_id, "PAY-456")


async def test_strangers_cannot_see_or_pay(db, completed_order, admin):
    order_id = await completed_order(payment_method=PaymentMethod.ONLINE)
    invoice, _ = await invoice_service.generate_from_order(db, admin, order_id)
    invoice_id = invoice.id
    stranger = Principal(user_id=uuid.uuid4(), role=UserRole.CUSTOMER)
    mechanic = Principal(user_id=uuid.uuid4(), role=UserRole.MECHANIC)

    with pytest.raises(ForbiddenException):
        await invoice_service.get_invoice(db, stranger, invoice_id)
    with pytest.raises(ForbiddenException):
        await invoice_service.get_invoice(db, mechanic, invoice_id)
    with pytest.raises(ForbiddenException):
        await payment_service.process_online_payment(db, stranger, invoice_id, "PAY-1")
    assert await invoice_service.list_invoices(db, stranger) == []


async def test_overdue_is_derived_and_still_payable(db, completed_order, admin):
    order_id = await completed_order()
    invoice, _ = await invoice_service.generate_from_order(db, admin, order_id)
    invoice_id = invoice.id
    invoice.due_date = today() - timedelta(days=1)
    await db.commit()

    invoice = await invoice_service.get_or_404(db, invoice_id, refresh=True)
    assert invoice.status == InvoiceStatus.PENDING_CASH
    assert invoice.effective_status == InvoiceStatus.OVERDUE
    assert InvoicePublic.from_invoice(invoice).status == InvoiceStatus.OVERDUE

    overdue = await invoice_service.list_invoices(db, admin, status=InvoiceStatus.OVERDUE)
    assert [i.id for i in overdue] == [invoice_id]
    summary = await invoice_service.get_invoice_summary(db, admin)
    assert summary.overdue_invoices == 1
    assert summary.pending_invoices == 1

    await payment_service.process_cash_payment(db, admin, invoice_id)

    invoice = await invoice_service.get_or_404(db, invoice_id, refresh=True)
    assert invoice.effective_status == InvoiceStatus.PAID
    assert await invoice_service.list_invoices(
        db, admin, status=InvoiceStatus.OVERDUE
    ) == []


async def test_summary_counts_revenue_from_paid_invoices(db, completed_order, admin):
    paid_order_id = await completed_order()
    open_order_id = await completed_order(inspection_type_id=None)
    paid, _ = await invoice_service.generate_from_order(db, admin, paid_order_id)
    paid_id = paid.id
    await invoice_service.generate_from_order(db, admin, open_order_id)
    await payment_service.process_cash_payment(db, admin, paid_id)

    summary = await invoice_service.get_invoice_summary(db, admin)

    assert summary.total_invoices == 2
    assert summary.total_revenue == Decimal("3304.00")
    assert summary.average_invoice_amount == Decimal("3304.00")
    assert summary.pending_invoices == 1
    assert summary.overdue_invoices == 0


async def test_customers_list_their_own_payments(db, completed_order, admin, customer):
    order_id = await completed_order()
    invoice, _ = await invoice_service.generate_from_order(db, admin, order_id)
    await payment_service.process_cash_payment(db, admin, invoice.id)
    stranger = Principal(user_id=uuid.uuid4(), role=UserRole.CUSTOMER)

    assert len(await payment_service.list_payments(db, customer)) == 1
    assert await payment_service.list_payments(db, stranger) == []
    assert len(await payment_service.list_payments(db, admin)) == 1
