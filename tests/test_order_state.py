import uuid
from decimal import Decimal

import pytest

from models.order import Inspection, LineKind, Order, OrderServiceLine, OrderStatus
from models.service import ServiceCategory
from services.order_state import ALLOWED_TRANSITIONS, can_transition, check_transition
from services.service_lines import (
    AdditionalLine,
    InspectionLine,
    PrimaryLine,
    compute_total,
    invoice_items,
    line_description,
    line_price,
    order_lines,
)
from utils.exceptions import IllegalTransition


@pytest.mark.parametrize(
    "current, target",
    [
        (OrderStatus.PENDING, OrderStatus.IN_PROGRESS),
        (OrderStatus.PENDING, OrderStatus.CANCELLED),
        (OrderStatus.IN_PROGRESS, OrderStatus.COMPLETED),
        (OrderStatus.IN_PROGRESS, OrderStatus.CANCELLED),
    ],
)
def test_allowed_edges(current, target):
    assert can_transition(current, target)
    check_transition(current, target)


def test_terminal_states_have_no_exits():
    for terminal in (OrderStatus.COMPLETED, OrderStatus.CANCELLED):
        assert ALLOWED_TRANSITIONS[terminal] == frozenset()
        for target in OrderStatus:
            with pytest.raises(IllegalTransition):
                check_transition(terminal, target)


def test_no_skipping_or_going_back():
    assert not can_transition(OrderStatus.PENDING, OrderStatus.COMPLETED)
    assert not can_transition(OrderStatus.IN_PROGRESS, OrderStatus.PENDING)
    assert not can_transition(OrderStatus.PENDING, OrderStatus.PENDING)


def test_plain_strings_are_accepted():
    assert can_transition("pending", "in_progress")
    with pytest.raises(IllegalTransition):
        check_transition("completed", "pending")


def _order(with_primary=True, with_inspection=True):
    lines = []
    if with_primary:
        lines.append(
            OrderServiceLine(
                kind=LineKind.PRIMARY,
                service_id=uuid.uuid4(),
                service_name="Oil Change",
                category=ServiceCategory.MAINTENANCE,
                price=Decimal("2000"),
                position=0,
            )
        )
    lines.append(
        OrderServiceLine(
            kind=LineKind.ADDITIONAL,
            service_id=uuid.uuid4(),
            service_name="Brake Pad Replacement",
            category=ServiceCategory.REPAIR,
            price=Decimal("300.005"),
            position=len(lines),
        )
    )
    order = Order(includes_inspection=with_inspection, service_lines=lines)
    if with_inspection:
        order.inspection = Inspection(
            service_id=uuid.uuid4(),
            service_name="Engine Inspection",
            sub_category="EngineInspection",
            price=Decimal("500"),
        )
    return order


def test_lines_come_out_in_billing_order():
    lines = order_lines(_order())

    assert [type(line) for line in lines] == [PrimaryLine, InspectionLine, AdditionalLine]
    assert [line_description(line) for line in lines] == [
        "Oil Change",
        "Inspection fee - EngineInspection",
        "Brake Pad Replacement",
    ]


def test_total_is_sum_of_quantized_line_prices():
    lines = order_lines(_order())

    # 300.005 rounds half up to 300.01
    assert [line_price(line) for line in lines] == [
        Decimal("2000.00"),
        Decimal("500.00"),
        Decimal("300.01"),
    ]
    assert compute_total(lines) == Decimal("2800.01")


def test_inspection_fee_only_when_inspection_is_included():
    order = _order(with_inspection=False)

    assert compute_total(order_lines(order)) == Decimal("2300.01")


def test_inspection_description_falls_back_to_name():
    line = InspectionLine(
        service_id=uuid.uuid4(),
        name="Full Inspection",
        sub_category=None,
        price=Decimal("100.00"),
    )
    assert line_description(line) == "Inspection fee - Full Inspection"


def test_invoice_items_mirror_the_lines():
    lines = order_lines(_order(with_primary=False))
    items = invoice_items(lines)

    assert [(i.description, i.quantity, i.unit_price, i.total_price) for i in items] == [
        ("Inspection fee - EngineInspection", 1, Decimal("500.00"), Decimal("500.00")),
        ("Brake Pad Replacement", 1, Decimal("300.01"), Decimal("300.01")),
    ]
    assert sum(i.total_price for i in items) == compute_total(lines)


def test_unknown_variant_is_a_type_error():
    with pytest.raises(TypeError):
        line_price(object())
    with pytest.raises(TypeError):
        line_description("not a line")
