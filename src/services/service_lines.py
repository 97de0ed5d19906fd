# src/services/service_lines.py
"""
Service lines of an order as a closed set of variants.

An order is billed as its primary service, its inspection fee and its
additional services. Totals and invoice items are both derived here so the
two can never disagree.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Union
from uuid import UUID
from models.order import Order, LineKind
from models.service import ServiceCategory
from schemas.base_schemas import to_money


@dataclass(frozen=True)
class PrimaryLine:
    service_id: UUID
    name: str
    price: Decimal


@dataclass(frozen=True)
class InspectionLine:
    service_id: UUID
    name: str
    sub_category: Optional[str]
    price: Decimal


@dataclass(frozen=True)
class AdditionalLine:
    service_id: UUID
    name: str
    category: ServiceCategory
    price: Decimal


ServiceLine = Union[PrimaryLine, InspectionLine, AdditionalLine]


@dataclass(frozen=True)
class ItemDraft:
    description: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal


def order_lines(order: Order) -> List[ServiceLine]:
    """Project an order into billing order: primary, inspection, additional"""
    lines: List[ServiceLine] = []

    primary = order.primary_line
    if primary is not None:
        lines.append(
            PrimaryLine(
                service_id=primary.service_id,
                name=primary.service_name,
                price=to_money(primary.price),
            )
        )

    if order.includes_inspection and order.inspection is not None:
        lines.append(
            InspectionLine(
                service_id=order.inspection.service_id,
                name=order.inspection.service_name,
                sub_category=order.inspection.sub_category,
                price=to_money(order.inspection.price),
            )
        )

    for line in order.service_lines:
        if line.kind == LineKind.ADDITIONAL:
            lines.append(
                AdditionalLine(
                    service_id=line.service_id,
                    name=line.service_name,
                    category=line.category,
                    price=to_money(line.price),
                )
            )

    return lines


def line_price(line: ServiceLine) -> Decimal:
    if isinstance(line, PrimaryLine):
        return line.price
    elif isinstance(line, InspectionLine):
        return line.price
    elif isinstance(line, AdditionalLine):
        return line.price
    raise TypeError(f"Unknown service line variant: {type(line).__name__}")


def line_description(line: ServiceLine) -> str:
    if isinstance(line, PrimaryLine):
        return line.name
    elif isinstance(line, InspectionLine):
        return f"Inspection fee - {line.sub_category or line.name}"
    elif isinstance(line, AdditionalLine):
        return line.name
    raise TypeError(f"Unknown service line variant: {type(line).__name__}")


def compute_total(lines: List[ServiceLine]) -> Decimal:
    """Pre-tax order total"""
    return to_money(sum((line_price(line) for line in lines), Decimal("0")))


def invoice_items(lines: List[ServiceLine]) -> List[ItemDraft]:
    return [
        ItemDraft(
            description=line_description(line),
            quantity=1,
            unit_price=line_price(line),
            total_price=line_price(line),
        )
        for line in lines
    ]


def service_ids(order: Order) -> set:
    """Every catalog id already attached to the order, inspection included"""
    ids = {line.service_id for line in order.service_lines}
    if order.inspection is not None:
        ids.add(order.inspection.service_id)
    return ids
