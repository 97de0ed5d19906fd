# src/services/order_state.py
from typing import Dict, FrozenSet
from models.order import OrderStatus
from utils.exceptions import IllegalTransition

ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.IN_PROGRESS, OrderStatus.CANCELLED}),
    OrderStatus.IN_PROGRESS: frozenset(
        {OrderStatus.COMPLETED, OrderStatus.CANCELLED}
    ),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return OrderStatus(target) in ALLOWED_TRANSITIONS[OrderStatus(current)]


def check_transition(current: OrderStatus, target: OrderStatus) -> None:
    """Raise IllegalTransition unless current -> target is an edge"""
    if not can_transition(current, target):
        raise IllegalTransition(
            f"Cannot move order from '{OrderStatus(current).value}' "
            f"to '{OrderStatus(target).value}'"
        )
