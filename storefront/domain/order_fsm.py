"""Order status transition rules."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from storefront.domain.order import OrderStatus

ALLOWED_TRANSITIONS: Mapping[str, frozenset[str]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.COMPLETED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})


@dataclass(frozen=True, slots=True)
class TransitionValidationResult:
    allowed: bool
    reason: str | None = None


def validate_order_transition(*, current_status: str | None, target_status: str) -> TransitionValidationResult:
    """Check terminal guards and the transition matrix."""
    if not target_status:
        return TransitionValidationResult(False, "New status is missing.")

    target = OrderStatus.normalize(target_status)
    current = OrderStatus.normalize(current_status) if current_status is not None else None

    if target not in ALLOWED_TRANSITIONS:
        return TransitionValidationResult(False, f"Unsupported status: {target}")
    if current is not None and current not in ALLOWED_TRANSITIONS:
        return TransitionValidationResult(False, f"Unsupported current status: {current}")
    if current == target:
        return TransitionValidationResult(True)
    if current in TERMINAL_STATUSES:
        return TransitionValidationResult(False, f"Order is already '{current}'.")
    if current is not None and target not in ALLOWED_TRANSITIONS[current]:
        return TransitionValidationResult(False, f"Transition '{current} -> {target}' is not allowed.")
    return TransitionValidationResult(True)
