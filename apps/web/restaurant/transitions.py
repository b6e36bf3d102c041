"""
Order status transitions - the single table every status change goes through.

Owner actions, the payment webhook, delivery dispatch and delivery
webhooks all validate against ORDER_TRANSITIONS.
"""

from django.core.exceptions import PermissionDenied

from apps.web.restaurant.models import OrderStatus

ORDER_TRANSITIONS: dict[str, tuple[str, ...]] = {
    OrderStatus.AWAITING_PAYMENT: (OrderStatus.PAID, OrderStatus.CANCELED),
    OrderStatus.PAID: (
        OrderStatus.ACCEPTED,
        OrderStatus.PREPARING,
        OrderStatus.CANCELED,
    ),
    OrderStatus.ACCEPTED: (OrderStatus.PREPARING, OrderStatus.CANCELED),
    OrderStatus.PREPARING: (OrderStatus.READY, OrderStatus.CANCELED),
    OrderStatus.READY: (OrderStatus.COMPLETED, OrderStatus.OUT_FOR_DELIVERY),
    OrderStatus.OUT_FOR_DELIVERY: (OrderStatus.COMPLETED,),
    OrderStatus.COMPLETED: (),
    OrderStatus.CANCELED: (),
    OrderStatus.REFUNDED: (),
}

# Refunds bypass the table but are limited to the admin role
REFUNDABLE_STATUSES = frozenset(
    {
        OrderStatus.PAID,
        OrderStatus.ACCEPTED,
        OrderStatus.PREPARING,
        OrderStatus.READY,
        OrderStatus.OUT_FOR_DELIVERY,
        OrderStatus.COMPLETED,
    }
)

# Timestamp field stamped when an order enters a status
STATUS_TIMESTAMP_FIELDS: dict[str, str] = {
    OrderStatus.PAID: "paid_at",
    OrderStatus.ACCEPTED: "accepted_at",
    OrderStatus.READY: "ready_at",
    OrderStatus.COMPLETED: "completed_at",
    OrderStatus.CANCELED: "canceled_at",
    OrderStatus.REFUNDED: "refunded_at",
}


class InvalidTransition(Exception):
    """Requested status is not reachable from the current one."""

    def __init__(self, current: str, requested: str) -> None:
        self.current = current
        self.requested = requested
        self.valid = valid_transitions(current)
        super().__init__(f"Cannot transition from {current} to {requested}")


def valid_transitions(status: str) -> list[str]:
    """Statuses reachable from `status` in one step."""
    return [str(s) for s in ORDER_TRANSITIONS.get(status, ())]


def can_transition(current: str, requested: str) -> bool:
    return requested in ORDER_TRANSITIONS.get(current, ())


def check_transition(current: str, requested: str, *, is_admin: bool = False) -> None:
    """
    Validate a status change requested by a user.

    Args:
        current: The order's current status.
        requested: The status being asked for.
        is_admin: Whether the requester holds the admin role.

    Raises:
        PermissionDenied: Refund requested by a non-admin.
        InvalidTransition: Requested status not allowed from current.
    """
    if requested == OrderStatus.REFUNDED:
        if not is_admin:
            raise PermissionDenied("Only admins can refund orders")
        if current not in REFUNDABLE_STATUSES:
            raise InvalidTransition(current, requested)
        return

    if not can_transition(current, requested):
        raise InvalidTransition(current, requested)
