"""
Delivery background tasks.

These functions are designed to work with a task queue but are called
synchronously from views and management commands for now.
"""

import logging
from typing import Any

from apps.web.delivery.exceptions import DeliveryDispatchError
from apps.web.delivery.services import dispatch_delivery, poll_active_deliveries
from apps.web.restaurant.models import Order

logger = logging.getLogger(__name__)


def dispatch_delivery_task(order_id: int) -> dict[str, Any]:
    """
    Dispatch a courier for an order.

    Returns:
        {"success", "order_id", "delivery", "already_exists", "error"} plus
        "is_prerequisite" on failure.
    """
    try:
        order = Order.objects.select_related("organization").get(pk=order_id)
    except Order.DoesNotExist:
        return {
            "success": False,
            "order_id": order_id,
            "delivery": None,
            "already_exists": False,
            "error": "Order not found",
            "is_prerequisite": True,
        }

    try:
        result = dispatch_delivery(order)
    except DeliveryDispatchError as e:
        logger.warning("Dispatch task failed for order %s: %s", order_id, e.message)
        return {
            "success": False,
            "order_id": order_id,
            "delivery": None,
            "already_exists": False,
            "error": e.message,
            "is_prerequisite": e.is_prerequisite,
        }

    return {
        "success": True,
        "order_id": order_id,
        "delivery": result.delivery.as_dict(),
        "already_exists": not result.created,
        "error": None,
    }


def retry_dispatch(order_id: int) -> dict[str, Any]:
    """
    Clear the last dispatch error and try again.

    Returns:
        Same shape as dispatch_delivery_task.
    """
    updated = Order.objects.filter(pk=order_id).update(dispatch_error="")
    if updated:
        logger.info("Retrying delivery dispatch for order %s", order_id)
    return dispatch_delivery_task(order_id)


def poll_deliveries_task(limit: int = 200) -> dict[str, Any]:
    """Refresh in-flight deliveries from the partner."""
    return poll_active_deliveries(limit=limit)
