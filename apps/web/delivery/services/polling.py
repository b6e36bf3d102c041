"""
Delivery status polling - fallback for missed or delayed webhooks.
"""

import logging
from typing import Any

from apps.web.delivery.exceptions import DeliveryError
from apps.web.delivery.models import ACTIVE_DELIVERY_STATUSES, Delivery
from apps.web.delivery.schemas import DeliveryResult, DeliveryStatusEvent
from apps.web.delivery.services.partner import call_partner
from apps.web.delivery.services.webhook_processor import apply_delivery_update

logger = logging.getLogger(__name__)


def _as_update(result: DeliveryResult) -> DeliveryStatusEvent:
    return DeliveryStatusEvent(
        event_type="poll",
        delivery_external_id=result.external_id,
        provider_status=result.provider_status,
        status=result.status,
        tracking_url=result.tracking_url,
        pickup_eta=result.pickup_eta,
        dropoff_eta=result.dropoff_eta,
        fee_cents=result.fee_cents,
        raw=result.raw,
    )


def poll_active_deliveries(limit: int = 200) -> dict[str, Any]:
    """
    Refresh every in-flight delivery from the partner.

    A failure on one delivery is logged and counted; the rest still run.

    Args:
        limit: Maximum number of deliveries to refresh in one run.

    Returns:
        {"total_deliveries", "updated_orders", "errors"}
    """
    deliveries = list(
        Delivery.objects.filter(status__in=ACTIVE_DELIVERY_STATUSES).order_by(
            "last_synced_at", "pk"
        )[:limit]
    )

    updated_orders = 0
    errors: list[dict[str, str]] = []

    for delivery in deliveries:
        external_id = delivery.external_id
        try:
            result = call_partner(
                lambda adapter, session, ext=external_id: adapter.get_delivery(session, ext)
            )
            outcome = apply_delivery_update(delivery, _as_update(result))
        except DeliveryError as e:
            logger.warning("Polling delivery %s failed: %s", external_id, e.message)
            errors.append({"delivery_id": external_id, "error": e.message})
            continue

        if outcome["order_updated"]:
            updated_orders += 1

    logger.info(
        "Polled %d deliveries: %d orders updated, %d errors",
        len(deliveries),
        updated_orders,
        len(errors),
    )
    return {
        "total_deliveries": len(deliveries),
        "updated_orders": updated_orders,
        "errors": errors,
    }
