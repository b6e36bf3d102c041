"""
Delivery webhook processor - handles partner status updates.

1. Record the event (unique event_id makes redeliveries a no-op)
2. Parse it and find the delivery
3. Update the delivery and, through the transition table, the order
4. On drop-off, write the sale ledger entry
"""

import hashlib
import logging
import time
from datetime import timedelta
from typing import Any

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.web.delivery.adapters import get_adapter
from apps.web.delivery.models import (
    Delivery,
    DeliveryStatus,
    DeliveryWebhookEvent,
    LedgerEntry,
    LedgerEntryType,
    WebhookStatus,
)
from apps.web.delivery.schemas import DeliveryProvider, DeliveryStatusEvent
from apps.web.delivery.services.dispatch import MAX_ERROR_LENGTH, eta_minutes
from apps.web.notifications.models import NotificationType
from apps.web.notifications.services import notify
from apps.web.restaurant.models import Order, OrderStatus
from apps.web.restaurant.pricing import percent_of
from apps.web.restaurant.services import apply_status_change
from apps.web.restaurant.transitions import can_transition

logger = logging.getLogger(__name__)

DELIVERY_ACTOR = "system_delivery"

# Delivery status -> order status it implies
ORDER_EFFECTS: dict[str, str] = {
    DeliveryStatus.PICKED_UP: OrderStatus.OUT_FOR_DELIVERY,
    DeliveryStatus.DROPPED_OFF: OrderStatus.COMPLETED,
}


def event_id_for(payload: dict[str, Any], body: bytes) -> str:
    """The partner's event id, falling back to a hash of the raw body."""
    event_id = payload.get("event_id") or payload.get("id")
    if event_id:
        return str(event_id)
    return hashlib.sha256(body).hexdigest()


def record_webhook_event(
    payload: dict[str, Any], body: bytes
) -> tuple[DeliveryWebhookEvent, bool]:
    """
    Store an incoming webhook.

    Returns:
        (event, created). created is False when the event_id was seen before.
    """
    event_id = event_id_for(payload, body)
    try:
        with transaction.atomic():
            event = DeliveryWebhookEvent.objects.create(
                event_id=event_id,
                provider=DeliveryProvider.UBER_DIRECT.value,
                event_type=str(payload.get("kind") or payload.get("event_type") or ""),
                payload=payload,
            )
    except IntegrityError:
        logger.info("Duplicate delivery webhook %s ignored", event_id)
        return DeliveryWebhookEvent.objects.get(event_id=event_id), False
    return event, True


def record_sale(order: Order, delivery: Delivery | None) -> LedgerEntry:
    """
    Write the sale ledger entry for a completed order, once.

    net = total - platform fee (on the subtotal) - what the partner charged.
    """
    platform_fee = percent_of(order.subtotal_cents, settings.PLATFORM_FEE_PERCENT)
    delivery_cost = (delivery.fee_cents or 0) if delivery else 0

    entry, created = LedgerEntry.objects.get_or_create(
        order=order,
        type=LedgerEntryType.SALE,
        defaults={
            "organization": order.organization,
            "gross_cents": order.total_cents,
            "platform_fee_cents": platform_fee,
            "delivery_cost_cents": delivery_cost,
            "net_cents": order.total_cents - platform_fee - delivery_cost,
            "currency": order.organization.currency,
            "available_on": timezone.now() + timedelta(days=settings.LEDGER_HOLD_DAYS),
        },
    )
    if created:
        logger.info(
            "Ledger sale for order %s: gross=%s net=%s",
            order.pk,
            entry.gross_cents,
            entry.net_cents,
        )
    return entry


def apply_delivery_update(delivery: Delivery, update: DeliveryStatusEvent) -> dict[str, Any]:
    """
    Apply a partner status update to a delivery and its order.

    Shared by the webhook and the poller. Order changes go through the
    transition table, so stale or out-of-order updates never move an
    order backwards.

    Returns:
        Summary of what changed, stored as the event's processing_result.
    """
    with transaction.atomic():
        delivery = (
            Delivery.objects.select_for_update()
            .select_related("order__organization")
            .get(pk=delivery.pk)
        )
        order = delivery.order
        previous_status = delivery.status

        if update.status is not None:
            delivery.status = update.status.value
        if update.provider_status:
            delivery.provider_status = update.provider_status
        if update.tracking_url:
            delivery.tracking_url = update.tracking_url
        if update.pickup_eta:
            delivery.pickup_eta = update.pickup_eta
        if update.dropoff_eta:
            delivery.dropoff_eta = update.dropoff_eta
            delivery.eta_minutes = eta_minutes(update.dropoff_eta)
        if update.fee_cents is not None:
            delivery.fee_cents = update.fee_cents
        if update.raw:
            delivery.raw_payload = update.raw
        delivery.last_synced_at = timezone.now()

        status_changed = delivery.status != previous_status
        if status_changed and delivery.status in (
            DeliveryStatus.CANCELED,
            DeliveryStatus.FAILED,
        ):
            message = f"Delivery {delivery.provider_status or delivery.status} by partner"
            delivery.error_message = message
            order.dispatch_error = message[:MAX_ERROR_LENGTH]
            order.save(update_fields=["dispatch_error", "updated_at"])

        delivery.save()

        order_updated = False
        target = ORDER_EFFECTS.get(delivery.status)
        if target and can_transition(order.status, target):
            apply_status_change(
                order,
                target,
                changed_by=DELIVERY_ACTOR,
                metadata={
                    "source": "delivery_update",
                    "delivery_id": delivery.external_id,
                    "delivery_status": delivery.status,
                },
            )
            order_updated = True

        if status_changed or order_updated:
            try:
                with transaction.atomic():
                    notify(
                        order.organization,
                        NotificationType.DELIVERY_UPDATE,
                        order=order,
                        payload={
                            "order_id": order.pk,
                            "order_number": order.order_number,
                            "delivery_status": delivery.status,
                            "previous_delivery_status": previous_status,
                            "order_status": order.status,
                        },
                    )
            except Exception:
                logger.exception(
                    "Failed to write delivery notification for order %s", order.pk
                )

        if delivery.status == DeliveryStatus.DROPPED_OFF:
            record_sale(order, delivery)

    return {
        "delivery_id": delivery.external_id,
        "previous_status": previous_status,
        "delivery_status": delivery.status,
        "order_status": order.status,
        "order_updated": order_updated,
    }


def process_webhook_event(event: DeliveryWebhookEvent) -> DeliveryWebhookEvent:
    """
    Process a recorded delivery webhook.

    Unknown deliveries are marked skipped. Failures are recorded on the
    event and re-raised after the failed status is saved.

    Raises:
        DeliveryWebhookError: If the payload has no delivery id.
    """
    start_time = time.monotonic()
    adapter = get_adapter(DeliveryProvider.UBER_DIRECT)

    try:
        update = adapter.parse_webhook(event.payload)
        event.delivery_external_id = update.delivery_external_id

        delivery = Delivery.objects.filter(external_id=update.delivery_external_id).first()
        if delivery is None:
            logger.warning(
                "Webhook %s for unknown delivery %s",
                event.event_id,
                update.delivery_external_id,
            )
            event.status = WebhookStatus.SKIPPED
            event.processing_result = {"reason": "delivery_not_found"}
        else:
            event.processing_result = apply_delivery_update(delivery, update)
            event.status = WebhookStatus.PROCESSED

    except Exception as e:
        event.status = WebhookStatus.FAILED
        event.error = str(e)
        event.processed_at = timezone.now()
        event.processing_duration_ms = int((time.monotonic() - start_time) * 1000)
        event.save()
        logger.exception("Failed to process delivery webhook %s: %s", event.event_id, e)
        raise

    event.processed_at = timezone.now()
    event.processing_duration_ms = int((time.monotonic() - start_time) * 1000)
    event.save()

    logger.info(
        "Processed delivery webhook %s (%s) in %dms: %s",
        event.event_id,
        event.status,
        event.processing_duration_ms,
        event.processing_result,
    )
    return event
