"""
Delivery dispatch - quote and book couriers for delivery orders.

Flow:
1. Check the order and restaurant have what the partner needs
2. Build a DeliveryRequest from the order snapshot
3. Call the partner through the token cache
4. Persist the Delivery and advance the order to ready
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from django.db import transaction
from django.utils import timezone

from apps.web.delivery.exceptions import DeliveryDispatchError, DeliveryError
from apps.web.delivery.models import Delivery, DeliveryQuote, DeliveryStatus
from apps.web.delivery.schemas import (
    DeliveryAddress,
    DeliveryContact,
    DeliveryRequest,
    DeliveryResult,
)
from apps.web.delivery.services.partner import active_provider, call_partner
from apps.web.restaurant.models import Order, OrderStatus
from apps.web.restaurant.services import apply_status_change
from apps.web.restaurant.transitions import can_transition

logger = logging.getLogger(__name__)

DISPATCH_ACTOR = "system_dispatch"
QUOTE_TTL = timedelta(minutes=5)
MAX_ERROR_LENGTH = 240


@dataclass
class DispatchResult:
    delivery: Delivery
    created: bool


def eta_minutes(dropoff_eta: datetime | None) -> int | None:
    """Minutes from now until drop-off, never negative."""
    if dropoff_eta is None:
        return None
    return max(0, round((dropoff_eta - timezone.now()).total_seconds() / 60))


def _record_failure(order: Order, message: str) -> None:
    order.dispatch_error = message[:MAX_ERROR_LENGTH]
    order.save(update_fields=["dispatch_error", "updated_at"])


def _check_prerequisites(order: Order) -> None:
    """
    Raises:
        DeliveryDispatchError: With is_prerequisite set.
    """
    if not order.is_delivery:
        raise DeliveryDispatchError(
            "Order is not a delivery order", order_id=order.pk, is_prerequisite=True
        )

    missing = order.organization.missing_pickup_fields()
    if missing:
        raise DeliveryDispatchError(
            f"Restaurant address incomplete. Missing: {', '.join(missing)}",
            order_id=order.pk,
            is_prerequisite=True,
        )

    address = order.delivery_address or {}
    if not str(address.get("street", "")).strip():
        raise DeliveryDispatchError(
            "Delivery address is missing a street",
            order_id=order.pk,
            is_prerequisite=True,
        )


def build_delivery_request(order: Order) -> DeliveryRequest:
    """Describe an order's pickup and drop-off for the partner."""
    organization = order.organization
    address = order.delivery_address or {}
    first_name = order.customer_name.split(" ", 1)[0] if order.customer_name else ""

    return DeliveryRequest(
        external_reference=f"order-{order.pk}",
        pickup_address=DeliveryAddress(
            street=organization.street,
            city=organization.city,
            region=organization.region,
            postal_code=organization.postal_code,
            country=organization.country,
        ),
        pickup_contact=DeliveryContact(
            name=organization.name,
            company_name=organization.name,
            phone=organization.phone,
        ),
        dropoff_address=DeliveryAddress(
            street=address.get("street", ""),
            unit=address.get("unit", ""),
            city=address.get("city", ""),
            region=address.get("region", ""),
            postal_code=address.get("postal_code", ""),
            country=address.get("country") or "CA",
            lat=address.get("lat"),
            lng=address.get("lng"),
        ),
        dropoff_contact=DeliveryContact(name=first_name, phone=order.customer_phone),
        dropoff_instructions=address.get("instructions", ""),
        manifest_description=f"Order #{order.order_number}",
        manifest_total_cents=order.total_cents,
    )


def quote_delivery(order: Order) -> DeliveryQuote:
    """
    Get and store a delivery quote for an order.

    Raises:
        DeliveryDispatchError: Prerequisites missing or the partner failed.
    """
    _check_prerequisites(order)
    request = build_delivery_request(order)

    try:
        quote = call_partner(lambda adapter, session: adapter.create_quote(session, request))
    except DeliveryError as e:
        logger.warning("Delivery quote failed for order %s: %s", order.pk, e.message)
        raise DeliveryDispatchError(
            e.message, provider=e.provider, order_id=order.pk
        ) from e

    return DeliveryQuote.objects.create(
        organization=order.organization,
        order=order,
        provider=active_provider().value,
        external_id=quote.external_id,
        fee_cents=quote.fee_cents,
        eta_minutes=quote.eta_minutes,
        expires_at=timezone.now() + QUOTE_TTL,
        raw_payload=quote.raw,
    )


def dispatch_delivery(order: Order) -> DispatchResult:
    """
    Book a courier for a delivery order.

    Safe to call repeatedly: an order with a Delivery is returned as-is.

    Args:
        order: Delivery order with its organization loaded.

    Returns:
        DispatchResult; created is False when a delivery already existed.

    Raises:
        DeliveryDispatchError: Prerequisites missing or the partner failed.
            order.dispatch_error is set in both cases, except for
            non-delivery orders.
    """
    try:
        _check_prerequisites(order)
    except DeliveryDispatchError as e:
        if order.is_delivery:
            _record_failure(order, e.message)
        raise

    existing = Delivery.objects.filter(order=order).first()
    if existing is not None:
        logger.info("Delivery already exists for order %s: %s", order.pk, existing.external_id)
        return DispatchResult(delivery=existing, created=False)

    request = build_delivery_request(order)
    provider = active_provider()

    try:
        result: DeliveryResult = call_partner(
            lambda adapter, session: adapter.create_delivery(session, request)
        )
    except DeliveryError as e:
        logger.error("Delivery dispatch failed for order %s: %s", order.pk, e.message)
        _record_failure(order, e.message)
        raise DeliveryDispatchError(
            e.message, provider=e.provider, order_id=order.pk
        ) from e

    with transaction.atomic():
        delivery = Delivery.objects.create(
            organization=order.organization,
            order=order,
            provider=provider.value,
            external_id=result.external_id,
            status=result.status.value if result.status else DeliveryStatus.CREATED,
            provider_status=result.provider_status,
            tracking_url=result.tracking_url,
            pickup_eta=result.pickup_eta,
            dropoff_eta=result.dropoff_eta,
            eta_minutes=eta_minutes(result.dropoff_eta),
            fee_cents=result.fee_cents,
            raw_payload=result.raw,
            last_synced_at=timezone.now(),
        )

        order.dispatch_error = ""
        order.save(update_fields=["dispatch_error", "updated_at"])

        if can_transition(order.status, OrderStatus.READY):
            apply_status_change(
                order,
                OrderStatus.READY,
                changed_by=DISPATCH_ACTOR,
                metadata={"source": "delivery_dispatch", "delivery_id": delivery.external_id},
            )

    logger.info(
        "Dispatched order %s via %s: %s", order.pk, provider.value, delivery.external_id
    )
    return DispatchResult(delivery=delivery, created=True)
