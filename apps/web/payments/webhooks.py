"""
Stripe webhook handlers.

Handles payment events from Stripe:
- payment_intent.succeeded: Payment completed, mark order paid
- checkout.session.completed: Hosted checkout completed, mark order paid
- payment_intent.payment_failed: Payment failed, record on order
- account.updated: Connect onboarding progress
"""

import logging
from typing import Any

from django.conf import settings
from django.db import transaction
from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

import stripe

from apps.web.core.models import Organization
from apps.web.notifications.models import NotificationType
from apps.web.notifications.services import EmailError, notify, send_order_confirmation
from apps.web.payments.models import Payment
from apps.web.payments.services import (
    FeeBreakdown,
    PaymentError,
    retrieve_fee_breakdown,
    sync_account_status,
)
from apps.web.restaurant.models import Order, OrderStatus, PaymentStatus
from apps.web.restaurant.services import apply_status_change
from apps.web.restaurant.transitions import can_transition

logger = logging.getLogger(__name__)

STRIPE_ACTOR = "system_stripe"


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> HttpResponse:
    """
    Handle Stripe webhook events.

    POST /payments/webhooks/stripe

    Events handled:
    - payment_intent.succeeded: Order paid
    - checkout.session.completed: Order paid
    - payment_intent.payment_failed: Payment failed
    - account.updated: Connect status sync
    """
    payload = request.body
    sig_header = request.headers.get("Stripe-Signature", "")

    if not sig_header:
        logger.warning("Stripe webhook received without signature")
        return HttpResponse("Missing signature", status=400)

    if not settings.STRIPE_WEBHOOK_SECRET:
        logger.error("STRIPE_WEBHOOK_SECRET is not configured")
        return HttpResponse("Webhook secret not configured", status=500)

    # Verify webhook signature
    try:
        event = stripe.Webhook.construct_event(
            payload,
            sig_header,
            settings.STRIPE_WEBHOOK_SECRET,
        )
    except ValueError as e:
        logger.warning("Invalid Stripe webhook payload: %s", e)
        return HttpResponse("Invalid payload", status=400)
    except stripe.error.SignatureVerificationError as e:
        logger.warning("Invalid Stripe webhook signature: %s", e)
        return HttpResponse("Invalid signature", status=400)

    # Log event for debugging
    logger.info("Received Stripe event: %s", event["type"])

    data = event["data"]["object"]

    # Route to handler
    match event["type"]:
        case "payment_intent.succeeded":
            _handle_payment_succeeded(data)
        case "checkout.session.completed":
            if not _metadata(data).get("order_id"):
                logger.warning("Checkout session without order_id: %s", data.get("id"))
                return HttpResponse("Missing order_id in metadata", status=400)
            _handle_checkout_completed(data)
        case "payment_intent.payment_failed":
            _handle_payment_failed(data)
        case "account.updated":
            _handle_account_updated(data)
        case _:
            logger.debug("Ignoring unhandled Stripe event: %s", event["type"])

    return HttpResponse(status=200)


def _metadata(obj: Any) -> dict[str, Any]:
    metadata = obj.get("metadata") or {}
    return metadata if isinstance(metadata, dict) else dict(metadata)


def _get_order(order_id: Any) -> Order | None:
    try:
        return Order.objects.select_related("organization").get(pk=int(order_id))
    except Order.DoesNotExist:
        logger.error("Order not found for Stripe event: order_id=%s", order_id)
    except (ValueError, TypeError):
        logger.error("Invalid order_id in metadata: %s", order_id)
    return None


def _already_paid(order: Order) -> bool:
    return order.payment_status == PaymentStatus.SUCCEEDED or not can_transition(
        order.status, OrderStatus.PAID
    )


def mark_order_paid(
    order_id: Any,
    payment_intent_id: str,
    amount_cents: int | None = None,
    currency: str | None = None,
) -> bool:
    """
    Transition an order to paid, exactly once.

    The fee lookup happens before the row lock so the network call never
    holds a transaction open. The paid check is repeated under the lock,
    so concurrent deliveries of the same event update the order once.

    Args:
        order_id: Order primary key from the PaymentIntent metadata.
        payment_intent_id: The succeeded PaymentIntent ID.
        amount_cents: Amount received, defaults to the order total.
        currency: Currency received, defaults to the organization's.

    Returns:
        True if the order was updated, False for replays and unknown orders.
    """
    order = _get_order(order_id)
    if order is None:
        return False

    # Skip if already processed (idempotency)
    if _already_paid(order):
        logger.info(
            "Order already paid, skipping: order_id=%s status=%s",
            order.pk,
            order.status,
        )
        return False

    try:
        fees = retrieve_fee_breakdown(payment_intent_id)
    except PaymentError as e:
        logger.warning("Could not fetch fees for %s: %s", payment_intent_id, e.message)
        fees = FeeBreakdown(charge_id="", fee_cents=None, net_cents=None)

    with transaction.atomic():
        order = (
            Order.objects.select_for_update()
            .select_related("organization")
            .get(pk=order.pk)
        )
        if _already_paid(order):
            logger.info("Order paid concurrently, skipping: order_id=%s", order.pk)
            return False

        apply_status_change(
            order,
            OrderStatus.PAID,
            changed_by=STRIPE_ACTOR,
            metadata={"source": "stripe_webhook", "payment_intent_id": payment_intent_id},
            extra_fields={
                "payment_status": PaymentStatus.SUCCEEDED,
                "stripe_payment_intent_id": payment_intent_id,
                "stripe_charge_id": fees.charge_id,
                "stripe_fee_cents": fees.fee_cents,
                "stripe_net_cents": fees.net_cents,
            },
        )

        try:
            with transaction.atomic():
                notify(
                    order.organization,
                    NotificationType.ORDER_PAID,
                    order=order,
                    payload={
                        "order_id": order.pk,
                        "order_number": order.order_number,
                        "total_cents": order.total_cents,
                        "customer_name": order.customer_name,
                    },
                )
        except Exception:
            logger.exception("Failed to write paid notification for order %s", order.pk)

        Payment.objects.update_or_create(
            provider_ref=payment_intent_id,
            defaults={
                "organization": order.organization,
                "order": order,
                "provider": "stripe",
                "status": "succeeded",
                "amount_cents": amount_cents if amount_cents is not None else order.total_cents,
                "currency": (currency or order.organization.currency).lower(),
                "fee_cents": fees.fee_cents,
                "net_cents": fees.net_cents,
                "metadata": {
                    "charge_id": fees.charge_id,
                    "fee_cents": fees.fee_cents,
                    "net_cents": fees.net_cents,
                },
            },
        )

        paid_order_id = order.pk
        transaction.on_commit(lambda: _send_confirmation(paid_order_id))

    logger.info(
        "Order paid via webhook: order_id=%s number=%s",
        order.pk,
        order.order_number,
    )
    return True


def _send_confirmation(order_id: int) -> None:
    order = Order.objects.select_related("organization").get(pk=order_id)
    try:
        send_order_confirmation(order)
    except EmailError as e:
        logger.warning("Confirmation email failed for order %s: %s", order_id, e)


def _handle_payment_succeeded(payment_intent: dict[str, Any]) -> None:
    """
    Mark the order paid when its PaymentIntent succeeds.

    Args:
        payment_intent: Stripe PaymentIntent data from webhook
    """
    order_id = _metadata(payment_intent).get("order_id")
    if not order_id:
        pi_id = payment_intent.get("id")
        logger.warning("Payment succeeded but no order_id in metadata: %s", pi_id)
        return

    mark_order_paid(
        order_id,
        str(payment_intent.get("id", "")),
        amount_cents=payment_intent.get("amount_received") or payment_intent.get("amount"),
        currency=payment_intent.get("currency"),
    )


def _handle_checkout_completed(session: dict[str, Any]) -> None:
    """
    Mark the order paid when a hosted Checkout Session completes.

    Args:
        session: Stripe Checkout Session data from webhook
    """
    if session.get("payment_status") not in (None, "paid"):
        logger.info(
            "Checkout session %s not paid yet (%s)",
            session.get("id"),
            session.get("payment_status"),
        )
        return

    mark_order_paid(
        _metadata(session)["order_id"],
        str(session.get("payment_intent") or session.get("id", "")),
        amount_cents=session.get("amount_total"),
        currency=session.get("currency"),
    )


def _handle_payment_failed(payment_intent: dict[str, Any]) -> None:
    """
    Record a failed payment on the order.

    Args:
        payment_intent: Stripe PaymentIntent data from webhook
    """
    order_id = _metadata(payment_intent).get("order_id")
    if not order_id:
        pi_id = payment_intent.get("id")
        logger.warning("Payment failed but no order_id in metadata: %s", pi_id)
        return

    order = _get_order(order_id)
    if order is None:
        return

    if order.payment_status == PaymentStatus.SUCCEEDED:
        logger.info("Ignoring failure for already paid order %s", order.pk)
        return

    order.payment_status = PaymentStatus.FAILED
    order.save(update_fields=["payment_status", "updated_at"])

    last_error = payment_intent.get("last_payment_error")
    reason = "Unknown error"
    if isinstance(last_error, dict):
        reason = last_error.get("message", reason)

    logger.info(
        "Payment failed for order: order_id=%s number=%s reason=%s",
        order.pk,
        order.order_number,
        reason,
    )


def _handle_account_updated(account: dict[str, Any]) -> None:
    """
    Sync Connect onboarding status for the organization owning the account.

    Args:
        account: Stripe Account data from webhook
    """
    account_id = account.get("id")
    organization = Organization.objects.filter(stripe_account_id=account_id).first()
    if organization is None:
        logger.warning("account.updated for unknown account %s", account_id)
        return

    sync_account_status(organization, account)
