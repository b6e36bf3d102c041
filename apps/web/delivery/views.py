"""
Delivery endpoints - partner webhook, owner dispatch actions and the
internal polling trigger.
"""

import json
import logging

from django.conf import settings
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from apps.web.core.decorators import has_service_role, owner_or_service_role, owner_required
from apps.web.core.http import json_response
from apps.web.delivery.adapters import UberDirectAdapter
from apps.web.delivery.exceptions import DeliveryDispatchError
from apps.web.delivery.services import (
    dispatch_delivery,
    poll_active_deliveries,
    process_webhook_event,
    quote_delivery,
    record_webhook_event,
)
from apps.web.delivery.tasks import retry_dispatch
from apps.web.restaurant.models import Order

logger = logging.getLogger(__name__)

SIGNATURE_HEADERS = ("X-Uber-Signature", "X-Postmates-Signature")


def _order_for(request: HttpRequest, order_id: int) -> tuple[Order | None, JsonResponse | None]:
    """Look up an order the caller may act on: 404 if unknown, 403 if foreign."""
    order = Order.objects.select_related("organization").filter(pk=order_id).first()
    if order is None:
        return None, json_response({"error": "Order not found"}, status=404)
    if getattr(request, "is_service_role", False):
        return order, None
    if order.organization_id != request.user.organization_id:
        return None, json_response({"error": "Forbidden"}, status=403)
    return order, None


def _dispatch_error_response(e: DeliveryDispatchError) -> JsonResponse:
    status = 400 if e.is_prerequisite else 502
    return json_response({"error": e.message}, status=status)


@csrf_exempt
@require_POST
def uber_webhook(request: HttpRequest) -> JsonResponse:
    """
    Handle Uber Direct delivery status webhooks.

    POST /delivery/webhooks/uber

    Redelivered events (same event id) are acknowledged without being
    processed again.
    """
    secret = settings.UBER_DIRECT_WEBHOOK_SECRET
    if not secret:
        logger.error("UBER_DIRECT_WEBHOOK_SECRET not configured")
        return json_response({"error": "Webhook not configured"}, status=500)

    signature = next(
        (request.headers[h] for h in SIGNATURE_HEADERS if request.headers.get(h)),
        "",
    )
    body = request.body
    if not signature or not UberDirectAdapter().verify_webhook_signature(
        body, signature, secret
    ):
        logger.warning("Invalid Uber webhook signature")
        return json_response({"error": "Invalid signature"}, status=401)

    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        return json_response({"error": "Invalid JSON"}, status=400)
    if not isinstance(payload, dict):
        return json_response({"error": "Invalid payload"}, status=400)

    event, created = record_webhook_event(payload, body)
    if not created:
        return json_response({"received": True, "already_processed": True})

    try:
        event = process_webhook_event(event)
    except Exception:
        # Failure is recorded on the event; the poller reconciles the delivery
        return json_response({"error": "Webhook processing failed"}, status=500)

    return json_response({"received": True, "status": event.status})


@csrf_exempt
@require_POST
@owner_required
def quote(request: HttpRequest, order_id: int) -> JsonResponse:
    """
    Get a delivery quote for an order.

    POST /api/owner/orders/<id>/delivery/quote
    """
    order, error = _order_for(request, order_id)
    if error is not None:
        return error

    try:
        delivery_quote = quote_delivery(order)
    except DeliveryDispatchError as e:
        return _dispatch_error_response(e)

    return json_response(
        {
            "quote": {
                "id": delivery_quote.pk,
                "provider": delivery_quote.provider,
                "external_id": delivery_quote.external_id,
                "fee_cents": delivery_quote.fee_cents,
                "eta_minutes": delivery_quote.eta_minutes,
                "expires_at": delivery_quote.expires_at.isoformat(),
            }
        }
    )


@csrf_exempt
@require_POST
@owner_required
def create_delivery(request: HttpRequest, order_id: int) -> JsonResponse:
    """
    Book a courier for an order.

    POST /api/owner/orders/<id>/delivery

    Response:
        201 with the new delivery, or 200 with already_exists when the order
        was dispatched before.
    """
    order, error = _order_for(request, order_id)
    if error is not None:
        return error

    try:
        result = dispatch_delivery(order)
    except DeliveryDispatchError as e:
        return _dispatch_error_response(e)

    return json_response(
        {
            "success": True,
            "delivery": result.delivery.as_dict(),
            "already_exists": not result.created,
        },
        status=201 if result.created else 200,
    )


@csrf_exempt
@require_POST
@owner_or_service_role
def retry(request: HttpRequest, order_id: int) -> JsonResponse:
    """
    Clear a failed dispatch and try again.

    POST /api/owner/orders/<id>/delivery/retry

    Also callable by internal schedulers with the service role key.
    """
    order, error = _order_for(request, order_id)
    if error is not None:
        return error

    result = retry_dispatch(order.pk)
    if not result["success"]:
        return json_response({"success": False, "error": result["error"]}, status=500)

    return json_response(
        {
            "success": True,
            "delivery": result["delivery"],
            "already_exists": result["already_exists"],
        }
    )


@csrf_exempt
@require_POST
def poll(request: HttpRequest) -> JsonResponse:
    """
    Refresh active deliveries from the partner.

    POST /api/internal/deliveries/poll (service role only)
    """
    if not has_service_role(request):
        return json_response({"error": "Unauthorized"}, status=401)

    limit = request.GET.get("limit", "")
    result = poll_active_deliveries(limit=int(limit) if limit.isdigit() else 200)
    return json_response(result)
