"""Delivery services - dispatch, webhook processing, polling and token caching."""

from apps.web.delivery.services.dispatch import (
    DispatchResult,
    build_delivery_request,
    dispatch_delivery,
    quote_delivery,
)
from apps.web.delivery.services.polling import poll_active_deliveries
from apps.web.delivery.services.webhook_processor import (
    apply_delivery_update,
    process_webhook_event,
    record_sale,
    record_webhook_event,
)

__all__ = [
    "DispatchResult",
    "apply_delivery_update",
    "build_delivery_request",
    "dispatch_delivery",
    "poll_active_deliveries",
    "process_webhook_event",
    "quote_delivery",
    "record_sale",
    "record_webhook_event",
]
