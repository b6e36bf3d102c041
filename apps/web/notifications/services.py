"""
Notification services - in-app feed rows and transactional email (Resend).
"""

import logging
from typing import TYPE_CHECKING, Any

from django.conf import settings

import resend

from apps.web.core.models import Organization
from apps.web.notifications.models import Notification

if TYPE_CHECKING:
    from apps.web.restaurant.models import Order

logger = logging.getLogger(__name__)


class EmailError(Exception):
    """A transactional email could not be handed to Resend."""


def notify(
    organization: Organization,
    type: str,
    order: "Order | None" = None,
    payload: dict[str, Any] | None = None,
) -> Notification:
    """Create a notification row for the owner feed."""
    return Notification.objects.create(
        organization=organization,
        type=type,
        order=order,
        payload=payload or {},
    )


def send_email(
    organization: Organization,
    to_email: str,
    subject: str,
    body: str,
) -> str:
    """
    Send a plain-text email on behalf of a restaurant and return the Resend id.

    Mail goes out from the platform address under the restaurant's name,
    with replies routed to the restaurant's own inbox when it has one.
    Callers treat EmailError as non-fatal; the order flow never waits on it.
    """
    missing = [
        name
        for name, value in (("recipient", to_email), ("subject", subject), ("body", body))
        if not value
    ]
    if missing:
        raise EmailError(f"Cannot send email without {', '.join(missing)}")

    if not settings.RESEND_API_KEY:
        raise EmailError("Resend is not configured (RESEND_API_KEY is empty)")
    resend.api_key = settings.RESEND_API_KEY

    params: dict[str, str | list[str]] = {
        "from": f"{organization.name} <{settings.EMAIL_FROM}>",
        "to": [to_email],
        "subject": subject,
        "text": body,
    }
    if organization.email:
        params["reply_to"] = organization.email

    try:
        response = resend.Emails.send(params)  # type: ignore[arg-type]
    except Exception as e:
        logger.exception("Resend rejected email to %s for %s", to_email, organization.slug)
        raise EmailError(f"Resend send failed: {e}") from e

    email_id = str(response.get("id", "")) if isinstance(response, dict) else ""
    logger.info("Email %s sent to %s for %s", email_id or "(no id)", to_email, organization.slug)
    return email_id


def _format_cents(cents: int, currency: str) -> str:
    return f"{cents / 100:.2f} {currency.upper()}"


def send_order_confirmation(order: "Order") -> str:
    """Email the customer a receipt once payment is confirmed."""
    lines = [
        f"{item.quantity} x {item.name_snapshot}  "
        f"{_format_cents(item.line_total_cents, order.organization.currency)}"
        for item in order.items.all()
    ]
    body = "\n".join(
        [
            f"Hi {order.customer_name},",
            "",
            f"Thanks for your order at {order.organization.name}!",
            "",
            *lines,
            "",
            f"Total: {_format_cents(order.total_cents, order.organization.currency)}",
            "",
            f"Track your order: {order.tracking_url}",
        ]
    )
    return send_email(
        order.organization,
        order.customer_email,
        f"Order #{order.order_number} confirmed",
        body,
    )


def send_order_ready(order: "Order") -> str:
    """Email a pickup customer that the order is ready."""
    body = "\n".join(
        [
            f"Hi {order.customer_name},",
            "",
            f"Your order #{order.order_number} is ready for pickup at "
            f"{order.organization.name}.",
            "",
            f"Track your order: {order.tracking_url}",
        ]
    )
    return send_email(
        order.organization,
        order.customer_email,
        f"Your order #{order.order_number} is ready!",
        body,
    )
