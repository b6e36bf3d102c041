"""
Order services - checkout and status changes.

Handles:
1. Validating a cart against live menu rows and pricing it server-side
2. Creating the customer, order, items and PaymentIntent in one transaction
3. Applying status changes through the shared transition table
4. Owner-driven side effects (refunds, ready emails, delivery dispatch)
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from apps.web.core.models import Organization
from apps.web.notifications.models import NotificationType
from apps.web.notifications.services import EmailError, notify, send_order_ready
from apps.web.payments.services import (
    PaymentError,
    application_fee_for,
    create_payment_intent,
    create_refund,
)
from apps.web.restaurant.models import (
    Customer,
    FulfillmentType,
    MenuItem,
    Order,
    OrderEvent,
    OrderItem,
    OrderStatus,
    PaymentStatus,
)
from apps.web.restaurant.pricing import (
    PriceBreakdown,
    PriceMismatchError,
    check_expected_totals,
    compute_totals,
)
from apps.web.restaurant.serializers import CartItemSchema, CheckoutRequest
from apps.web.restaurant.transitions import STATUS_TIMESTAMP_FIELDS, check_transition

if TYPE_CHECKING:
    from apps.web.core.models import User

logger = logging.getLogger(__name__)


class CheckoutError(Exception):
    """Checkout rejected; carries the HTTP status to report."""

    def __init__(
        self,
        message: str,
        status: int = 400,
        details: list[dict[str, str]] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.details = details or []


@dataclass
class CheckoutResult:
    order: Order
    client_secret: str | None
    totals: PriceBreakdown


@dataclass
class StatusChangeResult:
    order: Order
    warning: str = ""
    delivery_dispatch_failed: bool = False
    delivery: dict[str, Any] | None = None


# =============================================================================
# Checkout
# =============================================================================


def _validate_cart(
    organization: Organization, items: list[CartItemSchema]
) -> list[tuple[MenuItem, CartItemSchema]]:
    """
    Check every cart line refers to an active, in-stock menu item.

    Returns:
        List of (MenuItem, cart line) pairs in request order.

    Raises:
        CheckoutError: With one detail per invalid line.
    """
    ids = {line.menu_item_id for line in items}
    menu_items = MenuItem.objects.filter(organization=organization, pk__in=ids).in_bulk()

    errors: list[dict[str, str]] = []
    validated: list[tuple[MenuItem, CartItemSchema]] = []
    # Stock is compared against the item's total across lines
    requested: dict[int, int] = {}
    first_line: dict[int, int] = {}

    for i, line in enumerate(items):
        field_name = f"items[{i}].menu_item_id"
        menu_item = menu_items.get(line.menu_item_id)

        if menu_item is None:
            errors.append({"field": field_name, "message": "Item not found"})
            continue

        if not menu_item.is_active:
            errors.append(
                {
                    "field": field_name,
                    "message": f"'{menu_item.display_name}' is currently unavailable",
                }
            )
            continue

        requested[menu_item.pk] = requested.get(menu_item.pk, 0) + line.quantity
        first_line.setdefault(menu_item.pk, i)
        validated.append((menu_item, line))

    for pk, quantity in requested.items():
        menu_item = menu_items[pk]
        if menu_item.track_inventory and (menu_item.stock_quantity or 0) < quantity:
            errors.append(
                {
                    "field": f"items[{first_line[pk]}].quantity",
                    "message": f"Only {menu_item.stock_quantity or 0} "
                    f"'{menu_item.display_name}' left",
                }
            )

    if errors:
        raise CheckoutError("One or more items are unavailable", details=errors)

    return validated


def _decrement_stock(validated: list[tuple[MenuItem, CartItemSchema]]) -> None:
    """
    Take tracked stock for the cart.

    Raises:
        CheckoutError: An item sold out since the cart was validated.
    """
    quantities: dict[int, int] = {}
    names: dict[int, str] = {}
    for menu_item, line in validated:
        if menu_item.track_inventory:
            quantities[menu_item.pk] = quantities.get(menu_item.pk, 0) + line.quantity
            names[menu_item.pk] = menu_item.display_name

    for pk, quantity in quantities.items():
        taken = MenuItem.objects.filter(pk=pk, stock_quantity__gte=quantity).update(
            stock_quantity=F("stock_quantity") - quantity
        )
        if not taken:
            raise CheckoutError(
                "One or more items are unavailable",
                details=[{"field": "items", "message": f"'{names[pk]}' just sold out"}],
            )


def _split_name(full_name: str) -> tuple[str, str]:
    first, _, last = full_name.strip().partition(" ")
    return first, last.strip()


def _upsert_customer(organization: Organization, data: CheckoutRequest) -> Customer:
    first_name, last_name = _split_name(data.customer.name)
    defaults: dict[str, Any] = {
        "first_name": first_name,
        "last_name": last_name,
        "phone": data.customer.phone,
        "marketing_opt_in": data.customer.marketing_opt_in,
    }
    if data.fulfillment_type == FulfillmentType.DELIVERY and data.delivery_address:
        defaults["default_address"] = data.delivery_address.model_dump()

    customer, _created = Customer.objects.update_or_create(
        organization=organization,
        email=data.customer.email,
        defaults=defaults,
    )
    return customer


def create_checkout(organization: Organization, data: CheckoutRequest) -> CheckoutResult:
    """
    Create an order awaiting payment and its Stripe PaymentIntent.

    Prices come from the menu rows, never from the client. The customer
    upsert, order, items, inventory decrement and PaymentIntent creation
    happen in one transaction, so a failure anywhere leaves nothing behind.

    Args:
        organization: The storefront's organization.
        data: Validated checkout request.

    Returns:
        CheckoutResult with the order, client secret and totals.

    Raises:
        CheckoutError: Validation failure (400), duplicate idempotency key
            (409) or payment processor failure (500).
    """
    if not organization.ordering_enabled:
        raise CheckoutError("Online ordering is not enabled for this restaurant")

    if data.fulfillment_type == FulfillmentType.DELIVERY:
        if not organization.delivery_enabled:
            raise CheckoutError("Delivery is not available for this restaurant")
        if data.delivery_address is None or not data.delivery_address.street.strip():
            raise CheckoutError(
                "Delivery address is required for delivery orders",
                details=[
                    {
                        "field": "delivery_address.street",
                        "message": "Street is required",
                    }
                ],
            )
    elif not organization.pickup_enabled:
        raise CheckoutError("Pickup is not available for this restaurant")

    if (
        data.idempotency_key
        and Order.objects.filter(
            organization=organization, idempotency_key=data.idempotency_key
        ).exists()
    ):
        raise CheckoutError("Duplicate order submission detected", status=409)

    validated = _validate_cart(organization, data.items)

    totals = compute_totals(
        [(menu_item.price_cents, line.quantity) for menu_item, line in validated],
        organization,
        data.fulfillment_type,
        tip_cents=data.tip_cents,
    )

    if data.expected_totals is not None:
        expected = data.expected_totals.model_dump(exclude_none=True)
        try:
            check_expected_totals(totals, expected)
        except PriceMismatchError as e:
            raise CheckoutError(
                "Price mismatch - please refresh your cart",
                details=[
                    {
                        "field": f"expected_totals.{e.field}",
                        "message": f"Expected {e.expected}, got {e.submitted}",
                    }
                ],
            ) from e

    try:
        with transaction.atomic():
            customer = _upsert_customer(organization, data)

            order = Order.objects.create(
                organization=organization,
                customer=customer,
                idempotency_key=data.idempotency_key,
                customer_name=data.customer.name,
                customer_email=data.customer.email,
                customer_phone=data.customer.phone,
                fulfillment_type=data.fulfillment_type,
                delivery_address=(
                    data.delivery_address.model_dump()
                    if data.fulfillment_type == FulfillmentType.DELIVERY
                    and data.delivery_address
                    else None
                ),
                notes=data.notes,
                status=OrderStatus.AWAITING_PAYMENT,
                payment_status=PaymentStatus.PENDING,
                **totals.as_dict(),
            )

            OrderItem.objects.bulk_create(
                [
                    OrderItem(
                        organization=organization,
                        order=order,
                        menu_item=menu_item,
                        name_snapshot=menu_item.display_name,
                        price_cents_snapshot=menu_item.price_cents,
                        quantity=line.quantity,
                        modifiers=line.modifiers,
                        notes=line.notes,
                        line_total_cents=menu_item.price_cents * line.quantity,
                    )
                    for menu_item, line in validated
                ]
            )

            _decrement_stock(validated)

            payment_intent = create_payment_intent(order)

            order.stripe_payment_intent_id = payment_intent.id
            order.application_fee_cents = application_fee_for(order)
            order.save(
                update_fields=[
                    "stripe_payment_intent_id",
                    "application_fee_cents",
                    "updated_at",
                ]
            )

    except IntegrityError as e:
        # Only a concurrent submission with the same key is a duplicate
        if (
            data.idempotency_key
            and Order.objects.filter(
                organization=organization, idempotency_key=data.idempotency_key
            ).exists()
        ):
            logger.warning(
                "Duplicate checkout for %s (key=%s)", organization.slug, data.idempotency_key
            )
            raise CheckoutError("Duplicate order submission detected", status=409) from e
        logger.exception("Checkout integrity error for %s", organization.slug)
        raise CheckoutError("Order could not be created, please try again", status=500) from e
    except PaymentError as e:
        logger.error("PaymentIntent creation failed for %s: %s", organization.slug, e)
        raise CheckoutError(
            "Payment processing failed",
            status=500,
            details=[{"field": "payment", "message": e.message}],
        ) from e

    logger.info(
        "Order created: order_id=%s number=%s total=%s",
        order.pk,
        order.order_number,
        order.total_cents,
    )

    return CheckoutResult(
        order=order,
        client_secret=payment_intent.client_secret,
        totals=totals,
    )


# =============================================================================
# Status changes
# =============================================================================


def apply_status_change(
    order: Order,
    new_status: str,
    *,
    changed_by: str,
    metadata: dict[str, Any] | None = None,
    extra_fields: dict[str, Any] | None = None,
) -> Order:
    """
    Persist a status change with its timestamp, audit event and notification.

    Callers are responsible for validating the transition first.

    Args:
        order: Order to update.
        new_status: Target status.
        changed_by: User id or system actor recorded on the event.
        metadata: Extra context stored on the event.
        extra_fields: Additional order fields to set in the same save.

    Returns:
        The updated order.
    """
    previous_status = order.status
    update_fields = ["status", "updated_at"]

    order.status = new_status
    timestamp_field = STATUS_TIMESTAMP_FIELDS.get(new_status)
    if timestamp_field:
        setattr(order, timestamp_field, timezone.now())
        update_fields.append(timestamp_field)

    for name, value in (extra_fields or {}).items():
        setattr(order, name, value)
        update_fields.append(name)

    order.save(update_fields=update_fields)

    OrderEvent.objects.create(
        organization=order.organization,
        order=order,
        previous_status=previous_status,
        new_status=new_status,
        changed_by=changed_by,
        metadata=metadata or {},
    )

    try:
        with transaction.atomic():
            notify(
                order.organization,
                NotificationType.ORDER_STATUS,
                order=order,
                payload={
                    "order_id": order.pk,
                    "order_number": order.order_number,
                    "previous_status": previous_status,
                    "new_status": new_status,
                },
            )
    except Exception:
        logger.exception("Failed to write status notification for order %s", order.pk)

    logger.info(
        "Order %s status %s -> %s by %s",
        order.pk,
        previous_status,
        new_status,
        changed_by,
    )
    return order


def update_order_status(order: Order, new_status: str, user: "User") -> StatusChangeResult:
    """
    Owner-requested status change.

    Args:
        order: Order belonging to the user's organization.
        new_status: Requested status.
        user: Acting owner/admin.

    Returns:
        StatusChangeResult with any dispatch outcome for delivery orders.

    Raises:
        PermissionDenied: Refund requested by a non-admin.
        InvalidTransition: Requested status not allowed.
        PaymentError: Stripe refund failed.
    """
    check_transition(order.status, new_status, is_admin=user.is_org_admin)

    extra_fields: dict[str, Any] = {}
    if new_status == OrderStatus.REFUNDED:
        if order.stripe_payment_intent_id:
            create_refund(order.stripe_payment_intent_id)
        extra_fields["payment_status"] = PaymentStatus.REFUNDED

    apply_status_change(
        order,
        new_status,
        changed_by=str(user.pk),
        metadata={"source": "owner_portal"},
        extra_fields=extra_fields,
    )

    result = StatusChangeResult(order=order)

    if new_status == OrderStatus.READY:
        if order.fulfillment_type == FulfillmentType.PICKUP:
            try:
                send_order_ready(order)
            except EmailError as e:
                logger.warning("Ready email failed for order %s: %s", order.pk, e)
        else:
            # Late import: delivery depends on restaurant models
            from apps.web.delivery.tasks import dispatch_delivery_task  # noqa: PLC0415

            dispatch = dispatch_delivery_task(order.pk)
            if dispatch["success"]:
                result.delivery = dispatch["delivery"]
            else:
                result.delivery_dispatch_failed = True
                result.warning = (
                    f"Order marked ready but delivery dispatch failed: {dispatch['error']}"
                )
            order.refresh_from_db()

    return result
