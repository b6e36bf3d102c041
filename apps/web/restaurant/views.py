"""
Storefront API views - public endpoints for the restaurant site.

These endpoints are used by the storefront:
- Menu display (cached)
- Checkout: order creation and PaymentIntent
- Order tracking by public token
"""

import json

from django.http import HttpRequest, JsonResponse
from django.views.decorators.cache import cache_control
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from pydantic import ValidationError as PydanticValidationError

from apps.web.core.decorators import idempotent_request
from apps.web.core.http import json_response, options_handler, validation_error_response
from apps.web.core.models import Organization
from apps.web.restaurant.models import MenuCategory, MenuItem, Order
from apps.web.restaurant.serializers import (
    CheckoutRequest,
    CheckoutResponse,
    MenuCategorySchema,
    MenuItemSchema,
    MenuResponse,
    OrderItemSchema,
    TotalsSchema,
    TrackingDeliverySchema,
    TrackingResponse,
)
from apps.web.restaurant.services import CheckoutError, create_checkout


def _get_organization(slug: str) -> Organization | None:
    return Organization.objects.filter(slug=slug, is_active=True).first()


def _serialize_menu_item(item: MenuItem) -> MenuItemSchema:
    """Serialize a MenuItem, hiding stock counts behind in_stock."""
    return MenuItemSchema(
        id=item.pk,
        name_fr=item.name_fr,
        name_en=item.name_en,
        description_fr=item.description_fr,
        description_en=item.description_en,
        price_cents=item.price_cents,
        image_url=item.image_url,
        allergens=item.allergens,
        in_stock=not item.track_inventory or (item.stock_quantity or 0) > 0,
    )


def _serialize_organization(organization: Organization) -> dict:
    return {
        "slug": organization.slug,
        "name": organization.name,
        "phone": organization.phone,
        "currency": organization.currency,
        "tax_rate": float(organization.tax_rate),
        "delivery_fee_cents": organization.delivery_fee_cents,
        "service_fee_cents": organization.service_fee_cents,
        "ordering_enabled": organization.ordering_enabled,
        "pickup_enabled": organization.pickup_enabled,
        "delivery_enabled": organization.delivery_enabled,
    }


@require_http_methods(["GET", "OPTIONS"])
@cache_control(max_age=300, public=True)
def menu(request: HttpRequest, slug: str) -> JsonResponse:
    """
    Public menu with active categories and items.

    GET /api/orgs/{slug}/menu

    Cached for 5 minutes.
    """
    if request.method == "OPTIONS":
        return options_handler(request)

    organization = _get_organization(slug)
    if organization is None:
        return json_response({"error": "Restaurant not found"}, status=404)

    categories = MenuCategory.objects.filter(
        organization=organization, is_active=True
    ).order_by("sort_order", "name_fr")
    items = MenuItem.objects.filter(
        organization=organization, is_active=True, category__in=categories
    ).order_by("sort_order", "name_fr")

    items_by_category: dict[int, list[MenuItemSchema]] = {}
    for item in items:
        items_by_category.setdefault(item.category_id, []).append(
            _serialize_menu_item(item)
        )

    response = MenuResponse(
        organization=_serialize_organization(organization),
        categories=[
            MenuCategorySchema(
                id=category.pk,
                name_fr=category.name_fr,
                name_en=category.name_en,
                sort_order=category.sort_order,
                items=items_by_category.get(category.pk, []),
            )
            for category in categories
        ],
    )
    return json_response(response.model_dump(mode="json"))


@csrf_exempt
@require_http_methods(["POST", "OPTIONS"])
@idempotent_request
def checkout(request: HttpRequest, slug: str) -> JsonResponse:
    """
    Create an order and its PaymentIntent.

    POST /api/orgs/{slug}/checkout

    Request body:
        {
            "customer": {"name": "...", "email": "...", "phone": "..."},
            "fulfillment_type": "pickup" | "delivery",
            "items": [{"menu_item_id": 1, "quantity": 2}],
            "delivery_address": {...},
            "tip_cents": 0,
            "idempotency_key": "...",
            "expected_totals": {...}
        }

    Response (201):
        {"client_secret", "public_token", "order_id", "order_number", "totals"}
    """
    if request.method == "OPTIONS":
        return options_handler(request)

    organization = _get_organization(slug)
    if organization is None:
        return json_response({"error": "Restaurant not found"}, status=404)

    try:
        body = json.loads(request.body)
    except json.JSONDecodeError:
        return json_response({"error": "Invalid JSON"}, status=400)

    try:
        data = CheckoutRequest.model_validate(body)
    except PydanticValidationError as e:
        return validation_error_response(e)

    try:
        result = create_checkout(organization, data)
    except CheckoutError as e:
        payload: dict = {"error": e.message}
        if e.details:
            payload["details"] = e.details
        return json_response(payload, status=e.status)

    response = CheckoutResponse(
        client_secret=result.client_secret,
        public_token=result.order.public_token,
        order_id=result.order.pk,
        order_number=result.order.order_number,
        totals=TotalsSchema(**result.totals.as_dict()),
    )
    return json_response(response.model_dump(mode="json"), status=201)


@require_http_methods(["GET", "OPTIONS"])
def track_order(request: HttpRequest, public_token: str) -> JsonResponse:
    """
    Public order tracking.

    GET /api/track/{public_token}

    Returns no customer contact details or payment identifiers.
    """
    if request.method == "OPTIONS":
        return options_handler(request)

    order = (
        Order.objects.select_related("organization")
        .prefetch_related("items")
        .filter(public_token=public_token)
        .first()
    )
    if order is None:
        return json_response({"error": "Order not found"}, status=404)

    delivery = getattr(order, "delivery", None) if order.is_delivery else None

    response = TrackingResponse(
        order_number=order.order_number,
        organization_name=order.organization.name,
        status=order.status,
        fulfillment_type=order.fulfillment_type,
        subtotal_cents=order.subtotal_cents,
        tax_cents=order.tax_cents,
        tip_cents=order.tip_cents,
        delivery_fee_cents=order.delivery_fee_cents,
        service_fee_cents=order.service_fee_cents,
        total_cents=order.total_cents,
        created_at=order.created_at,
        paid_at=order.paid_at,
        accepted_at=order.accepted_at,
        ready_at=order.ready_at,
        completed_at=order.completed_at,
        canceled_at=order.canceled_at,
        items=[OrderItemSchema.model_validate(item) for item in order.items.all()],
        delivery=(
            TrackingDeliverySchema(
                status=delivery.status,
                pickup_eta=delivery.pickup_eta,
                dropoff_eta=delivery.dropoff_eta,
                eta_minutes=delivery.eta_minutes,
                tracking_url=delivery.tracking_url,
            )
            if delivery is not None
            else None
        ),
    )
    return json_response(response.model_dump(mode="json"))
