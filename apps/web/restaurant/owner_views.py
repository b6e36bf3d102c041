"""
Owner portal API views - order board, menu, customers, promos, reviews
and organization settings.

Every view requires an authenticated user attached to an organization
and only ever touches that organization's rows.
"""

import json
import logging
from decimal import Decimal
from typing import Any

from django.core.exceptions import PermissionDenied
from django.db import IntegrityError, transaction
from django.db.models import Count, Q, Sum
from django.http import HttpRequest, JsonResponse
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from apps.web.core.decorators import owner_required
from apps.web.core.http import json_response, validation_error_response
from apps.web.payments.services import PaymentError
from apps.web.restaurant.models import (
    Customer,
    DiscountType,
    MenuCategory,
    MenuItem,
    Order,
    OrderStatus,
    PaymentStatus,
    PromoCode,
    Review,
)
from apps.web.restaurant.serializers import (
    BulkDeleteOrdersRequest,
    CustomerDetailSchema,
    CustomerSummarySchema,
    MenuCategoryCreateRequest,
    MenuCategoryUpdateRequest,
    MenuItemCreateRequest,
    MenuItemUpdateRequest,
    OrderDetailSchema,
    OrderEventSchema,
    OrderItemSchema,
    OrderSummarySchema,
    OrganizationSchema,
    OrganizationUpdateRequest,
    OwnerMenuCategorySchema,
    OwnerMenuItemSchema,
    PromoCodeSchema,
    PromoCreateRequest,
    PromoUpdateRequest,
    ReviewSchema,
    ReviewStatusRequest,
    StatusUpdateRequest,
)
from apps.web.restaurant.services import update_order_status
from apps.web.restaurant.transitions import InvalidTransition, valid_transitions

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200

# Promo fields an update may clear by sending null
NULLABLE_PROMO_FIELDS = frozenset({"max_discount_cents", "max_uses", "starts_at", "expires_at"})
NULLABLE_MENU_ITEM_FIELDS = frozenset({"category_id", "stock_quantity"})


def _parse_body(request: HttpRequest, schema: type[BaseModel]) -> tuple[Any, JsonResponse | None]:
    """Decode and validate a JSON body; returns (data, error_response)."""
    try:
        body = json.loads(request.body or b"{}")
    except json.JSONDecodeError:
        return None, json_response({"error": "Invalid JSON"}, status=400)
    try:
        return schema.model_validate(body), None
    except PydanticValidationError as e:
        return None, validation_error_response(e)


def _limit(request: HttpRequest) -> int:
    raw = request.GET.get("limit", "")
    if not raw.isdigit():
        return DEFAULT_PAGE_SIZE
    return max(1, min(int(raw), MAX_PAGE_SIZE))


def _owned(request: HttpRequest, queryset: Any, pk: int, label: str) -> tuple[Any, JsonResponse | None]:
    """Fetch a row by pk: 404 if unknown, 403 if it belongs to another organization."""
    obj = queryset.filter(pk=pk).first()
    if obj is None:
        return None, json_response({"error": f"{label} not found"}, status=404)
    if obj.organization_id != request.user.organization_id:
        return None, json_response({"error": "Forbidden"}, status=403)
    return obj, None


# =============================================================================
# Orders
# =============================================================================


def _order_detail(order: Order) -> OrderDetailSchema:
    delivery = getattr(order, "delivery", None)
    return OrderDetailSchema(
        id=order.pk,
        order_number=order.order_number,
        status=order.status,
        fulfillment_type=order.fulfillment_type,
        customer_name=order.customer_name,
        total_cents=order.total_cents,
        payment_status=order.payment_status,
        dispatch_error=order.dispatch_error,
        created_at=order.created_at,
        public_token=order.public_token,
        customer_email=order.customer_email,
        customer_phone=order.customer_phone,
        delivery_address=order.delivery_address,
        notes=order.notes,
        subtotal_cents=order.subtotal_cents,
        tax_cents=order.tax_cents,
        tip_cents=order.tip_cents,
        delivery_fee_cents=order.delivery_fee_cents,
        service_fee_cents=order.service_fee_cents,
        application_fee_cents=order.application_fee_cents,
        stripe_fee_cents=order.stripe_fee_cents,
        stripe_net_cents=order.stripe_net_cents,
        paid_at=order.paid_at,
        accepted_at=order.accepted_at,
        ready_at=order.ready_at,
        completed_at=order.completed_at,
        canceled_at=order.canceled_at,
        refunded_at=order.refunded_at,
        items=[OrderItemSchema.model_validate(item) for item in order.items.all()],
        events=[OrderEventSchema.model_validate(event) for event in order.events.all()],
        delivery=delivery.as_dict() if delivery is not None else None,
        valid_transitions=valid_transitions(order.status),
    )


@require_GET
@owner_required
def order_list(request: HttpRequest) -> JsonResponse:
    """
    Orders for the owner board, newest first.

    GET /api/owner/orders?status=paid&limit=50
    """
    orders = Order.objects.for_organization(request)

    status = request.GET.get("status")
    if status:
        if status not in OrderStatus.values:
            return json_response({"error": f"Unknown status: {status}"}, status=400)
        orders = orders.filter(status=status)

    orders = orders.order_by("-created_at")[: _limit(request)]
    return json_response(
        {
            "orders": [
                OrderSummarySchema.model_validate(order).model_dump(mode="json")
                for order in orders
            ]
        }
    )


@require_GET
@owner_required
def order_detail(request: HttpRequest, order_id: int) -> JsonResponse:
    """
    GET /api/owner/orders/{id}
    """
    queryset = Order.objects.prefetch_related("items", "events").select_related("delivery")
    order, error = _owned(request, queryset, order_id, "Order")
    if error is not None:
        return error
    return json_response({"order": _order_detail(order).model_dump(mode="json")})


@csrf_exempt
@require_POST
@owner_required
def order_status(request: HttpRequest, order_id: int) -> JsonResponse:
    """
    Change an order's status.

    POST /api/owner/orders/{id}/status

    Request body:
        {"new_status": "preparing"}

    Response:
        {"success": true, "order": {...}} plus "warning" and
        "delivery_dispatch_failed" when a ready delivery order could not be
        dispatched, or "delivery" when it was.
    """
    order, error = _owned(
        request, Order.objects.select_related("organization"), order_id, "Order"
    )
    if error is not None:
        return error

    data, error = _parse_body(request, StatusUpdateRequest)
    if error is not None:
        return error

    try:
        result = update_order_status(order, data.new_status, request.user)
    except PermissionDenied as e:
        return json_response({"error": str(e)}, status=403)
    except InvalidTransition as e:
        return json_response(
            {
                "error": str(e),
                "current_status": e.current,
                "valid_transitions": e.valid,
            },
            status=400,
        )
    except PaymentError as e:
        logger.error("Refund failed for order %s: %s", order.pk, e.message)
        return json_response({"error": f"Refund failed: {e.message}"}, status=500)

    payload: dict[str, Any] = {
        "success": True,
        "order": OrderSummarySchema.model_validate(result.order).model_dump(mode="json"),
    }
    if result.warning:
        payload["warning"] = result.warning
    if result.delivery_dispatch_failed:
        payload["delivery_dispatch_failed"] = True
    if result.delivery is not None:
        payload["delivery"] = result.delivery
    return json_response(payload)


@csrf_exempt
@require_POST
@owner_required
def order_bulk_delete(request: HttpRequest) -> JsonResponse:
    """
    Delete abandoned or canceled orders.

    POST /api/owner/orders/bulk-delete

    Request body:
        {"order_ids": [12, 13]}

    At most 50 ids per call. Ids from other organizations are ignored, and
    orders that were paid are skipped so their payments and ledger entries
    survive. Returns 404 when nothing could be deleted.
    """
    data, error = _parse_body(request, BulkDeleteOrdersRequest)
    if error is not None:
        return error

    owned = Order.objects.for_organization(request).filter(pk__in=data.order_ids)
    deletable = owned.filter(
        status__in=[OrderStatus.AWAITING_PAYMENT, OrderStatus.CANCELED]
    ).exclude(payment_status=PaymentStatus.SUCCEEDED)
    ids = list(deletable.values_list("pk", flat=True))
    skipped = sorted(set(owned.values_list("pk", flat=True)) - set(ids))

    if not ids:
        return json_response(
            {"error": "No deletable orders found", "deleted": 0, "skipped": skipped},
            status=404,
        )

    with transaction.atomic():
        Order.objects.filter(pk__in=ids).delete()

    logger.info(
        "Deleted %d orders for %s (skipped %d)",
        len(ids),
        request.user.organization.slug,
        len(skipped),
    )
    return json_response({"success": True, "deleted": len(ids), "skipped": skipped})


# =============================================================================
# Menu
# =============================================================================


def _menu_item_json(item: MenuItem) -> dict[str, Any]:
    return OwnerMenuItemSchema.model_validate(item).model_dump(mode="json")


def _category_json(category: MenuCategory) -> dict[str, Any]:
    return OwnerMenuCategorySchema.model_validate(category).model_dump(mode="json")


def _check_category(request: HttpRequest, category_id: int | None) -> JsonResponse | None:
    if category_id is None:
        return None
    if not MenuCategory.objects.for_organization(request).filter(pk=category_id).exists():
        return json_response(
            {
                "error": "validation_error",
                "details": [{"field": "category_id", "message": "Category not found"}],
            },
            status=400,
        )
    return None


@csrf_exempt
@require_http_methods(["GET", "POST"])
@owner_required
def menu_categories(request: HttpRequest) -> JsonResponse:
    """
    GET /api/owner/menu/categories
    POST /api/owner/menu/categories
    """
    if request.method == "GET":
        categories = MenuCategory.objects.for_organization(request).order_by(
            "sort_order", "name_fr"
        )
        return json_response({"categories": [_category_json(c) for c in categories]})

    data, error = _parse_body(request, MenuCategoryCreateRequest)
    if error is not None:
        return error

    category = MenuCategory.objects.create(
        organization=request.user.organization, **data.model_dump()
    )
    return json_response({"category": _category_json(category)}, status=201)


@csrf_exempt
@require_http_methods(["POST", "DELETE"])
@owner_required
def menu_category_detail(request: HttpRequest, category_id: int) -> JsonResponse:
    """
    Update or delete a category.

    POST /api/owner/menu/categories/{id}
    DELETE /api/owner/menu/categories/{id}

    Deleting a category keeps its items; they become uncategorized and
    drop off the public menu until they are filed again.
    """
    category, error = _owned(request, MenuCategory.objects.all(), category_id, "Category")
    if error is not None:
        return error

    if request.method == "DELETE":
        detached = category.items.count()
        category.delete()
        logger.info(
            "Category %s deleted for %s (%d items uncategorized)",
            category_id,
            request.user.organization.slug,
            detached,
        )
        return json_response({"success": True, "uncategorized_items": detached})

    data, error = _parse_body(request, MenuCategoryUpdateRequest)
    if error is not None:
        return error

    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in changes.items():
        setattr(category, field, value)
    if changes:
        category.save(update_fields=[*changes, "updated_at"])

    return json_response({"category": _category_json(category)})


@csrf_exempt
@require_http_methods(["GET", "POST"])
@owner_required
def menu_items(request: HttpRequest) -> JsonResponse:
    """
    List or create menu items.

    GET /api/owner/menu/items?category=3
    POST /api/owner/menu/items

    The list includes inactive items and stock levels. Turning on
    track_inventory without a stock_quantity starts the item at 0.
    """
    if request.method == "GET":
        items = MenuItem.objects.for_organization(request)
        category = request.GET.get("category", "")
        if category:
            if not category.isdigit():
                return json_response({"error": f"Invalid category: {category}"}, status=400)
            items = items.filter(category_id=int(category))
        items = items.order_by("sort_order", "name_fr")
        return json_response({"items": [_menu_item_json(i) for i in items]})

    data, error = _parse_body(request, MenuItemCreateRequest)
    if error is not None:
        return error

    error = _check_category(request, data.category_id)
    if error is not None:
        return error

    fields = data.model_dump()
    if fields["track_inventory"] and fields["stock_quantity"] is None:
        fields["stock_quantity"] = 0

    item = MenuItem.objects.create(organization=request.user.organization, **fields)
    logger.info("Menu item %s created for %s", item.pk, request.user.organization.slug)
    return json_response({"item": _menu_item_json(item)}, status=201)


@csrf_exempt
@require_http_methods(["POST", "DELETE"])
@owner_required
def menu_item_detail(request: HttpRequest, item_id: int) -> JsonResponse:
    """
    Update or delete a menu item.

    POST /api/owner/menu/items/{id}
    DELETE /api/owner/menu/items/{id}

    Past order lines keep their name and price snapshots when an item is
    deleted.
    """
    item, error = _owned(request, MenuItem.objects.all(), item_id, "Menu item")
    if error is not None:
        return error

    if request.method == "DELETE":
        item.delete()
        logger.info("Menu item %s deleted for %s", item_id, request.user.organization.slug)
        return json_response({"success": True})

    data, error = _parse_body(request, MenuItemUpdateRequest)
    if error is not None:
        return error

    changes = {
        field: value
        for field, value in data.model_dump(exclude_unset=True).items()
        if value is not None or field in NULLABLE_MENU_ITEM_FIELDS
    }

    error = _check_category(request, changes.get("category_id"))
    if error is not None:
        return error

    for field, value in changes.items():
        setattr(item, field, value)
    if item.track_inventory and item.stock_quantity is None:
        item.stock_quantity = 0
        changes["stock_quantity"] = 0

    if changes:
        item.save(update_fields=[*changes, "updated_at"])

    return json_response({"item": _menu_item_json(item)})


# =============================================================================
# Customers
# =============================================================================


@require_GET
@owner_required
def customer_list(request: HttpRequest) -> JsonResponse:
    """
    GET /api/owner/customers?q=marie
    """
    customers = Customer.objects.for_organization(request)

    q = request.GET.get("q", "").strip()
    if q:
        customers = customers.filter(
            Q(email__icontains=q)
            | Q(first_name__icontains=q)
            | Q(last_name__icontains=q)
            | Q(phone__icontains=q)
        )

    customers = customers.order_by("-created_at")[: _limit(request)]
    return json_response(
        {
            "customers": [
                CustomerSummarySchema.model_validate(c).model_dump(mode="json")
                for c in customers
            ]
        }
    )


@require_GET
@owner_required
def customer_detail(request: HttpRequest, customer_id: int) -> JsonResponse:
    """
    Customer with order history and lifetime spend.

    GET /api/owner/customers/{id}

    Lifetime spend only counts orders that were actually paid.
    """
    customer, error = _owned(request, Customer.objects.all(), customer_id, "Customer")
    if error is not None:
        return error

    orders = customer.orders.order_by("-created_at")
    stats = orders.aggregate(
        order_count=Count("pk"),
        lifetime_spend=Sum(
            "total_cents", filter=Q(payment_status=PaymentStatus.SUCCEEDED)
        ),
    )

    detail = CustomerDetailSchema(
        **CustomerSummarySchema.model_validate(customer).model_dump(),
        default_address=customer.default_address,
        order_count=stats["order_count"],
        lifetime_spend_cents=stats["lifetime_spend"] or 0,
        orders=[OrderSummarySchema.model_validate(o) for o in orders[:DEFAULT_PAGE_SIZE]],
    )
    return json_response({"customer": detail.model_dump(mode="json")})


# =============================================================================
# Promos
# =============================================================================


def _check_percentage(discount_type: str, discount_value: int) -> JsonResponse | None:
    if discount_type == DiscountType.PERCENTAGE and not 1 <= discount_value <= 100:
        return json_response(
            {"error": "Percentage discount must be between 1 and 100"}, status=400
        )
    return None


def _promo_json(promo: PromoCode) -> dict[str, Any]:
    return PromoCodeSchema.model_validate(promo).model_dump(mode="json")


@csrf_exempt
@require_http_methods(["GET", "POST"])
@owner_required
def promos(request: HttpRequest) -> JsonResponse:
    """
    List or create promo codes.

    GET /api/owner/promos
    POST /api/owner/promos

    Codes are stored upper-case; a duplicate code returns 409.
    """
    organization = request.user.organization

    if request.method == "GET":
        return json_response(
            {
                "promos": [
                    _promo_json(p)
                    for p in PromoCode.objects.filter(organization=organization)
                ]
            }
        )

    data, error = _parse_body(request, PromoCreateRequest)
    if error is not None:
        return error

    error = _check_percentage(data.discount_type, data.discount_value)
    if error is not None:
        return error

    code = data.code.strip().upper()
    try:
        with transaction.atomic():
            promo = PromoCode.objects.create(
                organization=organization,
                created_by=request.user,
                **{**data.model_dump(), "code": code},
            )
    except IntegrityError:
        return json_response({"error": f"Promo code {code} already exists"}, status=409)

    logger.info("Promo %s created for %s", promo.code, organization.slug)
    return json_response({"promo": _promo_json(promo)}, status=201)


@csrf_exempt
@require_POST
@owner_required
def promo_update(request: HttpRequest, promo_id: int) -> JsonResponse:
    """
    Update a promo code.

    POST /api/owner/promos/{id}

    Only the fields sent are changed. Counters, created_by and the
    organization cannot be set from here.
    """
    promo, error = _owned(request, PromoCode.objects.all(), promo_id, "Promo")
    if error is not None:
        return error

    data, error = _parse_body(request, PromoUpdateRequest)
    if error is not None:
        return error

    changes = {
        field: value
        for field, value in data.model_dump(exclude_unset=True).items()
        if value is not None or field in NULLABLE_PROMO_FIELDS
    }
    if "code" in changes:
        changes["code"] = changes["code"].strip().upper()

    error = _check_percentage(
        changes.get("discount_type") or promo.discount_type,
        changes.get("discount_value") or promo.discount_value,
    )
    if error is not None:
        return error

    for field, value in changes.items():
        setattr(promo, field, value)

    try:
        with transaction.atomic():
            promo.save()
    except IntegrityError:
        return json_response(
            {"error": f"Promo code {promo.code} already exists"}, status=409
        )

    return json_response({"promo": _promo_json(promo)})


# =============================================================================
# Reviews
# =============================================================================


@require_GET
@owner_required
def review_list(request: HttpRequest) -> JsonResponse:
    """
    GET /api/owner/reviews?status=pending
    """
    reviews = Review.objects.for_organization(request)
    status = request.GET.get("status")
    if status:
        reviews = reviews.filter(status=status)

    reviews = reviews.order_by("-created_at")[: _limit(request)]
    return json_response(
        {"reviews": [ReviewSchema.model_validate(r).model_dump(mode="json") for r in reviews]}
    )


@csrf_exempt
@require_POST
@owner_required
def review_status(request: HttpRequest, review_id: int) -> JsonResponse:
    """
    Moderate a review.

    POST /api/owner/reviews/{id}/status

    Request body:
        {"status": "approved" | "rejected" | "pending", "admin_notes": "..."}
    """
    review, error = _owned(request, Review.objects.all(), review_id, "Review")
    if error is not None:
        return error

    data, error = _parse_body(request, ReviewStatusRequest)
    if error is not None:
        return error

    review.status = data.status
    review.admin_notes = data.admin_notes
    review.moderated_at = timezone.now()
    review.moderated_by = request.user
    review.save()

    return json_response({"review": ReviewSchema.model_validate(review).model_dump(mode="json")})


# =============================================================================
# Organization settings
# =============================================================================


def _organization_json(organization: Any) -> dict[str, Any]:
    data = OrganizationSchema.model_validate(organization).model_dump(mode="json")
    data["missing_pickup_fields"] = organization.missing_pickup_fields()
    return data


@csrf_exempt
@require_http_methods(["GET", "POST"])
@owner_required
def organization_settings(request: HttpRequest) -> JsonResponse:
    """
    Read or update the organization's settings.

    GET /api/owner/organization
    POST /api/owner/organization

    Only contact details, address, fees, tax and the enable flags can be
    changed; slug, Stripe fields and is_active cannot.
    """
    organization = request.user.organization

    if request.method == "POST":
        data, error = _parse_body(request, OrganizationUpdateRequest)
        if error is not None:
            return error

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "tax_rate" in changes:
            changes["tax_rate"] = Decimal(str(changes["tax_rate"]))
        for field, value in changes.items():
            setattr(organization, field, value)
        if changes:
            organization.save(update_fields=[*changes, "updated_at"])
            logger.info(
                "Organization %s updated: %s", organization.slug, ", ".join(sorted(changes))
            )

    return json_response({"organization": _organization_json(organization)})
