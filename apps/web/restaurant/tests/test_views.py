"""
Integration tests for storefront API views.
"""

import json
from unittest.mock import MagicMock, patch

from django.db import IntegrityError
from django.test import Client as DjangoClient

import pytest

from apps.web.delivery.tests.factories import DeliveryFactory
from apps.web.payments.services import PaymentError
from apps.web.restaurant.models import Customer, MenuItem, Order, OrderItem, OrderStatus
from apps.web.restaurant.serializers import CartItemSchema
from apps.web.restaurant.services import CheckoutError, _decrement_stock
from apps.web.restaurant.tests.factories import (
    MenuCategoryFactory,
    MenuItemFactory,
    OrderFactory,
    OrderItemFactory,
    OrganizationFactory,
)


@pytest.fixture
def menu_item(organization):
    return MenuItemFactory(organization=organization, name_en="Tourtière", price_cents=1900)


@pytest.fixture
def payment_intent():
    with patch(
        "apps.web.restaurant.services.create_payment_intent",
        return_value=MagicMock(id="pi_checkout123", client_secret="pi_checkout123_secret_abc"),
    ) as create:
        yield create


def _checkout_body(menu_item, **overrides) -> dict:
    body = {
        "customer": {
            "name": "Julie Tremblay",
            "email": "Julie@Example.com",
            "phone": "+15145550123",
        },
        "fulfillment_type": "pickup",
        "items": [{"menu_item_id": menu_item.pk, "quantity": 2}],
    }
    body.update(overrides)
    return body


def _post_checkout(client: DjangoClient, slug: str, body: dict, **extra):
    return client.post(
        f"/api/orgs/{slug}/checkout",
        data=json.dumps(body),
        content_type="application/json",
        **extra,
    )


@pytest.mark.django_db
class TestMenuView:
    """Tests for GET /api/orgs/{slug}/menu."""

    def test_menu_returns_active_categories_and_items(self, api_client, organization):
        mains = MenuCategoryFactory(organization=organization, name_en="Mains", sort_order=2)
        starters = MenuCategoryFactory(
            organization=organization, name_en="Starters", sort_order=1
        )
        MenuCategoryFactory(organization=organization, name_en="Hidden", is_active=False)
        MenuItemFactory(organization=organization, category=mains, name_en="Tourtière")
        MenuItemFactory(organization=organization, category=mains, is_active=False)
        MenuItemFactory(organization=organization, category=starters, name_en="Soupe")

        response = api_client.get("/api/orgs/chez-marie/menu")

        assert response.status_code == 200
        data = response.json()
        assert data["organization"]["slug"] == "chez-marie"
        assert [c["name_en"] for c in data["categories"]] == ["Starters", "Mains"]
        assert [i["name_en"] for i in data["categories"][1]["items"]] == ["Tourtière"]

    def test_out_of_stock_flag(self, api_client, organization):
        MenuItemFactory(organization=organization, track_inventory=True, stock_quantity=0)

        response = api_client.get("/api/orgs/chez-marie/menu")

        item = response.json()["categories"][0]["items"][0]
        assert item["in_stock"] is False
        assert "stock_quantity" not in item

    def test_cache_and_cors_headers(self, api_client, organization):
        response = api_client.get("/api/orgs/chez-marie/menu")

        assert "max-age=300" in response["Cache-Control"]
        assert response["Access-Control-Allow-Origin"] == "*"

    def test_unknown_organization(self, api_client):
        response = api_client.get("/api/orgs/nowhere/menu")
        assert response.status_code == 404

    def test_options_preflight(self, api_client, organization):
        response = api_client.options("/api/orgs/chez-marie/menu")
        assert response.status_code == 200
        assert "Idempotency-Key" in response["Access-Control-Allow-Headers"]

    def test_other_tenant_items_excluded(self, api_client, organization):
        MenuItemFactory(organization=OrganizationFactory(), name_en="Pizza")

        response = api_client.get("/api/orgs/chez-marie/menu")

        assert response.json()["categories"] == []


@pytest.mark.django_db
class TestCheckoutView:
    """Tests for POST /api/orgs/{slug}/checkout."""

    def test_pickup_checkout(self, api_client, organization, menu_item, payment_intent):
        response = _post_checkout(api_client, "chez-marie", _checkout_body(menu_item))

        assert response.status_code == 201
        data = response.json()
        assert data["client_secret"] == "pi_checkout123_secret_abc"
        assert data["totals"] == {
            "subtotal_cents": 3800,
            "tax_cents": 569,
            "tip_cents": 0,
            "delivery_fee_cents": 0,
            "service_fee_cents": 0,
            "total_cents": 4369,
        }

        order = Order.objects.get(pk=data["order_id"])
        assert order.public_token == data["public_token"]
        assert order.status == OrderStatus.AWAITING_PAYMENT
        assert order.stripe_payment_intent_id == "pi_checkout123"
        assert order.customer_email == "julie@example.com"
        assert order.items.get().line_total_cents == 3800

        customer = Customer.objects.get(organization=organization)
        assert customer.first_name == "Julie"
        assert customer.last_name == "Tremblay"
        payment_intent.assert_called_once_with(order)

    def test_delivery_checkout(self, api_client, organization, menu_item, payment_intent):
        body = _checkout_body(
            menu_item,
            fulfillment_type="delivery",
            delivery_address={
                "street": "500 Rue Sherbrooke O",
                "city": "Montréal",
                "region": "QC",
                "postal_code": "H3A 3C6",
            },
        )

        response = _post_checkout(api_client, "chez-marie", body)

        assert response.status_code == 201
        assert response.json()["totals"]["total_cents"] == 4968
        order = Order.objects.get()
        assert order.delivery_address["street"] == "500 Rue Sherbrooke O"

    def test_client_prices_ignored(self, api_client, menu_item, payment_intent):
        body = _checkout_body(menu_item)
        body["items"][0]["price_cents"] = 1

        response = _post_checkout(api_client, "chez-marie", body)

        assert response.json()["totals"]["subtotal_cents"] == 3800

    def test_expected_totals_mismatch(self, api_client, menu_item, payment_intent):
        body = _checkout_body(menu_item, expected_totals={"total_cents": 4000})

        response = _post_checkout(api_client, "chez-marie", body)

        assert response.status_code == 400
        assert response.json()["details"][0]["field"] == "expected_totals.total_cents"
        payment_intent.assert_not_called()

    def test_delivery_requires_street(self, api_client, menu_item, payment_intent):
        body = _checkout_body(menu_item, fulfillment_type="delivery", delivery_address={})

        response = _post_checkout(api_client, "chez-marie", body)

        assert response.status_code == 400
        assert not Order.objects.exists()

    def test_delivery_disabled(self, api_client, organization, menu_item, payment_intent):
        organization.delivery_enabled = False
        organization.save()
        body = _checkout_body(
            menu_item, fulfillment_type="delivery", delivery_address={"street": "1 Rue"}
        )

        response = _post_checkout(api_client, "chez-marie", body)

        assert response.status_code == 400

    def test_ordering_disabled(self, api_client, organization, menu_item, payment_intent):
        organization.ordering_enabled = False
        organization.save()

        response = _post_checkout(api_client, "chez-marie", _checkout_body(menu_item))

        assert response.status_code == 400

    def test_invalid_email(self, api_client, menu_item, payment_intent):
        body = _checkout_body(menu_item)
        body["customer"]["email"] = "not an email"

        response = _post_checkout(api_client, "chez-marie", body)

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"
        assert response.json()["details"][0]["field"] == "customer.email"

    def test_invalid_json(self, api_client, organization):
        response = api_client.post(
            "/api/orgs/chez-marie/checkout", data="{", content_type="application/json"
        )
        assert response.status_code == 400

    def test_inactive_item(self, api_client, menu_item, payment_intent):
        menu_item.is_active = False
        menu_item.save()

        response = _post_checkout(api_client, "chez-marie", _checkout_body(menu_item))

        assert response.status_code == 400
        assert "unavailable" in response.json()["details"][0]["message"]

    def test_other_tenant_item_rejected(self, api_client, organization, payment_intent):
        foreign_item = MenuItemFactory(organization=OrganizationFactory())

        response = _post_checkout(api_client, "chez-marie", _checkout_body(foreign_item))

        assert response.status_code == 400
        assert response.json()["details"][0]["message"] == "Item not found"

    def test_inventory_checked_and_decremented(self, api_client, menu_item, payment_intent):
        menu_item.track_inventory = True
        menu_item.stock_quantity = 3
        menu_item.save()

        response = _post_checkout(api_client, "chez-marie", _checkout_body(menu_item))
        assert response.status_code == 201
        menu_item.refresh_from_db()
        assert menu_item.stock_quantity == 1

        response = _post_checkout(api_client, "chez-marie", _checkout_body(menu_item))
        assert response.status_code == 400

    def test_inventory_summed_across_lines(self, api_client, menu_item, payment_intent):
        menu_item.track_inventory = True
        menu_item.stock_quantity = 5
        menu_item.save()
        body = _checkout_body(
            menu_item,
            items=[
                {"menu_item_id": menu_item.pk, "quantity": 3},
                {"menu_item_id": menu_item.pk, "quantity": 3, "notes": "no onions"},
            ],
        )

        response = _post_checkout(api_client, "chez-marie", body)

        assert response.status_code == 400
        detail = response.json()["details"][0]
        assert detail["field"] == "items[0].quantity"
        assert detail["message"] == "Only 5 'Tourtière' left"
        assert not Order.objects.exists()
        assert MenuItem.objects.get(pk=menu_item.pk).stock_quantity == 5

    def test_stock_taken_between_validation_and_insert(self, menu_item):
        menu_item.track_inventory = True
        menu_item.stock_quantity = 2
        menu_item.save()
        validated = [(menu_item, CartItemSchema(menu_item_id=menu_item.pk, quantity=2))]
        # Another checkout takes one after this cart was validated
        MenuItem.objects.filter(pk=menu_item.pk).update(stock_quantity=1)

        with pytest.raises(CheckoutError) as exc_info:
            _decrement_stock(validated)

        assert exc_info.value.status == 400
        assert exc_info.value.details[0]["message"] == "'Tourtière' just sold out"
        assert MenuItem.objects.get(pk=menu_item.pk).stock_quantity == 1

    def test_unrelated_integrity_error_is_not_duplicate(
        self, api_client, menu_item, payment_intent
    ):
        body = _checkout_body(menu_item, idempotency_key="cart-xyz")

        with patch.object(
            OrderItem.objects, "bulk_create", side_effect=IntegrityError("NOT NULL failed")
        ):
            response = _post_checkout(api_client, "chez-marie", body)

        assert response.status_code == 500
        assert response.json()["error"] == "Order could not be created, please try again"
        assert not Order.objects.exists()

    def test_duplicate_idempotency_key(self, api_client, menu_item, payment_intent):
        body = _checkout_body(menu_item, idempotency_key="cart-abc")

        first = _post_checkout(api_client, "chez-marie", body)
        second = _post_checkout(api_client, "chez-marie", body)

        assert first.status_code == 201
        assert second.status_code == 409
        assert second.json()["error"] == "Duplicate order submission detected"
        assert Order.objects.count() == 1

    def test_idempotency_header_replays_response(self, api_client, menu_item, payment_intent):
        body = _checkout_body(menu_item)

        first = _post_checkout(
            api_client, "chez-marie", body, HTTP_IDEMPOTENCY_KEY="replay-1"
        )
        second = _post_checkout(
            api_client, "chez-marie", body, HTTP_IDEMPOTENCY_KEY="replay-1"
        )

        assert second.status_code == 201
        assert second.json() == first.json()
        assert Order.objects.count() == 1

    def test_payment_failure_rolls_back(self, api_client, menu_item):
        menu_item.track_inventory = True
        menu_item.stock_quantity = 5
        menu_item.save()

        with patch(
            "apps.web.restaurant.services.create_payment_intent",
            side_effect=PaymentError("Card processing unavailable"),
        ):
            response = _post_checkout(api_client, "chez-marie", _checkout_body(menu_item))

        assert response.status_code == 500
        assert not Order.objects.exists()
        assert not OrderItem.objects.exists()
        assert not Customer.objects.exists()
        assert MenuItem.objects.get(pk=menu_item.pk).stock_quantity == 5


@pytest.mark.django_db
class TestTrackOrderView:
    """Tests for GET /api/track/{public_token}."""

    def test_track_pickup_order(self, api_client, organization):
        order = OrderFactory(organization=organization, status=OrderStatus.PREPARING)
        OrderItemFactory(organization=organization, order=order, quantity=2)

        response = api_client.get(f"/api/track/{order.public_token}")

        assert response.status_code == 200
        data = response.json()
        assert data["order_number"] == order.order_number
        assert data["status"] == "preparing"
        assert data["organization_name"] == "Chez Marie"
        assert data["items"][0]["quantity"] == 2
        assert data["delivery"] is None

    def test_no_private_fields(self, api_client, organization):
        order = OrderFactory(organization=organization)

        body = api_client.get(f"/api/track/{order.public_token}").content.decode()

        assert order.customer_email not in body
        assert order.customer_phone not in body
        assert order.stripe_payment_intent_id not in body

    def test_track_delivery_order(self, api_client, organization):
        delivery = DeliveryFactory(
            organization=organization,
            eta_minutes=25,
            tracking_url="https://delivery.uber.com/orders/abc",
        )

        response = api_client.get(f"/api/track/{delivery.order.public_token}")

        data = response.json()["delivery"]
        assert data["status"] == "created"
        assert data["eta_minutes"] == 25
        assert data["tracking_url"] == "https://delivery.uber.com/orders/abc"

    def test_unknown_token(self, api_client):
        response = api_client.get("/api/track/not-a-token")
        assert response.status_code == 404
