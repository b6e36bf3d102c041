"""
Integration tests for owner menu management.
"""

import json

import pytest

from apps.web.restaurant.models import MenuCategory, MenuItem, OrderItem
from apps.web.restaurant.tests.factories import (
    MenuCategoryFactory,
    MenuItemFactory,
    OrderFactory,
    OrderItemFactory,
    OrganizationFactory,
)


def _post_json(client, url: str, body: dict):
    return client.post(url, data=json.dumps(body), content_type="application/json")


@pytest.fixture
def category(organization):
    return MenuCategoryFactory(organization=organization, name_fr="Plats", name_en="Mains")


@pytest.mark.django_db
class TestMenuCategories:
    def test_requires_owner(self, api_client):
        response = api_client.get("/api/owner/menu/categories")
        assert response.status_code == 401

    def test_list_includes_inactive_and_excludes_other_tenants(
        self, owner_client, organization, category
    ):
        hidden = MenuCategoryFactory(organization=organization, is_active=False)
        MenuCategoryFactory(organization=OrganizationFactory())

        response = owner_client.get("/api/owner/menu/categories")

        assert response.status_code == 200
        ids = {c["id"] for c in response.json()["categories"]}
        assert ids == {category.pk, hidden.pk}

    def test_create(self, owner_client, organization):
        response = _post_json(
            owner_client,
            "/api/owner/menu/categories",
            {"name_fr": "Desserts", "name_en": "Desserts", "sort_order": 3},
        )

        assert response.status_code == 201
        data = response.json()["category"]
        assert data["sort_order"] == 3
        assert data["is_active"] is True
        assert MenuCategory.objects.get(pk=data["id"]).organization == organization

    def test_create_requires_french_name(self, owner_client):
        response = _post_json(owner_client, "/api/owner/menu/categories", {"name_en": "Sides"})

        assert response.status_code == 400
        assert response.json()["details"][0]["field"] == "name_fr"

    def test_update_ignores_organization(self, owner_client, organization, category):
        other = OrganizationFactory()

        response = _post_json(
            owner_client,
            f"/api/owner/menu/categories/{category.pk}",
            {"is_active": False, "organization_id": other.pk},
        )

        assert response.status_code == 200
        assert response.json()["category"]["is_active"] is False
        category.refresh_from_db()
        assert category.organization == organization

    def test_update_other_organization(self, owner_client):
        foreign = MenuCategoryFactory(organization=OrganizationFactory())

        response = _post_json(
            owner_client, f"/api/owner/menu/categories/{foreign.pk}", {"name_en": "Mine"}
        )

        assert response.status_code == 403

    def test_delete_keeps_items_uncategorized(self, owner_client, organization, category):
        item = MenuItemFactory(organization=organization, category=category)

        response = owner_client.delete(f"/api/owner/menu/categories/{category.pk}")

        assert response.status_code == 200
        assert response.json() == {"success": True, "uncategorized_items": 1}
        assert not MenuCategory.objects.filter(pk=category.pk).exists()
        item.refresh_from_db()
        assert item.category is None

    def test_delete_unknown(self, owner_client):
        response = owner_client.delete("/api/owner/menu/categories/999999")
        assert response.status_code == 404


@pytest.mark.django_db
class TestMenuItems:
    def test_list_with_stock_and_inactive(self, owner_client, organization, category):
        tracked = MenuItemFactory(
            organization=organization,
            category=category,
            track_inventory=True,
            stock_quantity=4,
        )
        inactive = MenuItemFactory(organization=organization, category=category, is_active=False)
        MenuItemFactory(organization=OrganizationFactory())

        response = owner_client.get("/api/owner/menu/items")

        assert response.status_code == 200
        items = {i["id"]: i for i in response.json()["items"]}
        assert set(items) == {tracked.pk, inactive.pk}
        assert items[tracked.pk]["stock_quantity"] == 4
        assert items[inactive.pk]["is_active"] is False

    def test_filter_by_category(self, owner_client, organization, category):
        wanted = MenuItemFactory(organization=organization, category=category)
        MenuItemFactory(organization=organization)

        response = owner_client.get(f"/api/owner/menu/items?category={category.pk}")

        assert [i["id"] for i in response.json()["items"]] == [wanted.pk]

    def test_invalid_category_filter(self, owner_client):
        response = owner_client.get("/api/owner/menu/items?category=mains")
        assert response.status_code == 400

    def test_create(self, owner_client, organization, category):
        response = _post_json(
            owner_client,
            "/api/owner/menu/items",
            {
                "category_id": category.pk,
                "name_fr": "Pouding chômeur",
                "name_en": "Poor man's pudding",
                "price_cents": 900,
                "allergens": ["dairy"],
                "track_inventory": True,
            },
        )

        assert response.status_code == 201
        data = response.json()["item"]
        assert data["category_id"] == category.pk
        assert data["stock_quantity"] == 0
        item = MenuItem.objects.get(pk=data["id"])
        assert item.organization == organization
        assert item.allergens == ["dairy"]

    def test_create_in_foreign_category(self, owner_client):
        foreign = MenuCategoryFactory(organization=OrganizationFactory())

        response = _post_json(
            owner_client,
            "/api/owner/menu/items",
            {"category_id": foreign.pk, "name_fr": "Soupe", "price_cents": 700},
        )

        assert response.status_code == 400
        assert response.json()["details"][0]["field"] == "category_id"
        assert not MenuItem.objects.exists()

    def test_create_rejects_negative_price(self, owner_client):
        response = _post_json(
            owner_client, "/api/owner/menu/items", {"name_fr": "Soupe", "price_cents": -1}
        )

        assert response.status_code == 400

    def test_toggle_availability(self, owner_client, organization, category):
        item = MenuItemFactory(organization=organization, category=category)

        response = _post_json(
            owner_client, f"/api/owner/menu/items/{item.pk}", {"is_active": False}
        )

        assert response.status_code == 200
        item.refresh_from_db()
        assert item.is_active is False
        assert item.price_cents == 1900

    def test_restock(self, owner_client, organization, category):
        item = MenuItemFactory(
            organization=organization,
            category=category,
            track_inventory=True,
            stock_quantity=0,
        )

        response = _post_json(
            owner_client, f"/api/owner/menu/items/{item.pk}", {"stock_quantity": 12}
        )

        assert response.json()["item"]["stock_quantity"] == 12
        item.refresh_from_db()
        assert item.stock_quantity == 12

        # A restocked item shows as in stock on the storefront again
        menu = owner_client.get("/api/orgs/chez-marie/menu").json()
        assert menu["categories"][0]["items"][0]["in_stock"] is True

    def test_enable_tracking_without_quantity_starts_at_zero(
        self, owner_client, organization, category
    ):
        item = MenuItemFactory(organization=organization, category=category)

        _post_json(owner_client, f"/api/owner/menu/items/{item.pk}", {"track_inventory": True})

        item.refresh_from_db()
        assert item.track_inventory is True
        assert item.stock_quantity == 0

    def test_clear_category_with_null(self, owner_client, organization, category):
        item = MenuItemFactory(organization=organization, category=category)

        _post_json(owner_client, f"/api/owner/menu/items/{item.pk}", {"category_id": None})

        item.refresh_from_db()
        assert item.category is None

    def test_move_to_foreign_category(self, owner_client, organization, category):
        item = MenuItemFactory(organization=organization, category=category)
        foreign = MenuCategoryFactory(organization=OrganizationFactory())

        response = _post_json(
            owner_client, f"/api/owner/menu/items/{item.pk}", {"category_id": foreign.pk}
        )

        assert response.status_code == 400
        item.refresh_from_db()
        assert item.category == category

    def test_update_other_organization(self, owner_client):
        foreign = MenuItemFactory(organization=OrganizationFactory())

        response = _post_json(
            owner_client, f"/api/owner/menu/items/{foreign.pk}", {"is_active": False}
        )

        assert response.status_code == 403
        foreign.refresh_from_db()
        assert foreign.is_active is True

    def test_delete_keeps_order_history(self, owner_client, organization, category):
        item = MenuItemFactory(organization=organization, category=category, name_en="Poutine")
        order = OrderFactory(organization=organization)
        line = OrderItemFactory(
            organization=organization, order=order, menu_item=item, name_snapshot="Poutine"
        )

        response = owner_client.delete(f"/api/owner/menu/items/{item.pk}")

        assert response.status_code == 200
        assert not MenuItem.objects.filter(pk=item.pk).exists()
        line = OrderItem.objects.get(pk=line.pk)
        assert line.menu_item is None
        assert line.name_snapshot == "Poutine"

    def test_delete_other_organization(self, owner_client):
        foreign = MenuItemFactory(organization=OrganizationFactory())

        response = owner_client.delete(f"/api/owner/menu/items/{foreign.pk}")

        assert response.status_code == 403
        assert MenuItem.objects.filter(pk=foreign.pk).exists()

    def test_get_not_allowed_on_detail(self, owner_client, organization, category):
        item = MenuItemFactory(organization=organization, category=category)

        response = owner_client.get(f"/api/owner/menu/items/{item.pk}")

        assert response.status_code == 405
