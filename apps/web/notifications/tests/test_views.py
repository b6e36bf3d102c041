"""
Tests for the owner notification feed.
"""

from datetime import timedelta

from django.utils import timezone

import pytest

from apps.web.notifications.models import Notification, NotificationType
from apps.web.notifications.services import notify
from apps.web.restaurant.tests.factories import OrderFactory, OrganizationFactory


@pytest.mark.django_db
class TestNotificationList:
    def test_requires_owner(self, api_client):
        response = api_client.get("/api/owner/notifications")
        assert response.status_code == 401

    def test_lists_own_organization_newest_first(self, owner_client, organization):
        order = OrderFactory(organization=organization)
        first = notify(organization, NotificationType.ORDER_PAID, order=order)
        second = notify(
            organization, NotificationType.ORDER_STATUS, order=order, payload={"new_status": "ready"}
        )
        notify(OrganizationFactory(), NotificationType.ORDER_PAID)

        response = owner_client.get("/api/owner/notifications")

        assert response.status_code == 200
        data = response.json()
        assert [n["id"] for n in data["notifications"]] == [second.pk, first.pk]
        assert data["notifications"][0]["payload"] == {"new_status": "ready"}
        assert data["notifications"][0]["order_id"] == order.pk
        assert data["unread_count"] == 2

    def test_unread_filter(self, owner_client, organization):
        notify(organization, NotificationType.ORDER_PAID)
        Notification.objects.update(read_at=timezone.now())
        unread = notify(organization, NotificationType.DELIVERY_UPDATE)

        response = owner_client.get("/api/owner/notifications?unread=1")

        data = response.json()
        assert [n["id"] for n in data["notifications"]] == [unread.pk]
        assert data["unread_count"] == 1


@pytest.mark.django_db
class TestMarkRead:
    def test_mark_read(self, owner_client, organization):
        notification = notify(organization, NotificationType.ORDER_PAID)

        response = owner_client.post(f"/api/owner/notifications/{notification.pk}/read")

        assert response.status_code == 200
        notification.refresh_from_db()
        assert notification.read_at is not None
        assert response.json()["notification"]["read_at"] is not None

    def test_already_read_keeps_timestamp(self, owner_client, organization):
        read_at = timezone.now() - timedelta(hours=1)
        notification = notify(organization, NotificationType.ORDER_PAID)
        Notification.objects.filter(pk=notification.pk).update(read_at=read_at)

        owner_client.post(f"/api/owner/notifications/{notification.pk}/read")

        notification.refresh_from_db()
        assert notification.read_at == read_at

    def test_other_organization_not_found(self, owner_client):
        notification = notify(OrganizationFactory(), NotificationType.ORDER_PAID)

        response = owner_client.post(f"/api/owner/notifications/{notification.pk}/read")

        assert response.status_code == 404
        notification.refresh_from_db()
        assert notification.read_at is None
