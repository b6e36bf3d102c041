"""Tests for delivery status polling."""

from io import StringIO
from unittest.mock import patch

from django.core.management import call_command

import pytest

from apps.web.delivery.exceptions import DeliveryAPIError
from apps.web.delivery.models import DeliveryStatus, LedgerEntry
from apps.web.delivery.schemas import DeliveryResult, DeliveryState
from apps.web.delivery.services import poll_active_deliveries
from apps.web.delivery.tests.factories import DeliveryFactory
from apps.web.restaurant.models import OrderStatus


def _result(external_id: str, provider_status: str, state: DeliveryState | None):
    return DeliveryResult(
        external_id=external_id,
        provider_status=provider_status,
        status=state,
        raw={"id": external_id, "status": provider_status},
    )


@pytest.mark.django_db
class TestPollActiveDeliveries:
    def test_applies_partner_status(self, organization):
        delivery = DeliveryFactory(organization=organization)

        with patch(
            "apps.web.delivery.services.polling.call_partner",
            return_value=_result(delivery.external_id, "pickup_complete", DeliveryState.PICKED_UP),
        ):
            result = poll_active_deliveries()

        assert result == {"total_deliveries": 1, "updated_orders": 1, "errors": []}
        delivery.refresh_from_db()
        assert delivery.status == DeliveryStatus.PICKED_UP
        assert delivery.last_synced_at is not None
        assert delivery.order.status == OrderStatus.OUT_FOR_DELIVERY

    def test_dropped_off_writes_ledger(self, organization):
        delivery = DeliveryFactory(organization=organization, status=DeliveryStatus.PICKED_UP)

        with patch(
            "apps.web.delivery.services.polling.call_partner",
            return_value=_result(delivery.external_id, "delivered", DeliveryState.DROPPED_OFF),
        ):
            poll_active_deliveries()

        delivery.order.refresh_from_db()
        assert delivery.order.status == OrderStatus.COMPLETED
        assert LedgerEntry.objects.filter(order=delivery.order).exists()

    def test_errors_do_not_stop_other_deliveries(self, organization):
        failing = DeliveryFactory(organization=organization)
        working = DeliveryFactory(organization=organization)

        calls: list = []

        def fake_call(operation):
            calls.append(operation)
            if len(calls) == 1:
                raise DeliveryAPIError("Uber API error 500", provider="uber_direct")
            return _result(working.external_id, "pickup", DeliveryState.COURIER_ASSIGNED)

        with patch("apps.web.delivery.services.polling.call_partner", side_effect=fake_call):
            result = poll_active_deliveries()

        assert result["total_deliveries"] == 2
        assert result["updated_orders"] == 0
        assert result["errors"] == [
            {"delivery_id": failing.external_id, "error": "Uber API error 500"}
        ]
        working.refresh_from_db()
        assert working.status == DeliveryStatus.COURIER_ASSIGNED

    def test_terminal_deliveries_not_polled(self, organization):
        DeliveryFactory(organization=organization, status=DeliveryStatus.DROPPED_OFF)
        DeliveryFactory(organization=organization, status=DeliveryStatus.CANCELED)

        with patch("apps.web.delivery.services.polling.call_partner") as call_partner:
            result = poll_active_deliveries()

        call_partner.assert_not_called()
        assert result == {"total_deliveries": 0, "updated_orders": 0, "errors": []}

    def test_sandbox_unknown_delivery_leaves_status(self, organization):
        delivery = DeliveryFactory(organization=organization, status=DeliveryStatus.COURIER_ASSIGNED)

        result = poll_active_deliveries()

        assert result["errors"] == []
        delivery.refresh_from_db()
        assert delivery.status == DeliveryStatus.COURIER_ASSIGNED


@pytest.mark.django_db
class TestPollDeliveriesCommand:
    def test_once(self, organization):
        delivery = DeliveryFactory(organization=organization)
        out = StringIO()

        with patch(
            "apps.web.delivery.services.polling.call_partner",
            return_value=_result(delivery.external_id, "pickup_complete", DeliveryState.PICKED_UP),
        ):
            call_command("poll_deliveries", "--once", stdout=out)

        assert "Polled 1 deliveries, 1 orders updated, 0 errors" in out.getvalue()
