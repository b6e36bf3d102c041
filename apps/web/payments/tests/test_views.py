"""Tests for owner payment onboarding endpoints."""

from unittest.mock import patch

import pytest

from apps.web.payments.services import PaymentError


@pytest.mark.django_db
class TestOnboarding:
    url = "/api/owner/payments/onboarding"

    def test_requires_login(self, api_client):
        response = api_client.post(self.url)

        assert response.status_code == 401

    @patch("apps.web.payments.views.create_onboarding_link")
    def test_returns_link_and_account(self, mock_link, owner_client, organization):
        def _link(org):
            org.stripe_account_id = "acct_123"
            return "https://connect.stripe.com/setup/x"

        mock_link.side_effect = _link

        response = owner_client.post(self.url)

        assert response.status_code == 200
        assert response.json() == {
            "url": "https://connect.stripe.com/setup/x",
            "account_id": "acct_123",
        }

    @patch("apps.web.payments.views.create_onboarding_link")
    def test_stripe_failure_returns_502(self, mock_link, owner_client):
        mock_link.side_effect = PaymentError("Stripe unavailable")

        response = owner_client.post(self.url)

        assert response.status_code == 502
        assert response.json()["error"] == "Stripe unavailable"


@pytest.mark.django_db
class TestOnboardingStatus:
    url = "/api/owner/payments/status"

    def test_without_account_skips_stripe(self, owner_client):
        with patch("apps.web.payments.views.sync_account_status") as mock_sync:
            response = owner_client.get(self.url)

        mock_sync.assert_not_called()
        assert response.status_code == 200
        assert response.json()["status"] == ""
        assert response.json()["accepts_destination_charges"] is False

    @patch("apps.web.payments.views.sync_account_status")
    def test_refreshes_connected_account(self, mock_sync, owner_client, organization):
        organization.stripe_account_id = "acct_123"
        organization.save()

        response = owner_client.get(self.url)

        mock_sync.assert_called_once()
        assert response.json()["account_id"] == "acct_123"
