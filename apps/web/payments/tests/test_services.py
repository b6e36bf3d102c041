"""Tests for payment services."""

from unittest.mock import MagicMock, patch

from django.test import override_settings

import pytest
import stripe

from apps.web.core.models import StripeAccountStatus
from apps.web.payments.services import (
    PaymentError,
    account_status_from,
    application_fee_for,
    create_onboarding_link,
    create_payment_intent,
    create_refund,
    retrieve_fee_breakdown,
    sync_account_status,
)
from apps.web.restaurant.tests.factories import OrderFactory, OrganizationFactory


@pytest.mark.django_db
class TestCreatePaymentIntent:
    """Tests for create_payment_intent."""

    @patch("apps.web.payments.services.stripe.PaymentIntent.create")
    def test_create_payment_intent_success(self, mock_create):
        mock_create.return_value = MagicMock(
            id="pi_test123",
            client_secret="pi_test123_secret_abc",
        )
        order = OrderFactory()

        result = create_payment_intent(order)

        mock_create.assert_called_once_with(
            amount=4369,
            currency="cad",
            automatic_payment_methods={"enabled": True},
            description=f"Order #{order.order_number}",
            receipt_email=order.customer_email,
            metadata={
                "order_id": str(order.pk),
                "organization_id": str(order.organization.pk),
                "public_token": order.public_token,
            },
            idempotency_key=f"order-{order.pk}",
        )
        assert result.client_secret == "pi_test123_secret_abc"

    @override_settings(PLATFORM_FEE_PERCENT=10)
    @patch("apps.web.payments.services.stripe.PaymentIntent.create")
    def test_destination_charge_for_complete_account(self, mock_create):
        mock_create.return_value = MagicMock(id="pi_test123")
        organization = OrganizationFactory(
            stripe_account_id="acct_123",
            stripe_account_status=StripeAccountStatus.COMPLETE,
        )
        order = OrderFactory(organization=organization)

        create_payment_intent(order)

        kwargs = mock_create.call_args[1]
        assert kwargs["application_fee_amount"] == 437  # 10% of 4369, half up
        assert kwargs["transfer_data"] == {"destination": "acct_123"}

    @patch("apps.web.payments.services.stripe.PaymentIntent.create")
    def test_no_fee_split_until_onboarding_complete(self, mock_create):
        mock_create.return_value = MagicMock(id="pi_test123")
        organization = OrganizationFactory(
            stripe_account_id="acct_123",
            stripe_account_status=StripeAccountStatus.RESTRICTED,
        )
        order = OrderFactory(organization=organization)

        create_payment_intent(order)

        kwargs = mock_create.call_args[1]
        assert "application_fee_amount" not in kwargs
        assert "transfer_data" not in kwargs
        assert application_fee_for(order) == 0

    @patch("apps.web.payments.services.stripe.PaymentIntent.create")
    def test_create_payment_intent_stripe_error(self, mock_create):
        mock_create.side_effect = stripe.error.StripeError("Card declined")

        with pytest.raises(PaymentError) as exc_info:
            create_payment_intent(OrderFactory())

        assert "Card declined" in str(exc_info.value)


class TestRetrieveFeeBreakdown:
    """Tests for retrieve_fee_breakdown."""

    @patch("apps.web.payments.services.stripe.PaymentIntent.retrieve")
    def test_expanded_balance_transaction(self, mock_retrieve):
        mock_retrieve.return_value = {
            "id": "pi_test123",
            "latest_charge": {
                "id": "ch_123",
                "balance_transaction": {"fee": 174, "net": 4195},
            },
        }

        fees = retrieve_fee_breakdown("pi_test123")

        mock_retrieve.assert_called_once_with(
            "pi_test123", expand=["latest_charge.balance_transaction"]
        )
        assert fees.charge_id == "ch_123"
        assert fees.fee_cents == 174
        assert fees.net_cents == 4195

    @patch("apps.web.payments.services.stripe.PaymentIntent.retrieve")
    def test_pending_balance_transaction(self, mock_retrieve):
        mock_retrieve.return_value = {
            "latest_charge": {"id": "ch_123", "balance_transaction": None},
        }

        fees = retrieve_fee_breakdown("pi_test123")

        assert fees.charge_id == "ch_123"
        assert fees.fee_cents is None

    @patch("apps.web.payments.services.stripe.PaymentIntent.retrieve")
    def test_stripe_error(self, mock_retrieve):
        mock_retrieve.side_effect = stripe.error.InvalidRequestError(
            "No such payment_intent", "id"
        )

        with pytest.raises(PaymentError):
            retrieve_fee_breakdown("pi_invalid")


class TestCreateRefund:
    """Tests for create_refund."""

    @patch("apps.web.payments.services.stripe.Refund.create")
    def test_create_full_refund(self, mock_create):
        mock_create.return_value = MagicMock(id="re_test123", status="succeeded")

        result = create_refund("pi_test123")

        mock_create.assert_called_once_with(
            payment_intent="pi_test123",
            reason="requested_by_customer",
        )
        assert result.id == "re_test123"

    @patch("apps.web.payments.services.stripe.Refund.create")
    def test_create_partial_refund(self, mock_create):
        mock_create.return_value = MagicMock(id="re_test123")

        create_refund("pi_test123", amount_cents=1000)

        assert mock_create.call_args[1]["amount"] == 1000

    @patch("apps.web.payments.services.stripe.Refund.create")
    def test_create_refund_stripe_error(self, mock_create):
        mock_create.side_effect = stripe.error.StripeError("Refund failed")

        with pytest.raises(PaymentError) as exc_info:
            create_refund("pi_test123")

        assert "Refund failed" in str(exc_info.value)


@pytest.mark.django_db
class TestConnectOnboarding:
    """Tests for Stripe Connect account creation and status sync."""

    @override_settings(SITE_URL="https://tavola.test")
    @patch("apps.web.payments.services.stripe.AccountLink.create")
    @patch("apps.web.payments.services.stripe.Account.create")
    def test_onboarding_creates_account_once(self, mock_account, mock_link):
        mock_account.return_value = MagicMock(id="acct_new")
        mock_link.return_value = MagicMock(url="https://connect.stripe.com/setup/x")
        organization = OrganizationFactory()

        url = create_onboarding_link(organization)
        create_onboarding_link(organization)

        assert url == "https://connect.stripe.com/setup/x"
        mock_account.assert_called_once()
        assert mock_account.call_args[1]["type"] == "express"

        organization.refresh_from_db()
        assert organization.stripe_account_id == "acct_new"
        assert organization.stripe_account_status == StripeAccountStatus.RESTRICTED

        link_kwargs = mock_link.call_args[1]
        assert link_kwargs["type"] == "account_onboarding"
        assert link_kwargs["refresh_url"] == (
            "https://tavola.test/owner/settings?connect=refresh"
        )
        assert link_kwargs["return_url"] == (
            "https://tavola.test/owner/settings?connect=success"
        )

    @pytest.mark.parametrize(
        ("account", "expected"),
        [
            ({"payouts_enabled": True, "details_submitted": True}, "complete"),
            ({"payouts_enabled": False, "details_submitted": True}, "details_submitted"),
            ({"payouts_enabled": False, "details_submitted": False}, "restricted"),
        ],
    )
    def test_account_status_from(self, account, expected):
        assert account_status_from(account) == expected

    @patch("apps.web.payments.services.stripe.Account.retrieve")
    def test_sync_account_status_fetches_when_not_given(self, mock_retrieve):
        mock_retrieve.return_value = {"payouts_enabled": True}
        organization = OrganizationFactory(stripe_account_id="acct_123")

        status = sync_account_status(organization)

        mock_retrieve.assert_called_once_with("acct_123")
        assert status == StripeAccountStatus.COMPLETE
        organization.refresh_from_db()
        assert organization.accepts_destination_charges
