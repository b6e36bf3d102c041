"""
Tests for notification services.
"""

from unittest.mock import patch

import pytest

from apps.web.notifications.services import (
    EmailError,
    send_email,
    send_order_confirmation,
    send_order_ready,
)
from apps.web.restaurant.tests.factories import OrderFactory, OrderItemFactory


@pytest.mark.django_db
class TestSendEmail:
    @patch("apps.web.notifications.services.resend.Emails.send")
    def test_sends_with_organization_name(self, mock_send, organization):
        mock_send.return_value = {"id": "em_123"}

        email_id = send_email(organization, "guest@example.com", "Hello", "Body")

        assert email_id == "em_123"
        params = mock_send.call_args.args[0]
        assert params["from"] == "Chez Marie <orders@tavola.app>"
        assert params["to"] == ["guest@example.com"]
        assert params["reply_to"] == organization.email

    @pytest.mark.parametrize(
        "to_email,subject,body,missing",
        [
            ("", "Hi", "Body", "recipient"),
            ("a@example.com", "", "Body", "subject"),
            ("a@example.com", "Hi", "", "body"),
        ],
    )
    def test_missing_fields(self, organization, to_email, subject, body, missing):
        with pytest.raises(EmailError, match=f"without {missing}"):
            send_email(organization, to_email, subject, body)

    def test_missing_api_key(self, organization, settings):
        settings.RESEND_API_KEY = ""

        with pytest.raises(EmailError, match="not configured"):
            send_email(organization, "a@example.com", "Hi", "Body")

    @patch(
        "apps.web.notifications.services.resend.Emails.send",
        side_effect=Exception("boom"),
    )
    def test_provider_failure_wrapped(self, _mock_send, organization):
        with pytest.raises(EmailError, match="boom"):
            send_email(organization, "a@example.com", "Hi", "Body")


@pytest.mark.django_db
class TestOrderEmails:
    @patch("apps.web.notifications.services.resend.Emails.send", return_value={"id": "em_1"})
    def test_confirmation_lists_items_and_tracking_link(self, mock_send, organization):
        order = OrderFactory(organization=organization)
        OrderItemFactory(organization=organization, order=order, quantity=2)

        send_order_confirmation(order)

        params = mock_send.call_args.args[0]
        assert params["subject"] == f"Order #{order.order_number} confirmed"
        assert "2 x " in params["text"]
        assert "43.69 CAD" in params["text"]
        assert order.public_token in params["text"]

    @patch("apps.web.notifications.services.resend.Emails.send", return_value={"id": "em_2"})
    def test_ready(self, mock_send, organization):
        order = OrderFactory(organization=organization)

        send_order_ready(order)

        params = mock_send.call_args.args[0]
        assert "ready for pickup at Chez Marie" in params["text"]
