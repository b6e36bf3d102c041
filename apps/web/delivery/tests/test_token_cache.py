"""Tests for the partner access token cache and call_partner."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

from django.test import override_settings
from django.utils import timezone

import pytest
from asgiref.sync import async_to_sync

from apps.web.delivery.exceptions import DeliveryAuthError
from apps.web.delivery.models import PartnerAccessToken
from apps.web.delivery.schemas import DeliveryCredentials, DeliveryProvider, DeliverySession
from apps.web.delivery.services.partner import active_provider, call_partner
from apps.web.delivery.services.token_cache import get_session, invalidate


def _mock_adapter(token: str = "fresh-token") -> MagicMock:
    adapter = MagicMock()
    adapter.provider = DeliveryProvider.UBER_DIRECT
    adapter.authenticate = AsyncMock(
        return_value=DeliverySession(
            provider=DeliveryProvider.UBER_DIRECT,
            access_token=token,
            expires_at=timezone.now() + timedelta(days=30),
        )
    )
    adapter.close = AsyncMock()
    return adapter


@pytest.fixture
def credentials() -> DeliveryCredentials:
    return DeliveryCredentials(
        provider=DeliveryProvider.UBER_DIRECT,
        client_id="uber-client",
        client_secret="uber-secret",
        customer_id="cus-abc",
    )


@pytest.mark.django_db
class TestGetSession:
    def test_authenticates_and_stores_token(self, credentials):
        adapter = _mock_adapter()

        session = async_to_sync(get_session)(adapter, credentials)

        assert session.access_token == "fresh-token"
        adapter.authenticate.assert_awaited_once_with(credentials)
        stored = PartnerAccessToken.objects.get(provider="uber_direct")
        assert stored.access_token == "fresh-token"

    def test_reuses_token_outside_buffer(self, credentials):
        PartnerAccessToken.objects.create(
            provider="uber_direct",
            access_token="cached-token",
            expires_at=timezone.now() + timedelta(minutes=6),
        )
        adapter = _mock_adapter()

        session = async_to_sync(get_session)(adapter, credentials)

        assert session.access_token == "cached-token"
        adapter.authenticate.assert_not_awaited()

    def test_refreshes_token_inside_buffer(self, credentials):
        PartnerAccessToken.objects.create(
            provider="uber_direct",
            access_token="expiring-token",
            expires_at=timezone.now() + timedelta(minutes=4),
        )
        adapter = _mock_adapter()

        session = async_to_sync(get_session)(adapter, credentials)

        assert session.access_token == "fresh-token"
        assert PartnerAccessToken.objects.count() == 1
        assert PartnerAccessToken.objects.get().access_token == "fresh-token"

    def test_invalidate_removes_token(self):
        PartnerAccessToken.objects.create(
            provider="uber_direct",
            access_token="revoked",
            expires_at=timezone.now() + timedelta(days=1),
        )

        async_to_sync(invalidate)(_mock_adapter())

        assert not PartnerAccessToken.objects.exists()


@pytest.mark.django_db
class TestCallPartner:
    def test_retries_once_after_token_rejected(self):
        PartnerAccessToken.objects.create(
            provider="uber_direct",
            access_token="revoked",
            expires_at=timezone.now() + timedelta(days=1),
        )
        adapter = _mock_adapter()
        operation = AsyncMock(side_effect=[DeliveryAuthError("Uber Direct token rejected"), "ok"])

        with patch(
            "apps.web.delivery.services.partner.build_adapter", return_value=adapter
        ):
            result = call_partner(operation)

        assert result == "ok"
        assert operation.await_count == 2
        tokens = [call.args[1].access_token for call in operation.await_args_list]
        assert tokens == ["revoked", "fresh-token"]
        adapter.close.assert_awaited_once()

    def test_second_auth_failure_propagates(self):
        adapter = _mock_adapter()
        operation = AsyncMock(side_effect=DeliveryAuthError("rejected"))

        with (
            patch("apps.web.delivery.services.partner.build_adapter", return_value=adapter),
            pytest.raises(DeliveryAuthError),
        ):
            call_partner(operation)

        assert operation.await_count == 2
        adapter.close.assert_awaited_once()


class TestActiveProvider:
    def test_sandbox_without_credentials(self, settings):
        settings.UBER_DIRECT_CLIENT_ID = ""
        assert active_provider() == DeliveryProvider.SANDBOX

    @override_settings(
        UBER_DIRECT_CLIENT_ID="id",
        UBER_DIRECT_CLIENT_SECRET="secret",
        UBER_DIRECT_CUSTOMER_ID="cus",
        DELIVERY_SANDBOX=False,
    )
    def test_uber_with_credentials(self):
        assert active_provider() == DeliveryProvider.UBER_DIRECT

    @override_settings(
        UBER_DIRECT_CLIENT_ID="id",
        UBER_DIRECT_CLIENT_SECRET="secret",
        UBER_DIRECT_CUSTOMER_ID="cus",
        DELIVERY_SANDBOX=True,
    )
    def test_sandbox_flag_wins(self):
        assert active_provider() == DeliveryProvider.SANDBOX
