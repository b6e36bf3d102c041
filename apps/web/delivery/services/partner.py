"""
Delivery partner selection.

Uber Direct is used when its credentials are configured; otherwise, or
when DELIVERY_SANDBOX is set, the sandbox adapter stands in.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from django.conf import settings

from asgiref.sync import async_to_sync

from apps.web.delivery.adapters import DeliveryAdapter, get_adapter
from apps.web.delivery.exceptions import DeliveryAuthError
from apps.web.delivery.schemas import DeliveryCredentials, DeliveryProvider, DeliverySession
from apps.web.delivery.services.token_cache import get_session, invalidate

logger = logging.getLogger(__name__)

T = TypeVar("T")


def uber_credentials() -> DeliveryCredentials | None:
    """Uber Direct credentials from settings, or None if any are missing."""
    client_id = settings.UBER_DIRECT_CLIENT_ID
    client_secret = settings.UBER_DIRECT_CLIENT_SECRET
    customer_id = settings.UBER_DIRECT_CUSTOMER_ID
    if not (client_id and client_secret and customer_id):
        return None
    return DeliveryCredentials(
        provider=DeliveryProvider.UBER_DIRECT,
        client_id=client_id,
        client_secret=client_secret,
        customer_id=customer_id,
    )


def active_provider() -> DeliveryProvider:
    if settings.DELIVERY_SANDBOX or uber_credentials() is None:
        return DeliveryProvider.SANDBOX
    return DeliveryProvider.UBER_DIRECT


def partner_credentials() -> DeliveryCredentials:
    """Credentials for the active partner."""
    if active_provider() == DeliveryProvider.SANDBOX:
        return DeliveryCredentials(
            provider=DeliveryProvider.SANDBOX,
            client_id="sandbox",
            client_secret="sandbox",
            customer_id="sandbox",
        )
    credentials = uber_credentials()
    assert credentials is not None
    return credentials


def build_adapter() -> DeliveryAdapter:
    """
    Create an adapter for the active partner.

    Adapters own an async HTTP client; create them inside the coroutine
    that uses them and close them there.
    """
    credentials = partner_credentials()
    if credentials.provider == DeliveryProvider.SANDBOX:
        return get_adapter(DeliveryProvider.SANDBOX)
    return get_adapter(DeliveryProvider.UBER_DIRECT, customer_id=credentials.customer_id)


async def _call_with_session(
    operation: Callable[[DeliveryAdapter, DeliverySession], Awaitable[T]],
) -> T:
    adapter = build_adapter()
    credentials = partner_credentials()
    try:
        session = await get_session(adapter, credentials)
        try:
            return await operation(adapter, session)
        except DeliveryAuthError:
            # Cached token revoked early; mint a new one and retry once
            logger.warning("%s rejected cached token, re-authenticating", adapter.provider)
            await invalidate(adapter)
            session = await get_session(adapter, credentials)
            return await operation(adapter, session)
    finally:
        await adapter.close()


def call_partner(
    operation: Callable[[DeliveryAdapter, DeliverySession], Awaitable[T]],
) -> T:
    """
    Run an async partner operation from synchronous code.

    The adapter is created, authenticated through the token cache and
    closed within a single event loop.

    Example:
        result = call_partner(lambda a, s: a.get_delivery(s, "del_123"))

    Raises:
        DeliveryError: Whatever the adapter raises.
    """
    return async_to_sync(_call_with_session)(operation)
