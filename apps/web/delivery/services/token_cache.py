"""
Partner access token cache.

Tokens live in the database (PartnerAccessToken) so every worker reuses
the same token instead of minting one per process.
"""

import logging
from datetime import timedelta

from django.utils import timezone

from apps.web.delivery.adapters import DeliveryAdapter
from apps.web.delivery.models import PartnerAccessToken
from apps.web.delivery.schemas import DeliveryCredentials, DeliverySession

logger = logging.getLogger(__name__)

# Refresh tokens this long before they actually expire
TOKEN_EXPIRY_BUFFER = timedelta(minutes=5)


async def get_session(
    adapter: DeliveryAdapter, credentials: DeliveryCredentials
) -> DeliverySession:
    """
    Return a session for the adapter's partner, reusing the cached token
    while it has more than TOKEN_EXPIRY_BUFFER left.

    Must run under async_to_sync so the ORM calls share the caller's
    database connection.

    Raises:
        DeliveryAuthError: If a new token is needed and authentication fails.
    """
    provider = adapter.provider.value
    cached = await PartnerAccessToken.objects.filter(provider=provider).afirst()

    if cached and cached.expires_at > timezone.now() + TOKEN_EXPIRY_BUFFER:
        return DeliverySession(
            provider=adapter.provider,
            access_token=cached.access_token,
            expires_at=cached.expires_at,
        )

    session = await adapter.authenticate(credentials)
    await PartnerAccessToken.objects.aupdate_or_create(
        provider=provider,
        defaults={
            "access_token": session.access_token,
            "expires_at": session.expires_at,
        },
    )
    logger.info("Cached new %s access token until %s", provider, session.expires_at)
    return session


async def invalidate(adapter: DeliveryAdapter) -> None:
    """Drop the cached token, e.g. after the partner rejected it."""
    await PartnerAccessToken.objects.filter(provider=adapter.provider.value).adelete()
