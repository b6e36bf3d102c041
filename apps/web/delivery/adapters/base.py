"""Base delivery adapter protocol - interface for all delivery partners."""

from typing import Protocol, runtime_checkable

from apps.web.delivery.schemas import (
    DeliveryCredentials,
    DeliveryProvider,
    DeliveryQuoteResult,
    DeliveryRequest,
    DeliveryResult,
    DeliverySession,
)


@runtime_checkable
class DeliveryAdapter(Protocol):
    """
    Protocol defining the interface for delivery partner integrations.

    Methods are async to support non-blocking I/O with external APIs.
    """

    @property
    def provider(self) -> DeliveryProvider:
        """The partner this adapter connects to."""
        ...

    async def authenticate(self, credentials: DeliveryCredentials) -> DeliverySession:
        """
        Obtain an access token.

        Raises:
            DeliveryAuthError: If authentication fails.
        """
        ...

    async def create_quote(
        self, session: DeliverySession, request: DeliveryRequest
    ) -> DeliveryQuoteResult:
        """
        Price a delivery without booking a courier.

        Raises:
            DeliveryAPIError: If the API request fails.
        """
        ...

    async def create_delivery(
        self, session: DeliverySession, request: DeliveryRequest
    ) -> DeliveryResult:
        """
        Book a courier.

        Raises:
            DeliveryAPIError: If the API request fails.
        """
        ...

    async def get_delivery(
        self, session: DeliverySession, external_id: str
    ) -> DeliveryResult:
        """
        Fetch the current state of a delivery.

        Raises:
            DeliveryAPIError: If the API request fails.
        """
        ...

    async def close(self) -> None:
        """Release any HTTP resources."""
        ...

    def verify_webhook_signature(
        self, payload: bytes, signature: str, secret: str
    ) -> bool:
        """Check a webhook signature over the raw request body."""
        ...
