"""Uber Direct adapter - on-demand courier dispatch."""

import asyncio
import hashlib
import hmac
import json
import logging
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx

from apps.web.delivery.exceptions import (
    DeliveryAPIError,
    DeliveryAuthError,
    DeliveryRateLimitError,
    DeliveryWebhookError,
)
from apps.web.delivery.schemas import (
    DeliveryAddress,
    DeliveryCredentials,
    DeliveryProvider,
    DeliveryQuoteResult,
    DeliveryRequest,
    DeliveryResult,
    DeliverySession,
    DeliveryState,
    DeliveryStatusEvent,
)

logger = logging.getLogger(__name__)

# Uber delivery status -> internal status
STATUS_MAP: dict[str, DeliveryState] = {
    "pending": DeliveryState.CREATED,
    "pickup": DeliveryState.COURIER_ASSIGNED,
    "pickup_complete": DeliveryState.PICKED_UP,
    "dropoff": DeliveryState.PICKED_UP,
    "delivered": DeliveryState.DROPPED_OFF,
    "canceled": DeliveryState.CANCELED,
    "returned": DeliveryState.FAILED,
}


def map_status(provider_status: str | None) -> DeliveryState | None:
    """Map an Uber status to ours; None for statuses we do not track."""
    return STATUS_MAP.get((provider_status or "").lower())


def _parse_datetime(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Unparseable Uber timestamp: %s", value)
        return None


def _structured_address(address: DeliveryAddress) -> str:
    """Uber expects the address as a JSON-encoded object."""
    street = [address.street]
    if address.unit:
        street.append(address.unit)
    return json.dumps(
        {
            "street_address": street,
            "city": address.city,
            "state": address.region,
            "zip_code": address.postal_code,
            "country": address.country,
        }
    )


class UberDirectAdapter:
    """
    Uber Direct adapter implementing the DeliveryAdapter protocol.

    Uses the client-credentials OAuth flow; tokens are cached by the caller
    (see services.token_cache) since Uber limits how often they can be minted.

    API Reference: https://developer.uber.com/docs/deliveries
    """

    AUTH_URL = "https://auth.uber.com/oauth/v2/token"
    BASE_URL = "https://api.uber.com/v1/customers"
    SCOPE = "eats.deliveries"

    # Retry configuration
    MAX_RETRIES = 3
    RETRY_BACKOFF_BASE = 2.0  # Exponential backoff base

    def __init__(
        self,
        customer_id: str = "",
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the Uber Direct adapter.

        Args:
            customer_id: Uber Direct customer (organization) ID.
            http_client: Optional HTTP client for dependency injection (testing).
        """
        self.customer_id = customer_id
        self._http_client = http_client
        self._owns_client = http_client is None

    @property
    def _client(self) -> httpx.AsyncClient:
        # Created on first use so webhook parsing never opens a connection pool
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=30.0)
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()

    @property
    def provider(self) -> DeliveryProvider:
        """The partner this adapter connects to."""
        return DeliveryProvider.UBER_DIRECT

    @property
    def deliveries_url(self) -> str:
        return f"{self.BASE_URL}/{self.customer_id}/deliveries"

    @property
    def quotes_url(self) -> str:
        return f"{self.BASE_URL}/{self.customer_id}/delivery_quotes"

    # =========================================================================
    # Authentication
    # =========================================================================

    async def authenticate(self, credentials: DeliveryCredentials) -> DeliverySession:
        """
        Exchange client credentials for an access token.

        Args:
            credentials: Uber Direct client_id/client_secret.

        Returns:
            Session with the access token and its expiry.

        Raises:
            DeliveryAuthError: If authentication fails.
        """
        try:
            response = await self._client.post(
                self.AUTH_URL,
                data={
                    "client_id": credentials.client_id,
                    "client_secret": credentials.client_secret,
                    "grant_type": "client_credentials",
                    "scope": self.SCOPE,
                },
            )

            if response.status_code in (400, 401):
                raise DeliveryAuthError(
                    "Invalid Uber Direct credentials",
                    provider="uber_direct",
                )

            response.raise_for_status()
            data = response.json()

            access_token = data.get("access_token")
            expires_in = int(data.get("expires_in", 2592000))  # Default 30 days

            if not access_token:
                raise DeliveryAuthError(
                    "No access token in Uber response",
                    provider="uber_direct",
                )

            logger.info("Uber Direct access token issued (expires in %ss)", expires_in)

            return DeliverySession(
                provider=DeliveryProvider.UBER_DIRECT,
                access_token=access_token,
                expires_at=datetime.now(UTC) + timedelta(seconds=expires_in),
            )

        except httpx.HTTPStatusError as e:
            raise DeliveryAuthError(
                f"Uber authentication failed: {e.response.status_code}",
                provider="uber_direct",
            ) from e
        except httpx.RequestError as e:
            raise DeliveryAuthError(
                f"Uber authentication request failed: {e}",
                provider="uber_direct",
            ) from e

    # =========================================================================
    # HTTP Helpers
    # =========================================================================

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        session: DeliverySession,
        retry: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Make an HTTP request, retrying transport errors and 5xx responses.

        With retry=False the request is sent once; used for calls that are
        not safe to repeat, like booking a courier.

        Raises:
            DeliveryAPIError: On 4xx responses, or after retries are exhausted
            DeliveryRateLimitError: If rate limit exceeded
            DeliveryAuthError: If the token was rejected
        """
        headers = {
            "Authorization": f"Bearer {session.access_token}",
            **kwargs.pop("headers", {}),
        }

        attempts = self.MAX_RETRIES if retry else 1
        last_error: Exception | None = None

        for attempt in range(attempts):
            try:
                response = await self._client.request(
                    method, url, headers=headers, **kwargs
                )

                if response.status_code == 429:
                    retry_after = int(response.headers.get("Retry-After", "60"))
                    raise DeliveryRateLimitError(
                        "Uber Direct rate limit exceeded",
                        provider="uber_direct",
                        retry_after=retry_after,
                    )

                if response.status_code == 401:
                    raise DeliveryAuthError(
                        "Uber Direct token rejected",
                        provider="uber_direct",
                    )

                if 400 <= response.status_code < 500:
                    raise DeliveryAPIError(
                        self._error_message(response),
                        provider="uber_direct",
                        status_code=response.status_code,
                        response_body=response.text,
                    )

                response.raise_for_status()
                return response

            except (httpx.RequestError, httpx.HTTPStatusError) as e:
                last_error = e
                if attempt < attempts - 1:
                    backoff = self.RETRY_BACKOFF_BASE**attempt
                    logger.warning(
                        "Uber API failed (attempt %d/%d), retry in %.1fs: %s",
                        attempt + 1,
                        attempts,
                        backoff,
                        str(e),
                    )
                    await asyncio.sleep(backoff)

        status_code = None
        if isinstance(last_error, httpx.HTTPStatusError):
            status_code = last_error.response.status_code
        if attempts == 1:
            message = f"Uber API request failed: {last_error}"
        else:
            message = f"Uber API request failed after {attempts} attempts: {last_error}"
        raise DeliveryAPIError(
            message,
            provider="uber_direct",
            status_code=status_code,
        )

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return f"Uber API error {response.status_code}"
        message = body.get("message") or body.get("code") or "Unknown error"
        return f"Uber API error {response.status_code}: {message}"

    # =========================================================================
    # Payloads
    # =========================================================================

    def _quote_payload(self, request: DeliveryRequest) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "pickup_address": _structured_address(request.pickup_address),
            "dropoff_address": _structured_address(request.dropoff_address),
            "pickup_phone_number": request.pickup_contact.phone,
            "dropoff_phone_number": request.dropoff_contact.phone,
            "manifest_total_value": request.manifest_total_cents,
            "external_store_id": request.external_reference,
        }
        if request.dropoff_address.lat is not None:
            payload["dropoff_latitude"] = request.dropoff_address.lat
            payload["dropoff_longitude"] = request.dropoff_address.lng
        return payload

    def _delivery_payload(
        self, request: DeliveryRequest, quote_id: str | None = None
    ) -> dict[str, Any]:
        payload = self._quote_payload(request)
        payload.pop("external_store_id")
        payload.update(
            {
                "external_id": request.external_reference,
                "pickup_name": request.pickup_contact.name,
                "pickup_business_name": request.pickup_contact.company_name,
                "dropoff_name": request.dropoff_contact.name,
                "dropoff_notes": request.dropoff_instructions,
                "manifest_items": [
                    {
                        "name": request.manifest_description,
                        "quantity": 1,
                        "price": request.manifest_total_cents,
                    }
                ],
            }
        )
        if quote_id:
            payload["quote_id"] = quote_id
        return payload

    # =========================================================================
    # Deliveries
    # =========================================================================

    async def create_quote(
        self, session: DeliverySession, request: DeliveryRequest
    ) -> DeliveryQuoteResult:
        """
        Get a fee and ETA for a delivery.

        Args:
            session: Authenticated session.
            request: Pickup and drop-off details.

        Returns:
            The quote, valid until expires_at.

        Raises:
            DeliveryAPIError: If the API request fails.
        """
        response = await self._request_with_retry(
            "POST",
            self.quotes_url,
            session,
            json=self._quote_payload(request),
        )
        data = response.json()

        return DeliveryQuoteResult(
            external_id=str(data.get("id", "")),
            fee_cents=int(data.get("fee") or 0),
            eta_minutes=data.get("duration"),
            expires_at=_parse_datetime(data.get("expires")),
            raw=data,
        )

    async def create_delivery(
        self, session: DeliverySession, request: DeliveryRequest
    ) -> DeliveryResult:
        """
        Book a courier for an order.

        Sent once: a request that timed out may still have booked a
        courier, so repeats are left to the dispatch idempotency checks.

        Args:
            session: Authenticated session.
            request: Pickup and drop-off details.

        Returns:
            The created delivery.

        Raises:
            DeliveryAPIError: If the API request fails.
        """
        response = await self._request_with_retry(
            "POST",
            self.deliveries_url,
            session,
            retry=False,
            json=self._delivery_payload(request),
        )
        data = response.json()
        logger.info(
            "Uber delivery created: %s for %s", data.get("id"), request.external_reference
        )
        return self.parse_delivery(data)

    async def get_delivery(
        self, session: DeliverySession, external_id: str
    ) -> DeliveryResult:
        """
        Fetch a delivery's current state.

        Raises:
            DeliveryAPIError: If the API request fails.
        """
        response = await self._request_with_retry(
            "GET",
            f"{self.deliveries_url}/{external_id}",
            session,
        )
        return self.parse_delivery(response.json())

    def parse_delivery(self, data: dict[str, Any]) -> DeliveryResult:
        """Convert an Uber delivery object to a DeliveryResult."""
        provider_status = str(data.get("status", ""))
        fee = data.get("fee")
        return DeliveryResult(
            external_id=str(data.get("id", "")),
            provider_status=provider_status,
            status=map_status(provider_status),
            tracking_url=data.get("tracking_url") or "",
            fee_cents=int(fee) if fee is not None else None,
            pickup_eta=_parse_datetime(data.get("pickup_eta")),
            dropoff_eta=_parse_datetime(data.get("dropoff_eta")),
            raw=data,
        )

    # =========================================================================
    # Webhooks
    # =========================================================================

    def verify_webhook_signature(
        self, payload: bytes, signature: str, secret: str
    ) -> bool:
        """
        Verify an Uber webhook signature.

        Uber signs the raw body with HMAC-SHA256 and sends the hex digest in
        the X-Uber-Signature (or legacy X-Postmates-Signature) header.

        Args:
            payload: Raw webhook payload bytes.
            signature: Header value.
            secret: Webhook signing key configured in the Uber dashboard.

        Returns:
            True if signature is valid.
        """
        expected = hmac.new(
            secret.encode(),
            payload,
            hashlib.sha256,
        ).hexdigest()

        return hmac.compare_digest(signature.lower(), expected.lower())

    def parse_webhook(self, payload: dict[str, Any]) -> DeliveryStatusEvent:
        """
        Parse an Uber webhook payload.

        The delivery ID comes from delivery_id, or the last path segment of
        resource_href. Delivery fields may be at the top level or nested
        under data.

        Raises:
            DeliveryWebhookError: If no delivery ID can be found.
        """
        data = payload.get("data") if isinstance(payload.get("data"), dict) else {}

        delivery_id = payload.get("delivery_id") or data.get("id")
        if not delivery_id and payload.get("resource_href"):
            delivery_id = str(payload["resource_href"]).rstrip("/").rsplit("/", 1)[-1]
        if not delivery_id:
            raise DeliveryWebhookError(
                "No delivery_id in webhook payload", provider="uber_direct"
            )

        provider_status = str(payload.get("status") or data.get("status") or "")
        pickup = payload.get("pickup") or {}
        dropoff = payload.get("dropoff") or {}
        fee = data.get("fee")

        return DeliveryStatusEvent(
            event_type=str(payload.get("kind") or payload.get("event_type") or ""),
            delivery_external_id=str(delivery_id),
            provider_status=provider_status,
            status=map_status(provider_status),
            tracking_url=payload.get("tracking_url") or data.get("tracking_url") or "",
            pickup_eta=_parse_datetime(data.get("pickup_eta") or pickup.get("eta")),
            dropoff_eta=_parse_datetime(data.get("dropoff_eta") or dropoff.get("eta")),
            fee_cents=int(fee) if fee is not None else None,
            raw=payload,
        )
