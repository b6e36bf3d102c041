"""
Sandbox delivery adapter for development and demos.

Used when Uber Direct credentials are missing or DELIVERY_SANDBOX is set.
Returns a fixed quote and synthetic deliveries without network calls.
"""

import hashlib
import hmac
import uuid
from datetime import UTC, datetime, timedelta

from apps.web.delivery.schemas import (
    DeliveryCredentials,
    DeliveryProvider,
    DeliveryQuoteResult,
    DeliveryRequest,
    DeliveryResult,
    DeliverySession,
    DeliveryState,
)

SANDBOX_FEE_CENTS = 599
SANDBOX_ETA_MINUTES = 45


class SandboxDeliveryAdapter:
    """
    Delivery adapter that never leaves the process.

    Deliveries it creates are remembered on the instance so get_delivery
    can return them. Other IDs come back without a status.
    """

    def __init__(self) -> None:
        self._deliveries: dict[str, DeliveryResult] = {}

    @property
    def provider(self) -> DeliveryProvider:
        return DeliveryProvider.SANDBOX

    async def close(self) -> None:
        return None

    async def authenticate(self, credentials: DeliveryCredentials) -> DeliverySession:  # noqa: ARG002
        return DeliverySession(
            provider=DeliveryProvider.SANDBOX,
            access_token=f"sandbox_{uuid.uuid4().hex}",
            expires_at=datetime.now(UTC) + timedelta(days=30),
        )

    async def create_quote(
        self,
        session: DeliverySession,  # noqa: ARG002
        request: DeliveryRequest,  # noqa: ARG002
    ) -> DeliveryQuoteResult:
        return DeliveryQuoteResult(
            external_id=f"dqt_sandbox_{uuid.uuid4().hex[:12]}",
            fee_cents=SANDBOX_FEE_CENTS,
            eta_minutes=SANDBOX_ETA_MINUTES,
            expires_at=datetime.now(UTC) + timedelta(minutes=15),
            raw={"sandbox": True},
        )

    async def create_delivery(
        self,
        session: DeliverySession,  # noqa: ARG002
        request: DeliveryRequest,
    ) -> DeliveryResult:
        external_id = f"del_sandbox_{uuid.uuid4().hex[:12]}"
        now = datetime.now(UTC)
        result = DeliveryResult(
            external_id=external_id,
            provider_status="pending",
            status=DeliveryState.CREATED,
            tracking_url=f"https://sandbox.delivery.test/track/{external_id}",
            fee_cents=SANDBOX_FEE_CENTS,
            pickup_eta=now + timedelta(minutes=15),
            dropoff_eta=now + timedelta(minutes=SANDBOX_ETA_MINUTES),
            raw={"sandbox": True, "external_reference": request.external_reference},
        )
        self._deliveries[external_id] = result
        return result

    async def get_delivery(
        self,
        session: DeliverySession,  # noqa: ARG002
        external_id: str,
    ) -> DeliveryResult:
        if external_id in self._deliveries:
            return self._deliveries[external_id]
        # Unknown to this instance: report no status so nothing is overwritten
        return DeliveryResult(external_id=external_id, provider_status="")

    def verify_webhook_signature(
        self, payload: bytes, signature: str, secret: str
    ) -> bool:
        expected = hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()
        return hmac.compare_digest(signature.lower(), expected.lower())