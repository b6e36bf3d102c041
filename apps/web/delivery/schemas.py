"""Delivery integration schemas - data contracts for delivery partners."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

# =============================================================================
# Enums
# =============================================================================


class DeliveryProvider(str, Enum):
    """Supported delivery partners."""

    UBER_DIRECT = "uber_direct"
    SANDBOX = "sandbox"


class DeliveryState(str, Enum):
    """Internal delivery lifecycle, independent of the partner's vocabulary."""

    CREATED = "created"
    COURIER_ASSIGNED = "courier_assigned"
    PICKED_UP = "picked_up"
    DROPPED_OFF = "dropped_off"
    CANCELED = "canceled"
    FAILED = "failed"


# =============================================================================
# Authentication
# =============================================================================


class DeliveryCredentials(BaseModel):
    """Credentials for authenticating with a delivery partner."""

    provider: DeliveryProvider
    client_id: str
    client_secret: str
    customer_id: str


class DeliverySession(BaseModel):
    """Authenticated session with a delivery partner."""

    provider: DeliveryProvider
    access_token: str
    expires_at: datetime


# =============================================================================
# Requests
# =============================================================================


class DeliveryAddress(BaseModel):
    street: str
    unit: str = ""
    city: str = ""
    region: str = ""
    postal_code: str = ""
    country: str = "CA"
    lat: float | None = None
    lng: float | None = None


class DeliveryContact(BaseModel):
    name: str
    phone: str = ""
    company_name: str = ""


class DeliveryRequest(BaseModel):
    """Everything a partner needs to quote or create a delivery."""

    external_reference: str = Field(description="Our order identifier")
    pickup_address: DeliveryAddress
    pickup_contact: DeliveryContact
    dropoff_address: DeliveryAddress
    dropoff_contact: DeliveryContact
    dropoff_instructions: str = ""
    manifest_description: str
    manifest_total_cents: int = 0


# =============================================================================
# Results
# =============================================================================


class DeliveryQuoteResult(BaseModel):
    external_id: str = Field(description="Quote ID at the partner")
    fee_cents: int
    eta_minutes: int | None = None
    expires_at: datetime | None = None
    raw: dict[str, Any] = Field(default_factory=dict)


class DeliveryResult(BaseModel):
    """A delivery as reported by the partner, mapped to our vocabulary."""

    external_id: str = Field(description="Delivery ID at the partner")
    provider_status: str
    status: DeliveryState | None = None
    tracking_url: str = ""
    fee_cents: int | None = None
    pickup_eta: datetime | None = None
    dropoff_eta: datetime | None = None
    raw: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Webhooks
# =============================================================================


class DeliveryStatusEvent(BaseModel):
    """A status update pushed by a partner webhook."""

    event_type: str = ""
    delivery_external_id: str
    provider_status: str = ""
    status: DeliveryState | None = Field(
        default=None,
        description="None when the partner status has no internal mapping",
    )
    tracking_url: str = ""
    pickup_eta: datetime | None = None
    dropoff_eta: datetime | None = None
    fee_cents: int | None = None
    raw: dict[str, Any] = Field(default_factory=dict)
