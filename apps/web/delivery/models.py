"""
Delivery models - partner deliveries, quotes, webhook audit trail,
the sales ledger and the partner token cache.
"""

from django.db import models

from apps.web.core.models import OrganizationScopedModel


class DeliveryProvider(models.TextChoices):
    UBER_DIRECT = "uber_direct", "Uber Direct"
    SANDBOX = "sandbox", "Sandbox"


class DeliveryStatus(models.TextChoices):
    """Internal delivery status."""

    CREATED = "created", "Created"
    COURIER_ASSIGNED = "courier_assigned", "Courier assigned"
    PICKED_UP = "picked_up", "Picked up"
    DROPPED_OFF = "dropped_off", "Dropped off"
    CANCELED = "canceled", "Canceled"
    FAILED = "failed", "Failed"


ACTIVE_DELIVERY_STATUSES = (
    DeliveryStatus.CREATED,
    DeliveryStatus.COURIER_ASSIGNED,
    DeliveryStatus.PICKED_UP,
)


class Delivery(OrganizationScopedModel):
    """
    A courier delivery booked with a partner. One per order.
    """

    order = models.OneToOneField(
        "restaurant.Order",
        on_delete=models.CASCADE,
        related_name="delivery",
    )
    provider = models.CharField(
        max_length=20,
        choices=DeliveryProvider.choices,
        default=DeliveryProvider.UBER_DIRECT,
    )
    external_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Delivery ID at the partner",
    )
    status = models.CharField(
        max_length=20,
        choices=DeliveryStatus.choices,
        default=DeliveryStatus.CREATED,
    )
    provider_status = models.CharField(max_length=50, blank=True)
    tracking_url = models.URLField(max_length=500, blank=True)
    pickup_eta = models.DateTimeField(null=True, blank=True)
    dropoff_eta = models.DateTimeField(null=True, blank=True)
    eta_minutes = models.PositiveIntegerField(null=True, blank=True)
    fee_cents = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="What the partner charges us",
    )
    raw_payload = models.JSONField(default=dict, blank=True)
    error_message = models.TextField(blank=True)
    last_synced_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "deliveries"
        indexes = [
            models.Index(fields=["status"]),
        ]

    def __str__(self) -> str:
        return f"{self.provider}:{self.external_id} ({self.status})"

    def as_dict(self) -> dict:
        return {
            "id": self.pk,
            "provider": self.provider,
            "external_id": self.external_id,
            "status": self.status,
            "provider_status": self.provider_status,
            "tracking_url": self.tracking_url,
            "pickup_eta": self.pickup_eta.isoformat() if self.pickup_eta else None,
            "dropoff_eta": self.dropoff_eta.isoformat() if self.dropoff_eta else None,
            "eta_minutes": self.eta_minutes,
            "fee_cents": self.fee_cents,
        }


class DeliveryQuote(OrganizationScopedModel):
    """A price/ETA quote from a partner, valid for a few minutes."""

    order = models.ForeignKey(
        "restaurant.Order",
        on_delete=models.CASCADE,
        related_name="delivery_quotes",
    )
    provider = models.CharField(
        max_length=20,
        choices=DeliveryProvider.choices,
        default=DeliveryProvider.UBER_DIRECT,
    )
    external_id = models.CharField(max_length=255)
    fee_cents = models.PositiveIntegerField()
    eta_minutes = models.PositiveIntegerField(null=True, blank=True)
    expires_at = models.DateTimeField()
    raw_payload = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"Quote {self.external_id} ({self.fee_cents}c)"


class WebhookStatus(models.TextChoices):
    """Processing status for delivery webhook events."""

    PENDING = "pending", "Pending"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"
    SKIPPED = "skipped", "Skipped"


class DeliveryWebhookEvent(models.Model):
    """
    Audit trail for delivery partner webhooks.

    The unique event_id makes redelivered events a no-op.
    """

    event_id = models.CharField(max_length=255, unique=True)
    provider = models.CharField(
        max_length=20,
        choices=DeliveryProvider.choices,
        default=DeliveryProvider.UBER_DIRECT,
    )
    event_type = models.CharField(max_length=100, blank=True)
    delivery_external_id = models.CharField(max_length=255, blank=True)
    payload = models.JSONField(help_text="Raw webhook payload")

    status = models.CharField(
        max_length=20,
        choices=WebhookStatus.choices,
        default=WebhookStatus.PENDING,
    )
    processing_result = models.JSONField(default=dict, blank=True)
    error = models.TextField(blank=True)
    received_at = models.DateTimeField(auto_now_add=True)
    processed_at = models.DateTimeField(null=True, blank=True)
    processing_duration_ms = models.PositiveIntegerField(null=True, blank=True)

    class Meta:
        ordering = ["-received_at"]
        indexes = [
            models.Index(fields=["status"]),
            models.Index(fields=["delivery_external_id"]),
        ]

    def __str__(self) -> str:
        return f"{self.provider}:{self.event_type} ({self.status})"


class LedgerEntryType(models.TextChoices):
    SALE = "sale", "Sale"


class LedgerEntryStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    AVAILABLE = "available", "Available"


class LedgerEntry(OrganizationScopedModel):
    """
    Restaurant earnings for a completed order, net of platform and
    delivery costs, held until available_on.
    """

    order = models.ForeignKey(
        "restaurant.Order",
        on_delete=models.CASCADE,
        related_name="ledger_entries",
    )
    type = models.CharField(
        max_length=20,
        choices=LedgerEntryType.choices,
        default=LedgerEntryType.SALE,
    )
    gross_cents = models.IntegerField()
    platform_fee_cents = models.IntegerField(default=0)
    delivery_cost_cents = models.IntegerField(default=0)
    net_cents = models.IntegerField()
    currency = models.CharField(max_length=3, default="cad")
    status = models.CharField(
        max_length=20,
        choices=LedgerEntryStatus.choices,
        default=LedgerEntryStatus.PENDING,
    )
    available_on = models.DateTimeField()

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "ledger entries"
        constraints = [
            models.UniqueConstraint(
                fields=["order", "type"],
                name="unique_ledger_entry_per_order_type",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.type} order={self.order_id} net={self.net_cents}"


class PartnerAccessToken(models.Model):
    """
    Cached OAuth access token, one row per partner.

    Shared by every worker process, unlike an in-memory cache.
    """

    provider = models.CharField(
        max_length=20,
        choices=DeliveryProvider.choices,
        unique=True,
    )
    access_token = models.TextField()
    expires_at = models.DateTimeField()
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.provider} token (expires {self.expires_at:%Y-%m-%d %H:%M})"
