"""Payment models - processor-side record of each settled payment."""

from django.db import models

from apps.web.core.models import OrganizationScopedModel


class Payment(OrganizationScopedModel):
    """
    A payment recorded from a processor webhook.

    provider_ref is unique, so webhook replays upsert rather than duplicate.
    """

    order = models.ForeignKey(
        "restaurant.Order",
        on_delete=models.CASCADE,
        related_name="payments",
    )
    provider = models.CharField(max_length=20, default="stripe")
    provider_ref = models.CharField(
        max_length=255,
        unique=True,
        help_text="PaymentIntent ID",
    )
    status = models.CharField(max_length=30)
    amount_cents = models.PositiveIntegerField()
    currency = models.CharField(max_length=3)
    fee_cents = models.IntegerField(null=True, blank=True)
    net_cents = models.IntegerField(null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.provider}:{self.provider_ref} ({self.status})"
