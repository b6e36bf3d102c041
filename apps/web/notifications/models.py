"""Notification models - in-app feed for the owner portal."""

from django.db import models

from apps.web.core.models import OrganizationScopedModel


class NotificationType(models.TextChoices):
    ORDER_STATUS = "order_status", "Order status"
    ORDER_PAID = "order_paid", "Order paid"
    DELIVERY_UPDATE = "delivery_update", "Delivery update"


class Notification(OrganizationScopedModel):
    """
    An entry in the owner's notification feed.

    Written as a side effect of order and delivery changes.
    """

    type = models.CharField(max_length=30, choices=NotificationType.choices)
    order = models.ForeignKey(
        "restaurant.Order",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="notifications",
    )
    payload = models.JSONField(default=dict, blank=True)
    read_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["organization", "read_at"]),
        ]

    def __str__(self) -> str:
        return f"{self.type} ({self.organization_id})"
