"""
Core models - Multi-tenancy foundation.

All tenant-scoped models inherit from OrganizationScopedModel.
"""

from decimal import Decimal

from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.db import models

from .managers import OrganizationScopedManager


def default_tax_rate() -> Decimal:
    return Decimal(str(settings.DEFAULT_TAX_RATE))


class StripeAccountStatus(models.TextChoices):
    """Stripe Connect onboarding state."""

    NONE = "", "Not connected"
    RESTRICTED = "restricted", "Restricted"
    DETAILS_SUBMITTED = "details_submitted", "Details submitted"
    COMPLETE = "complete", "Complete"


class Organization(models.Model):
    """
    Tenant - a restaurant workspace.

    All data is scoped to an Organization. Holds the currency, tax and fee
    settings, the pickup address used for delivery dispatch, and the
    Stripe Connect account receiving payouts.
    """

    PICKUP_FIELDS = ("name", "street", "city", "region", "postal_code", "country", "phone")

    slug = models.SlugField(unique=True, help_text="URL-safe identifier")
    name = models.CharField(max_length=200)
    email = models.EmailField()
    phone = models.CharField(max_length=20, blank=True)

    # Pickup address (required for delivery dispatch)
    street = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=100, blank=True)
    region = models.CharField(max_length=100, blank=True, help_text="Province/state")
    postal_code = models.CharField(max_length=20, blank=True)
    country = models.CharField(max_length=2, default="CA")

    # Money settings
    currency = models.CharField(max_length=3, default="cad")
    tax_rate = models.DecimalField(
        max_digits=6,
        decimal_places=5,
        default=default_tax_rate,
        help_text="Combined tax rate as decimal (e.g., 0.14975 for GST+QST)",
    )
    delivery_fee_cents = models.PositiveIntegerField(default=599)
    service_fee_cents = models.PositiveIntegerField(default=0)

    # Ordering configuration
    ordering_enabled = models.BooleanField(default=True)
    pickup_enabled = models.BooleanField(default=True)
    delivery_enabled = models.BooleanField(default=False)

    # Payouts
    stripe_account_id = models.CharField(max_length=255, blank=True)
    stripe_account_status = models.CharField(
        max_length=30,
        choices=StripeAccountStatus.choices,
        blank=True,
        default=StripeAccountStatus.NONE,
    )

    # Status
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name

    @property
    def accepts_destination_charges(self) -> bool:
        """Payments can be split to the connected account."""
        return bool(
            self.stripe_account_id
            and self.stripe_account_status == StripeAccountStatus.COMPLETE
        )

    def missing_pickup_fields(self) -> list[str]:
        """Return the pickup address fields that are still empty."""
        return [field for field in self.PICKUP_FIELDS if not getattr(self, field)]


class User(AbstractUser):
    """
    Custom user model with organization association.

    Users belong to one Organization (owners/staff) or none (superuser).
    """

    organization = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="users",
        help_text="Null for superusers",
    )

    class Role(models.TextChoices):
        OWNER = "owner", "Owner"
        ADMIN = "admin", "Admin"
        STAFF = "staff", "Staff"

    role = models.CharField(
        max_length=20,
        choices=Role.choices,
        default=Role.OWNER,
    )

    class Meta:
        ordering = ["username"]

    def __str__(self) -> str:
        if self.organization:
            return f"{self.username} ({self.organization.slug})"
        return self.username

    @property
    def is_org_admin(self) -> bool:
        return self.role == self.Role.ADMIN or self.is_superuser


class OrganizationScopedModel(models.Model):
    """
    Abstract base for all tenant-scoped models.

    Provides:
    - Automatic organization FK
    - OrganizationScopedManager for filtered queries
    - Created/updated timestamps
    """

    organization = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        related_name="%(class)ss",  # e.g., organization.orders, organization.customers
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = OrganizationScopedManager()

    class Meta:
        abstract = True
