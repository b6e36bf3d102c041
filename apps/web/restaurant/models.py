"""
Restaurant models - Menu, customers, orders, promos and reviews.

All models follow the multi-tenancy pattern with OrganizationScopedModel.
Money is stored in minor currency units (cents) throughout.
"""

import secrets

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models, transaction
from django.db.models import Max

from apps.web.core.models import Organization, OrganizationScopedModel


def generate_public_token() -> str:
    """Random URL-safe token for public order tracking."""
    return secrets.token_urlsafe(24)


class MenuCategory(OrganizationScopedModel):
    """
    Category on the public menu (e.g., Entrées, Plats, Desserts).
    """

    name_fr = models.CharField(max_length=200)
    name_en = models.CharField(max_length=200, blank=True)
    sort_order = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["sort_order", "name_fr"]
        verbose_name_plural = "menu categories"
        indexes = [
            models.Index(fields=["organization", "is_active", "sort_order"]),
        ]

    def __str__(self) -> str:
        return self.name_en or self.name_fr


class MenuItem(OrganizationScopedModel):
    """
    Individual menu item with bilingual copy.

    Inventory is optional: when track_inventory is set, checkout refuses
    quantities above stock_quantity and decrements it.
    """

    category = models.ForeignKey(
        MenuCategory,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="items",
    )
    name_fr = models.CharField(max_length=200)
    name_en = models.CharField(max_length=200, blank=True)
    description_fr = models.TextField(blank=True)
    description_en = models.TextField(blank=True)
    price_cents = models.PositiveIntegerField()
    image_url = models.URLField(blank=True)
    allergens = models.JSONField(
        default=list,
        blank=True,
        help_text='List of allergens (e.g., ["nuts", "dairy", "shellfish"])',
    )
    is_active = models.BooleanField(default=True)
    sort_order = models.PositiveIntegerField(default=0)

    # Optional inventory
    track_inventory = models.BooleanField(default=False)
    stock_quantity = models.PositiveIntegerField(null=True, blank=True)

    class Meta:
        ordering = ["sort_order", "name_fr"]
        indexes = [
            models.Index(fields=["organization", "is_active"]),
            models.Index(fields=["organization", "category"]),
        ]

    def __str__(self) -> str:
        return self.display_name

    @property
    def display_name(self) -> str:
        return self.name_en or self.name_fr


class Customer(OrganizationScopedModel):
    """
    A storefront customer, upserted by email at checkout.
    """

    email = models.EmailField()
    first_name = models.CharField(max_length=100, blank=True)
    last_name = models.CharField(max_length=100, blank=True)
    phone = models.CharField(max_length=30, blank=True)
    marketing_opt_in = models.BooleanField(default=False)
    default_address = models.JSONField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "email"],
                name="unique_customer_email_per_organization",
            ),
        ]

    def __str__(self) -> str:
        return self.full_name or self.email

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class OrderStatus(models.TextChoices):
    """Order lifecycle status."""

    AWAITING_PAYMENT = "awaiting_payment", "Awaiting payment"
    PAID = "paid", "Paid"
    ACCEPTED = "accepted", "Accepted"
    PREPARING = "preparing", "Preparing"
    READY = "ready", "Ready"
    OUT_FOR_DELIVERY = "out_for_delivery", "Out for delivery"
    COMPLETED = "completed", "Completed"
    CANCELED = "canceled", "Canceled"
    REFUNDED = "refunded", "Refunded"


class FulfillmentType(models.TextChoices):
    """Order fulfillment type."""

    PICKUP = "pickup", "Pickup"
    DELIVERY = "delivery", "Delivery"


class PaymentStatus(models.TextChoices):
    """Payment processing status."""

    PENDING = "pending", "Pending"
    SUCCEEDED = "succeeded", "Succeeded"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"


class Order(OrganizationScopedModel):
    """
    Customer order.

    Tracks lifecycle, the monetary breakdown and payment. The public_token
    is the only handle given to the customer for tracking.
    """

    order_number = models.PositiveIntegerField(
        help_text="Sequential, customer-facing number per organization",
    )
    public_token = models.CharField(
        max_length=64,
        unique=True,
        default=generate_public_token,
        editable=False,
    )
    idempotency_key = models.CharField(
        max_length=255,
        blank=True,
        help_text="Client-supplied key collapsing duplicate submissions",
    )

    customer = models.ForeignKey(
        Customer,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )

    # Customer snapshot
    customer_name = models.CharField(max_length=200)
    customer_email = models.EmailField()
    customer_phone = models.CharField(max_length=30, blank=True)

    # Order details
    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.AWAITING_PAYMENT,
    )
    fulfillment_type = models.CharField(
        max_length=20,
        choices=FulfillmentType.choices,
    )
    delivery_address = models.JSONField(
        null=True,
        blank=True,
        help_text="street, city, region, postal_code, country, lat, lng, instructions",
    )
    notes = models.TextField(blank=True)

    # Pricing (cents)
    subtotal_cents = models.PositiveIntegerField()
    tax_cents = models.PositiveIntegerField(default=0)
    tip_cents = models.PositiveIntegerField(default=0)
    delivery_fee_cents = models.PositiveIntegerField(default=0)
    service_fee_cents = models.PositiveIntegerField(default=0)
    total_cents = models.PositiveIntegerField()
    application_fee_cents = models.PositiveIntegerField(default=0)

    # Payment
    stripe_payment_intent_id = models.CharField(max_length=255, blank=True)
    stripe_charge_id = models.CharField(max_length=255, blank=True)
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )
    stripe_fee_cents = models.IntegerField(null=True, blank=True)
    stripe_net_cents = models.IntegerField(null=True, blank=True)

    # Delivery dispatch
    dispatch_error = models.TextField(
        blank=True,
        help_text="Last dispatch failure, cleared on successful retry",
    )

    # Timestamps
    paid_at = models.DateTimeField(null=True, blank=True)
    accepted_at = models.DateTimeField(null=True, blank=True)
    ready_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    canceled_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["organization", "status"]),
            models.Index(fields=["organization", "created_at"]),
            models.Index(fields=["stripe_payment_intent_id"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "idempotency_key"],
                name="unique_order_idempotency_key",
                condition=models.Q(idempotency_key__gt=""),
            ),
            models.UniqueConstraint(
                fields=["organization", "order_number"],
                name="unique_order_number_per_organization",
            ),
        ]

    def __str__(self) -> str:
        return f"Order #{self.order_number} - {self.customer_name}"

    def save(self, *args: object, **kwargs: object) -> None:
        if self.order_number:
            super().save(*args, **kwargs)  # type: ignore[arg-type]
            return

        # The organization row lock serializes numbering until the outer
        # transaction commits.
        with transaction.atomic():
            Organization.objects.select_for_update().filter(pk=self.organization_id).first()
            last = Order.objects.filter(organization_id=self.organization_id).aggregate(
                last=Max("order_number")
            )["last"]
            self.order_number = (last or 1000) + 1
            super().save(*args, **kwargs)  # type: ignore[arg-type]

    @property
    def is_delivery(self) -> bool:
        return self.fulfillment_type == FulfillmentType.DELIVERY

    @property
    def tracking_url(self) -> str:
        return f"{settings.SITE_URL.rstrip('/')}/track/{self.public_token}"


class OrderItem(OrganizationScopedModel):
    """
    Line item in an order.

    Stores a snapshot of the name and price at order time so later menu
    edits never rewrite order history.
    """

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name="items",
    )
    menu_item = models.ForeignKey(
        MenuItem,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="order_items",
        help_text="Reference to the menu item (for analytics)",
    )

    # Snapshot of item at order time
    name_snapshot = models.CharField(max_length=200)
    price_cents_snapshot = models.PositiveIntegerField()
    quantity = models.PositiveIntegerField(default=1)
    modifiers = models.JSONField(default=list, blank=True)
    notes = models.TextField(blank=True)
    line_total_cents = models.PositiveIntegerField()

    class Meta:
        ordering = ["pk"]

    def __str__(self) -> str:
        return f"{self.quantity}x {self.name_snapshot}"


class OrderEvent(OrganizationScopedModel):
    """
    Append-only audit log of order status changes.
    """

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name="events",
    )
    previous_status = models.CharField(max_length=20, blank=True)
    new_status = models.CharField(max_length=20)
    changed_by = models.CharField(
        max_length=255,
        help_text="User id, or a system actor such as system_stripe",
    )
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["created_at", "pk"]
        indexes = [
            models.Index(fields=["order", "created_at"]),
        ]

    def __str__(self) -> str:
        return f"{self.previous_status or '-'} -> {self.new_status}"


class DiscountType(models.TextChoices):
    PERCENTAGE = "percentage", "Percentage"
    FIXED_AMOUNT = "fixed_amount", "Fixed amount"


class PromoCode(OrganizationScopedModel):
    """
    Promotional code managed from the owner portal.

    Codes are stored upper-case and are unique per organization.
    """

    code = models.CharField(max_length=50)
    description = models.TextField(blank=True)
    discount_type = models.CharField(max_length=20, choices=DiscountType.choices)
    discount_value = models.PositiveIntegerField(
        help_text="Percent (1-100) or amount in cents",
    )
    min_order_cents = models.PositiveIntegerField(default=0)
    max_discount_cents = models.PositiveIntegerField(null=True, blank=True)
    max_uses = models.PositiveIntegerField(null=True, blank=True)
    max_uses_per_customer = models.PositiveIntegerField(default=1)
    starts_at = models.DateTimeField(null=True, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)

    # Counters (never editable from the API)
    current_uses = models.PositiveIntegerField(default=0)
    total_discount_given_cents = models.PositiveIntegerField(default=0)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "code"],
                name="unique_promo_code_per_organization",
            ),
        ]

    def __str__(self) -> str:
        return self.code


class ReviewStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"


class Review(OrganizationScopedModel):
    """
    Customer review awaiting owner moderation.
    """

    order = models.ForeignKey(
        Order,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="reviews",
    )
    customer_name = models.CharField(max_length=200)
    rating = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(5)],
    )
    comment = models.TextField(blank=True)
    status = models.CharField(
        max_length=20,
        choices=ReviewStatus.choices,
        default=ReviewStatus.PENDING,
    )
    admin_notes = models.TextField(blank=True)
    moderated_at = models.DateTimeField(null=True, blank=True)
    moderated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["organization", "status"]),
        ]

    def __str__(self) -> str:
        return f"{self.rating}/5 by {self.customer_name}"
