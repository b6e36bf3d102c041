"""Admin registration for payment models."""

from django.contrib import admin

from apps.web.payments.models import Payment


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    """Admin for payments."""

    list_display = [
        "provider_ref",
        "order",
        "organization",
        "status",
        "amount_cents",
        "fee_cents",
        "net_cents",
        "created_at",
    ]
    list_filter = ["status", "provider", "organization"]
    search_fields = ["provider_ref", "order__customer_email"]
    readonly_fields = ["created_at", "updated_at"]
