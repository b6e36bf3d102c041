"""Admin registration for delivery models."""

from django.contrib import admin

from apps.web.delivery.models import (
    Delivery,
    DeliveryQuote,
    DeliveryWebhookEvent,
    LedgerEntry,
    PartnerAccessToken,
)


@admin.register(Delivery)
class DeliveryAdmin(admin.ModelAdmin):
    """Admin for partner deliveries."""

    list_display = [
        "external_id",
        "order",
        "organization",
        "provider",
        "status",
        "provider_status",
        "eta_minutes",
        "last_synced_at",
    ]
    list_filter = ["status", "provider", "organization"]
    search_fields = ["external_id", "order__customer_name"]
    readonly_fields = ["raw_payload", "created_at", "updated_at", "last_synced_at"]


@admin.register(DeliveryQuote)
class DeliveryQuoteAdmin(admin.ModelAdmin):
    list_display = ["external_id", "order", "fee_cents", "eta_minutes", "expires_at"]
    list_filter = ["provider"]


@admin.register(DeliveryWebhookEvent)
class DeliveryWebhookEventAdmin(admin.ModelAdmin):
    """Admin for the delivery webhook audit trail."""

    list_display = [
        "event_id",
        "event_type",
        "delivery_external_id",
        "status",
        "processing_duration_ms",
        "received_at",
    ]
    list_filter = ["status", "provider", "event_type"]
    search_fields = ["event_id", "delivery_external_id"]
    readonly_fields = [
        "event_id",
        "payload",
        "processing_result",
        "error",
        "received_at",
        "processed_at",
        "processing_duration_ms",
    ]


@admin.register(LedgerEntry)
class LedgerEntryAdmin(admin.ModelAdmin):
    list_display = [
        "order",
        "organization",
        "type",
        "gross_cents",
        "platform_fee_cents",
        "delivery_cost_cents",
        "net_cents",
        "status",
        "available_on",
    ]
    list_filter = ["status", "type", "organization"]


@admin.register(PartnerAccessToken)
class PartnerAccessTokenAdmin(admin.ModelAdmin):
    list_display = ["provider", "expires_at", "updated_at"]
    exclude = ["access_token"]
