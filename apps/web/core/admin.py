"""Admin registrations for core models."""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import Organization, User


@admin.register(Organization)
class OrganizationAdmin(admin.ModelAdmin):  # type: ignore[type-arg]
    list_display = ["name", "slug", "email", "stripe_account_status", "is_active"]
    list_filter = ["is_active", "delivery_enabled", "stripe_account_status"]
    search_fields = ["name", "slug", "email"]
    prepopulated_fields = {"slug": ("name",)}
    readonly_fields = ["created_at", "updated_at"]

    fieldsets = [
        (None, {"fields": ["name", "slug", "email", "phone", "is_active"]}),
        (
            "Pickup Address",
            {"fields": ["street", "city", "region", "postal_code", "country"]},
        ),
        (
            "Ordering",
            {
                "fields": [
                    "ordering_enabled",
                    "pickup_enabled",
                    "delivery_enabled",
                    "currency",
                    "tax_rate",
                    "delivery_fee_cents",
                    "service_fee_cents",
                ]
            },
        ),
        ("Payouts", {"fields": ["stripe_account_id", "stripe_account_status"]}),
        ("Timestamps", {"fields": ["created_at", "updated_at"]}),
    ]


@admin.register(User)
class UserAdmin(BaseUserAdmin):  # type: ignore[type-arg]
    list_display = ["username", "email", "organization", "role", "is_active"]
    list_filter = ["is_staff", "is_active", "role", "organization"]
    search_fields = ["username", "email"]
    fieldsets = (
        *BaseUserAdmin.fieldsets,  # type: ignore[misc]
        ("Organization", {"fields": ("organization", "role")}),
    )
    add_fieldsets = (
        *BaseUserAdmin.add_fieldsets,
        ("Organization", {"fields": ("organization", "role")}),
    )
