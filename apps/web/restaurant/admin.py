"""Admin registration for restaurant models."""

from django.contrib import admin

from apps.web.restaurant.models import (
    Customer,
    MenuCategory,
    MenuItem,
    Order,
    OrderEvent,
    OrderItem,
    PromoCode,
    Review,
)


class MenuItemInline(admin.TabularInline):
    """Inline for items within a category."""

    model = MenuItem
    extra = 0
    fields = ["name_fr", "name_en", "price_cents", "is_active", "sort_order"]


class OrderItemInline(admin.TabularInline):
    """Inline for items within an order."""

    model = OrderItem
    extra = 0
    fields = ["name_snapshot", "quantity", "price_cents_snapshot", "line_total_cents"]
    readonly_fields = ["name_snapshot", "quantity", "price_cents_snapshot", "line_total_cents"]


class OrderEventInline(admin.TabularInline):
    """Read-only status history within an order."""

    model = OrderEvent
    extra = 0
    fields = ["previous_status", "new_status", "changed_by", "created_at"]
    readonly_fields = ["previous_status", "new_status", "changed_by", "created_at"]
    can_delete = False


@admin.register(MenuCategory)
class MenuCategoryAdmin(admin.ModelAdmin):
    """Admin for menu categories."""

    list_display = ["name_fr", "name_en", "organization", "sort_order", "is_active"]
    list_filter = ["is_active", "organization"]
    search_fields = ["name_fr", "name_en"]
    inlines = [MenuItemInline]
    readonly_fields = ["created_at", "updated_at"]


@admin.register(MenuItem)
class MenuItemAdmin(admin.ModelAdmin):
    """Admin for menu items."""

    list_display = [
        "display_name",
        "category",
        "price_cents",
        "is_active",
        "track_inventory",
        "stock_quantity",
    ]
    list_filter = ["is_active", "track_inventory", "organization"]
    search_fields = ["name_fr", "name_en", "description_fr", "description_en"]
    readonly_fields = ["created_at", "updated_at"]

    fieldsets = [
        (None, {"fields": ["organization", "category", "name_fr", "name_en", "price_cents"]}),
        ("Description", {"fields": ["description_fr", "description_en", "allergens"]}),
        ("Media", {"fields": ["image_url"]}),
        ("Availability", {"fields": ["is_active", "sort_order"]}),
        ("Inventory", {"fields": ["track_inventory", "stock_quantity"]}),
        ("Timestamps", {"fields": ["created_at", "updated_at"]}),
    ]


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ["email", "first_name", "last_name", "organization", "created_at"]
    list_filter = ["marketing_opt_in", "organization"]
    search_fields = ["email", "first_name", "last_name", "phone"]


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """Admin for orders."""

    list_display = [
        "order_number",
        "customer_name",
        "organization",
        "status",
        "fulfillment_type",
        "total_cents",
        "payment_status",
        "created_at",
    ]
    list_filter = ["status", "fulfillment_type", "payment_status", "organization"]
    search_fields = [
        "order_number",
        "public_token",
        "customer_name",
        "customer_email",
        "customer_phone",
        "stripe_payment_intent_id",
    ]
    inlines = [OrderItemInline, OrderEventInline]
    readonly_fields = [
        "public_token",
        "created_at",
        "updated_at",
        "paid_at",
        "accepted_at",
        "ready_at",
        "completed_at",
        "canceled_at",
        "refunded_at",
    ]

    fieldsets = [
        (None, {"fields": ["organization", "order_number", "public_token", "status"]}),
        (
            "Customer",
            {"fields": ["customer", "customer_name", "customer_email", "customer_phone"]},
        ),
        ("Fulfillment", {"fields": ["fulfillment_type", "delivery_address", "notes", "dispatch_error"]}),
        (
            "Totals",
            {
                "fields": [
                    "subtotal_cents",
                    "tax_cents",
                    "tip_cents",
                    "delivery_fee_cents",
                    "service_fee_cents",
                    "total_cents",
                    "application_fee_cents",
                ]
            },
        ),
        (
            "Payment",
            {
                "fields": [
                    "payment_status",
                    "stripe_payment_intent_id",
                    "stripe_charge_id",
                    "stripe_fee_cents",
                    "stripe_net_cents",
                ]
            },
        ),
        (
            "Timestamps",
            {
                "fields": [
                    "created_at",
                    "updated_at",
                    "paid_at",
                    "accepted_at",
                    "ready_at",
                    "completed_at",
                    "canceled_at",
                    "refunded_at",
                ]
            },
        ),
    ]


@admin.register(PromoCode)
class PromoCodeAdmin(admin.ModelAdmin):
    list_display = [
        "code",
        "organization",
        "discount_type",
        "discount_value",
        "current_uses",
        "is_active",
        "expires_at",
    ]
    list_filter = ["discount_type", "is_active", "organization"]
    search_fields = ["code", "description"]
    readonly_fields = ["current_uses", "total_discount_given_cents", "created_by"]


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ["customer_name", "organization", "rating", "status", "created_at"]
    list_filter = ["status", "rating", "organization"]
    search_fields = ["customer_name", "comment"]
    readonly_fields = ["moderated_at", "moderated_by"]
