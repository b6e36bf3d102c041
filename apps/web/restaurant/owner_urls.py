"""
URL routing for the owner portal API.
"""

from django.urls import path

from apps.web.restaurant import owner_views

app_name = "owner"

urlpatterns = [
    # Orders
    path("orders", owner_views.order_list, name="order_list"),
    path("orders/<int:order_id>", owner_views.order_detail, name="order_detail"),
    path("orders/bulk-delete", owner_views.order_bulk_delete, name="order_bulk_delete"),
    path("orders/<int:order_id>/status", owner_views.order_status, name="order_status"),
    # Menu
    path("menu/categories", owner_views.menu_categories, name="menu_categories"),
    path(
        "menu/categories/<int:category_id>",
        owner_views.menu_category_detail,
        name="menu_category_detail",
    ),
    path("menu/items", owner_views.menu_items, name="menu_items"),
    path("menu/items/<int:item_id>", owner_views.menu_item_detail, name="menu_item_detail"),
    # Customers
    path("customers", owner_views.customer_list, name="customer_list"),
    path("customers/<int:customer_id>", owner_views.customer_detail, name="customer_detail"),
    # Promos
    path("promos", owner_views.promos, name="promos"),
    path("promos/<int:promo_id>", owner_views.promo_update, name="promo_update"),
    # Reviews
    path("reviews", owner_views.review_list, name="review_list"),
    path("reviews/<int:review_id>/status", owner_views.review_status, name="review_status"),
    # Settings
    path("organization", owner_views.organization_settings, name="organization"),
]
