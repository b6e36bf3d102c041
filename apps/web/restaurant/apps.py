"""Django app configuration for restaurant module."""

from django.apps import AppConfig


class RestaurantConfig(AppConfig):
    """Menu, checkout and order management."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.web.restaurant"
    verbose_name = "Restaurant orders"
