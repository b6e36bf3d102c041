"""
URL routing for public storefront endpoints.

These endpoints are public (no auth required) and CORS-enabled.
"""

from django.urls import path

from apps.web.restaurant import views

app_name = "restaurant"

urlpatterns = [
    path("menu", views.menu, name="menu"),
    path("checkout", views.checkout, name="checkout"),
]
