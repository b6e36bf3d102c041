"""
URL routing for delivery partner webhooks.
"""

from django.urls import path

from apps.web.delivery import views

app_name = "delivery"

urlpatterns = [
    path("webhooks/uber", views.uber_webhook, name="uber-webhook"),
]
