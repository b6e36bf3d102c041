"""
URL routing for owner delivery actions on an order.
"""

from django.urls import path

from apps.web.delivery import views

app_name = "delivery_owner"

urlpatterns = [
    path("orders/<int:order_id>/delivery", views.create_delivery, name="create"),
    path("orders/<int:order_id>/delivery/quote", views.quote, name="quote"),
    path("orders/<int:order_id>/delivery/retry", views.retry, name="retry"),
]
