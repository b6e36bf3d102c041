"""
URL routing for internal scheduler endpoints (service role key required).
"""

from django.urls import path

from apps.web.delivery import views

app_name = "delivery_internal"

urlpatterns = [
    path("deliveries/poll", views.poll, name="poll"),
]
