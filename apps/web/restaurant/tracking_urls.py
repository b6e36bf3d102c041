"""
URL routing for public order tracking.
"""

from django.urls import path

from apps.web.restaurant import views

app_name = "tracking"

urlpatterns = [
    path("<str:public_token>", views.track_order, name="track"),
]
