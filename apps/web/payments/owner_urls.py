"""
URL routing for owner payment settings.
"""

from django.urls import path

from apps.web.payments import views

app_name = "payments_owner"

urlpatterns = [
    path("onboarding", views.start_onboarding, name="onboarding"),
    path("status", views.onboarding_status, name="status"),
]
