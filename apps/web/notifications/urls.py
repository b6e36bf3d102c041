"""
URL routing for the owner notification feed.
"""

from django.urls import path

from apps.web.notifications import views

app_name = "notifications"

urlpatterns = [
    path("notifications", views.notification_list, name="list"),
    path("notifications/<int:notification_id>/read", views.mark_read, name="read"),
]
