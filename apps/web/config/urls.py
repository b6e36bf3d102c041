"""
URL configuration for Tavola.
"""

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    # Public storefront API
    path("api/orgs/<slug:slug>/", include("apps.web.restaurant.urls")),
    path("api/track/", include("apps.web.restaurant.tracking_urls")),
    # Owner portal API
    path("api/owner/", include("apps.web.restaurant.owner_urls")),
    path("api/owner/", include("apps.web.delivery.owner_urls")),
    path("api/owner/payments/", include("apps.web.payments.owner_urls")),
    path("api/owner/", include("apps.web.notifications.urls")),
    # Internal scheduler endpoints
    path("api/internal/", include("apps.web.delivery.internal_urls")),
    # Provider webhooks
    path("payments/", include("apps.web.payments.urls")),
    path("delivery/", include("apps.web.delivery.urls")),
]
