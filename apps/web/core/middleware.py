"""
Organization middleware - attaches current tenant to request.
"""

from collections.abc import Callable
from typing import TYPE_CHECKING

from django.http import HttpRequest, HttpResponse

if TYPE_CHECKING:
    from .models import Organization


class OrganizationMiddleware:
    """
    Middleware that attaches the current organization to the request.

    Organization is determined by (in order):
    1. X-Organization header (for API calls from the storefront)
    2. Subdomain (slug.tavola.app)
    3. User's organization (for the owner portal)

    Sets request.organization (None when it cannot be resolved).
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        # Skip for admin
        if request.path.startswith("/admin/"):
            return self.get_response(request)

        request.organization = self._get_organization(request)  # type: ignore[attr-defined]
        return self.get_response(request)

    def _get_organization(self, request: HttpRequest) -> "Organization | None":
        """Resolve organization from request."""
        # Lazy import to avoid circular dependency
        from .models import Organization

        # Owner portal: the user's own organization always wins
        if request.path.startswith("/api/owner/"):
            if request.user.is_authenticated:
                return getattr(request.user, "organization", None)
            return None

        # 1. Header (for API calls)
        slug = request.headers.get("X-Organization")
        if slug:
            try:
                return Organization.objects.get(slug=slug, is_active=True)
            except Organization.DoesNotExist:
                return None

        # 2. Subdomain
        host = request.get_host().split(":")[0]  # Remove port
        if host.count(".") >= 2:
            subdomain = host.split(".")[0]
            try:
                return Organization.objects.get(slug=subdomain, is_active=True)
            except Organization.DoesNotExist:
                pass

        # 3. User's organization
        if request.user.is_authenticated:
            return getattr(request.user, "organization", None)

        return None
