"""
Tenant scoping for restaurant data.

Owner portal views read menus, orders, customers and reviews through
`for_organization` so one restaurant never sees another's rows.
"""

from typing import TYPE_CHECKING, Any, TypeVar

from django.db import models

if TYPE_CHECKING:
    from django.http import HttpRequest

    from .models import OrganizationScopedModel

_T = TypeVar("_T", bound="OrganizationScopedModel")


class OrganizationScopedManager(models.Manager[_T]):
    """
    Default manager of every OrganizationScopedModel.

        Order.objects.for_organization(request).filter(status="paid")

    Storefront views resolve the restaurant from the URL slug and filter on
    it directly; owner views go through this method.
    """

    def for_organization(self, request: "HttpRequest") -> models.QuerySet[_T]:
        """Rows belonging to `request.organization`.

        The attribute comes from OrganizationMiddleware. A request without
        one is a wiring error (view not behind the middleware, or an
        anonymous caller), so this raises ValueError instead of returning
        an unscoped queryset.
        """
        organization: Any = getattr(request, "organization", None)
        if organization is None:
            raise ValueError(
                "No organization on request; OrganizationMiddleware did not resolve one"
            )
        return self.filter(organization=organization)
