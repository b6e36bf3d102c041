"""
Decorators for request handling, authentication and idempotency.
"""

import hmac
import json
from collections.abc import Callable
from functools import wraps
from typing import Any

from django.conf import settings
from django.core.cache import cache
from django.http import HttpRequest, JsonResponse

from .http import json_response

IDEMPOTENCY_TTL_SECONDS = 86400  # 24 hours


def idempotent_request(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """
    Decorator that replays responses for a repeated Idempotency-Key header.

    The header is optional. When present, the first successful response is
    cached for 24 hours and returned as-is for any request reusing the key.
    Keys are namespaced by path so two endpoints never share a response.

    Usage:
        @idempotent_request
        def checkout(request, slug):
            ...
    """

    @wraps(view_func)
    def wrapper(request: HttpRequest, *args: Any, **kwargs: Any) -> Any:
        key = request.headers.get("Idempotency-Key")
        if not key:
            return view_func(request, *args, **kwargs)

        cache_key = f"idempotency:{request.path}:{key}"
        cached = cache.get(cache_key)

        if cached:
            # Return cached response
            return json_response(cached["data"], status=cached["status"])

        # Call the actual view
        response = view_func(request, *args, **kwargs)

        # Cache successful responses only
        if response.status_code < 400:
            cache.set(
                cache_key,
                {
                    "data": json.loads(response.content),
                    "status": response.status_code,
                },
                timeout=IDEMPOTENCY_TTL_SECONDS,
            )

        return response

    return wrapper


def has_service_role(request: HttpRequest) -> bool:
    """Check the X-Service-Role-Key header against the configured secret."""
    expected = getattr(settings, "SERVICE_ROLE_KEY", "")
    provided = request.headers.get("X-Service-Role-Key", "")
    if not expected or not provided:
        return False
    return hmac.compare_digest(provided, expected)


def _owner_error(request: HttpRequest) -> JsonResponse | None:
    """Return a 401/403 response when the request is not from an owner."""
    if not request.user.is_authenticated:
        return json_response({"error": "Unauthorized"}, status=401)
    if getattr(request.user, "organization", None) is None:
        return json_response(
            {"error": "User is not a member of any organization"}, status=403
        )
    return None


def owner_required(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """
    Require an authenticated user attached to an organization.

    Returns JSON errors instead of redirecting to a login page:
    401 when anonymous, 403 when the user has no organization.
    """

    @wraps(view_func)
    def wrapper(request: HttpRequest, *args: Any, **kwargs: Any) -> Any:
        error = _owner_error(request)
        if error is not None:
            return error
        return view_func(request, *args, **kwargs)

    return wrapper


def owner_or_service_role(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """
    Like owner_required, but internal schedulers holding the service role
    key are let through as well.

    Sets request.is_service_role so views can skip tenant checks.
    """

    @wraps(view_func)
    def wrapper(request: HttpRequest, *args: Any, **kwargs: Any) -> Any:
        request.is_service_role = has_service_role(request)  # type: ignore[attr-defined]
        if not request.is_service_role:  # type: ignore[attr-defined]
            error = _owner_error(request)
            if error is not None:
                return error
        return view_func(request, *args, **kwargs)

    return wrapper
