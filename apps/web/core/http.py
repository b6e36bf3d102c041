"""
JSON response helpers shared by the storefront and owner APIs.
"""

from typing import Any

from django.conf import settings
from django.http import HttpRequest, JsonResponse

from pydantic import ValidationError as PydanticValidationError


def cors_headers() -> dict[str, str]:
    """CORS headers for storefront access."""
    return {
        "Access-Control-Allow-Origin": getattr(settings, "CORS_ALLOWED_ORIGIN", "*"),
        "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
        "Access-Control-Allow-Headers": (
            "Authorization, Content-Type, Idempotency-Key, X-Organization, "
            "X-Service-Role-Key"
        ),
    }


def json_response(data: dict[str, Any], status: int = 200) -> JsonResponse:
    """Create a JSON response with CORS headers."""
    response = JsonResponse(data, status=status)
    for key, value in cors_headers().items():
        response[key] = value
    return response


def options_handler(_request: HttpRequest, *_args: Any, **_kwargs: Any) -> JsonResponse:
    """
    OPTIONS handler for CORS preflight requests.
    """
    return json_response({})


def validation_error_response(exc: PydanticValidationError) -> JsonResponse:
    """Flatten pydantic errors into {field, message} pairs."""
    details = [
        {
            "field": ".".join(str(loc) for loc in err["loc"]),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    return json_response({"error": "validation_error", "details": details}, status=400)
