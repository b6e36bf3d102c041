"""
Owner portal endpoints for Stripe Connect onboarding.
"""

import logging

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from apps.web.core.decorators import owner_required
from apps.web.core.http import json_response
from apps.web.payments.services import (
    PaymentError,
    create_onboarding_link,
    sync_account_status,
)

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
@owner_required
def start_onboarding(request: HttpRequest) -> JsonResponse:
    """
    Create (if needed) a connected account and return an onboarding link.

    POST /api/owner/payments/onboarding

    Response:
        {"url": "https://connect.stripe.com/...", "account_id": "acct_..."}
    """
    organization = request.user.organization

    try:
        url = create_onboarding_link(organization)
    except PaymentError as e:
        logger.error("Onboarding link failed for %s: %s", organization.slug, e.message)
        return json_response({"error": e.message}, status=502)

    return json_response({"url": url, "account_id": organization.stripe_account_id})


@require_GET
@owner_required
def onboarding_status(request: HttpRequest) -> JsonResponse:
    """
    Current Connect status, refreshed from Stripe when an account exists.

    GET /api/owner/payments/status
    """
    organization = request.user.organization

    if organization.stripe_account_id:
        try:
            sync_account_status(organization)
        except PaymentError as e:
            logger.warning(
                "Could not refresh Stripe status for %s: %s", organization.slug, e.message
            )

    return json_response(
        {
            "account_id": organization.stripe_account_id,
            "status": organization.stripe_account_status,
            "accepts_destination_charges": organization.accepts_destination_charges,
        }
    )
