"""
Payment services - Stripe integration.

Provides functions for PaymentIntents with marketplace fee splitting,
fee/net retrieval, refunds and Stripe Connect onboarding.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from django.conf import settings

import stripe

from apps.web.core.models import Organization, StripeAccountStatus
from apps.web.restaurant.pricing import percent_of

if TYPE_CHECKING:
    from apps.web.restaurant.models import Order

logger = logging.getLogger(__name__)

# Configure Stripe API key
stripe.api_key = settings.STRIPE_SECRET_KEY


class PaymentError(Exception):
    """Error during payment processing."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


def _payment_error(e: stripe.error.StripeError) -> PaymentError:
    return PaymentError(
        message=str(e.user_message or e),
        code=getattr(e, "code", None),
    )


@dataclass(frozen=True)
class FeeBreakdown:
    """Processor fee and net amount for a settled charge."""

    charge_id: str
    fee_cents: int | None
    net_cents: int | None


def application_fee_for(order: "Order") -> int:
    """
    Platform fee taken on a destination charge.

    Zero unless the organization's connected account is fully onboarded.
    """
    if not order.organization.accepts_destination_charges:
        return 0
    return percent_of(order.total_cents, settings.PLATFORM_FEE_PERCENT)


def create_payment_intent(order: "Order") -> stripe.PaymentIntent:
    """
    Create a Stripe PaymentIntent for the order.

    When the organization has a complete Connect account the charge is a
    destination charge: funds go to the restaurant minus the platform's
    application fee.

    Args:
        order: Saved order awaiting payment.

    Returns:
        stripe.PaymentIntent with client_secret for frontend

    Raises:
        PaymentError: If Stripe API call fails
    """
    organization = order.organization
    params: dict[str, Any] = {
        "amount": order.total_cents,
        "currency": organization.currency.lower(),
        "automatic_payment_methods": {"enabled": True},
        "description": f"Order #{order.order_number}",
        "receipt_email": order.customer_email,
        "metadata": {
            "order_id": str(order.pk),
            "organization_id": str(organization.pk),
            "public_token": order.public_token,
        },
    }

    application_fee = application_fee_for(order)
    if application_fee:
        params["application_fee_amount"] = application_fee
        params["transfer_data"] = {"destination": organization.stripe_account_id}

    try:
        return stripe.PaymentIntent.create(
            **params,
            idempotency_key=f"order-{order.pk}",
        )
    except stripe.error.StripeError as e:
        raise _payment_error(e) from e


def retrieve_fee_breakdown(payment_intent_id: str) -> FeeBreakdown:
    """
    Fetch the processor fee and net amount for a succeeded PaymentIntent.

    Args:
        payment_intent_id: The Stripe PaymentIntent ID (pi_xxx)

    Returns:
        FeeBreakdown; fee/net are None when no balance transaction exists yet.

    Raises:
        PaymentError: If the API call fails
    """
    try:
        intent = stripe.PaymentIntent.retrieve(
            payment_intent_id,
            expand=["latest_charge.balance_transaction"],
        )
    except stripe.error.StripeError as e:
        raise _payment_error(e) from e

    charge = intent.get("latest_charge")
    if not charge:
        return FeeBreakdown(charge_id="", fee_cents=None, net_cents=None)

    if isinstance(charge, str):
        return FeeBreakdown(charge_id=charge, fee_cents=None, net_cents=None)

    balance_transaction = charge.get("balance_transaction")
    if not balance_transaction or isinstance(balance_transaction, str):
        return FeeBreakdown(charge_id=charge["id"], fee_cents=None, net_cents=None)

    return FeeBreakdown(
        charge_id=charge["id"],
        fee_cents=balance_transaction.get("fee"),
        net_cents=balance_transaction.get("net"),
    )


def create_refund(
    payment_intent_id: str,
    amount_cents: int | None = None,
    reason: str = "requested_by_customer",
) -> stripe.Refund:
    """
    Create a refund for a payment.

    Args:
        payment_intent_id: The Stripe PaymentIntent ID to refund
        amount_cents: Amount to refund in cents (None = full refund)
        reason: Reason for refund - one of:
            - "duplicate"
            - "fraudulent"
            - "requested_by_customer"

    Returns:
        stripe.Refund object

    Raises:
        PaymentError: If refund fails
    """
    try:
        params: dict[str, Any] = {
            "payment_intent": payment_intent_id,
            "reason": reason,
        }
        if amount_cents is not None:
            params["amount"] = amount_cents

        return stripe.Refund.create(**params)
    except stripe.error.StripeError as e:
        raise _payment_error(e) from e


# =============================================================================
# Stripe Connect
# =============================================================================


def create_connect_account(organization: Organization) -> str:
    """
    Create an Express connected account for the organization if it has none.

    Returns:
        The connected account ID (acct_xxx)

    Raises:
        PaymentError: If Stripe API call fails
    """
    if organization.stripe_account_id:
        return organization.stripe_account_id

    try:
        account = stripe.Account.create(
            type="express",
            country=organization.country or "CA",
            email=organization.email,
            capabilities={
                "card_payments": {"requested": True},
                "transfers": {"requested": True},
            },
            business_profile={"name": organization.name},
            metadata={"organization_id": str(organization.pk)},
        )
    except stripe.error.StripeError as e:
        raise _payment_error(e) from e

    organization.stripe_account_id = account.id
    organization.stripe_account_status = StripeAccountStatus.RESTRICTED
    organization.save(
        update_fields=["stripe_account_id", "stripe_account_status", "updated_at"]
    )
    logger.info(
        "Created Stripe account %s for organization %s", account.id, organization.slug
    )
    return str(account.id)


def create_onboarding_link(organization: Organization) -> str:
    """
    Create a hosted onboarding link for the organization's connected account.

    Returns:
        URL to redirect the owner to

    Raises:
        PaymentError: If Stripe API call fails
    """
    account_id = create_connect_account(organization)
    base = settings.SITE_URL.rstrip("/")

    try:
        link = stripe.AccountLink.create(
            account=account_id,
            type="account_onboarding",
            refresh_url=f"{base}/owner/settings?connect=refresh",
            return_url=f"{base}/owner/settings?connect=success",
        )
    except stripe.error.StripeError as e:
        raise _payment_error(e) from e

    return str(link.url)


def account_status_from(account: Any) -> str:
    """Map a Stripe Account object to our onboarding status."""
    if account.get("payouts_enabled"):
        return StripeAccountStatus.COMPLETE
    if account.get("details_submitted"):
        return StripeAccountStatus.DETAILS_SUBMITTED
    return StripeAccountStatus.RESTRICTED


def sync_account_status(organization: Organization, account: Any | None = None) -> str:
    """
    Refresh the organization's Connect status.

    Args:
        organization: Organization with a stripe_account_id.
        account: Account payload (from a webhook); fetched when omitted.

    Returns:
        The new status value.

    Raises:
        PaymentError: If the account cannot be retrieved
    """
    if account is None:
        try:
            account = stripe.Account.retrieve(organization.stripe_account_id)
        except stripe.error.StripeError as e:
            raise _payment_error(e) from e

    status = account_status_from(account)
    if status != organization.stripe_account_status:
        organization.stripe_account_status = status
        organization.save(update_fields=["stripe_account_status", "updated_at"])
        logger.info(
            "Stripe account %s for %s is now %s",
            organization.stripe_account_id,
            organization.slug,
            status,
        )
    return status
