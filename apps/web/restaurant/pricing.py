"""
Order pricing - server-side totals from live menu prices.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from apps.web.core.models import Organization
from apps.web.restaurant.models import FulfillmentType


class PriceMismatchError(ValueError):
    """Client-submitted totals disagree with the server computation."""

    def __init__(self, field: str, expected: int, submitted: int) -> None:
        self.field = field
        self.expected = expected
        self.submitted = submitted
        super().__init__(f"{field} mismatch: expected {expected}, got {submitted}")


@dataclass(frozen=True)
class PriceBreakdown:
    """Monetary breakdown of an order, in cents."""

    subtotal_cents: int
    tax_cents: int
    tip_cents: int
    delivery_fee_cents: int
    service_fee_cents: int
    total_cents: int

    def as_dict(self) -> dict[str, int]:
        return {
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "tip_cents": self.tip_cents,
            "delivery_fee_cents": self.delivery_fee_cents,
            "service_fee_cents": self.service_fee_cents,
            "total_cents": self.total_cents,
        }


def round_cents(amount: Decimal) -> int:
    """Round half up to whole cents."""
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percent_of(amount_cents: int, percent: int | Decimal) -> int:
    """`percent`% of an amount, rounded to cents."""
    return round_cents(Decimal(amount_cents) * Decimal(percent) / Decimal(100))


def compute_totals(
    lines: list[tuple[int, int]],
    organization: Organization,
    fulfillment_type: str,
    tip_cents: int = 0,
) -> PriceBreakdown:
    """
    Compute an order's totals.

    Args:
        lines: (unit_price_cents, quantity) for each cart line, with prices
            taken from the menu rows, never from the client.
        organization: Supplies tax rate and fee settings.
        fulfillment_type: 'pickup' or 'delivery'.
        tip_cents: Customer tip.

    Returns:
        PriceBreakdown whose total equals the sum of its components.

    Raises:
        ValueError: If a quantity, price or tip is negative.
    """
    if tip_cents < 0:
        raise ValueError("Tip cannot be negative")
    if any(price < 0 or qty < 1 for price, qty in lines):
        raise ValueError("Line prices must be non-negative and quantities positive")

    subtotal = sum(price * qty for price, qty in lines)
    tax = round_cents(Decimal(subtotal) * Decimal(organization.tax_rate))
    delivery_fee = (
        organization.delivery_fee_cents
        if fulfillment_type == FulfillmentType.DELIVERY
        else 0
    )
    service_fee = organization.service_fee_cents
    total = subtotal + tax + tip_cents + delivery_fee + service_fee

    breakdown = PriceBreakdown(
        subtotal_cents=subtotal,
        tax_cents=tax,
        tip_cents=tip_cents,
        delivery_fee_cents=delivery_fee,
        service_fee_cents=service_fee,
        total_cents=total,
    )
    assert_consistent(breakdown)
    return breakdown


def assert_consistent(breakdown: PriceBreakdown) -> None:
    """Raise if total_cents is not the sum of its components."""
    components = (
        breakdown.subtotal_cents
        + breakdown.tax_cents
        + breakdown.tip_cents
        + breakdown.delivery_fee_cents
        + breakdown.service_fee_cents
    )
    if components != breakdown.total_cents:
        raise ValueError(
            f"total_cents {breakdown.total_cents} != sum of components {components}"
        )


def check_expected_totals(breakdown: PriceBreakdown, expected: dict[str, int]) -> None:
    """
    Compare client-submitted totals against the server computation.

    Only the fields the client sent are checked.

    Raises:
        PriceMismatchError: On the first field that differs.
    """
    computed = breakdown.as_dict()
    for field, submitted in expected.items():
        if field in computed and computed[field] != submitted:
            raise PriceMismatchError(field, computed[field], submitted)
