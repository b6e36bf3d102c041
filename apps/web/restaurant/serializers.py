"""
Pydantic schemas for the storefront and owner APIs.

These schemas define the public API contract for menu, checkout,
tracking and owner portal data.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"

# =============================================================================
# Menu
# =============================================================================


class MenuItemSchema(BaseModel):
    """A menu item as shown on the storefront."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name_fr: str
    name_en: str
    description_fr: str
    description_en: str
    price_cents: int
    image_url: str
    allergens: list[str]
    in_stock: bool = True


class MenuCategorySchema(BaseModel):
    """A category with its active items."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name_fr: str
    name_en: str
    sort_order: int
    items: list[MenuItemSchema] = Field(default_factory=list)


class MenuResponse(BaseModel):
    """Response for GET /api/orgs/{slug}/menu."""

    organization: dict[str, Any]
    categories: list[MenuCategorySchema]


class OwnerMenuCategorySchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name_fr: str
    name_en: str
    sort_order: int
    is_active: bool


class OwnerMenuItemSchema(BaseModel):
    """A menu item as the owner edits it, inactive items and stock included."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    category_id: int | None
    name_fr: str
    name_en: str
    description_fr: str
    description_en: str
    price_cents: int
    image_url: str
    allergens: list[str]
    is_active: bool
    sort_order: int
    track_inventory: bool
    stock_quantity: int | None
    updated_at: datetime


class MenuCategoryCreateRequest(BaseModel):
    """Request body for POST /api/owner/menu/categories."""

    name_fr: str = Field(..., min_length=1, max_length=200)
    name_en: str = Field(default="", max_length=200)
    sort_order: int = Field(default=0, ge=0)
    is_active: bool = True


class MenuCategoryUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name_fr: str | None = Field(default=None, min_length=1, max_length=200)
    name_en: str | None = Field(default=None, max_length=200)
    sort_order: int | None = Field(default=None, ge=0)
    is_active: bool | None = None


class MenuItemCreateRequest(BaseModel):
    """Request body for POST /api/owner/menu/items."""

    category_id: int | None = None
    name_fr: str = Field(..., min_length=1, max_length=200)
    name_en: str = Field(default="", max_length=200)
    description_fr: str = Field(default="", max_length=2000)
    description_en: str = Field(default="", max_length=2000)
    price_cents: int = Field(..., ge=0)
    image_url: str = Field(default="", max_length=200)
    allergens: list[str] = Field(default_factory=list)
    is_active: bool = True
    sort_order: int = Field(default=0, ge=0)
    track_inventory: bool = False
    stock_quantity: int | None = Field(default=None, ge=0)


class MenuItemUpdateRequest(BaseModel):
    """
    Request body for POST /api/owner/menu/items/{id}.

    Availability (`is_active`) and stock are toggled through the same
    endpoint. `category_id` and `stock_quantity` may be cleared with null.
    """

    model_config = ConfigDict(extra="ignore")

    category_id: int | None = None
    name_fr: str | None = Field(default=None, min_length=1, max_length=200)
    name_en: str | None = Field(default=None, max_length=200)
    description_fr: str | None = Field(default=None, max_length=2000)
    description_en: str | None = Field(default=None, max_length=2000)
    price_cents: int | None = Field(default=None, ge=0)
    image_url: str | None = Field(default=None, max_length=200)
    allergens: list[str] | None = None
    is_active: bool | None = None
    sort_order: int | None = Field(default=None, ge=0)
    track_inventory: bool | None = None
    stock_quantity: int | None = Field(default=None, ge=0)


# =============================================================================
# Checkout
# =============================================================================


class CustomerSchema(BaseModel):
    """Customer information for an order."""

    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=254)
    phone: str = Field(default="", max_length=30)
    marketing_opt_in: bool = False

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name is required")
        return value


class AddressSchema(BaseModel):
    """Delivery address."""

    street: str = Field(default="", max_length=255)
    unit: str = Field(default="", max_length=50)
    city: str = Field(default="", max_length=100)
    region: str = Field(default="", max_length=100)
    postal_code: str = Field(default="", max_length=20)
    country: str = Field(default="CA", max_length=2)
    lat: float | None = None
    lng: float | None = None
    instructions: str = Field(default="", max_length=500)


class CartItemSchema(BaseModel):
    """A single cart line. Prices are never accepted from the client."""

    menu_item_id: int
    quantity: int = Field(..., ge=1, le=99)
    modifiers: list[dict[str, Any]] = Field(default_factory=list)
    notes: str = Field(default="", max_length=500)


class ExpectedTotalsSchema(BaseModel):
    """Totals the client displayed; checked against the server computation."""

    subtotal_cents: int | None = None
    tax_cents: int | None = None
    delivery_fee_cents: int | None = None
    service_fee_cents: int | None = None
    tip_cents: int | None = None
    total_cents: int | None = None


class CheckoutRequest(BaseModel):
    """Request body for POST /api/orgs/{slug}/checkout."""

    customer: CustomerSchema
    fulfillment_type: Literal["pickup", "delivery"]
    items: list[CartItemSchema] = Field(..., min_length=1)
    delivery_address: AddressSchema | None = None
    notes: str = Field(default="", max_length=1000)
    tip_cents: int = Field(default=0, ge=0)
    idempotency_key: str = Field(default="", max_length=255)
    expected_totals: ExpectedTotalsSchema | None = None


class TotalsSchema(BaseModel):
    subtotal_cents: int
    tax_cents: int
    tip_cents: int
    delivery_fee_cents: int
    service_fee_cents: int
    total_cents: int


class CheckoutResponse(BaseModel):
    """Response for POST /api/orgs/{slug}/checkout."""

    client_secret: str | None
    public_token: str
    order_id: int
    order_number: int
    totals: TotalsSchema


# =============================================================================
# Orders
# =============================================================================


class OrderItemSchema(BaseModel):
    """A line item snapshot."""

    model_config = ConfigDict(from_attributes=True)

    name_snapshot: str
    price_cents_snapshot: int
    quantity: int
    modifiers: list[dict[str, Any]]
    notes: str
    line_total_cents: int


class TrackingDeliverySchema(BaseModel):
    status: str
    pickup_eta: datetime | None
    dropoff_eta: datetime | None
    eta_minutes: int | None
    tracking_url: str


class TrackingResponse(BaseModel):
    """
    Response for GET /api/track/{public_token}.

    Contains no customer contact details or payment identifiers.
    """

    order_number: int
    organization_name: str
    status: str
    fulfillment_type: str
    subtotal_cents: int
    tax_cents: int
    tip_cents: int
    delivery_fee_cents: int
    service_fee_cents: int
    total_cents: int
    created_at: datetime
    paid_at: datetime | None
    accepted_at: datetime | None
    ready_at: datetime | None
    completed_at: datetime | None
    canceled_at: datetime | None
    items: list[OrderItemSchema]
    delivery: TrackingDeliverySchema | None = None


class OrderEventSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    previous_status: str
    new_status: str
    changed_by: str
    metadata: dict[str, Any]
    created_at: datetime


class OrderSummarySchema(BaseModel):
    """Order card on the owner board."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    order_number: int
    status: str
    fulfillment_type: str
    customer_name: str
    total_cents: int
    payment_status: str
    dispatch_error: str
    created_at: datetime


class OrderDetailSchema(OrderSummarySchema):
    """Full order for the owner detail page."""

    public_token: str
    customer_email: str
    customer_phone: str
    delivery_address: dict[str, Any] | None
    notes: str
    subtotal_cents: int
    tax_cents: int
    tip_cents: int
    delivery_fee_cents: int
    service_fee_cents: int
    application_fee_cents: int
    stripe_fee_cents: int | None
    stripe_net_cents: int | None
    paid_at: datetime | None
    accepted_at: datetime | None
    ready_at: datetime | None
    completed_at: datetime | None
    canceled_at: datetime | None
    refunded_at: datetime | None
    items: list[OrderItemSchema] = Field(default_factory=list)
    events: list[OrderEventSchema] = Field(default_factory=list)
    delivery: dict[str, Any] | None = None
    valid_transitions: list[str] = Field(default_factory=list)


class StatusUpdateRequest(BaseModel):
    """Request body for POST /api/owner/orders/{id}/status."""

    new_status: str = Field(..., min_length=1)


class BulkDeleteOrdersRequest(BaseModel):
    """Request body for POST /api/owner/orders/bulk-delete."""

    order_ids: list[int] = Field(..., min_length=1, max_length=50)


# =============================================================================
# Customers
# =============================================================================


class CustomerSummarySchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    first_name: str
    last_name: str
    phone: str
    marketing_opt_in: bool
    created_at: datetime


class CustomerDetailSchema(CustomerSummarySchema):
    default_address: dict[str, Any] | None
    order_count: int
    lifetime_spend_cents: int
    orders: list[OrderSummarySchema]


# =============================================================================
# Promos
# =============================================================================


class PromoCodeSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    description: str
    discount_type: str
    discount_value: int
    min_order_cents: int
    max_discount_cents: int | None
    max_uses: int | None
    max_uses_per_customer: int
    starts_at: datetime | None
    expires_at: datetime | None
    is_active: bool
    current_uses: int
    total_discount_given_cents: int
    created_at: datetime


class PromoCreateRequest(BaseModel):
    """Request body for POST /api/owner/promos."""

    code: str = Field(..., min_length=1, max_length=50)
    description: str = Field(default="", max_length=1000)
    discount_type: Literal["percentage", "fixed_amount"]
    discount_value: int = Field(..., gt=0)
    min_order_cents: int = Field(default=0, ge=0)
    max_discount_cents: int | None = Field(default=None, ge=0)
    max_uses: int | None = Field(default=None, ge=1)
    max_uses_per_customer: int = Field(default=1, ge=1)
    starts_at: datetime | None = None
    expires_at: datetime | None = None
    is_active: bool = True


class PromoUpdateRequest(BaseModel):
    """
    Request body for POST /api/owner/promos/{id}.

    Unknown keys (organization, counters, created_by) are dropped.
    """

    model_config = ConfigDict(extra="ignore")

    code: str | None = Field(default=None, min_length=1, max_length=50)
    description: str | None = Field(default=None, max_length=1000)
    discount_type: Literal["percentage", "fixed_amount"] | None = None
    discount_value: int | None = Field(default=None, gt=0)
    min_order_cents: int | None = Field(default=None, ge=0)
    max_discount_cents: int | None = Field(default=None, ge=0)
    max_uses: int | None = Field(default=None, ge=1)
    max_uses_per_customer: int | None = Field(default=None, ge=1)
    starts_at: datetime | None = None
    expires_at: datetime | None = None
    is_active: bool | None = None


# =============================================================================
# Reviews
# =============================================================================


class ReviewSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    customer_name: str
    rating: int
    comment: str
    status: str
    admin_notes: str
    moderated_at: datetime | None
    created_at: datetime


class ReviewStatusRequest(BaseModel):
    """Request body for POST /api/owner/reviews/{id}/status."""

    status: Literal["approved", "rejected", "pending"]
    admin_notes: str = Field(default="", max_length=2000)


# =============================================================================
# Organization settings
# =============================================================================


class OrganizationSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    slug: str
    name: str
    email: str
    phone: str
    street: str
    city: str
    region: str
    postal_code: str
    country: str
    currency: str
    tax_rate: float
    delivery_fee_cents: int
    service_fee_cents: int
    ordering_enabled: bool
    pickup_enabled: bool
    delivery_enabled: bool
    stripe_account_status: str


class OrganizationUpdateRequest(BaseModel):
    """Request body for POST /api/owner/organization."""

    model_config = ConfigDict(extra="ignore")

    name: str | None = Field(default=None, min_length=1, max_length=200)
    email: str | None = Field(default=None, pattern=EMAIL_PATTERN)
    phone: str | None = Field(default=None, max_length=20)
    street: str | None = Field(default=None, max_length=255)
    city: str | None = Field(default=None, max_length=100)
    region: str | None = Field(default=None, max_length=100)
    postal_code: str | None = Field(default=None, max_length=20)
    country: str | None = Field(default=None, pattern=r"^[A-Za-z]{2}$")
    tax_rate: float | None = Field(default=None, ge=0, lt=1)
    delivery_fee_cents: int | None = Field(default=None, ge=0)
    service_fee_cents: int | None = Field(default=None, ge=0)
    ordering_enabled: bool | None = None
    pickup_enabled: bool | None = None
    delivery_enabled: bool | None = None

    @field_validator("country")
    @classmethod
    def upper_country(cls, value: str | None) -> str | None:
        return value.upper() if value else value
