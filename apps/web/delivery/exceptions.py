"""Delivery integration exceptions."""


class DeliveryError(Exception):
    """Base exception for delivery partner errors."""

    def __init__(self, message: str, provider: str | None = None) -> None:
        self.message = message
        self.provider = provider
        super().__init__(message)


class DeliveryAuthError(DeliveryError):
    """Authentication failed with the delivery partner."""


class DeliveryAPIError(DeliveryError):
    """API request to the delivery partner failed."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> None:
        super().__init__(message, provider)
        self.status_code = status_code
        self.response_body = response_body


class DeliveryRateLimitError(DeliveryAPIError):
    """Rate limit exceeded with the delivery partner."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        retry_after: int | None = None,
    ) -> None:
        super().__init__(message, provider, status_code=429)
        self.retry_after = retry_after


class DeliveryDispatchError(DeliveryError):
    """
    A delivery could not be created for an order.

    is_prerequisite marks failures caused by our own data (incomplete
    restaurant address, missing drop-off street) rather than the partner.
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        order_id: int | None = None,
        is_prerequisite: bool = False,
    ) -> None:
        super().__init__(message, provider)
        self.order_id = order_id
        self.is_prerequisite = is_prerequisite


class DeliveryWebhookError(DeliveryError):
    """Webhook validation or processing failed."""
