"""Delivery adapters - implementations for each delivery partner."""

from typing import Any

from apps.web.delivery.adapters.base import DeliveryAdapter
from apps.web.delivery.adapters.sandbox import SandboxDeliveryAdapter
from apps.web.delivery.adapters.uber_direct import UberDirectAdapter
from apps.web.delivery.schemas import DeliveryProvider


def get_adapter(provider: DeliveryProvider, **kwargs: Any) -> DeliveryAdapter:
    """
    Get a delivery adapter instance for the specified partner.

    Args:
        provider: The partner to get an adapter for.
        **kwargs: Additional arguments passed to the adapter constructor,
            e.g. customer_id for Uber Direct.

    Returns:
        An adapter instance implementing the DeliveryAdapter protocol.

    Raises:
        ValueError: If the provider is not supported.

    Example:
        adapter = get_adapter(DeliveryProvider.UBER_DIRECT, customer_id="cus_1")
        session = await adapter.authenticate(credentials)
        quote = await adapter.create_quote(session, request)
    """
    if provider == DeliveryProvider.SANDBOX:
        return SandboxDeliveryAdapter()
    elif provider == DeliveryProvider.UBER_DIRECT:
        return UberDirectAdapter(**kwargs)
    else:
        supported = ", ".join(p.value for p in DeliveryProvider)
        raise ValueError(
            f"Unsupported delivery provider: {provider}. Supported: {supported}"
        )


__all__ = [
    "DeliveryAdapter",
    "SandboxDeliveryAdapter",
    "UberDirectAdapter",
    "get_adapter",
]
