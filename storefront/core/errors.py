"""Error taxonomy for the storefront order core.

Pure computation errors (pricing, cart, checkout validation, status
transitions) also subclass ValueError and are raised before any network
call is made. NetworkError and GeolocationUnavailableError are recoverable
by the caller; the core never retries on its own.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import OrderStatus


class StorefrontError(Exception):
    """Base class for every error raised by the order core.

    str(error) is always a single human-readable message suitable for
    showing to the customer.
    """


class InvalidPriceError(StorefrontError, ValueError):
    """A unit price or tax rate is negative."""


class InvalidQuantityError(StorefrontError, ValueError):
    """A line quantity is below 1."""


class EmptyCartError(StorefrontError, ValueError):
    """Checkout was attempted with no products."""

    def __init__(self, message: str = "Cart is empty"):
        super().__init__(message)


class IncompleteCheckoutError(StorefrontError, ValueError):
    """Checkout data is missing required fields."""

    def __init__(self, missing_fields: list[str]):
        self.missing_fields = list(missing_fields)
        super().__init__(
            f"Checkout is incomplete, missing: {', '.join(self.missing_fields)}"
        )


class IllegalTransitionError(StorefrontError, ValueError):
    """A status change is not allowed from the current status."""

    def __init__(self, current: "OrderStatus", requested: "OrderStatus"):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot change order status from {current.name} to {requested.name}"
        )


class GeolocationUnavailableError(StorefrontError):
    """No usable coordinates for one side of a delivery estimate."""


class NetworkError(StorefrontError):
    """A call to the order repository failed."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class NotFoundError(StorefrontError):
    """A single order or product does not exist on the repository."""
