"""Core domain logic for the storefront order system.

This package contains zero external dependencies and represents
the pure business logic of the application. All adapters and
external integrations are handled by the adapters package.
"""

from .errors import (
    EmptyCartError,
    GeolocationUnavailableError,
    IllegalTransitionError,
    IncompleteCheckoutError,
    InvalidPriceError,
    InvalidQuantityError,
    NetworkError,
    NotFoundError,
    StorefrontError,
)
from .models import (
    Address,
    CardDetails,
    CartQuote,
    CatalogProduct,
    CheckoutResult,
    Coordinates,
    DeliveryEstimate,
    NoteVisibility,
    OperationResult,
    Order,
    OrderDraft,
    OrderLine,
    OrderReference,
    OrderStatus,
    OrderSummary,
    OrderTotals,
    PaymentMethod,
    PriceTotals,
)

__all__ = [
    "Address",
    "CardDetails",
    "CartQuote",
    "CatalogProduct",
    "CheckoutResult",
    "Coordinates",
    "DeliveryEstimate",
    "EmptyCartError",
    "GeolocationUnavailableError",
    "IllegalTransitionError",
    "IncompleteCheckoutError",
    "InvalidPriceError",
    "InvalidQuantityError",
    "NetworkError",
    "NotFoundError",
    "NoteVisibility",
    "OperationResult",
    "Order",
    "OrderDraft",
    "OrderLine",
    "OrderReference",
    "OrderStatus",
    "OrderSummary",
    "OrderTotals",
    "PaymentMethod",
    "PriceTotals",
    "StorefrontError",
]
