"""Domain models for the storefront order core.

All models in this module use only Python standard library types,
ensuring zero external dependencies in the core domain. Money is always
carried as Decimal.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, TypeAlias

ZERO = Decimal("0.00")

# product id -> requested quantity
QuantityMap: TypeAlias = Mapping[int, int]


class OrderStatus(Enum):
    """Lifecycle states of an order, keyed by their wire code.

    UNKNOWN has no wire code. It is only produced when parsing a status
    the repository sent that is not one of the five known codes.
    """

    DRAFT = 0
    VALIDATED = 1
    PROCESSING = 2
    DELIVERED = 3
    CANCELLED = -1
    UNKNOWN = None

    @classmethod
    def from_wire(cls, raw: Any) -> "OrderStatus":
        """Map a raw wire status (int or numeric string) to a status."""
        if isinstance(raw, bool):
            return cls.UNKNOWN
        try:
            code = int(str(raw).strip())
        except (TypeError, ValueError):
            return cls.UNKNOWN
        for status in cls:
            if status.value == code:
                return status
        return cls.UNKNOWN

    @property
    def wire_code(self) -> int:
        """Integer code sent to the repository."""
        if self is OrderStatus.UNKNOWN:
            raise ValueError("UNKNOWN status has no wire code")
        return self.value


class PaymentMethod(Enum):
    """How the customer pays on delivery."""

    CASH = "cash"
    CARD = "card"


class NoteVisibility(Enum):
    """Which order note field a note is written to."""

    PRIVATE = "private"
    PUBLIC = "public"


@dataclass(frozen=True)
class CatalogProduct:
    """Immutable catalog snapshot of a product."""

    id: int
    label: str
    unit_price_incl_tax: Decimal
    stock: int = 0
    photo_ref: str = ""

    def __post_init__(self) -> None:
        """Validate product invariants on creation."""
        if self.unit_price_incl_tax < 0:
            raise ValueError(
                f"unit_price_incl_tax must be non-negative, got {self.unit_price_incl_tax}"
            )
        if self.stock < 0:
            raise ValueError(f"stock must be non-negative, got {self.stock}")


@dataclass(frozen=True)
class OrderLine:
    """A priced order line. Recomputed on every pricing pass."""

    product_id: int | None
    qty: int
    unit_price_excl_tax: Decimal
    unit_price_incl_tax: Decimal
    tax_amount_per_unit: Decimal
    line_total_excl_tax: Decimal
    line_total_tax: Decimal
    label: str = ""

    def __post_init__(self) -> None:
        """Validate line invariants on creation."""
        if self.qty < 1:
            raise ValueError(f"qty must be >= 1, got {self.qty}")


@dataclass(frozen=True)
class Coordinates:
    """A latitude/longitude pair in decimal degrees."""

    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        """Validate coordinate ranges on creation."""
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude out of range: {self.longitude}")


@dataclass(frozen=True)
class DeliveryEstimate:
    """Distance to the customer and the resulting delivery fee.

    distance_km is None when no location fix was available, in which case
    the cost defaults to zero until a later estimate succeeds.
    """

    distance_km: float | None
    cost: Decimal

    def __post_init__(self) -> None:
        """Validate estimate invariants on creation."""
        if self.distance_km is not None and self.distance_km < 0:
            raise ValueError(
                f"distance_km must be non-negative, got {self.distance_km}"
            )
        if self.cost < 0:
            raise ValueError(f"cost must be non-negative, got {self.cost}")

    @classmethod
    def unknown(cls) -> "DeliveryEstimate":
        """Estimate used while the customer location is unavailable."""
        return cls(distance_km=None, cost=ZERO)

    @property
    def is_known(self) -> bool:
        return self.distance_km is not None


@dataclass(frozen=True)
class PriceTotals:
    """Sums of already-rounded line values."""

    subtotal_excl_tax: Decimal
    tax_total: Decimal


@dataclass(frozen=True)
class OrderTotals:
    """Order totals including delivery."""

    subtotal_excl_tax: Decimal
    tax_total: Decimal
    delivery_cost: Decimal

    @property
    def grand_total(self) -> Decimal:
        return self.subtotal_excl_tax + self.tax_total + self.delivery_cost


@dataclass(frozen=True)
class Address:
    """Delivery address as entered by the customer."""

    street: str
    city: str
    postal_code: str

    def one_line(self) -> str:
        """Comma-joined address, skipping blank parts."""
        parts = [p.strip() for p in (self.street, self.city, self.postal_code)]
        return ", ".join(p for p in parts if p)


@dataclass(frozen=True)
class CardDetails:
    """Card data collected by the payment form.

    Only presence is checked here; number and expiry validation belongs to
    the form that collects them.
    """

    holder: str
    number: str
    expiry: str
    cvv: str

    def __repr__(self) -> str:
        return f"CardDetails(holder={self.holder!r}, number='****{self.number[-4:]}')"


@dataclass(frozen=True)
class OrderDraft:
    """A validated, priced order ready to be submitted."""

    customer_id: int
    lines: tuple[OrderLine, ...]
    totals: OrderTotals
    delivery: DeliveryEstimate
    address: Address
    payment_method: PaymentMethod
    created_at: datetime
    note_private: str
    card_details: CardDetails | None = None
    idempotency_key: str | None = None


@dataclass(frozen=True)
class OrderReference:
    """Identifier of an order created on the repository."""

    id: int


@dataclass
class Order:
    """An order record as held by the repository.

    Only status and the two note fields change after creation, and only
    through OrderService operations approved by the state machine.
    """

    id: int
    reference: str
    status: OrderStatus
    lines: tuple[OrderLine, ...]
    subtotal_excl_tax: Decimal
    tax_total: Decimal
    delivery_cost: Decimal
    created_at: datetime
    note_private: str = ""
    note_public: str = ""

    @property
    def grand_total(self) -> Decimal:
        return self.subtotal_excl_tax + self.tax_total + self.delivery_cost

    @property
    def notes(self) -> dict[NoteVisibility, str]:
        return {
            NoteVisibility.PRIVATE: self.note_private,
            NoteVisibility.PUBLIC: self.note_public,
        }


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a mutation against the repository."""

    success: bool
    message: str = ""
    error: str | None = None

    @classmethod
    def ok(cls, message: str) -> "OperationResult":
        return cls(success=True, message=message)

    @classmethod
    def failed(cls, error: str) -> "OperationResult":
        return cls(success=False, error=error)


@dataclass(frozen=True)
class CartQuote:
    """Priced preview of the cart."""

    lines: tuple[OrderLine, ...]
    totals: OrderTotals
    delivery: DeliveryEstimate
    skipped_product_ids: tuple[int, ...] = ()


@dataclass(frozen=True)
class CheckoutResult:
    """Summary of a completed checkout."""

    reference: OrderReference
    draft: OrderDraft
    cart_cleared: bool
    skipped_product_ids: tuple[int, ...] = ()


@dataclass(frozen=True)
class OrderSummary:
    """Aggregate statistics over a list of orders."""

    total_orders: int
    total_amount: Decimal
    average_order_value: Decimal
    status_counts: Mapping[OrderStatus, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Convert the mutable counts dict to an immutable proxy."""
        object.__setattr__(self, "status_counts", MappingProxyType(dict(self.status_counts)))
