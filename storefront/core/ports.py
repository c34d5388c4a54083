"""Port interfaces for the storefront order core.

These abstract base classes define the boundaries between core
domain logic and external adapters. Implementations live in the
adapters/ package.

Port Interface Categories:

1. **Driven Ports** (core calls out to adapters)
   - OrderRepositoryPort: Create, fetch and update orders on the backend
   - CatalogPort: Fetch product snapshots for the cart
   - CartStorePort: Read and clear the locally stored cart
   - LocationPort: Acquire the customer's current position
   - NotifierPort: Show messages and confirmations to the customer

2. **Driving Ports** (adapters/external systems call into core)
   - OrderManagementPort: Checkout and order lifecycle operations
"""

from abc import ABC, abstractmethod

from .models import (
    Address,
    CardDetails,
    CartQuote,
    CatalogProduct,
    CheckoutResult,
    Coordinates,
    NoteVisibility,
    OperationResult,
    Order,
    OrderDraft,
    OrderReference,
    OrderStatus,
    OrderSummary,
    PaymentMethod,
)
from .notes import Rating


# ============================================================================
# DRIVEN PORTS (Core calls out to adapters)
# ============================================================================


class OrderRepositoryPort(ABC):
    """Port for the remote order repository (system of record).

    Implementations must:
    - Map transport failures and non-2xx responses to NetworkError
    - Map a 404 on a single order to NotFoundError
    - Never retry on their own
    """

    @abstractmethod
    async def list_orders(self, customer_id: int, limit: int = 100) -> list[Order]:
        """List the orders of a customer, newest first.

        Returns:
            Orders for the customer. Empty list if the repository reports
            that the customer has none (including a 404 response).

        Raises:
            NetworkError: If the repository is unreachable or fails.
        """

    @abstractmethod
    async def get_order(self, order_id: int) -> Order:
        """Fetch one order with its lines.

        Raises:
            NotFoundError: If the order does not exist.
            NetworkError: If the repository is unreachable or fails.
        """

    @abstractmethod
    async def create_order(self, draft: OrderDraft) -> OrderReference:
        """Submit a new order.

        A single, non-idempotent call: the repository creates one order per
        call, so a caller retrying after a timeout may create a duplicate.

        Raises:
            NetworkError: If the repository is unreachable or rejects the order.
        """

    @abstractmethod
    async def update_order(
        self,
        order_id: int,
        status: OrderStatus | None = None,
        note_private: str | None = None,
        note_public: str | None = None,
    ) -> None:
        """Write status and/or note fields of an order.

        Fields left as None are not sent.

        Raises:
            NetworkError: If the repository is unreachable or rejects the update.
        """


class CatalogPort(ABC):
    """Port for fetching product snapshots."""

    @abstractmethod
    async def get_product(self, product_id: int) -> CatalogProduct:
        """Fetch the current catalog snapshot of a product.

        Raises:
            NotFoundError: If the product does not exist.
            NetworkError: If the catalog is unreachable.
        """


class CartStorePort(ABC):
    """Port for the cart kept in local device storage.

    The store is owned and mutated elsewhere; the core only reads it and
    clears it after a successful checkout.
    """

    @abstractmethod
    async def load_items(self) -> list[int]:
        """Product ids in the cart, one entry per unit."""

    @abstractmethod
    async def load_quantities(self) -> dict[int, int]:
        """Quantity per product id."""

    @abstractmethod
    async def clear(self) -> None:
        """Empty the cart.

        Raises:
            Exception: If the storage cannot be written.
        """


class LocationPort(ABC):
    """Port for acquiring the customer's position.

    Acquisition may block for a long time or never complete; the core
    bounds how long it waits but cannot cancel the underlying request.
    """

    @abstractmethod
    async def current_location(self) -> Coordinates:
        """Return the current position.

        Raises:
            GeolocationUnavailableError: If no position can be obtained
                (permission denied, no fix, disabled service).
        """


class NotifierPort(ABC):
    """Port for showing messages to the customer.

    Replaces platform-specific toast and alert calls.
    """

    @abstractmethod
    async def info(self, title: str, message: str) -> None:
        """Show an informational message."""

    @abstractmethod
    async def error(self, title: str, message: str) -> None:
        """Show a failure message."""

    @abstractmethod
    async def confirm(self, title: str, message: str) -> bool:
        """Ask the customer to confirm an action. True if confirmed."""


# ============================================================================
# DRIVING PORTS (Adapters/external systems call into core)
# ============================================================================


class OrderManagementPort(ABC):
    """Port for checkout and order lifecycle operations.

    Driving port: the CLI invokes these methods. The implementation lives
    in the core (order_service.py).
    """

    @abstractmethod
    async def quote(self) -> CartQuote:
        """Price the current cart without submitting anything.

        Raises:
            EmptyCartError: If the cart holds no available product.
        """

    @abstractmethod
    async def checkout(
        self,
        address: Address | None,
        payment_method: PaymentMethod | None,
        card_details: CardDetails | None = None,
    ) -> CheckoutResult:
        """Price the cart, submit it as an order and clear the cart.

        Raises:
            EmptyCartError: If the cart holds no available product.
            IncompleteCheckoutError: If address or payment data is missing.
            NetworkError: If the order could not be submitted.
        """

    @abstractmethod
    async def list_orders(self) -> list[Order]:
        """Orders of the current customer, newest first."""

    @abstractmethod
    async def get_order(self, order_id: int) -> Order:
        """One order of the current customer."""

    @abstractmethod
    async def summarize(self) -> OrderSummary:
        """Statistics over the customer's orders."""

    @abstractmethod
    async def request_status_change(
        self, order_id: int, current_status: OrderStatus, target_status: OrderStatus
    ) -> OperationResult:
        """Ask the repository to move an order to another status."""

    @abstractmethod
    async def cancel_order(self, order: Order, reason: str | None = None) -> OperationResult:
        """Cancel an order on behalf of the customer."""

    @abstractmethod
    async def mark_delivered(
        self, order_id: int, current_status: OrderStatus, delivery_note: str | None = None
    ) -> OperationResult:
        """Record that an order was delivered."""

    @abstractmethod
    async def attach_note(
        self, order_id: int, text: str, visibility: NoteVisibility = NoteVisibility.PRIVATE
    ) -> OperationResult:
        """Append a note to an order."""

    @abstractmethod
    async def submit_feedback(
        self, order: Order, delivery: Rating, product: Rating
    ) -> OperationResult:
        """Leave delivery and product feedback on a delivered order."""
