"""Order service: implements OrderManagementPort.

Orchestrates cart reconciliation, pricing and delivery estimation to build
checkout payloads, and wraps state-machine-gated mutations (cancel,
deliver, notes) against the order repository.

Network-bound operations are awaited once and never retried here; a
failure is returned or raised to the caller, which decides whether to
retry. Note writes are read-modify-write without a version token, so two
sessions writing notes to the same order at once can lose one of the
writes. The repository offers no precondition to prevent that.
"""

import asyncio
import logging
import uuid
from collections.abc import Sequence
from datetime import UTC, datetime

from .cart import CartReconciler, quantities_from_cart_items, unique_product_ids
from .delivery import DeliveryCostEstimator
from .errors import (
    EmptyCartError,
    GeolocationUnavailableError,
    IllegalTransitionError,
    IncompleteCheckoutError,
    NetworkError,
    NotFoundError,
)
from .history import sort_by_date, summarize_orders
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
    PaymentMethod,
)
from .notes import (
    CancellationNote,
    FeedbackNote,
    Rating,
    merge_note_text,
    serialize_note,
)
from .ports import (
    CartStorePort,
    CatalogPort,
    LocationPort,
    NotifierPort,
    OrderManagementPort,
    OrderRepositoryPort,
)
from .pricing import order_totals
from .state_machine import CustomerAction, OrderStateMachine

logger = logging.getLogger(__name__)

DEFAULT_GEOLOCATION_TIMEOUT_SECONDS = 15.0


def _now_ms() -> int:
    return int(datetime.now(UTC).timestamp() * 1000)


class OrderService(OrderManagementPort):
    """Core implementation of OrderManagementPort.

    All collaborators are injected; the service never reaches into
    ambient storage for cart or customer data.
    """

    def __init__(
        self,
        repository: OrderRepositoryPort,
        catalog: CatalogPort,
        cart_store: CartStorePort,
        location: LocationPort,
        notifier: NotifierPort,
        customer_id: int,
        store_location: Coordinates,
        state_machine: OrderStateMachine | None = None,
        reconciler: CartReconciler | None = None,
        geolocation_timeout_seconds: float = DEFAULT_GEOLOCATION_TIMEOUT_SECONDS,
        idempotency_keys_enabled: bool = False,
    ):
        """Initialize the order service.

        Args:
            repository: OrderRepositoryPort implementation (system of record).
            catalog: CatalogPort implementation for product snapshots.
            cart_store: CartStorePort implementation for the local cart.
            location: LocationPort implementation for the customer position.
            notifier: NotifierPort implementation for customer messages.
            customer_id: Repository id of the signed-in customer.
            store_location: Coordinates deliveries start from.
            state_machine: Status rules (default OrderStateMachine()).
            reconciler: Cart pricing (default CartReconciler()).
            geolocation_timeout_seconds: Longest wait for a location fix.
            idempotency_keys_enabled: Attach a client-generated key to each
                submitted order. Only useful if the repository deduplicates
                on it.
        """
        self.repository = repository
        self.catalog = catalog
        self.cart_store = cart_store
        self.location = location
        self.notifier = notifier
        self.customer_id = customer_id
        self.state_machine = state_machine or OrderStateMachine()
        self.reconciler = reconciler or CartReconciler()
        self.estimator = DeliveryCostEstimator(store_location)
        self.geolocation_timeout_seconds = geolocation_timeout_seconds
        self.idempotency_keys_enabled = idempotency_keys_enabled
        self._pending_fix: asyncio.Future[Coordinates] | None = None

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    def build_checkout_payload(
        self,
        lines: Sequence[OrderLine],
        delivery_estimate: DeliveryEstimate,
        address: Address | None,
        payment_method: PaymentMethod | None,
        card_details: CardDetails | None = None,
        created_at: datetime | None = None,
    ) -> OrderDraft:
        """Validate checkout data and assemble the order draft.

        Card details are only checked for presence; their format is
        validated by the payment form.

        Raises:
            EmptyCartError: If there are no lines.
            IncompleteCheckoutError: Listing every missing field.
        """
        if not lines:
            raise EmptyCartError()

        address = address or Address(street="", city="", postal_code="")
        missing: list[str] = []
        if not address.street.strip():
            missing.append("street")
        if not address.city.strip():
            missing.append("city")
        if not address.postal_code.strip():
            missing.append("postal code")
        if payment_method is None:
            missing.append("payment method")
        elif payment_method is PaymentMethod.CARD and (
            card_details is None
            or not all(
                value.strip()
                for value in (
                    card_details.holder,
                    card_details.number,
                    card_details.expiry,
                    card_details.cvv,
                )
            )
        ):
            missing.append("card details")
        if missing or payment_method is None:
            raise IncompleteCheckoutError(missing)

        return OrderDraft(
            customer_id=self.customer_id,
            lines=tuple(lines),
            totals=order_totals(lines, delivery_estimate.cost),
            delivery=delivery_estimate,
            address=address,
            payment_method=payment_method,
            created_at=created_at or datetime.now(UTC),
            note_private=self._checkout_note(address, payment_method, delivery_estimate),
            card_details=card_details if payment_method is PaymentMethod.CARD else None,
            idempotency_key=str(uuid.uuid4()) if self.idempotency_keys_enabled else None,
        )

    @staticmethod
    def _checkout_note(
        address: Address, payment_method: PaymentMethod, delivery: DeliveryEstimate
    ) -> str:
        """Private note describing delivery and payment for the back office."""
        if delivery.distance_km is None:
            delivery_text = "unknown (location unavailable)"
        else:
            delivery_text = f"{delivery.cost:.2f} ({delivery.distance_km:.1f} km)"
        return "\n".join(
            [
                f"Delivery address: {address.one_line()}",
                f"Payment method: {payment_method.value}",
                f"Delivery cost: {delivery_text}",
            ]
        )

    async def submit_order(self, draft: OrderDraft) -> OrderReference:
        """Submit a draft to the repository.

        One call, no deduplication and no retry. Retrying after a timeout
        can create a duplicate order unless idempotency keys are enabled
        and honoured by the repository.

        Raises:
            NetworkError: If the repository call fails.
        """
        reference = await self.repository.create_order(draft)
        logger.info(
            f"Order {reference.id} submitted",
            extra={
                "order_id": reference.id,
                "customer_id": draft.customer_id,
                "line_count": len(draft.lines),
                "grand_total": str(draft.totals.grand_total),
                "idempotency_key": draft.idempotency_key,
            },
        )
        return reference

    async def estimate_delivery(self) -> DeliveryEstimate:
        """Estimate delivery from the customer's current position.

        Waits at most geolocation_timeout_seconds. The location request is
        shielded so a timeout here does not cancel it; a fix that arrives
        late is picked up by the next call. Without a fix the estimate is
        unknown and costs nothing.
        """
        if self._pending_fix is None:
            self._pending_fix = asyncio.ensure_future(self.location.current_location())
        pending = self._pending_fix

        try:
            coordinates = await asyncio.wait_for(
                asyncio.shield(pending), timeout=self.geolocation_timeout_seconds
            )
        except TimeoutError:
            logger.warning(
                f"No location fix after {self.geolocation_timeout_seconds}s, "
                "delivery cost unknown"
            )
            return DeliveryEstimate.unknown()
        except GeolocationUnavailableError as e:
            self._pending_fix = None
            logger.info(f"Location unavailable, delivery cost unknown: {e}")
            return DeliveryEstimate.unknown()
        except Exception:
            self._pending_fix = None
            raise

        self._pending_fix = None
        try:
            estimate = self.estimator.estimate_from_store(coordinates)
        except GeolocationUnavailableError as e:
            logger.warning(f"Cannot estimate delivery: {e}")
            return DeliveryEstimate.unknown()

        logger.debug(
            "Delivery estimated",
            extra={"distance_km": estimate.distance_km, "cost": str(estimate.cost)},
        )
        return estimate

    async def _load_cart_products(
        self,
    ) -> tuple[list[CatalogProduct], dict[int, int], list[int]]:
        """Fetch catalog snapshots for the cart.

        Quantities are counted from the repeated item ids; a positive stored
        quantity for a product takes precedence over the count. Products
        that cannot be fetched are skipped and reported back.
        """
        items = await self.cart_store.load_items()
        quantities = quantities_from_cart_items(items)
        for product_id, qty in (await self.cart_store.load_quantities()).items():
            if qty > 0:
                quantities[product_id] = qty
        product_ids = unique_product_ids(items)
        if not product_ids:
            raise EmptyCartError()

        results = await asyncio.gather(
            *(self.catalog.get_product(pid) for pid in product_ids),
            return_exceptions=True,
        )

        products: list[CatalogProduct] = []
        skipped: list[int] = []
        for product_id, result in zip(product_ids, results):
            if isinstance(result, (NetworkError, NotFoundError)):
                logger.warning(
                    f"Skipping product {product_id}: {result}",
                    extra={"product_id": product_id},
                )
                skipped.append(product_id)
            elif isinstance(result, BaseException):
                raise result
            else:
                products.append(result)

        return products, quantities, skipped

    async def quote(self) -> CartQuote:
        """Price the current cart without submitting anything."""
        products, quantities, skipped = await self._load_cart_products()
        lines = self.reconciler.reconcile(products, quantities)
        delivery = await self.estimate_delivery()
        return CartQuote(
            lines=tuple(lines),
            totals=order_totals(lines, delivery.cost),
            delivery=delivery,
            skipped_product_ids=tuple(skipped),
        )

    async def checkout(
        self,
        address: Address | None,
        payment_method: PaymentMethod | None,
        card_details: CardDetails | None = None,
    ) -> CheckoutResult:
        """Price the cart, submit it and clear the cart.

        Validation happens before any order is submitted. If clearing the
        cart fails after the order was created the order is kept; the cart
        is simply left as is.
        """
        products, quantities, skipped = await self._load_cart_products()
        lines = self.reconciler.reconcile(products, quantities)
        delivery = await self.estimate_delivery()
        draft = self.build_checkout_payload(
            lines, delivery, address, payment_method, card_details
        )

        reference = await self.submit_order(draft)

        cart_cleared = True
        try:
            await self.cart_store.clear()
        except Exception as e:
            cart_cleared = False
            logger.error(
                f"Order {reference.id} created but the cart could not be cleared: {e}",
                exc_info=True,
            )

        await self._notify_info(
            "Order placed",
            f"Order {reference.id} placed, total {draft.totals.grand_total:.2f}",
        )
        return CheckoutResult(
            reference=reference,
            draft=draft,
            cart_cleared=cart_cleared,
            skipped_product_ids=tuple(skipped),
        )

    # ------------------------------------------------------------------
    # Order history
    # ------------------------------------------------------------------

    async def list_orders(self) -> list[Order]:
        """Orders of the current customer, newest first."""
        orders = await self.repository.list_orders(self.customer_id)
        logger.debug("Listed orders", extra={"count": len(orders)})
        return sort_by_date(orders)

    async def get_order(self, order_id: int) -> Order:
        return await self.repository.get_order(order_id)

    async def summarize(self) -> OrderSummary:
        return summarize_orders(await self.list_orders())

    # ------------------------------------------------------------------
    # Status changes and notes
    # ------------------------------------------------------------------

    async def _write_update(
        self,
        order_id: int,
        status: OrderStatus | None = None,
        private_addition: str | None = None,
        public_addition: str | None = None,
    ) -> None:
        """Read the order, merge notes and write everything back.

        Both note fields are always sent so that writing one never
        truncates the other.
        """
        current = await self.repository.get_order(order_id)
        note_private = current.note_private
        note_public = current.note_public
        if private_addition:
            note_private = merge_note_text(note_private, private_addition)
        if public_addition:
            note_public = merge_note_text(note_public, public_addition)

        await self.repository.update_order(
            order_id,
            status=status,
            note_private=note_private,
            note_public=note_public,
        )

    async def _change_status(
        self,
        order_id: int,
        current_status: OrderStatus,
        target_status: OrderStatus,
        private_addition: str | None = None,
        public_addition: str | None = None,
    ) -> OperationResult:
        """Apply an already-validated status change."""
        if target_status == current_status:
            logger.debug(
                f"Order {order_id} already {target_status.name}, nothing to do",
                extra={"order_id": order_id},
            )
            return OperationResult.ok(
                f"Order is already {self.state_machine.label(target_status)}"
            )

        try:
            await self._write_update(
                order_id,
                status=target_status,
                private_addition=private_addition,
                public_addition=public_addition,
            )
        except (NetworkError, NotFoundError) as e:
            logger.error(
                f"Failed to change status of order {order_id}: {e}",
                extra={"order_id": order_id, "target_status": target_status.name},
            )
            await self._notify_error("Status change failed", str(e))
            return OperationResult.failed(str(e))

        logger.info(
            f"Order {order_id} moved from {current_status.name} to {target_status.name}",
            extra={
                "order_id": order_id,
                "from_status": current_status.name,
                "to_status": target_status.name,
            },
        )
        message = f"Order is now {self.state_machine.label(target_status)}"
        await self._notify_info("Order updated", message)
        return OperationResult.ok(message)

    async def _rejected(self, error: IllegalTransitionError, order_id: int) -> OperationResult:
        logger.warning(
            f"Rejected status change for order {order_id}: {error}",
            extra={
                "order_id": order_id,
                "current_status": error.current.name,
                "requested_status": error.requested.name,
            },
        )
        await self._notify_error("Action not allowed", str(error))
        return OperationResult.failed(str(error))

    async def request_status_change(
        self, order_id: int, current_status: OrderStatus, target_status: OrderStatus
    ) -> OperationResult:
        """Ask the repository to move an order along the status graph.

        Illegal transitions fail without any network call.
        """
        try:
            target = self.state_machine.transition(current_status, target_status)
        except IllegalTransitionError as e:
            return await self._rejected(e, order_id)
        return await self._change_status(order_id, current_status, target)

    async def validate_order(
        self, order_id: int, current_status: OrderStatus
    ) -> OperationResult:
        return await self.request_status_change(
            order_id, current_status, OrderStatus.VALIDATED
        )

    async def set_processing(
        self, order_id: int, current_status: OrderStatus
    ) -> OperationResult:
        return await self.request_status_change(
            order_id, current_status, OrderStatus.PROCESSING
        )

    async def mark_delivered(
        self, order_id: int, current_status: OrderStatus, delivery_note: str | None = None
    ) -> OperationResult:
        """Move an order to DELIVERED, optionally recording a delivery note."""
        try:
            target = self.state_machine.transition(current_status, OrderStatus.DELIVERED)
        except IllegalTransitionError as e:
            return await self._rejected(e, order_id)

        note = None
        if delivery_note and delivery_note.strip():
            note = f"Delivery Note: {delivery_note.strip()}"
        return await self._change_status(
            order_id, current_status, target, private_addition=note
        )

    async def cancel_order(self, order: Order, reason: str | None = None) -> OperationResult:
        """Cancel an order on behalf of the customer.

        Only drafts can be cancelled by the customer. The customer is asked
        to confirm first. A non-blank reason is stored as a public
        cancellation note.
        """
        try:
            target = self.state_machine.customer_transition(
                order.status, OrderStatus.CANCELLED
            )
        except IllegalTransitionError as e:
            return await self._rejected(e, order.id)

        if not await self.notifier.confirm(
            "Cancel order", f"Are you sure you want to cancel order {order.reference}?"
        ):
            logger.info(
                f"Cancellation of order {order.id} not confirmed",
                extra={"order_id": order.id},
            )
            return OperationResult.failed("Cancellation was not confirmed")

        note = None
        if reason and reason.strip():
            note = serialize_note(
                CancellationNote(
                    reason=reason.strip(),
                    timestamp=_now_ms(),
                    order_id=str(order.id),
                    order_ref=order.reference,
                )
            )
        return await self._change_status(
            order.id, order.status, target, public_addition=note
        )

    async def attach_note(
        self, order_id: int, text: str, visibility: NoteVisibility = NoteVisibility.PRIVATE
    ) -> OperationResult:
        """Append a note to an order without changing its status.

        Read-modify-write: concurrent writers can lose a note.
        """
        if not text or not text.strip():
            return OperationResult.failed("Note text is empty")

        addition = {
            "private_addition": text if visibility is NoteVisibility.PRIVATE else None,
            "public_addition": text if visibility is NoteVisibility.PUBLIC else None,
        }
        try:
            await self._write_update(order_id, **addition)
        except (NetworkError, NotFoundError) as e:
            logger.error(
                f"Failed to add note to order {order_id}: {e}",
                extra={"order_id": order_id, "visibility": visibility.value},
            )
            await self._notify_error("Note not saved", str(e))
            return OperationResult.failed(f"Could not add the note: {e}")

        logger.info(
            f"Added {visibility.value} note to order {order_id}",
            extra={"order_id": order_id, "visibility": visibility.value},
        )
        message = f"{visibility.value.capitalize()} note added"
        await self._notify_info("Note added", message)
        return OperationResult.ok(message)

    async def submit_feedback(
        self, order: Order, delivery: Rating, product: Rating
    ) -> OperationResult:
        """Leave feedback on a delivered order as a public note."""
        if not self.state_machine.is_customer_action_allowed(
            order.status, CustomerAction.ATTACH_FEEDBACK
        ):
            message = (
                f"Feedback is not available for an order that is "
                f"{self.state_machine.label(order.status)}"
            )
            await self._notify_error("Action not allowed", message)
            return OperationResult.failed(message)

        try:
            feedback = FeedbackNote(
                delivery=delivery,
                product=product,
                timestamp=_now_ms(),
                order_id=str(order.id),
                order_ref=order.reference,
            )
        except ValueError as e:
            return OperationResult.failed(str(e))

        return await self.attach_note(
            order.id, serialize_note(feedback), NoteVisibility.PUBLIC
        )

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    async def _notify_info(self, title: str, message: str) -> None:
        # Notifier failures must not undo a completed repository write
        try:
            await self.notifier.info(title, message)
        except Exception as e:
            logger.error(f"Failed to notify: {e}", exc_info=True)

    async def _notify_error(self, title: str, message: str) -> None:
        try:
            await self.notifier.error(title, message)
        except Exception as e:
            logger.error(f"Failed to notify: {e}", exc_info=True)
