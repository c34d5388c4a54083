"""CLI command implementations for order management.

Provides customer- and back-office-initiated actions through the
command-line interface.

This adapter maps CLI commands (list, details, checkout, cancel, ...) to
OrderManagementPort operations. It handles CLI-specific formatting and
error reporting; every command returns a JSON-serialisable dictionary.
"""

import logging
from decimal import Decimal
from typing import Any

from storefront.core.errors import StorefrontError
from storefront.core.history import export_rows, filter_by_status, search_orders
from storefront.core.models import (
    Address,
    CardDetails,
    CartQuote,
    DeliveryEstimate,
    NoteVisibility,
    OperationResult,
    Order,
    OrderLine,
    OrderStatus,
    OrderTotals,
    PaymentMethod,
)
from storefront.core.notes import Rating, latest_cancellation, latest_feedback
from storefront.core.ports import OrderManagementPort
from storefront.core.state_machine import OrderStateMachine

logger = logging.getLogger(__name__)


def _money(value: Decimal) -> str:
    return f"{value:.2f}"


def parse_status(name: str) -> OrderStatus:
    """Map a status name (e.g. "delivered") to an OrderStatus.

    Raises:
        ValueError: If the name is not a known status.
    """
    try:
        status = OrderStatus[name.strip().upper()]
    except KeyError:
        status = None
    if status is None or status is OrderStatus.UNKNOWN:
        known = ", ".join(
            s.name.lower() for s in OrderStatus if s is not OrderStatus.UNKNOWN
        )
        raise ValueError(f"Unknown status: {name}. Expected one of: {known}")
    return status


def parse_payment_method(name: str | None) -> PaymentMethod | None:
    if name is None or not str(name).strip():
        return None
    try:
        return PaymentMethod(str(name).strip().lower())
    except ValueError:
        raise ValueError(f"Unknown payment method: {name}. Expected cash or card") from None


class CLICommandHandler:
    """Handles CLI commands by delegating to OrderManagementPort.

    Provides a command-line interface for browsing order history, checking
    out the cart and changing orders.
    """

    def __init__(
        self,
        orders: OrderManagementPort,
        state_machine: OrderStateMachine | None = None,
    ):
        """Initialize the CLI command handler.

        Args:
            orders: OrderManagementPort implementation to execute commands.
            state_machine: Status labels and allowed actions for display.
        """
        self.orders = orders
        self.state_machine = state_machine or OrderStateMachine()

    # ------------------------------------------------------------------
    # Order history
    # ------------------------------------------------------------------

    async def list_orders(
        self,
        status: str | None = None,
        search: str | None = None,
        output_format: str = "json",
    ) -> dict[str, Any]:
        """List the customer's orders.

        Args:
            status: Optional status name to filter on.
            search: Optional term matched against reference and line labels.
            output_format: Output format ('json', 'text'). Default 'json'.

        Returns:
            Dictionary with status and the matching orders.
        """
        try:
            orders = await self.orders.list_orders()
            if status:
                orders = filter_by_status(orders, parse_status(status))
            if search:
                orders = search_orders(orders, search)
        except (StorefrontError, ValueError) as e:
            logger.error(f"Failed to list orders: {e}")
            return {"status": "error", "operation": "list", "message": str(e)}

        if output_format == "text":
            data: Any = "\n".join(self._format_order_row(order) for order in orders)
        elif output_format == "json":
            data = [self._order_to_dict(order, include_lines=False) for order in orders]
        else:
            return {
                "status": "error",
                "operation": "list",
                "message": f"Unsupported format: {output_format}",
            }

        return {
            "status": "success",
            "operation": "list",
            "count": len(orders),
            "data": data,
        }

    async def get_order_details(
        self, order_id: int, output_format: str = "json"
    ) -> dict[str, Any]:
        """Retrieve one order with its lines, notes and available actions.

        Args:
            order_id: Repository id of the order.
            output_format: Output format ('json', 'text'). Default 'json'.

        Returns:
            Dictionary with order details or status/message on error.
        """
        try:
            order = await self.orders.get_order(int(order_id))
        except (StorefrontError, ValueError) as e:
            logger.error(f"Failed to get order details: {e}")
            return {
                "status": "error",
                "operation": "details",
                "order_id": order_id,
                "message": str(e),
            }

        details = self._order_to_dict(order, include_lines=True)
        if output_format == "json":
            return {"status": "success", "operation": "details", "data": details}
        elif output_format == "text":
            return {
                "status": "success",
                "operation": "details",
                "data": self._format_details_as_text(details),
            }
        else:
            return {
                "status": "error",
                "operation": "details",
                "message": f"Unsupported format: {output_format}",
            }

    async def export_orders(self) -> dict[str, Any]:
        """Flat rows of the customer's orders, ready for CSV export."""
        try:
            orders = await self.orders.list_orders()
        except StorefrontError as e:
            logger.error(f"Failed to export orders: {e}")
            return {"status": "error", "operation": "export", "message": str(e)}

        return {
            "status": "success",
            "operation": "export",
            "count": len(orders),
            "data": export_rows(orders, self.state_machine),
        }

    async def summarize_orders(self) -> dict[str, Any]:
        """Count, total value and per-status counts of the customer's orders."""
        try:
            summary = await self.orders.summarize()
        except StorefrontError as e:
            logger.error(f"Failed to summarize orders: {e}")
            return {"status": "error", "operation": "summary", "message": str(e)}

        return {
            "status": "success",
            "operation": "summary",
            "data": {
                "total_orders": summary.total_orders,
                "total_amount": _money(summary.total_amount),
                "average_order_value": _money(summary.average_order_value),
                "by_status": {
                    self.state_machine.label(status): count
                    for status, count in summary.status_counts.items()
                },
            },
        }

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    async def quote_cart(self) -> dict[str, Any]:
        """Price the current cart without placing an order."""
        try:
            quote = await self.orders.quote()
        except StorefrontError as e:
            logger.error(f"Failed to quote cart: {e}")
            return {"status": "error", "operation": "quote", "message": str(e)}

        return {
            "status": "success",
            "operation": "quote",
            "data": self._quote_to_dict(quote),
        }

    async def checkout(
        self,
        street: str | None = None,
        city: str | None = None,
        postal_code: str | None = None,
        payment_method: str | None = None,
        card: dict[str, Any] | None = None,
        verbose: bool = False,
    ) -> dict[str, Any]:
        """Place an order for the current cart.

        Args:
            street: Delivery street.
            city: Delivery city.
            postal_code: Delivery postal code.
            payment_method: 'cash' or 'card'.
            card: Card fields (holder, number, expiry, cvv) for card payment.
            verbose: If True, log additional information.

        Returns:
            Dictionary with status, order id and totals.
        """
        try:
            address = Address(
                street=str(street or ""),
                city=str(city or ""),
                postal_code=str(postal_code or ""),
            )
            card_details = None
            if card:
                card_details = CardDetails(
                    holder=str(card.get("holder", "")),
                    number=str(card.get("number", "")),
                    expiry=str(card.get("expiry", "")),
                    cvv=str(card.get("cvv", "")),
                )
            result = await self.orders.checkout(
                address, parse_payment_method(payment_method), card_details
            )
        except (StorefrontError, ValueError) as e:
            logger.error(f"Checkout failed: {e}")
            response: dict[str, Any] = {
                "status": "error",
                "operation": "checkout",
                "message": str(e),
            }
            missing = getattr(e, "missing_fields", None)
            if missing:
                response["missing_fields"] = missing
            return response

        if verbose:
            logger.info(
                f"Placed order {result.reference.id}",
                extra={"order_id": result.reference.id, "verbose": True},
            )

        response = {
            "status": "success",
            "operation": "checkout",
            "order_id": result.reference.id,
            "message": f"Order {result.reference.id} placed",
            "totals": self._totals_to_dict(result.draft.totals),
            "delivery": self._delivery_to_dict(result.draft.delivery),
            "cart_cleared": result.cart_cleared,
        }
        if result.skipped_product_ids:
            response["skipped_product_ids"] = list(result.skipped_product_ids)
        return response

    # ------------------------------------------------------------------
    # Status changes and notes
    # ------------------------------------------------------------------

    async def cancel_order(
        self, order_id: int, reason: str | None = None
    ) -> dict[str, Any]:
        """Cancel a draft order on behalf of the customer.

        Args:
            order_id: Repository id of the order.
            reason: Optional reason, stored with the order.

        Returns:
            Dictionary with status and message.
        """
        try:
            order = await self.orders.get_order(int(order_id))
            result = await self.orders.cancel_order(order, reason)
        except (StorefrontError, ValueError) as e:
            return self._error("cancel", order_id, e)
        return self._result("cancel", order_id, result)

    async def mark_delivered(
        self, order_id: int, note: str | None = None
    ) -> dict[str, Any]:
        """Record that an order was delivered, with an optional delivery note."""
        try:
            order = await self.orders.get_order(int(order_id))
            result = await self.orders.mark_delivered(order.id, order.status, note)
        except (StorefrontError, ValueError) as e:
            return self._error("deliver", order_id, e)
        return self._result("deliver", order_id, result)

    async def change_status(self, order_id: int, status: str) -> dict[str, Any]:
        """Move an order to another status by name."""
        try:
            target = parse_status(status)
            order = await self.orders.get_order(int(order_id))
            result = await self.orders.request_status_change(order.id, order.status, target)
        except (StorefrontError, ValueError) as e:
            return self._error("status", order_id, e)
        return self._result("status", order_id, result)

    async def add_note(
        self, order_id: int, text: str, visibility: str = "private"
    ) -> dict[str, Any]:
        """Append a private or public note to an order."""
        try:
            note_visibility = NoteVisibility(visibility.strip().lower())
        except ValueError:
            return {
                "status": "error",
                "operation": "note",
                "order_id": order_id,
                "message": f"Unknown visibility: {visibility}. Expected private or public",
            }
        try:
            result = await self.orders.attach_note(int(order_id), text, note_visibility)
        except (StorefrontError, ValueError) as e:
            return self._error("note", order_id, e)
        return self._result("note", order_id, result)

    async def submit_feedback(
        self,
        order_id: int,
        delivery_rating: int = 0,
        delivery_comment: str = "",
        product_rating: int = 0,
        product_comment: str = "",
    ) -> dict[str, Any]:
        """Rate the delivery and the products of a delivered order."""
        try:
            delivery = Rating(int(delivery_rating), str(delivery_comment))
            product = Rating(int(product_rating), str(product_comment))
            order = await self.orders.get_order(int(order_id))
            result = await self.orders.submit_feedback(order, delivery, product)
        except (StorefrontError, ValueError) as e:
            return self._error("feedback", order_id, e)
        return self._result("feedback", order_id, result)

    # ------------------------------------------------------------------
    # Formatting
    # ------------------------------------------------------------------

    @staticmethod
    def _error(operation: str, order_id: Any, error: Exception) -> dict[str, Any]:
        logger.error(f"Failed to {operation} order {order_id}: {error}")
        return {
            "status": "error",
            "operation": operation,
            "order_id": order_id,
            "message": str(error),
        }

    @staticmethod
    def _result(operation: str, order_id: Any, result: OperationResult) -> dict[str, Any]:
        return {
            "status": "success" if result.success else "error",
            "operation": operation,
            "order_id": order_id,
            "message": result.message if result.success else (result.error or ""),
        }

    @staticmethod
    def _line_to_dict(line: OrderLine) -> dict[str, Any]:
        return {
            "product_id": line.product_id,
            "label": line.label,
            "qty": line.qty,
            "unit_price_excl_tax": _money(line.unit_price_excl_tax),
            "unit_price_incl_tax": _money(line.unit_price_incl_tax),
            "line_total_excl_tax": _money(line.line_total_excl_tax),
            "line_total_tax": _money(line.line_total_tax),
        }

    @staticmethod
    def _totals_to_dict(totals: OrderTotals) -> dict[str, str]:
        return {
            "subtotal_excl_tax": _money(totals.subtotal_excl_tax),
            "tax_total": _money(totals.tax_total),
            "delivery_cost": _money(totals.delivery_cost),
            "grand_total": _money(totals.grand_total),
        }

    @staticmethod
    def _delivery_to_dict(delivery: DeliveryEstimate) -> dict[str, Any]:
        return {
            "distance_km": (
                round(delivery.distance_km, 2) if delivery.distance_km is not None else None
            ),
            "cost": _money(delivery.cost),
        }

    def _quote_to_dict(self, quote: CartQuote) -> dict[str, Any]:
        data = {
            "lines": [self._line_to_dict(line) for line in quote.lines],
            "totals": self._totals_to_dict(quote.totals),
            "delivery": self._delivery_to_dict(quote.delivery),
        }
        if quote.skipped_product_ids:
            data["skipped_product_ids"] = list(quote.skipped_product_ids)
        return data

    def _order_to_dict(self, order: Order, include_lines: bool) -> dict[str, Any]:
        info = self.state_machine.info(order.status)
        data: dict[str, Any] = {
            "id": order.id,
            "reference": order.reference,
            "status": info.label,
            "status_color": info.color,
            "created_at": order.created_at.isoformat(),
            "subtotal_excl_tax": _money(order.subtotal_excl_tax),
            "tax_total": _money(order.tax_total),
            "delivery_cost": _money(order.delivery_cost),
            "grand_total": _money(order.grand_total),
        }
        if not include_lines:
            return data

        data["lines"] = [self._line_to_dict(line) for line in order.lines]
        data["available_transitions"] = [
            self.state_machine.label(s)
            for s in self.state_machine.available_transitions(order.status)
        ]
        data["customer_actions"] = sorted(
            action.value for action in self.state_machine.customer_actions(order.status)
        )

        feedback = latest_feedback(order.note_public)
        if feedback is not None:
            data["feedback"] = {
                "delivery": {
                    "rating": feedback.delivery.rating,
                    "comment": feedback.delivery.comment,
                },
                "product": {
                    "rating": feedback.product.rating,
                    "comment": feedback.product.comment,
                },
            }
        cancellation = latest_cancellation(order.note_public)
        if cancellation is not None:
            data["cancellation_reason"] = cancellation.reason
        return data

    def _format_order_row(self, order: Order) -> str:
        return (
            f"{order.id:>6}  {order.reference:<20} "
            f"{self.state_machine.label(order.status):<12} "
            f"{order.created_at:%Y-%m-%d}  {_money(order.grand_total):>10}"
        )

    def _format_details_as_text(self, details: dict[str, Any]) -> str:
        """Format order details as human-readable text.

        Args:
            details: Order details dictionary.

        Returns:
            Formatted text string.
        """
        lines = []

        # Header
        lines.append(f"Order ID: {details.get('id')}")
        lines.append(f"Reference: {details.get('reference')}")
        lines.append(f"Status: {details.get('status')}")
        lines.append(f"Date: {details.get('created_at')}")
        lines.append("")

        # Lines
        lines.append("Lines:")
        for line in details.get("lines", []):
            lines.append(
                f"  - {line['label'] or line['product_id']}: "
                f"{line['qty']} x {line['unit_price_incl_tax']}"
            )
        lines.append("")

        # Totals
        lines.append(f"Subtotal (excl. tax): {details.get('subtotal_excl_tax')}")
        lines.append(f"Tax: {details.get('tax_total')}")
        lines.append(f"Delivery: {details.get('delivery_cost')}")
        lines.append(f"Total: {details.get('grand_total')}")

        if details.get("cancellation_reason"):
            lines.append("")
            lines.append(f"Cancellation reason: {details['cancellation_reason']}")

        if details.get("feedback"):
            feedback = details["feedback"]
            lines.append("")
            lines.append("Feedback:")
            lines.append(f"  Delivery: {feedback['delivery']['rating']}/5")
            lines.append(f"  Product: {feedback['product']['rating']}/5")

        return "\n".join(lines)
