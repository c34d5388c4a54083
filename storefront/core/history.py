"""Order history helpers: summary statistics, filtering, sorting,
search and flat export rows.

Pure functions over lists of Order, no side effects.
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from .models import ZERO, Order, OrderStatus, OrderSummary
from .pricing import round_money
from .state_machine import OrderStateMachine


def summarize_orders(orders: Sequence[Order]) -> OrderSummary:
    """Count, total value, average value and per-status counts."""
    total = sum((order.grand_total for order in orders), ZERO)
    status_counts: dict[OrderStatus, int] = {}
    for order in orders:
        status_counts[order.status] = status_counts.get(order.status, 0) + 1

    average = round_money(total / len(orders)) if orders else ZERO
    return OrderSummary(
        total_orders=len(orders),
        total_amount=total,
        average_order_value=average,
        status_counts=status_counts,
    )


def filter_by_status(orders: Sequence[Order], status: OrderStatus) -> list[Order]:
    return [order for order in orders if order.status == status]


def filter_by_date_range(
    orders: Sequence[Order], start: datetime, end: datetime
) -> list[Order]:
    """Orders created between start and end, both inclusive."""
    if end < start:
        raise ValueError(f"end ({end}) cannot be before start ({start})")
    return [order for order in orders if start <= order.created_at <= end]


def sort_by_date(orders: Sequence[Order], ascending: bool = False) -> list[Order]:
    """Orders by creation time, newest first unless ascending."""
    return sorted(orders, key=lambda o: o.created_at, reverse=not ascending)


def sort_by_amount(orders: Sequence[Order], ascending: bool = False) -> list[Order]:
    """Orders by grand total, largest first unless ascending."""
    return sorted(orders, key=lambda o: o.grand_total, reverse=not ascending)


def search_orders(orders: Sequence[Order], term: str) -> list[Order]:
    """Orders whose reference or any line label contains term.

    Case-insensitive. A blank term returns every order.
    """
    term = term.strip().lower()
    if not term:
        return list(orders)
    return [
        order
        for order in orders
        if term in order.reference.lower()
        or any(term in line.label.lower() for line in order.lines)
    ]


def export_rows(
    orders: Sequence[Order], state_machine: OrderStateMachine | None = None
) -> list[dict[str, Any]]:
    """Flatten orders into one row per order for CSV or spreadsheet export.

    Amounts are formatted with two decimals and the status is its display
    label. Missing notes export as empty strings.
    """
    machine = state_machine or OrderStateMachine()
    return [
        {
            "reference": order.reference,
            "date": order.created_at.strftime("%Y-%m-%d %H:%M"),
            "status": machine.label(order.status),
            "item_count": len(order.lines),
            "subtotal_excl_tax": f"{order.subtotal_excl_tax:.2f}",
            "tax_total": f"{order.tax_total:.2f}",
            "delivery_cost": f"{order.delivery_cost:.2f}",
            "grand_total": f"{order.grand_total:.2f}",
            "note_public": order.note_public,
            "note_private": order.note_private,
        }
        for order in orders
    ]
