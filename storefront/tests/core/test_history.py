"""Unit tests for order history helpers."""

from dataclasses import replace
from datetime import UTC, datetime
from decimal import Decimal

import pytest

from storefront.core.history import (
    export_rows,
    filter_by_date_range,
    filter_by_status,
    search_orders,
    sort_by_amount,
    sort_by_date,
    summarize_orders,
)
from storefront.core.models import OrderLine, OrderStatus
from storefront.tests.fakes.repository import make_order


@pytest.fixture
def orders():
    return [
        make_order(1, OrderStatus.DRAFT, subtotal="100.00", tax="20.00",
                   created_at=datetime(2026, 1, 10, tzinfo=UTC)),
        make_order(2, OrderStatus.DELIVERED, subtotal="50.00", tax="10.00", delivery="15.00",
                   created_at=datetime(2026, 3, 5, tzinfo=UTC)),
        make_order(3, OrderStatus.DELIVERED, subtotal="10.00", tax="2.00",
                   created_at=datetime(2026, 2, 1, tzinfo=UTC)),
    ]


class TestSummarize:
    """Tests for summary statistics."""

    def test_summary(self, orders) -> None:
        summary = summarize_orders(orders)

        assert summary.total_orders == 3
        assert summary.total_amount == Decimal("207.00")
        assert summary.average_order_value == Decimal("69.00")
        assert summary.status_counts == {
            OrderStatus.DRAFT: 1,
            OrderStatus.DELIVERED: 2,
        }

    def test_empty_summary(self) -> None:
        summary = summarize_orders([])

        assert summary.total_orders == 0
        assert summary.total_amount == Decimal("0")
        assert summary.average_order_value == Decimal("0")
        assert dict(summary.status_counts) == {}

    def test_status_counts_are_read_only(self, orders) -> None:
        summary = summarize_orders(orders)
        with pytest.raises(TypeError):
            summary.status_counts[OrderStatus.DRAFT] = 5  # type: ignore[index]


class TestFiltering:
    """Tests for filters."""

    def test_filter_by_status(self, orders) -> None:
        delivered = filter_by_status(orders, OrderStatus.DELIVERED)
        assert [o.id for o in delivered] == [2, 3]

    def test_filter_by_date_range_is_inclusive(self, orders) -> None:
        result = filter_by_date_range(
            orders,
            datetime(2026, 1, 10, tzinfo=UTC),
            datetime(2026, 2, 1, tzinfo=UTC),
        )
        assert [o.id for o in result] == [1, 3]

    def test_filter_by_date_range_rejects_inverted_range(self, orders) -> None:
        with pytest.raises(ValueError):
            filter_by_date_range(
                orders,
                datetime(2026, 3, 1, tzinfo=UTC),
                datetime(2026, 1, 1, tzinfo=UTC),
            )


class TestSorting:
    """Tests for sorting."""

    def test_sort_by_date_newest_first(self, orders) -> None:
        assert [o.id for o in sort_by_date(orders)] == [2, 3, 1]

    def test_sort_by_date_ascending(self, orders) -> None:
        assert [o.id for o in sort_by_date(orders, ascending=True)] == [1, 3, 2]

    def test_sort_by_amount(self, orders) -> None:
        assert [o.id for o in sort_by_amount(orders)] == [1, 2, 3]
        assert [o.id for o in sort_by_amount(orders, ascending=True)] == [3, 2, 1]


class TestSearch:
    """Tests for searching references and line labels."""

    def test_search_by_reference(self, orders) -> None:
        assert [o.id for o in search_orders(orders, "co2601-0002")] == [2]

    def test_search_by_line_label(self, orders) -> None:
        line = OrderLine(
            product_id=9,
            qty=1,
            unit_price_excl_tax=Decimal("10.00"),
            unit_price_incl_tax=Decimal("12.00"),
            tax_amount_per_unit=Decimal("2.00"),
            line_total_excl_tax=Decimal("10.00"),
            line_total_tax=Decimal("2.00"),
            label="Bird Seed Mix",
        )
        orders[2] = replace(orders[2], lines=(line,))

        assert [o.id for o in search_orders(orders, "seed")] == [3]

    def test_blank_search_returns_everything(self, orders) -> None:
        assert len(search_orders(orders, "  ")) == 3


class TestExportRows:
    """Tests for flat export rows."""

    def test_one_row_per_order(self, orders) -> None:
        rows = export_rows(orders)

        assert len(rows) == 3
        assert rows[1] == {
            "reference": "CO2601-0002",
            "date": "2026-03-05 00:00",
            "status": "Delivered",
            "item_count": 0,
            "subtotal_excl_tax": "50.00",
            "tax_total": "10.00",
            "delivery_cost": "15.00",
            "grand_total": "75.00",
            "note_public": "",
            "note_private": "",
        }

    def test_unknown_status_and_notes(self) -> None:
        order = make_order(4, OrderStatus.UNKNOWN, note_private="Payment method: cash")

        row = export_rows([order])[0]

        assert row["status"] == "Unrecognized"
        assert row["note_private"] == "Payment method: cash"

    def test_empty(self) -> None:
        assert export_rows([]) == []
