"""Tests for the Dolibarr order repository and catalog adapters.

Requests are served by httpx.MockTransport so no server is needed.
"""

import json
from datetime import UTC, datetime
from decimal import Decimal

import httpx
import pytest

from storefront.adapters.catalog.dolibarr import DolibarrCatalogAdapter
from storefront.adapters.repository.dolibarr import DolibarrOrderRepository
from storefront.core.errors import NetworkError, NotFoundError
from storefront.core.models import (
    Address,
    Coordinates,
    DeliveryEstimate,
    OrderDraft,
    OrderStatus,
    PaymentMethod,
)
from storefront.core.order_service import OrderService
from storefront.core.pricing import VAT_RATE, breakdown, order_totals
from storefront.tests.fakes import FakeCartStore, FakeCatalog, FakeLocation, FakeNotifier

API_URL = "https://shop.example.com/api/index.php"

SAMPLE_ORDER = {
    "id": "42",
    "ref": "CO2601-0042",
    "statut": "1",
    "date_commande": 1767225600,
    "total_ht": "200.00000000",
    "total_tva": "40.00000000",
    "total_ttc": "255.00000000",
    "note_private": "Payment method: cash",
    "note_public": None,
    "lines": [
        {
            "id": "7",
            "fk_product": "1",
            "libelle": "Cat tree",
            "qty": "2",
            "subprice": "100.00000000",
            "total_ht": "200.00000000",
            "total_tva": "40.00000000",
            "total_ttc": "240.00000000",
        }
    ],
}


class Recorder:
    """Captures requests and answers with a handler."""

    def __init__(self, handler):
        self.handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)


def repository_with(handler) -> tuple[DolibarrOrderRepository, Recorder]:
    recorder = Recorder(handler)
    repo = DolibarrOrderRepository(
        api_url=API_URL,
        api_key="secret-key",
        transport=httpx.MockTransport(recorder),
    )
    return repo, recorder


def make_draft(idempotency_key: str | None = None) -> OrderDraft:
    lines = (breakdown(Decimal("120.00"), 2, VAT_RATE, product_id=1, label="Cat tree"),)
    return OrderDraft(
        customer_id=7,
        lines=lines,
        totals=order_totals(lines, Decimal("15")),
        delivery=DeliveryEstimate(distance_km=7.0, cost=Decimal("15")),
        address=Address("12 Rue Oqba", "Rabat", "10000"),
        payment_method=PaymentMethod.CASH,
        created_at=datetime(2026, 1, 1, tzinfo=UTC),
        note_private="Payment method: cash",
        idempotency_key=idempotency_key,
    )


@pytest.mark.asyncio
class TestListOrders:
    """Tests for GET /orders."""

    async def test_sends_customer_filter_and_api_key(self) -> None:
        repo, recorder = repository_with(lambda r: httpx.Response(200, json=[]))

        await repo.list_orders(7)

        request = recorder.requests[0]
        assert request.method == "GET"
        assert request.url.path.endswith("/orders")
        assert request.url.params["thirdparty_ids"] == "7"
        assert request.url.params["limit"] == "100"
        assert request.url.params["sortfield"] == "date_commande"
        assert request.url.params["sortorder"] == "DESC"
        assert request.headers["DOLAPIKEY"] == "secret-key"
        await repo.close()

    async def test_parses_orders(self) -> None:
        repo, _ = repository_with(lambda r: httpx.Response(200, json=[SAMPLE_ORDER]))

        orders = await repo.list_orders(7)

        assert len(orders) == 1
        order = orders[0]
        assert order.id == 42
        assert order.reference == "CO2601-0042"
        assert order.status is OrderStatus.VALIDATED
        assert order.subtotal_excl_tax == Decimal("200.00")
        assert order.tax_total == Decimal("40.00")
        assert order.delivery_cost == Decimal("15.00")
        assert order.grand_total == Decimal("255.00")
        assert order.created_at == datetime(2026, 1, 1, tzinfo=UTC)
        assert order.note_public == ""
        line = order.lines[0]
        assert line.product_id == 1
        assert line.qty == 2
        assert line.label == "Cat tree"
        assert line.unit_price_excl_tax == Decimal("100.00")
        assert line.tax_amount_per_unit == Decimal("20.00")
        await repo.close()

    async def test_not_found_means_no_orders(self) -> None:
        repo, _ = repository_with(lambda r: httpx.Response(404, json={"error": "none"}))

        assert await repo.list_orders(7) == []
        await repo.close()

    async def test_malformed_orders_are_skipped(self) -> None:
        repo, _ = repository_with(
            lambda r: httpx.Response(200, json=[{"ref": "no id"}, SAMPLE_ORDER])
        )

        orders = await repo.list_orders(7)

        assert [o.id for o in orders] == [42]
        await repo.close()

    async def test_non_object_entries_are_skipped(self) -> None:
        repo, _ = repository_with(
            lambda r: httpx.Response(200, json=[None, "oops", 7, {"id": "5", "statut": "0"}])
        )

        orders = await repo.list_orders(7)

        assert [o.id for o in orders] == [5]
        assert orders[0].status is OrderStatus.DRAFT
        await repo.close()

    async def test_non_object_lines_are_skipped(self) -> None:
        raw = dict(SAMPLE_ORDER, lines=[None, SAMPLE_ORDER["lines"][0]])
        repo, _ = repository_with(lambda r: httpx.Response(200, json=[raw]))

        orders = await repo.list_orders(7)

        assert len(orders[0].lines) == 1
        await repo.close()

    async def test_html_body_raises_network_error(self) -> None:
        repo, _ = repository_with(
            lambda r: httpx.Response(200, text="<html>maintenance</html>")
        )

        with pytest.raises(NetworkError) as exc_info:
            await repo.list_orders(7)

        assert exc_info.value.status_code == 200
        await repo.close()

    async def test_server_error_raises_network_error(self) -> None:
        repo, _ = repository_with(lambda r: httpx.Response(500))

        with pytest.raises(NetworkError) as exc_info:
            await repo.list_orders(7)

        assert exc_info.value.status_code == 500
        await repo.close()

    async def test_transport_error_raises_network_error(self) -> None:
        def fail(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        repo, _ = repository_with(fail)

        with pytest.raises(NetworkError):
            await repo.list_orders(7)
        await repo.close()


@pytest.mark.asyncio
class TestGetOrder:
    """Tests for GET /orders/{id}."""

    async def test_status_under_status_key(self) -> None:
        raw = dict(SAMPLE_ORDER, status=3)
        del raw["statut"]
        repo, _ = repository_with(lambda r: httpx.Response(200, json=raw))

        order = await repo.get_order(42)

        assert order.status is OrderStatus.DELIVERED
        await repo.close()

    async def test_unknown_status_code(self) -> None:
        raw = dict(SAMPLE_ORDER, statut="9")
        repo, _ = repository_with(lambda r: httpx.Response(200, json=raw))

        order = await repo.get_order(42)

        assert order.status is OrderStatus.UNKNOWN
        await repo.close()

    async def test_not_found(self) -> None:
        repo, _ = repository_with(lambda r: httpx.Response(404))

        with pytest.raises(NotFoundError):
            await repo.get_order(99)
        await repo.close()

    @pytest.mark.parametrize(
        "body",
        [
            {"text": "<html>maintenance</html>"},
            {"json": [SAMPLE_ORDER]},
            {"json": "42"},
            {"json": {"ref": "no id"}},
        ],
    )
    async def test_unusable_body_raises_network_error(self, body: dict) -> None:
        repo, _ = repository_with(lambda r: httpx.Response(200, **body))

        with pytest.raises(NetworkError):
            await repo.get_order(42)
        await repo.close()


@pytest.mark.asyncio
class TestCreateOrder:
    """Tests for POST /orders."""

    async def test_posts_order_body(self) -> None:
        repo, recorder = repository_with(lambda r: httpx.Response(200, json=57))

        reference = await repo.create_order(make_draft())

        assert reference.id == 57
        request = recorder.requests[0]
        assert request.method == "POST"
        assert "Idempotency-Key" not in request.headers
        body = json.loads(request.content)
        assert body["socid"] == 7
        assert body["type"] == 0
        assert body["date"] == int(datetime(2026, 1, 1, tzinfo=UTC).timestamp())
        assert body["note_private"] == "Payment method: cash"
        assert body["lines"] == [
            {
                "fk_product": 1,
                "qty": 2,
                "price": 100.0,
                "subprice": 200.0,
                "total_tva": 40.0,
                "tva_tx": 20,
            }
        ]
        await repo.close()

    @pytest.mark.parametrize(
        "body",
        [
            {"json": {"id": 58}},
            {"json": "58"},
            {"json": "id :58"},
            {"text": "id :58"},
        ],
    )
    async def test_parses_created_id_shapes(self, body: dict) -> None:
        repo, _ = repository_with(lambda r: httpx.Response(200, **body))

        reference = await repo.create_order(make_draft())

        assert reference.id == 58
        await repo.close()

    @pytest.mark.parametrize(
        "body",
        [{"json": {"id": None}}, {"json": {"id": "abc"}}, {"json": 0}, {"json": "id :0"}],
    )
    async def test_missing_created_id_raises(self, body: dict) -> None:
        repo, _ = repository_with(lambda r: httpx.Response(200, **body))

        with pytest.raises(NetworkError):
            await repo.create_order(make_draft())
        await repo.close()

    async def test_unparseable_response(self) -> None:
        repo, _ = repository_with(lambda r: httpx.Response(200, json={"ok": True}))

        with pytest.raises(NetworkError):
            await repo.create_order(make_draft())
        await repo.close()

    async def test_sends_idempotency_key(self) -> None:
        repo, recorder = repository_with(lambda r: httpx.Response(200, json=57))

        await repo.create_order(make_draft(idempotency_key="key-123"))

        assert recorder.requests[0].headers["Idempotency-Key"] == "key-123"
        await repo.close()

    async def test_rejected_order(self) -> None:
        repo, _ = repository_with(lambda r: httpx.Response(400, json={"error": "bad"}))

        with pytest.raises(NetworkError) as exc_info:
            await repo.create_order(make_draft())

        assert exc_info.value.status_code == 400
        await repo.close()


@pytest.mark.asyncio
class TestUpdateOrder:
    """Tests for PUT /orders/{id}."""

    async def test_status_sent_as_string(self) -> None:
        repo, recorder = repository_with(lambda r: httpx.Response(200, json={}))

        await repo.update_order(
            42, status=OrderStatus.CANCELLED, note_private="a", note_public="b"
        )

        request = recorder.requests[0]
        assert request.method == "PUT"
        assert request.url.path.endswith("/orders/42")
        assert json.loads(request.content) == {
            "statut": "-1",
            "note_private": "a",
            "note_public": "b",
        }
        await repo.close()

    async def test_unset_fields_not_sent(self) -> None:
        repo, recorder = repository_with(lambda r: httpx.Response(200, json={}))

        await repo.update_order(42, note_public="only this")

        assert json.loads(recorder.requests[0].content) == {"note_public": "only this"}
        await repo.close()

    async def test_nothing_to_update_makes_no_request(self) -> None:
        repo, recorder = repository_with(lambda r: httpx.Response(200, json={}))

        await repo.update_order(42)

        assert recorder.requests == []
        await repo.close()


@pytest.mark.asyncio
class TestCatalog:
    """Tests for GET /products/{id}."""

    async def test_parses_product(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path.endswith("/products/1")
            return httpx.Response(
                200,
                json={
                    "id": "1",
                    "label": "Cat tree",
                    "price": "100.00000000",
                    "price_ttc": "120.00000000",
                    "stock_reel": "5",
                    "photo_link": "cat-tree.jpg",
                },
            )

        catalog = DolibarrCatalogAdapter(
            API_URL, "secret-key", transport=httpx.MockTransport(handler)
        )

        product = await catalog.get_product(1)

        assert product.id == 1
        assert product.label == "Cat tree"
        assert product.unit_price_incl_tax == Decimal("120.00")
        assert product.stock == 5
        assert product.photo_ref == "cat-tree.jpg"
        await catalog.close()

    async def test_missing_stock_and_price_ttc(self) -> None:
        catalog = DolibarrCatalogAdapter(
            API_URL,
            transport=httpx.MockTransport(
                lambda r: httpx.Response(200, json={"id": 2, "label": "Toy", "price": "8.5"})
            ),
        )

        product = await catalog.get_product(2)

        assert product.unit_price_incl_tax == Decimal("8.50")
        assert product.stock == 0
        await catalog.close()

    async def test_html_product_body(self) -> None:
        catalog = DolibarrCatalogAdapter(
            API_URL,
            transport=httpx.MockTransport(lambda r: httpx.Response(200, text="<html></html>")),
        )

        with pytest.raises(NetworkError):
            await catalog.get_product(3)
        await catalog.close()

    async def test_product_not_found(self) -> None:
        catalog = DolibarrCatalogAdapter(
            API_URL, transport=httpx.MockTransport(lambda r: httpx.Response(404))
        )

        with pytest.raises(NotFoundError):
            await catalog.get_product(3)
        await catalog.close()


@pytest.mark.asyncio
class TestOrderServiceOverDolibarr:
    """Repository failures surface as failed results, not exceptions."""

    def service_with(self, handler) -> tuple[OrderService, DolibarrOrderRepository, FakeNotifier]:
        repo, _ = repository_with(handler)
        notifier = FakeNotifier()
        service = OrderService(
            repository=repo,
            catalog=FakeCatalog(),
            cart_store=FakeCartStore(),
            location=FakeLocation(None),
            notifier=notifier,
            customer_id=7,
            store_location=Coordinates(33.951371146759776, -6.88501751937855),
        )
        return service, repo, notifier

    async def test_attach_note_on_html_response(self) -> None:
        service, repo, notifier = self.service_with(
            lambda r: httpx.Response(200, text="<html>maintenance</html>")
        )

        result = await service.attach_note(5, "hello")

        assert result.success is False
        assert result.error.startswith("Could not add the note")
        assert notifier.errors
        await repo.close()

    async def test_status_change_on_non_object_order(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=["not", "an", "order"])

        service, repo, _ = self.service_with(handler)

        result = await service.request_status_change(
            5, OrderStatus.DRAFT, OrderStatus.VALIDATED
        )

        assert result.success is False
        await repo.close()
