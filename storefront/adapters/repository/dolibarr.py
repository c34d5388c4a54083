"""Dolibarr order repository adapter.

Implements OrderRepositoryPort against the Dolibarr REST API. Normalizes
Dolibarr order payloads (French field names, numeric strings, unix
timestamps) into core domain models.
"""

import logging
import re
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from storefront.core.errors import NetworkError, NotFoundError
from storefront.core.models import (
    ZERO,
    Order,
    OrderDraft,
    OrderLine,
    OrderReference,
    OrderStatus,
)
from storefront.core.ports import OrderRepositoryPort
from storefront.core.pricing import VAT_RATE, round_money

logger = logging.getLogger(__name__)

# Dolibarr's tva_tx is a percentage
VAT_PERCENT = int(VAT_RATE * 100)

_CREATED_ID_PATTERN = re.compile(r"id\s*:\s*(\d+)", re.IGNORECASE)


def build_client(
    api_url: str,
    api_key: str,
    timeout: float,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an httpx client authenticated against the Dolibarr API."""
    headers = {"Content-Type": "application/json", "Accept": "application/json"}
    if api_key:
        headers["DOLAPIKEY"] = api_key
    return httpx.AsyncClient(
        base_url=api_url.rstrip("/"),
        headers=headers,
        timeout=timeout,
        transport=transport,
    )


def to_decimal(value: Any) -> Decimal:
    """Parse a Dolibarr amount (number, numeric string or null)."""
    if value is None or value == "" or isinstance(value, bool):
        return ZERO
    try:
        return round_money(Decimal(str(value).strip()))
    except InvalidOperation:
        logger.warning(f"Ignoring unparseable amount: {value!r}")
        return ZERO


def to_int(value: Any, default: int = 0) -> int:
    if value is None or value == "" or isinstance(value, bool):
        return default
    try:
        return int(float(str(value).strip()))
    except ValueError:
        return default


def to_datetime(value: Any) -> datetime:
    """Parse a Dolibarr unix timestamp (seconds). Missing dates become the epoch."""
    seconds = to_int(value, default=0)
    return datetime.fromtimestamp(seconds, tz=UTC)


def read_json(response: httpx.Response, what: str) -> Any:
    """Decode a JSON body, mapping an unreadable body to NetworkError."""
    try:
        return response.json()
    except ValueError as e:
        logger.error(f"Response for {what} is not JSON: {response.text[:100]!r}")
        raise NetworkError(
            f"Unreadable response for {what}", status_code=response.status_code
        ) from e


def read_json_object(response: httpx.Response, what: str) -> dict[str, Any]:
    """Decode a JSON body that must be an object."""
    data = read_json(response, what)
    if not isinstance(data, dict):
        raise NetworkError(
            f"Unexpected response for {what}: {type(data).__name__}",
            status_code=response.status_code,
        )
    return data


def raise_for_status(response: httpx.Response, what: str) -> None:
    """Map a non-2xx response to the core error taxonomy."""
    if response.status_code == 404:
        raise NotFoundError(f"{what} not found")
    if response.is_error:
        raise NetworkError(
            f"Request for {what} failed with HTTP {response.status_code}",
            status_code=response.status_code,
        )


class DolibarrOrderRepository(OrderRepositoryPort):
    """Dolibarr-backed order repository via REST API."""

    def __init__(
        self,
        api_url: str,
        api_key: str = "",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize Dolibarr repository.

        Args:
            api_url: Base URL for the Dolibarr REST API
                (e.g., https://shop.example.com/api/index.php)
            api_key: DOLAPIKEY used to authenticate every request
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.api_url = api_url.rstrip("/")
        self.client = build_client(self.api_url, api_key, timeout, transport)

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.client.aclose()

    async def close(self) -> None:
        """Close the httpx client and clean up resources."""
        await self.client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        what: str,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise NetworkError(f"Could not reach the order service: {e}") from e
        raise_for_status(response, what)
        return response

    async def list_orders(self, customer_id: int, limit: int = 100) -> list[Order]:
        """Return the orders of a customer, newest first."""
        params = {
            "thirdparty_ids": customer_id,
            "limit": limit,
            "sortfield": "date_commande",
            "sortorder": "DESC",
        }
        try:
            response = await self._request("GET", "/orders", "orders", params=params)
        except NotFoundError:
            # Dolibarr answers 404 when a customer has no orders
            return []

        data = read_json(response, "orders")
        if not isinstance(data, list):
            logger.warning(f"Unexpected order list payload: {type(data).__name__}")
            return []

        orders = []
        for raw in data:
            if not isinstance(raw, dict):
                logger.warning(f"Skipping non-object order entry: {raw!r}")
                continue
            try:
                orders.append(self._parse_order(raw))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed order: {e}")
        return orders

    async def get_order(self, order_id: int) -> Order:
        what = f"Order {order_id}"
        response = await self._request("GET", f"/orders/{order_id}", what)
        raw = read_json_object(response, what)
        try:
            return self._parse_order(raw)
        except (KeyError, TypeError, ValueError) as e:
            raise NetworkError(f"Malformed data for {what}: {e}") from e

    async def create_order(self, draft: OrderDraft) -> OrderReference:
        """Submit a new order. Not idempotent unless the server honours the key."""
        headers = {}
        if draft.idempotency_key:
            headers["Idempotency-Key"] = draft.idempotency_key

        response = await self._request(
            "POST",
            "/orders",
            "order creation",
            json=self._draft_payload(draft),
            headers=headers,
        )
        order_id = self._parse_created_id(response)
        logger.info(
            f"Created order {order_id} on Dolibarr",
            extra={"order_id": order_id, "customer_id": draft.customer_id},
        )
        return OrderReference(id=order_id)

    async def update_order(
        self,
        order_id: int,
        status: OrderStatus | None = None,
        note_private: str | None = None,
        note_public: str | None = None,
    ) -> None:
        payload: dict[str, Any] = {}
        if status is not None:
            # Dolibarr expects the status code as a string
            payload["statut"] = str(status.wire_code)
        if note_private is not None:
            payload["note_private"] = note_private
        if note_public is not None:
            payload["note_public"] = note_public
        if not payload:
            return

        await self._request("PUT", f"/orders/{order_id}", f"Order {order_id}", json=payload)
        logger.debug(
            f"Updated order {order_id}",
            extra={"order_id": order_id, "fields": sorted(payload)},
        )

    @staticmethod
    def _draft_payload(draft: OrderDraft) -> dict[str, Any]:
        """Build the Dolibarr order creation body. Card data is never sent."""
        return {
            "socid": draft.customer_id,
            "date": int(draft.created_at.timestamp()),
            "type": 0,
            "lines": [
                {
                    "fk_product": line.product_id,
                    "qty": line.qty,
                    "price": float(line.unit_price_excl_tax),
                    "subprice": float(line.line_total_excl_tax),
                    "total_tva": float(line.line_total_tax),
                    "tva_tx": VAT_PERCENT,
                }
                for line in draft.lines
            ],
            "note_private": draft.note_private,
        }

    @staticmethod
    def _parse_created_id(response: httpx.Response) -> int:
        """Extract the new order id from an object, a bare int or "id :<n>"."""
        try:
            data = response.json()
        except ValueError:
            data = response.text

        order_id = 0
        if isinstance(data, dict) and "id" in data:
            order_id = to_int(data["id"])
        elif isinstance(data, int) and not isinstance(data, bool):
            order_id = data
        elif isinstance(data, str):
            text = data.strip()
            if text.isdigit():
                order_id = int(text)
            else:
                match = _CREATED_ID_PATTERN.search(text)
                if match:
                    order_id = int(match.group(1))
        if order_id > 0:
            return order_id
        raise NetworkError(f"Unexpected order creation response: {str(data)[:100]}")

    @staticmethod
    def _parse_line(raw: dict[str, Any]) -> OrderLine:
        qty = max(to_int(raw.get("qty"), default=1), 1)
        unit_excl = to_decimal(raw.get("subprice", raw.get("price")))
        if raw.get("total_ht") is not None:
            total_excl = to_decimal(raw["total_ht"])
        else:
            total_excl = round_money(unit_excl * qty)
        total_tax = to_decimal(raw.get("total_tva"))
        unit_tax = round_money(total_tax / qty)
        product_id = to_int(raw.get("fk_product"), default=0) or None
        return OrderLine(
            product_id=product_id,
            qty=qty,
            unit_price_excl_tax=unit_excl,
            unit_price_incl_tax=unit_excl + unit_tax,
            tax_amount_per_unit=unit_tax,
            line_total_excl_tax=total_excl,
            line_total_tax=total_tax,
            label=str(
                raw.get("product_label") or raw.get("libelle") or raw.get("label") or ""
            ),
        )

    def _parse_order(self, raw: dict[str, Any]) -> Order:
        """Normalize a Dolibarr order payload into an Order.

        Dolibarr has no delivery cost field: it is whatever the total
        including tax holds beyond the excl-tax and tax totals.
        """
        status_raw = raw.get("statut")
        if status_raw is None:
            status_raw = raw.get("status")

        subtotal = to_decimal(raw.get("total_ht"))
        tax = to_decimal(raw.get("total_tva"))
        total = to_decimal(raw.get("total_ttc"))
        delivery = max(total - subtotal - tax, ZERO)

        return Order(
            id=to_int(raw["id"]),
            reference=str(raw.get("ref") or ""),
            status=OrderStatus.from_wire(status_raw),
            lines=tuple(
                self._parse_line(line)
                for line in raw.get("lines") or []
                if isinstance(line, dict)
            ),
            subtotal_excl_tax=subtotal,
            tax_total=tax,
            delivery_cost=delivery,
            created_at=to_datetime(
                raw.get("date_commande") or raw.get("date_creation") or raw.get("date")
            ),
            note_private=str(raw.get("note_private") or ""),
            note_public=str(raw.get("note_public") or ""),
        )
