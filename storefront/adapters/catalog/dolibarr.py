"""Dolibarr product catalog adapter.

Implements CatalogPort by reading product snapshots from the Dolibarr
REST API. Prices are taken including tax, as the shop displays them.
"""

import logging
from typing import Any

import httpx

from storefront.adapters.repository.dolibarr import (
    build_client,
    raise_for_status,
    read_json_object,
    to_decimal,
    to_int,
)
from storefront.core.errors import NetworkError
from storefront.core.models import ZERO, CatalogProduct
from storefront.core.ports import CatalogPort

logger = logging.getLogger(__name__)


class DolibarrCatalogAdapter(CatalogPort):
    """Dolibarr-backed product catalog via REST API."""

    def __init__(
        self,
        api_url: str,
        api_key: str = "",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize Dolibarr catalog adapter.

        Args:
            api_url: Base URL for the Dolibarr REST API
            api_key: DOLAPIKEY used to authenticate every request
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.client = build_client(api_url, api_key, timeout, transport)

    async def close(self) -> None:
        """Close the httpx client and clean up resources."""
        await self.client.aclose()

    async def get_product(self, product_id: int) -> CatalogProduct:
        try:
            response = await self.client.get(f"/products/{product_id}")
        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch product {product_id}: {e}")
            raise NetworkError(f"Could not reach the catalog: {e}") from e
        what = f"Product {product_id}"
        raise_for_status(response, what)
        return self._parse_product(product_id, read_json_object(response, what))

    @staticmethod
    def _parse_product(product_id: int, raw: dict[str, Any]) -> CatalogProduct:
        price = raw.get("price_ttc")
        if price in (None, ""):
            price = raw.get("price")
        return CatalogProduct(
            id=to_int(raw.get("id"), default=product_id),
            label=str(raw.get("label") or ""),
            unit_price_incl_tax=max(to_decimal(price), ZERO),
            stock=max(to_int(raw.get("stock_reel")), 0),
            photo_ref=str(raw.get("photo_link") or ""),
        )
