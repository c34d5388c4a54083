"""JSON file cart store adapter.

Implements CartStorePort over a JSON document on disk, holding the same
well-known keys the mobile app keeps in device storage:

    {"cartItems": [12, 12, 40], "cartQuantities": {"12": 2, "40": 1}}

cartItems lists one product id per unit added. cartQuantities is optional.
Other keys in the document are left untouched.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from storefront.core.ports import CartStorePort

logger = logging.getLogger(__name__)

CART_ITEMS_KEY = "cartItems"
CART_QUANTITIES_KEY = "cartQuantities"


class JsonFileCartStore(CartStorePort):
    """Reads and clears a cart kept in a local JSON file."""

    def __init__(self, path: str):
        """Initialize the cart store.

        Args:
            path: Location of the JSON document. A missing file is an
                empty cart.
        """
        self.path = Path(path).expanduser()
        self._lock = asyncio.Lock()

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        text = self.path.read_text(encoding="utf-8")
        if not text.strip():
            return {}
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning(f"Cart file {self.path} is not valid JSON, treating as empty: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    async def load_items(self) -> list[int]:
        data = await asyncio.to_thread(self._read)
        items = []
        for raw in data.get(CART_ITEMS_KEY) or []:
            try:
                items.append(int(raw))
            except (TypeError, ValueError):
                logger.warning(f"Ignoring invalid cart item: {raw!r}")
        return items

    async def load_quantities(self) -> dict[int, int]:
        data = await asyncio.to_thread(self._read)
        raw_quantities = data.get(CART_QUANTITIES_KEY) or {}
        if not isinstance(raw_quantities, dict):
            return {}

        quantities = {}
        for key, value in raw_quantities.items():
            try:
                quantities[int(key)] = int(value)
            except (TypeError, ValueError):
                logger.warning(f"Ignoring invalid cart quantity {key!r}: {value!r}")
        return quantities

    async def clear(self) -> None:
        """Remove cart items and quantities from the document.

        Raises:
            OSError: If the file cannot be written.
        """
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            data.pop(CART_ITEMS_KEY, None)
            data.pop(CART_QUANTITIES_KEY, None)
            await asyncio.to_thread(self._write, data)
        logger.info(f"Cleared cart in {self.path}")
