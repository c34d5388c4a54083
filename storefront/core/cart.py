"""Cart reconciliation: catalog products + quantities -> priced lines."""

from collections import Counter
from collections.abc import Iterable, Sequence
from decimal import Decimal

from .errors import EmptyCartError
from .models import CatalogProduct, OrderLine, QuantityMap
from .pricing import VAT_RATE, breakdown


def quantities_from_cart_items(item_ids: Iterable[int]) -> dict[int, int]:
    """Build a quantity map from stored cart items.

    The cart store keeps one entry per unit, so a product added three
    times appears three times.
    """
    return dict(Counter(item_ids))


def unique_product_ids(item_ids: Iterable[int]) -> list[int]:
    """Distinct product ids in first-seen order."""
    return list(dict.fromkeys(item_ids))


class CartReconciler:
    """Turns a catalog snapshot and a quantity map into order lines.

    Pure: takes snapshots as arguments and never reads the cart store.
    """

    def __init__(self, tax_rate: Decimal = VAT_RATE):
        self.tax_rate = tax_rate

    @staticmethod
    def resolve_quantity(product_id: int, quantities: QuantityMap) -> int:
        """Requested quantity, or 1 when absent or not positive."""
        qty = quantities.get(product_id)
        if qty is None or qty <= 0:
            return 1
        return int(qty)

    def reconcile(
        self, products: Sequence[CatalogProduct], quantities: QuantityMap
    ) -> list[OrderLine]:
        """Price every product in input order.

        Raises:
            EmptyCartError: If products is empty.
            InvalidPriceError: If a product carries a negative price.
        """
        if not products:
            raise EmptyCartError()

        return [
            breakdown(
                product.unit_price_incl_tax,
                self.resolve_quantity(product.id, quantities),
                self.tax_rate,
                product_id=product.id,
                label=product.label,
            )
            for product in products
        ]
