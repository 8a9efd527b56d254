"""Cart validation and pricing against the live catalogue.

``validate`` reports every problem at once so the storefront can show them
next to the offending lines; ``price`` turns cart items into immutable
snapshots carrying the price, SKU and attributes valid at this moment.
"""

from dataclasses import dataclass, field

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from ordering.catalogue.product import Product

PRODUCT_UNAVAILABLE = "Product no longer available"
INSUFFICIENT_STOCK = "Insufficient stock"


@dataclass(frozen=True)
class CartLine:
    """A priced cart item, ready to become an order line."""

    item_id: str
    product_id: str
    variant_id: str | None
    name: str
    sku: str | None
    quantity: int
    unit_price: float
    weight: float | None = None
    options: dict = field(default_factory=dict)

    @property
    def total(self) -> float:
        return round(self.unit_price * self.quantity, 2)


class CartValidator:
    """Checks cart items against product availability and stock."""

    def _load_product(self, product_id):
        try:
            return current_domain.repository_for(Product).get(str(product_id))
        except ObjectNotFoundError:
            return None

    def validate(self, cart) -> list[dict]:
        problems = []
        for item in cart.items:
            product = self._load_product(item.product_id)
            try:
                available = product is not None and product.is_available(item.variant_id)
            except ValidationError:
                available = False
            if not available:
                problems.append({"item_id": str(item.id), "error": PRODUCT_UNAVAILABLE, "available": 0})
                continue

            stock = product.available_stock(item.variant_id)
            if stock is not None and stock < item.quantity:
                problems.append({"item_id": str(item.id), "error": INSUFFICIENT_STOCK, "available": stock})
        return problems

    def price(self, cart, products=None) -> list[CartLine]:
        """Snapshot each cart item with its current catalogue data.

        Args:
            products: Optional ``{product_id: Product}`` cache; loaded products
                are added to it so the caller can reuse the same instances.
        """
        products = {} if products is None else products
        lines = []
        for item in cart.items:
            product_id = str(item.product_id)
            if product_id not in products:
                products[product_id] = current_domain.repository_for(Product).get(product_id)
            product = products[product_id]

            lines.append(
                CartLine(
                    item_id=str(item.id),
                    product_id=product_id,
                    variant_id=str(item.variant_id) if item.variant_id else None,
                    name=product.name,
                    sku=product.sku_for(item.variant_id),
                    quantity=item.quantity,
                    unit_price=product.unit_price(item.variant_id),
                    weight=product.weight,
                    options=product.attributes_for(item.variant_id),
                )
            )
        return lines
