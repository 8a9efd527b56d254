"""Product aggregate as seen by the order lifecycle: price, weight and stock.

Catalogue management lives elsewhere; this aggregate only carries what
checkout reads (price, SKU, variant attributes, weight) and what it writes
(stock). Stock is tracked per variant when a variant is ordered, otherwise on
the product itself, and only for products with ``track_stock`` set.
"""

import json

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Integer, String, Text

from ordering.domain import ordering


@ordering.entity(part_of="Product")
class ProductVariant:
    sku = String(max_length=100)
    price = Float(min_value=0.0)  # Overrides the product price when set
    stock = Integer(default=0)
    attributes = Text()  # JSON: e.g. {"size": "M", "color": "red"}
    is_active = Boolean(default=True)


@ordering.aggregate
class Product:
    name = String(required=True, max_length=255)
    sku = String(max_length=100)
    price = Float(required=True, min_value=0.0)
    weight = Float(min_value=0.0)  # kg
    stock = Integer(default=0)
    track_stock = Boolean(default=True)
    is_active = Boolean(default=True)
    variants = HasMany(ProductVariant)
    updated_at = DateTime()

    def variant(self, variant_id):
        if variant_id is None:
            return None
        variant = next((v for v in self.variants if str(v.id) == str(variant_id)), None)
        if variant is None:
            raise ValidationError({"variant_id": [f"Variant {variant_id} does not belong to product {self.id}"]})
        return variant

    def unit_price(self, variant_id=None) -> float:
        variant = self.variant(variant_id)
        if variant is not None and variant.price is not None:
            return variant.price
        return self.price

    def sku_for(self, variant_id=None):
        variant = self.variant(variant_id)
        if variant is not None and variant.sku:
            return variant.sku
        return self.sku

    def attributes_for(self, variant_id=None) -> dict:
        variant = self.variant(variant_id)
        if variant is None or not variant.attributes:
            return {}
        return json.loads(variant.attributes)

    def is_available(self, variant_id=None) -> bool:
        if not self.is_active:
            return False
        variant = self.variant(variant_id)
        return variant is None or variant.is_active

    def available_stock(self, variant_id=None) -> int | None:
        """Units on hand, or None when stock is not tracked."""
        if not self.track_stock:
            return None
        variant = self.variant(variant_id)
        return (variant.stock if variant is not None else self.stock) or 0

    # -------------------------------------------------------------------
    # Stock
    # -------------------------------------------------------------------
    def decrease_stock(self, quantity, variant_id=None):
        if not self.track_stock:
            return

        variant = self.variant(variant_id)
        available = (variant.stock if variant is not None else self.stock) or 0
        if quantity > available:
            raise ValidationError(
                {"stock": [f"Insufficient stock for {self.name}: requested {quantity}, available {available}"]}
            )

        if variant is not None:
            variant.stock = available - quantity
        else:
            self.stock = available - quantity

    def increase_stock(self, quantity, variant_id=None):
        if not self.track_stock:
            return

        variant = self.variant(variant_id)
        if variant is not None:
            variant.stock = (variant.stock or 0) + quantity
        else:
            self.stock = (self.stock or 0) + quantity
