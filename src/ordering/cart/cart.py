"""Shopping Cart aggregate: the checkout input.

A plain (non event-sourced) aggregate holding the products a customer or guest
selected. Prices are not stored on the cart: they are read from the live
catalogue when the cart is validated and priced at checkout. Checkout empties
the cart in the same unit of work that creates the order.
"""

import json
from datetime import UTC, datetime

from protean.fields import DateTime, HasMany, Identifier, Integer, String, Text

from ordering.cart.events import CartCleared, CartItemAdded
from ordering.domain import ordering


@ordering.entity(part_of="ShoppingCart")
class CartItem:
    product_id = Identifier(required=True)
    variant_id = Identifier()  # Nullable for products without variants
    quantity = Integer(required=True, min_value=1)
    added_at = DateTime()


@ordering.aggregate
class ShoppingCart:
    customer_id = Identifier()  # Nullable for guest carts
    session_id = String(max_length=255)  # For guest cart identification
    items = HasMany(CartItem)
    applied_coupons = Text()  # JSON array of coupon codes
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, customer_id=None, session_id=None):
        now = datetime.now(UTC)
        return cls(
            customer_id=customer_id,
            session_id=session_id,
            applied_coupons=json.dumps([]),
            created_at=now,
            updated_at=now,
        )

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def coupons(self) -> list[str]:
        return json.loads(self.applied_coupons) if self.applied_coupons else []

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def add_item(self, product_id, quantity, variant_id=None):
        """Add an item to the cart (or increase quantity if already present)."""
        existing = next(
            (
                i
                for i in self.items
                if str(i.product_id) == str(product_id) and str(i.variant_id or "") == str(variant_id or "")
            ),
            None,
        )

        now = datetime.now(UTC)

        if existing:
            existing.quantity += quantity
            item_id = str(existing.id)
        else:
            item = CartItem(
                product_id=product_id,
                variant_id=variant_id,
                quantity=quantity,
                added_at=now,
            )
            self.add_items(item)
            item_id = str(item.id)

        self.updated_at = now

        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                item_id=item_id,
                product_id=str(product_id),
                variant_id=str(variant_id) if variant_id else None,
                quantity=quantity,
            )
        )
        return item_id

    # -------------------------------------------------------------------
    # Checkout
    # -------------------------------------------------------------------
    def clear(self, order_id=None):
        """Empty the cart after its contents became an order."""
        item_count = len(self.items)
        for item in list(self.items):
            self.remove_items(item)
        self.applied_coupons = json.dumps([])
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartCleared(
                cart_id=str(self.id),
                order_id=str(order_id) if order_id else None,
                item_count=item_count,
            )
        )
