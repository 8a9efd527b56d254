"""Domain events for the ShoppingCart aggregate."""

from protean.fields import Identifier, Integer

from ordering.domain import ordering


@ordering.event(part_of="ShoppingCart")
class CartItemAdded:
    """A product was added to the shopping cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True)


@ordering.event(part_of="ShoppingCart")
class CartCleared:
    """The cart was emptied because its contents became an order."""

    __version__ = 1

    cart_id = Identifier(required=True)
    order_id = Identifier()
    item_count = Integer(required=True)
