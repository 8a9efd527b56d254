"""Stock restoration for orders that will never ship."""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.catalogue.product import Product

logger = structlog.get_logger(__name__)


def restore_order_stock(order) -> int:
    """Give back every unit the order took at checkout.

    Must run inside the caller's unit of work. Returns the number of units
    restored.
    """
    repo = current_domain.repository_for(Product)
    products = {}
    restored = 0

    for item in order.items:
        product_id = str(item.product_id)
        if product_id not in products:
            try:
                products[product_id] = repo.get(product_id)
            except ObjectNotFoundError:
                logger.warning(
                    "Product missing while restoring stock",
                    order_id=str(order.id),
                    product_id=product_id,
                    quantity=item.quantity,
                )
                continue
        products[product_id].increase_stock(item.quantity, item.variant_id)
        restored += item.quantity

    for product in products.values():
        repo.add(product)
    return restored
