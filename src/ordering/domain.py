"""Ordering bounded context: order lifecycle, payments and shipping.

A single domain owns every aggregate the order lifecycle touches (Order,
Payment, Shipment, Product stock and the ShoppingCart being checked out) so
that checkout, payment reconciliation and the unpaid-order sweep can each
commit their writes in one unit of work.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
