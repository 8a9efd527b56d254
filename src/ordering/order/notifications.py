"""Customer notifications triggered by Order events.

Events are dispatched once the unit of work that raised them has committed,
so a confirmation is never queued for an order that was rolled back.
"""

import structlog
from protean import handle

from ordering.domain import ordering
from ordering.jobs import get_dispatcher
from ordering.jobs.port import SEND_ORDER_CONFIRMATION, Job
from ordering.order.events import OrderCreated
from ordering.order.order import Order

logger = structlog.get_logger(__name__)


@ordering.event_handler(part_of=Order)
class OrderNotificationEventHandler:
    """Queues the order confirmation email."""

    @handle(OrderCreated)
    def on_order_created(self, event: OrderCreated) -> None:
        get_dispatcher().dispatch(
            Job(
                name=SEND_ORDER_CONFIRMATION,
                payload={"order_id": str(event.order_id), "order_number": event.order_number},
            )
        )
        logger.info(
            "Order confirmation queued",
            order_id=str(event.order_id),
            order_number=event.order_number,
        )
