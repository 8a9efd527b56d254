"""Customer cancellation and admin status changes: commands and handler.

Both paths return the stock an order took whenever it ends up CANCELLED.
"""

from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.catalogue.stock import restore_order_stock
from ordering.domain import ordering
from ordering.errors import BusinessRuleError, NotFoundError
from ordering.order.order import Order
from ordering.order.status import OrderStatus


@ordering.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    customer_id = Identifier()  # None for guest orders
    reason = String(max_length=500)


@ordering.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, choices=OrderStatus)
    notes = Text()
    changed_by = String(max_length=100)


@ordering.command_handler(part_of=Order)
class OrderStatusHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if not order.belongs_to(command.customer_id):
            raise NotFoundError(message=f"Order {command.order_id} not found")

        if not order.can_be_cancelled_by_customer:
            raise BusinessRuleError(
                "ORDER_CANNOT_BE_CANCELLED",
                f"Orders in status {order.status} cannot be cancelled",
            )

        notes = "Cancelled by customer"
        if command.reason:
            notes = f"{notes}: {command.reason}"

        restore_order_stock(order)
        order.cancel(notes=notes, changed_by="customer")
        repo.add(order)
        return order

    @handle(UpdateOrderStatus)
    def update_order_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if OrderStatus(command.status) == OrderStatus.CANCELLED:
            order.cancel(notes=command.notes, changed_by=command.changed_by)
            restore_order_stock(order)
        else:
            order.transition_to(command.status, notes=command.notes, changed_by=command.changed_by)

        repo.add(order)
        return order
