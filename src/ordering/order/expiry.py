"""Unpaid order expiration: command, handler and the scheduled sweep.

Designed to be triggered hourly by an external scheduler (cron, K8s CronJob)
via ``manage.py expire-unpaid`` or the maintenance API endpoint. The sweep
selects PENDING/PENDING orders older than the expiration window and processes
each one as its own ExpireUnpaidOrder command, so every order is cancelled in
a separate short transaction and one failure never aborts the batch.

The handler re-reads the order and re-checks eligibility inside its unit of
work, since a payment webhook may have reconciled the order between
selection and processing. The "payment expired" notification is dispatched
only once that unit of work has committed.
"""

from datetime import timedelta

import structlog
from protean import handle
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from ordering.catalogue.stock import restore_order_stock
from ordering.config import StoreSettings
from ordering.domain import ordering
from ordering.jobs import get_dispatcher
from ordering.jobs.port import SEND_ORDER_PAYMENT_EXPIRED_NOTIFICATION, Job, JobDispatcher
from ordering.order.order import Order
from ordering.order.status import OrderStatus, PaymentStatus
from ordering.utils.time import as_naive_utc, utcnow

logger = structlog.get_logger(__name__)

CANDIDATE_PAGE_SIZE = 100


@ordering.command(part_of="Order")
class ExpireUnpaidOrder:
    """Cancel one order whose payment window elapsed, if it is still unpaid."""

    order_id = Identifier(required=True)
    expiration_hours = Integer(required=True, min_value=1)


@ordering.command_handler(part_of=Order)
class ExpireUnpaidOrderHandler:
    @handle(ExpireUnpaidOrder)
    def expire_unpaid_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if not order.is_awaiting_payment:
            logger.info(
                "Order no longer awaiting payment, skipping expiration",
                order_id=str(order.id),
                status=order.status,
                payment_status=order.payment_status,
            )
            return False

        restore_order_stock(order)
        order.expire_unpaid(command.expiration_hours)
        repo.add(order)
        return True


class UnpaidOrderCompensator:
    """Scheduled sweep cancelling orders left unpaid past the window."""

    def __init__(self, settings: StoreSettings, dispatcher: JobDispatcher | None = None) -> None:
        self.settings = settings
        self.dispatcher = dispatcher or get_dispatcher()

    def find_candidates(self, cutoff):
        """PENDING/PENDING orders created at or before ``cutoff``, oldest first.

        Pages through the store so the sweep is not capped by the default
        queryset limit.
        """
        query = (
            current_domain.repository_for(Order)
            ._dao.query.filter(status=OrderStatus.PENDING.value, payment_status=PaymentStatus.PENDING.value)
            .order_by("created_at")
        )
        candidates = []
        offset = 0
        while True:
            page = query.offset(offset).limit(CANDIDATE_PAGE_SIZE).all().items
            for order in page:
                if order.created_at is None:
                    continue
                if as_naive_utc(order.created_at) > cutoff:
                    return candidates
                candidates.append(order)
            if len(page) < CANDIDATE_PAGE_SIZE:
                return candidates
            offset += CANDIDATE_PAGE_SIZE

    def run(self, hours: int | None = None, as_of=None) -> int:
        """Expire overdue unpaid orders and return how many were cancelled."""
        hours = hours or self.settings.pending_payment_expiration_hours
        as_of = as_of or utcnow()
        cutoff = as_naive_utc(as_of - timedelta(hours=hours))

        logger.info(
            "Checking for unpaid orders",
            cutoff=cutoff.isoformat(),
            expiration_hours=hours,
        )

        candidates = self.find_candidates(cutoff)
        if not candidates:
            logger.info("No unpaid orders to expire")
            return 0

        expired_count = 0
        for order in candidates:
            order_id = str(order.id)
            try:
                expired = current_domain.process(
                    ExpireUnpaidOrder(order_id=order_id, expiration_hours=hours),
                    asynchronous=False,
                )
            except Exception as exc:  # noqa: BLE001
                logger.exception(
                    "Failed to expire unpaid order",
                    order_id=order_id,
                    error=str(exc),
                )
                continue

            if not expired:
                continue

            expired_count += 1
            self.dispatcher.dispatch(
                Job(
                    name=SEND_ORDER_PAYMENT_EXPIRED_NOTIFICATION,
                    payload={"order_id": order_id, "hours": hours},
                )
            )
            logger.info(
                "Expired unpaid order",
                order_id=order_id,
                order_number=order.order_number,
                created_at=str(order.created_at),
            )

        logger.info("Unpaid order expiration complete", expired_count=expired_count)
        return expired_count
