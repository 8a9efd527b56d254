"""Payment orchestration: hosted checkout creation and gateway reconciliation.

Preference creation opens a Payment attempt, calls the gateway outside any
open transaction and then records the outcome in a second short unit of work.
When the gateway call fails, the attempt is marked FAILED and that write is
committed before the error propagates, so the diagnostic survives.

Reconciliation applies the gateway's report to the Payment and its Order and
returns a ReconciliationResult. Webhook processing never raises: the HTTP
layer acknowledges every parsed notification and the gateway's redelivery or
the sync endpoint take care of anything that failed.
"""

from dataclasses import dataclass

import structlog
from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from ordering.config import GatewaySettings, StoreSettings
from ordering.errors import BusinessRuleError, GatewayError, NotFoundError, OrderingError
from ordering.gateway.port import GatewayPayment, Payer, PaymentGateway, PreferenceItem, PreferenceRequest
from ordering.order.order import Order
from ordering.order.status import OrderStatus, PaymentStatus
from ordering.payment.payment import Payment
from ordering.reconciliation import ReconciliationResult
from ordering.utils.versioning import save, unit_of_work

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PreferenceResult:
    payment_id: str
    preference_id: str
    init_point: str
    sandbox_init_point: str | None = None


class PaymentService:
    def __init__(
        self,
        gateway: PaymentGateway,
        settings: StoreSettings,
        gateway_settings: GatewaySettings | None = None,
    ) -> None:
        self.gateway = gateway
        self.settings = settings
        self.gateway_settings = gateway_settings or GatewaySettings()

    # -------------------------------------------------------------------
    # Preferences
    # -------------------------------------------------------------------
    def create_payment_preference(self, order_id, payer: Payer | None, customer_id=None) -> PreferenceResult:
        """Open a payment attempt for an order and create its hosted checkout.

        Raises:
            NotFoundError: the order belongs to another customer.
            BusinessRuleError: ``ORDER_ALREADY_PROCESSED`` or ``PAYER_INFO_REQUIRED``.
            GatewayError: the gateway refused or could not be reached.
        """
        order_repo = current_domain.repository_for(Order)
        payment_repo = current_domain.repository_for(Payment)

        order = order_repo.get(order_id)
        if not order.belongs_to(customer_id):
            raise NotFoundError(message=f"Order {order_id} not found")
        self._assert_payable(order)
        if payer is None or not payer.name or not payer.email:
            raise BusinessRuleError("PAYER_INFO_REQUIRED", "Payer name and email are required")

        with unit_of_work():
            order = order_repo.get(order_id)
            self._assert_payable(order)
            payment = Payment.open(
                order_id=str(order.id),
                amount=order.total,
                currency=self.settings.currency,
                gateway=self.gateway.name,
            )
            save(payment_repo, payment)

        try:
            preference = self.gateway.create_preference(self._preference_request(order, payment, payer))
        except GatewayError as exc:
            logger.error(
                "Payment preference creation failed",
                order_id=str(order.id),
                payment_id=str(payment.id),
                error=exc.message,
                status_code=exc.status_code,
            )
            self._mark_attempt_failed(payment.id, exc.message)
            raise

        with unit_of_work():
            payment = payment_repo.get(payment.id)
            payment.attach_preference(preference.id)
            save(payment_repo, payment)

        logger.info(
            "Payment preference created",
            order_id=str(order.id),
            payment_id=str(payment.id),
            preference_id=preference.id,
        )
        return PreferenceResult(
            payment_id=str(payment.id),
            preference_id=preference.id,
            init_point=preference.init_point,
            sandbox_init_point=preference.sandbox_init_point,
        )

    @staticmethod
    def _assert_payable(order):
        if order.payment_status != PaymentStatus.PENDING.value:
            raise BusinessRuleError(
                "ORDER_ALREADY_PROCESSED",
                f"Order {order.order_number} is not awaiting payment",
                details={"payment_status": order.payment_status},
            )

    def _mark_attempt_failed(self, payment_id, reason):
        repo = current_domain.repository_for(Payment)
        with unit_of_work():
            payment = repo.get(payment_id)
            payment.mark_failed(reason)
            save(repo, payment)

    def _preference_request(self, order, payment, payer) -> PreferenceRequest:
        if order.discount:
            # The gateway has no negative lines; charge the order as a whole
            items = (
                PreferenceItem(
                    id=order.order_number,
                    title=f"Order {order.order_number}",
                    quantity=1,
                    unit_price=order.total,
                ),
            )
        else:
            lines = [
                PreferenceItem(id=str(item.product_id), title=item.name, quantity=item.quantity, unit_price=item.price)
                for item in order.items
            ]
            if order.shipping:
                lines.append(PreferenceItem(id="shipping", title="Shipping", quantity=1, unit_price=order.shipping))
            if order.tax:
                lines.append(PreferenceItem(id="tax", title="Tax", quantity=1, unit_price=order.tax))
            items = tuple(lines)

        frontend = self.settings.frontend_url.rstrip("/")
        return PreferenceRequest(
            external_reference=str(payment.id),
            items=items,
            payer=payer,
            currency=self.settings.currency,
            back_urls={
                "success": f"{frontend}/checkout/success?order={order.order_number}",
                "failure": f"{frontend}/checkout/failure?order={order.order_number}",
                "pending": f"{frontend}/checkout/pending?order={order.order_number}",
            },
            notification_url=f"{self.settings.api_url.rstrip('/')}/webhooks/mercadopago",
            statement_descriptor=self.gateway_settings.statement_descriptor,
        )

    # -------------------------------------------------------------------
    # Webhooks
    # -------------------------------------------------------------------
    def process_webhook(self, payload: dict) -> ReconciliationResult:
        """Entry point for gateway notifications. Never raises."""
        event_type = payload.get("type") or payload.get("topic")
        if event_type != "payment":
            logger.info("Ignoring non-payment webhook", type=event_type, action=payload.get("action"))
            return ReconciliationResult.ignored(f"Unsupported event type: {event_type}")

        gateway_payment_id = (payload.get("data") or {}).get("id")
        if not gateway_payment_id:
            logger.warning("Payment webhook without data id", payload=payload)
            return ReconciliationResult.rejected("Missing payment id")

        try:
            return self.process_payment_update(str(gateway_payment_id))
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "Payment webhook processing failed",
                gateway_payment_id=str(gateway_payment_id),
                error=str(exc),
            )
            return ReconciliationResult.rejected(str(exc))

    # -------------------------------------------------------------------
    # Reconciliation
    # -------------------------------------------------------------------
    def _find_payment(self, remote: GatewayPayment):
        repo = current_domain.repository_for(Payment)
        if remote.external_reference:
            try:
                return repo.get(str(remote.external_reference))
            except ObjectNotFoundError:
                pass

        matches = repo._dao.query.filter(external_id=str(remote.id)).all().items
        if matches:
            return matches[0]
        return None

    def process_payment_update(self, gateway_payment_id: str) -> ReconciliationResult:
        """Apply the gateway's current view of a payment to local state."""
        remote = self.gateway.get_payment(gateway_payment_id)
        if remote is None:
            logger.warning("Payment not found at gateway", gateway_payment_id=gateway_payment_id)
            return ReconciliationResult.rejected("Payment not found at gateway")

        payment = self._find_payment(remote)
        if payment is None:
            logger.warning(
                "No local payment matches gateway payment",
                gateway_payment_id=gateway_payment_id,
                external_reference=remote.external_reference,
            )
            return ReconciliationResult.rejected("Unknown payment")

        new_status = self.gateway.map_status(remote.status)
        metadata = {
            "mp_payment_id": str(remote.id),
            "mp_status": remote.status,
            "mp_status_detail": remote.status_detail,
            "payment_method": remote.payment_method_id,
            "payment_type": remote.payment_type_id,
            "date_approved": remote.date_approved,
        }

        payment_repo = current_domain.repository_for(Payment)
        order_repo = current_domain.repository_for(Order)
        events: list[str] = []

        with unit_of_work():
            payment = payment_repo.get(payment.id)
            order = order_repo.get(payment.order_id)
            previous = PaymentStatus(payment.status)

            if new_status != previous and not payment.accepts(new_status):
                logger.info(
                    "Ignoring stale payment status",
                    payment_id=str(payment.id),
                    current=previous.value,
                    reported=new_status.value,
                )
                return ReconciliationResult.ignored(
                    "Stale status",
                    payment_id=str(payment.id),
                    order_id=str(order.id),
                    status=previous.value,
                )

            payment.apply_gateway_status(new_status, metadata, gateway_payment_id=remote.id)
            save(payment_repo, payment)

            if new_status == previous:
                return ReconciliationResult.ignored(
                    "Status unchanged",
                    payment_id=str(payment.id),
                    order_id=str(order.id),
                    status=new_status.value,
                )

            if new_status == PaymentStatus.PAID and order.payment_status != PaymentStatus.PAID.value:
                if order.status == OrderStatus.CANCELLED.value:
                    order.record_late_payment(transaction_id=remote.id)
                    logger.warning(
                        "Payment approved for cancelled order, manual review required",
                        order_id=str(order.id),
                        payment_id=str(payment.id),
                        gateway_payment_id=str(remote.id),
                    )
                else:
                    order.mark_paid(transaction_id=remote.id)
                    events.append("OrderPaid")
                save(order_repo, order)
            # Only a paid order keeps its payment status when a sibling attempt fails
            elif new_status == PaymentStatus.FAILED and order.payment_status != PaymentStatus.PAID.value:
                order.mark_payment_failed(reason=remote.status_detail or remote.status)
                save(order_repo, order)

        logger.info(
            "Payment reconciled",
            payment_id=str(payment.id),
            order_id=str(order.id),
            previous_status=previous.value,
            new_status=new_status.value,
        )
        return ReconciliationResult.applied(
            payment_id=str(payment.id),
            order_id=str(order.id),
            status=new_status.value,
            events=tuple(events),
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def get_payment_status(self, payment_id, sync: bool = False) -> dict:
        """Current state of a payment attempt, optionally re-pulled from the gateway."""
        repo = current_domain.repository_for(Payment)
        payment = repo.get(payment_id)

        gateway_payment_id = payment.meta.get("mp_payment_id")
        if sync and gateway_payment_id:
            try:
                self.process_payment_update(gateway_payment_id)
            except (ValidationError, InvalidOperationError, OrderingError) as exc:
                logger.warning("Payment status sync failed", payment_id=str(payment.id), error=str(exc))
            payment = repo.get(payment_id)

        return {
            "id": str(payment.id),
            "order_id": str(payment.order_id),
            "status": payment.status,
            "amount": payment.amount,
            "currency": payment.currency,
            "gateway": payment.gateway,
            "external_id": payment.external_id,
            "created_at": payment.created_at,
            "updated_at": payment.updated_at,
        }
