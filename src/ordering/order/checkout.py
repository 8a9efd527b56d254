"""Checkout: converts a validated shopping cart into a PENDING order.

Validation runs first and aborts before any write. Everything else happens in
one unit of work: the order (with its address snapshots, item snapshots and
first history row) is created, stock is decremented for every line and the
cart is emptied. A failure at any step, including an insufficient-stock error
raised while decrementing, rolls the whole attempt back.
"""

from dataclasses import dataclass

import structlog
from protean.utils.globals import current_domain

from ordering.cart.cart import ShoppingCart
from ordering.cart.discounts import DiscountPolicy
from ordering.cart.validation import CartValidator
from ordering.catalogue.product import Product
from ordering.config import StoreSettings
from ordering.errors import BusinessRuleError, OrderingError
from ordering.gateway.port import Payer
from ordering.order.calculator import OrderTotalCalculator
from ordering.order.order import Order, OrderAddress
from ordering.utils.versioning import save, unit_of_work

logger = structlog.get_logger(__name__)

PAYMENT_METHOD_MERCADOPAGO = "mercadopago"


def build_address(data: dict | None):
    if not data:
        return None
    return OrderAddress(
        name=data.get("name"),
        phone=data.get("phone"),
        email=data.get("email"),
        address=data.get("address"),
        address_line_2=data.get("address_line_2"),
        city=data.get("city"),
        state=data.get("state"),
        postal_code=data.get("postal_code"),
        country=data.get("country") or "AR",
    )


@dataclass(frozen=True)
class CheckoutResult:
    order: Order
    payment_url: str | None = None


class CheckoutService:
    def __init__(
        self,
        settings: StoreSettings,
        validator: CartValidator | None = None,
        discount_policy: DiscountPolicy | None = None,
        payments=None,
    ) -> None:
        self.settings = settings
        self.payments = payments
        self.validator = validator or CartValidator()
        self.calculator = OrderTotalCalculator(settings, discount_policy)

    def place_order(
        self,
        cart_id,
        shipping_address: dict,
        billing_address: dict | None = None,
        customer_id=None,
        notes=None,
        shipping_cost: float | None = None,
    ) -> Order:
        """Create an order from the cart's current contents.

        Args:
            shipping_address: Address fields for the shipping snapshot.
            billing_address: Billing address when distinct from shipping.
            shipping_cost: Base shipping cost (e.g. a carrier quote the
                customer picked); the configured base cost otherwise.

        Raises:
            BusinessRuleError: ``EMPTY_CART`` or ``CART_VALIDATION_FAILED``.
        """
        cart_repo = current_domain.repository_for(ShoppingCart)
        cart = cart_repo.get(cart_id)

        if cart.is_empty:
            raise BusinessRuleError("EMPTY_CART", "Cart is empty")

        problems = self.validator.validate(cart)
        if problems:
            raise BusinessRuleError(
                "CART_VALIDATION_FAILED",
                "Some items in the cart are no longer valid",
                details={"items": problems},
            )

        with unit_of_work():
            cart = cart_repo.get(cart_id)
            products = {}
            lines = self.validator.price(cart, products)
            totals = self.calculator.calculate(lines, cart=cart, base_shipping_cost=shipping_cost)

            shipping_snapshot = build_address(shipping_address)
            order = Order.place(
                shipping_address=shipping_snapshot,
                billing_address=build_address(billing_address) or shipping_snapshot,
                totals=totals,
                lines=lines,
                customer_id=customer_id or cart.customer_id,
                notes=notes,
                currency=self.settings.currency,
            )

            for line in lines:
                products[line.product_id].decrease_stock(line.quantity, line.variant_id)

            product_repo = current_domain.repository_for(Product)
            for product in products.values():
                save(product_repo, product)

            cart.clear(order_id=order.id)
            save(cart_repo, cart)
            save(current_domain.repository_for(Order), order)

        logger.info(
            "Order created",
            order_id=str(order.id),
            order_number=order.order_number,
            total=order.total,
            item_count=len(order.items),
        )
        return order

    def checkout(
        self,
        cart_id,
        shipping_address: dict,
        payment_method: str | None = None,
        **order_fields,
    ) -> CheckoutResult:
        """Place the order, then open its hosted payment when paying through MercadoPago.

        The preference is created once the order has committed. A failure is
        logged and the order stays in place; the customer can retry payment
        later through the payment preference endpoint.
        """
        order = self.place_order(cart_id, shipping_address, **order_fields)
        if payment_method != PAYMENT_METHOD_MERCADOPAGO or self.payments is None:
            return CheckoutResult(order=order)

        payer = Payer(
            name=shipping_address.get("name") or "Cliente",
            email=shipping_address.get("email") or "",
        )
        try:
            preference = self.payments.create_payment_preference(order.id, payer, customer_id=order.customer_id)
        except OrderingError as exc:
            logger.error(
                "Failed to create payment preference",
                order_id=str(order.id),
                code=exc.code,
                error=exc.message,
            )
            return CheckoutResult(order=order)

        logger.info(
            "Payment preference created for order",
            order_id=str(order.id),
            payment_id=preference.payment_id,
        )
        return CheckoutResult(order=order, payment_url=preference.init_point)
