"""Discount policies consumed by the order total calculator.

Coupon rules are owned by the promotions side of the store; the calculator
only needs an amount.
"""

from abc import ABC, abstractmethod


class DiscountPolicy(ABC):
    @abstractmethod
    def discount(self, lines, cart=None) -> float:
        """Discount amount for the priced lines of a cart."""
        ...


class NoDiscount(DiscountPolicy):
    def discount(self, lines, cart=None) -> float:  # noqa: ARG002
        return 0.0


class FixedAmountDiscount(DiscountPolicy):
    """A flat amount off the order, whatever is in the cart."""

    def __init__(self, amount: float) -> None:
        self.amount = amount

    def discount(self, lines, cart=None) -> float:  # noqa: ARG002
        return self.amount


class CouponDiscount(DiscountPolicy):
    """Percentage coupons keyed by code, applied to the cart subtotal.

    Coupons stack additively; unknown codes are ignored.
    """

    def __init__(self, percentages: dict[str, float]) -> None:
        self.percentages = {code.upper(): pct for code, pct in percentages.items()}

    def discount(self, lines, cart=None) -> float:
        if cart is None:
            return 0.0
        percent = sum(self.percentages.get(code.upper(), 0.0) for code in cart.coupons)
        subtotal = sum(line.total for line in lines)
        return subtotal * min(percent, 100.0) / 100
