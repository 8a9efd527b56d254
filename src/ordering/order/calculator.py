"""Order total calculation.

Pure function of the priced cart lines, a discount policy and the store
settings. Each component is rounded to two decimals on its own before the
total is combined, and the total is floored at zero.
"""

from dataclasses import asdict, dataclass

from ordering.cart.discounts import DiscountPolicy, NoDiscount
from ordering.config import StoreSettings


@dataclass(frozen=True)
class OrderTotals:
    subtotal: float
    discount: float
    tax: float
    shipping: float
    total: float

    def as_dict(self) -> dict:
        return asdict(self)


class OrderTotalCalculator:
    def __init__(self, settings: StoreSettings, discount_policy: DiscountPolicy | None = None) -> None:
        self.settings = settings
        self.discount_policy = discount_policy or NoDiscount()

    def shipping_for(self, subtotal: float, base_cost: float | None = None) -> float:
        """Free above the threshold; a threshold of zero disables free shipping."""
        threshold = self.settings.free_shipping_threshold
        if threshold > 0 and subtotal >= threshold:
            return 0.0
        cost = self.settings.base_shipping_cost if base_cost is None else base_cost
        return round(max(0.0, cost), 2)

    def tax_for(self, taxable: float) -> float:
        if not self.settings.tax_enabled or self.settings.tax_included_in_prices:
            return 0.0
        return round(taxable * self.settings.tax_rate / 100, 2)

    def calculate(
        self,
        lines,
        cart=None,
        subtotal: float | None = None,
        base_shipping_cost: float | None = None,
    ) -> OrderTotals:
        """Compute the order totals for priced cart lines.

        Args:
            lines: Priced cart lines (anything with ``total``), handed to the
                discount policy as-is.
            cart: The cart being priced, for coupon-aware policies.
            subtotal: Overrides the sum of line totals when given.
            base_shipping_cost: Overrides the configured base shipping cost,
                e.g. with a carrier quote chosen at checkout.
        """
        lines = list(lines)
        if subtotal is None:
            subtotal = sum(line.total for line in lines)
        subtotal = round(subtotal, 2)

        discount = round(max(0.0, self.discount_policy.discount(lines, cart)), 2)
        shipping = self.shipping_for(subtotal, base_shipping_cost)
        taxable = max(0.0, subtotal - discount)
        tax = self.tax_for(taxable)
        total = round(max(0.0, subtotal - discount + tax + shipping), 2)

        return OrderTotals(subtotal=subtotal, discount=discount, tax=tax, shipping=shipping, total=total)
