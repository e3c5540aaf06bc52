"""Cart pricing engine.

The single place where line items become money. Carts call it on every
mutation and checkout calls it again when freezing an order, so totals are
always derived on the server and never taken from the client.

Calculation order:

1. subtotal: sum of price x quantity, rounded once after summing
2. tax: subtotal x tax rate, rounded
3. shipping: free at or above the threshold, flat rate below it
4. total: subtotal + tax + shipping, rounded

Rounding is half away from zero to the cent.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Protocol, Union

from mycoshop.core.config import Settings, settings
from mycoshop.core.exceptions import CartLimitExceeded, InvalidQuantity, ItemLimitExceeded

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Union[Decimal, float, int, str]) -> Decimal:
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


class PricedItem(Protocol):
    price: Decimal
    quantity: int


@dataclass(frozen=True)
class PricedLine:
    price: Decimal
    quantity: int


@dataclass(frozen=True)
class PricingPolicy:
    tax_rate: Decimal = Decimal("0.08")
    free_shipping_threshold: Decimal = Decimal("50.00")
    shipping_cost: Decimal = Decimal("9.99")
    max_quantity_per_item: int = 10
    max_total_items: int = 50

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "PricingPolicy":
        return cls(
            tax_rate=Decimal(str(config.TAX_RATE)),
            free_shipping_threshold=to_money(config.FREE_SHIPPING_THRESHOLD),
            shipping_cost=to_money(config.SHIPPING_COST),
            max_quantity_per_item=config.MAX_QUANTITY_PER_ITEM,
            max_total_items=config.MAX_TOTAL_ITEMS,
        )


DEFAULT_POLICY = PricingPolicy()


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal = ZERO
    tax: Decimal = ZERO
    shipping: Decimal = ZERO
    total: Decimal = ZERO

    def as_dict(self) -> dict:
        return {
            "subtotal": float(self.subtotal),
            "tax": float(self.tax),
            "shipping": float(self.shipping),
            "total": float(self.total),
        }


def item_count(lines: Iterable[PricedItem]) -> int:
    return sum(line.quantity for line in lines)


def check_quantities(lines: Iterable[PricedItem], policy: PricingPolicy = DEFAULT_POLICY) -> int:
    """Enforce the per-line and per-cart quantity ceilings.

    Returns the aggregate quantity. Raises ``InvalidQuantity``,
    ``ItemLimitExceeded`` or ``CartLimitExceeded``.
    """
    count = 0
    for line in lines:
        quantity = line.quantity
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise InvalidQuantity(f"Quantity must be a positive whole number, got {quantity!r}")
        if quantity > policy.max_quantity_per_item:
            raise ItemLimitExceeded(
                f"Maximum quantity per item is {policy.max_quantity_per_item}"
            )
        count += quantity

    if count > policy.max_total_items:
        raise CartLimitExceeded(
            f"Cart cannot contain more than {policy.max_total_items} total items"
        )
    return count


def compute_totals(lines: Iterable[PricedItem], policy: PricingPolicy = DEFAULT_POLICY) -> Totals:
    lines = list(lines)
    check_quantities(lines, policy)

    if not lines:
        return Totals()

    # Sum exactly, round once
    raw_subtotal = sum((Decimal(str(line.price)) * line.quantity for line in lines), Decimal(0))
    subtotal = to_money(raw_subtotal)
    tax = to_money(subtotal * policy.tax_rate)
    shipping = ZERO if subtotal >= policy.free_shipping_threshold else to_money(policy.shipping_cost)
    total = to_money(subtotal + tax + shipping)

    return Totals(subtotal=subtotal, tax=tax, shipping=shipping, total=total)
