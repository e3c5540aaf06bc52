from decimal import Decimal

import pytest

from mycoshop.core.exceptions import CartLimitExceeded, InvalidQuantity, ItemLimitExceeded
from mycoshop.services.pricing import (
    PricedLine,
    PricingPolicy,
    Totals,
    compute_totals,
    item_count,
    to_money,
)


def line(price: str, quantity: int) -> PricedLine:
    return PricedLine(Decimal(price), quantity)


class TestTotals:

    def test_below_free_shipping_threshold(self):
        totals = compute_totals([line("20.00", 2)])
        assert totals == Totals(
            subtotal=Decimal("40.00"),
            tax=Decimal("3.20"),
            shipping=Decimal("9.99"),
            total=Decimal("53.19"),
        )

    def test_free_shipping_above_threshold(self):
        totals = compute_totals([line("30.00", 2)])
        assert totals.subtotal == Decimal("60.00")
        assert totals.tax == Decimal("4.80")
        assert totals.shipping == Decimal("0.00")
        assert totals.total == Decimal("64.80")

    def test_free_shipping_exactly_at_threshold(self):
        totals = compute_totals([line("25.00", 2)])
        assert totals.shipping == Decimal("0.00")
        assert totals.total == Decimal("54.00")

    def test_one_cent_below_threshold_pays_shipping(self):
        totals = compute_totals([line("49.99", 1)])
        assert totals.shipping == Decimal("9.99")

    def test_empty_cart_is_all_zero(self):
        assert compute_totals([]) == Totals()
        assert compute_totals([]).as_dict() == {"subtotal": 0.0, "tax": 0.0, "shipping": 0.0, "total": 0.0}

    def test_line_order_does_not_matter(self):
        lines = [line("25.99", 1), line("32.99", 3), line("19.99", 2)]
        assert compute_totals(lines) == compute_totals(list(reversed(lines)))

    def test_total_is_sum_of_parts(self):
        totals = compute_totals([line("25.99", 1), line("4.49", 3)])
        assert totals.total == totals.subtotal + totals.tax + totals.shipping

    def test_tax_rounds_half_up(self):
        policy = PricingPolicy(tax_rate=Decimal("0.075"))
        totals = compute_totals([line("1.00", 1)], policy)
        assert totals.tax == Decimal("0.08")

    def test_policy_overrides_defaults(self):
        policy = PricingPolicy(
            tax_rate=Decimal("0.10"),
            free_shipping_threshold=Decimal("100.00"),
            shipping_cost=Decimal("5.00"),
        )
        totals = compute_totals([line("60.00", 1)], policy)
        assert totals.tax == Decimal("6.00")
        assert totals.shipping == Decimal("5.00")
        assert totals.total == Decimal("71.00")


class TestQuantityLimits:

    def test_per_item_ceiling(self):
        compute_totals([line("1.00", 10)])
        with pytest.raises(ItemLimitExceeded):
            compute_totals([line("1.00", 11)])

    def test_cart_ceiling(self):
        lines = [line("1.00", 10) for _ in range(5)]
        compute_totals(lines)
        with pytest.raises(CartLimitExceeded):
            compute_totals(lines + [line("1.00", 1)])

    def test_item_limit_is_a_cart_limit(self):
        with pytest.raises(CartLimitExceeded) as exc_info:
            compute_totals([line("1.00", 11)])
        assert exc_info.value.code == "ITEM_LIMIT_EXCEEDED"

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, True, "2"])
    def test_rejects_non_positive_or_non_integer_quantities(self, quantity):
        with pytest.raises(InvalidQuantity):
            compute_totals([PricedLine(Decimal("1.00"), quantity)])


def test_item_count_sums_quantities():
    assert item_count([line("1.00", 3), line("2.00", 4)]) == 7


def test_to_money_rounds_half_up():
    assert to_money("2.675") == Decimal("2.68")
    assert to_money(0.1 + 0.2) == Decimal("0.30")
