from decimal import Decimal

import pytest

from ordercore import pricing
from ordercore.loyalty import points_for


@pytest.mark.parametrize("method,expected", [
    ("Standard", "5.99"),
    ("Express", "12.99"),
    ("Overnight", "19.99"),
    ("Carrier Pigeon", "5.99"),
    ("", "5.99"),
])
def test_shipping_cost_lookup(method, expected):
    assert pricing.shipping_cost(method) == Decimal(expected)


def test_tax_rounds_half_up_to_cents():
    assert pricing.tax_for(Decimal("40.00")) == Decimal("3.20")
    # 0.08 * 10.5625 = 0.845
    assert pricing.tax_for(Decimal("10.5625")) == Decimal("0.85")


def test_order_total_combines_parts():
    lines = [(3, Decimal("10")), (2, Decimal("5"))]
    sub = pricing.subtotal(lines)
    assert sub == Decimal("40.00")
    total = pricing.order_total(sub, pricing.shipping_cost("Standard"), pricing.tax_for(sub))
    assert total == Decimal("49.19")


def test_order_total_subtracts_discount():
    assert pricing.order_total(Decimal("10"), Decimal("5.99"), Decimal("0.80"), Decimal("1.79")) == Decimal("15.00")


def test_loyalty_points_are_floored_per_line():
    assert points_for([(3, Decimal("10")), (2, Decimal("5"))]) == 4
    # 9.99 + 9.99 would earn 1 point on the total, but 0 per line
    assert points_for([(1, Decimal("9.99")), (1, Decimal("9.99"))]) == 0
    assert points_for([(7, Decimal("14.50"))]) == 10
