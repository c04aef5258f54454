from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Tuple

CENTS = Decimal("0.01")
TAX_RATE = Decimal("0.08")
DEFAULT_SHIPPING_METHOD = "Standard"
SHIPPING_COSTS = {
    "Standard": Decimal("5.99"),
    "Express": Decimal("12.99"),
    "Overnight": Decimal("19.99"),
}


def money(value) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def shipping_cost(method: str) -> Decimal:
    # unknown methods ship at the Standard rate
    return SHIPPING_COSTS.get(method, SHIPPING_COSTS[DEFAULT_SHIPPING_METHOD])


def line_amount(quantity: int, unit_price: Decimal) -> Decimal:
    return quantity * Decimal(unit_price)


def subtotal(lines: Iterable[Tuple[int, Decimal]]) -> Decimal:
    return money(sum((line_amount(q, p) for q, p in lines), Decimal("0")))


def tax_for(amount: Decimal) -> Decimal:
    return money(amount * TAX_RATE)


def order_total(sub: Decimal, shipping: Decimal, tax: Decimal, discount: Decimal = Decimal("0")) -> Decimal:
    return money(sub + shipping + tax - discount)
