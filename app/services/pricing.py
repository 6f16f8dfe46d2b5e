# app/services/pricing.py
"""
Arytmetyka pieniezna i polityka wysylki.

Wszystkie kwoty to Decimal z dwoma miejscami po przecinku (ROUND_HALF_UP),
float nigdy nie wchodzi do obliczen.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Protocol, Tuple

from app.utils import settings

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    if isinstance(value, float):
        # float -> str -> Decimal, bez binarnych ogonow
        value = repr(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(price, quantity: int) -> Decimal:
    return to_money(to_money(price) * quantity)


class ShippingPolicy(Protocol):
    def quote(self, subtotal: Decimal) -> Decimal: ...


@dataclass(frozen=True)
class FlatRateShippingPolicy:
    """Stala oplata ponizej progu darmowej wysylki, zero od progu wzwyz."""

    free_threshold: Decimal
    fee: Decimal

    def quote(self, subtotal: Decimal) -> Decimal:
        if to_money(subtotal) >= to_money(self.free_threshold):
            return ZERO
        return to_money(self.fee)


def default_shipping_policy() -> FlatRateShippingPolicy:
    return FlatRateShippingPolicy(
        free_threshold=settings.FREE_SHIPPING_THRESHOLD,
        fee=settings.FLAT_SHIPPING_FEE,
    )


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    shipping: Decimal
    total: Decimal


def compute_totals(lines: Iterable[Tuple[Decimal, int]], policy: ShippingPolicy) -> OrderTotals:
    """lines: pary (cena jednostkowa, ilosc)."""
    subtotal = sum((line_total(price, qty) for price, qty in lines), ZERO)
    shipping = to_money(policy.quote(subtotal))
    return OrderTotals(
        subtotal=to_money(subtotal),
        shipping=shipping,
        total=to_money(subtotal + shipping),
    )
