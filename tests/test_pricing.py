from decimal import Decimal

from app.services.pricing import FlatRateShippingPolicy, compute_totals, line_total, to_money


def test_flat_fee_below_threshold():
    policy = FlatRateShippingPolicy(free_threshold=Decimal("500.00"), fee=Decimal("50.00"))
    assert policy.quote(Decimal("499.99")) == Decimal("50.00")


def test_free_shipping_at_and_above_threshold():
    policy = FlatRateShippingPolicy(free_threshold=Decimal("500.00"), fee=Decimal("50.00"))
    assert policy.quote(Decimal("500.00")) == Decimal("0.00")
    assert policy.quote(Decimal("1200.00")) == Decimal("0.00")


def test_totals_are_exact_decimal():
    policy = FlatRateShippingPolicy(free_threshold=Decimal("500.00"), fee=Decimal("10.00"))
    totals = compute_totals([(Decimal("33.33"), 3)], policy)

    assert totals.subtotal == Decimal("99.99")
    assert totals.shipping == Decimal("10.00")
    assert totals.total == Decimal("109.99")
    assert str(totals.total) == "109.99"


def test_totals_over_many_lines_do_not_drift():
    policy = FlatRateShippingPolicy(free_threshold=Decimal("1000.00"), fee=Decimal("0.00"))
    totals = compute_totals([(Decimal("0.10"), 1)] * 10, policy)
    assert totals.subtotal == Decimal("1.00")


def test_to_money_from_float_uses_shortest_repr():
    assert to_money(0.1) == Decimal("0.10")
    assert to_money("2.005") == Decimal("2.01")
    assert line_total(Decimal("19.99"), 3) == Decimal("59.97")
