from decimal import Decimal

from payflow.features.billing.money import amounts_match, from_minor_units, to_decimal, to_minor_units


def test_ngn_converts_to_kobo():
    assert to_minor_units(Decimal("5000"), "NGN") == 500000
    assert to_minor_units("49.99", "usd") == 4999


def test_zero_decimal_currency_is_not_scaled():
    assert to_minor_units(Decimal("1500"), "JPY") == 1500
    assert from_minor_units(1500, "JPY") == Decimal("1500.00")


def test_from_minor_units_round_trips_kobo():
    assert from_minor_units(500000, "NGN") == Decimal("5000.00")


def test_float_input_has_no_binary_noise():
    assert to_decimal(0.1 + 0.2) == Decimal("0.30")


def test_amounts_match_requires_same_currency():
    assert amounts_match(Decimal("5000"), "NGN", Decimal("5000.00"), "ngn")
    assert not amounts_match(Decimal("5000"), "NGN", Decimal("5000"), "USD")
    assert not amounts_match(Decimal("5000"), "NGN", Decimal("50"), "NGN")
    assert not amounts_match(Decimal("5000"), "NGN", None, "NGN")
