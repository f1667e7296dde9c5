from decimal import Decimal

from parcel_pricing.calculators.discounts import (
    SHAPE_FIXED,
    SHAPE_PERCENTAGE,
    clamp_discount,
    normalize_shape,
    select_tier,
    shaped_amount,
)
from parcel_pricing.calculators.tax import calc_tax

D = Decimal


def test_tax_rounds_half_up():
    tax = calc_tax(D("10.50"), D("23"))
    assert tax.tax_amount == D("2.42")
    assert tax.total == D("12.92")


def test_zero_tax_rate():
    tax = calc_tax(D("40"), D("0"))
    assert tax.tax_amount == D("0.00")
    assert tax.total == D("40.00")


def test_shape_aliases():
    assert normalize_shape("Fixed_Amount") == SHAPE_FIXED
    assert normalize_shape(None) == SHAPE_PERCENTAGE
    assert normalize_shape("percent") == SHAPE_PERCENTAGE


def test_percentage_capped_by_max_discount():
    amount, meta = shaped_amount(D("100.00"), SHAPE_PERCENTAGE, D("15"), max_discount=D("10"))
    assert amount == D("10.00")
    assert meta["capped_at"] == "10"


def test_unknown_shape_gives_nothing():
    amount, meta = shaped_amount(D("100.00"), "bogo", D("5"))
    assert amount == D("0.00")
    assert meta["reason"] == "unknown_shape"


def test_clamp_discount():
    assert clamp_discount(D("150"), D("100")) == D("100.00")
    assert clamp_discount(D("-5"), D("100")) == D("0.00")
    assert clamp_discount(D("5"), D("0")) == D("0.00")


def test_select_highest_reached_tier():
    tiers = [{"min": D("50")}, {"min": D("0")}, {"min": D("10")}]
    assert select_tier(tiers, D("30"), key=lambda t: t["min"]) == {"min": D("10")}
    assert select_tier(tiers, D("-1"), key=lambda t: t["min"]) is None
