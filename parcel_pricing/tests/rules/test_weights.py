from decimal import Decimal

import pytest

from parcel_pricing.core.errors import ConfigurationError
from parcel_pricing.engine.context import Dimensions
from parcel_pricing.rates.weight_rules import WeightRule
from parcel_pricing.rates.weights import chargeable_weight, divisor_for, volumetric_weight

D = Decimal


def _rule(**kw):
    base = {"id": "r1", "carrier": "inpost", "zone": "LOCAL", "weight_from": 0, "weight_to": 5, "method": "flat", "price": "10.00"}
    base.update(kw)
    return WeightRule.from_dict(base)


def test_volumetric_weight_uses_divisor():
    dims = Dimensions.of(50, 40, 30)
    assert volumetric_weight(dims, 5000) == D("12.000")
    assert volumetric_weight(dims, 4000) == D("15.000")


def test_chargeable_weight_is_max_of_actual_and_volumetric():
    assert chargeable_weight("1.0", Dimensions.of(60, 40, 30), 5000).chargeable == D("14.400")

    w = chargeable_weight("2.5", Dimensions.of(50, 40, 30), 5000)
    assert w.actual == D("2.500")
    assert w.chargeable == D("12.000")
    assert w.volumetric_applied is True

    small = chargeable_weight("2.5", Dimensions.of(10, 10, 10), 5000)
    assert small.chargeable == D("2.500")
    assert small.volumetric_applied is False


def test_invalid_divisor_is_configuration_error():
    with pytest.raises(ConfigurationError):
        volumetric_weight(Dimensions.of(10, 10, 10), 0)


def test_divisor_per_carrier():
    assert divisor_for("dpd") == 4000
    assert divisor_for("MEEST") == 6000
    assert divisor_for("unknown") == 5000


def test_rule_normalizes_scope():
    r = _rule()
    assert r.scope == ("INPOST", "local", "standard")


def test_range_is_half_open():
    r = _rule()
    assert r.contains(D("0"))
    assert r.contains(D("4.999"))
    assert not r.contains(D("5"))
    assert r.describe_range() == "[0, 5)"


def test_open_upper_bound():
    r = _rule(weight_from=5, weight_to=None)
    assert r.contains(D("999"))
    assert r.describe_range() == "[5, inf)"


def test_flat_price():
    assert _rule().price_for(D("3")) == D("10.00")


def test_per_kg_with_min_and_max():
    r = _rule(method="per_kg", price=None, price_per_kg="2.00", min_price="15.00", max_price="40.00", weight_to=None)
    assert r.price_for(D("3")) == D("15.00")
    assert r.price_for(D("10")) == D("20.00")
    assert r.price_for(D("30")) == D("40.00")


def test_tiered_price_above_threshold():
    r = _rule(method="tiered", price="15.00", threshold_weight=5, price_per_kg="1.00", weight_from=5, weight_to=None)
    assert r.price_for(D("5")) == D("15.00")
    assert r.price_for(D("7.5")) == D("17.50")


def test_legacy_method_alias():
    assert _rule(method="flat_rate").method == "flat"


def test_missing_price_is_configuration_error():
    r = _rule(method="per_kg", price=None)
    with pytest.raises(ConfigurationError) as exc:
        r.price_for(D("1"))
    assert exc.value.context["rule_id"] == "r1"


def test_unknown_method_is_configuration_error():
    with pytest.raises(ConfigurationError):
        _rule(method="magic").price_for(D("1"))
