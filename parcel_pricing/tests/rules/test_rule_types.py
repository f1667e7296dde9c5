from dataclasses import dataclass
from decimal import Decimal

import pytest

from parcel_pricing.core.errors import ConfigurationError
from parcel_pricing.rule_types import rule_from_dict
from parcel_pricing.rule_types.base import RuleSpec, register, rule_registry
from parcel_pricing.rule_types.oversize import DEFAULT_OVERSIZE

D = Decimal


def test_all_kinds_registered():
    assert set(rule_registry) >= {
        "oversize_surcharge",
        "contract",
        "customer_tier",
        "promotion",
        "seasonal",
        "volume",
        "progressive",
    }


def test_unknown_kind_is_configuration_error():
    with pytest.raises(ConfigurationError) as exc:
        rule_from_dict({"id": "x", "kind": "cashback"})
    assert exc.value.context["rule_id"] == "x"


def test_register_requires_kind():
    @dataclass(frozen=True)
    class Nameless(RuleSpec):
        pass

    with pytest.raises(ValueError):
        register(Nameless)


def test_eligibility_parsed_from_dict():
    r = rule_from_dict(
        {
            "id": "p",
            "kind": "promotion",
            "title": "Promo",
            "zones": ["LOCAL"],
            "service_types": ["Express"],
            "valid_from": "2025-01-01",
            "params": {"promotion_type": "percent", "discount_value": "7.5", "promo_code": "abc"},
        }
    )
    assert r.title == "Promo"
    assert r.eligibility.zones == frozenset({"local"})
    assert r.eligibility.service_types == frozenset({"express"})
    assert r.promotion_type == "percentage"
    assert r.promo_code == "ABC"


def test_contract_has_higher_default_priority():
    contract = rule_from_dict({"id": "c", "kind": "contract"})
    tier = rule_from_dict({"id": "t", "kind": "customer_tier"})
    assert contract.eligibility.priority == 50
    assert contract.sort_key < tier.sort_key


def test_usage_limit_exhausted(make_ctx):
    promo = rule_from_dict({"id": "p", "kind": "promotion", "params": {"discount_value": 5, "usage_limit": 3, "usage_count": 3}})
    out = promo.evaluate(D("100.00"), make_ctx())
    assert not out.is_applied
    assert out.meta["reason"] == "usage_limit_reached"


def test_oversize_within_limits_is_skipped(make_ctx):
    assert not DEFAULT_OVERSIZE.evaluate(D("10.00"), make_ctx()).is_applied


def test_oversize_length_only(make_ctx):
    out = DEFAULT_OVERSIZE.evaluate(D("10.00"), make_ctx(length_cm=130, width_cm=20, height_cm=20))
    assert out.amount == D("10.00")
    assert "volume_fee" not in out.meta


def test_seasonal_default_percentage(make_ctx, black_friday):
    rule = rule_from_dict({"id": "bf", "kind": "seasonal", "params": {"season": "black_friday"}})
    out = rule.evaluate(D("40.00"), make_ctx(calculation_date=black_friday))
    assert out.amount == D("10.00")
