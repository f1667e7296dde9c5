from decimal import Decimal

from parcel_pricing.rule_types import rule_from_dict

D = Decimal


def _rules(*dicts):
    return [rule_from_dict(d) for d in dicts]


CONTRACT_GOLD = {
    "id": "contract-gold",
    "kind": "contract",
    "params": {"customer_ids": ["CUST-GOLD"], "discount_type": "percentage", "discount_value": 10},
}
BLACK_FRIDAY = {"id": "seasonal-bf", "kind": "seasonal", "params": {"season": "black_friday", "percentage": 25}}


def test_contract_then_seasonal(engine, factory, black_friday):
    ctx = factory.create_for_customer(
        "CUST-GOLD",
        weight_kg="2",
        length_cm=30,
        width_cm=20,
        height_cm=15,
        service_type="standard",
        zone_code="local",
        base_price="100.00",
        calculation_date=black_friday,
    )
    out = engine.calculate(ctx, _rules(BLACK_FRIDAY, CONTRACT_GOLD))

    assert out.ok
    assert out.original_price == D("100.00")
    assert out.final_price == D("67.50")
    assert out.total_discount == D("32.50")
    assert out.applied_rules == ["contract-gold", "seasonal-bf"]
    assert [d.amount for d in out.discount_breakdown] == [D("10.00"), D("22.50")]
    assert out.season == "black_friday"


def test_every_stage_in_fixed_order(engine, factory):
    ctx = factory.create_for_customer(
        "CUST-BIG",
        weight_kg="2",
        length_cm=30,
        width_cm=20,
        height_cm=15,
        service_type="standard",
        zone_code="local",
        base_price="100.00",
        promo_codes=["welcome10"],
    )
    rules = _rules(
        {"id": "progressive", "kind": "progressive"},
        {"id": "volume", "kind": "volume"},
        {"id": "promo", "kind": "promotion", "params": {"discount_value": 10, "promo_code": "WELCOME10"}},
        {"id": "tier", "kind": "customer_tier"},
    )
    out = engine.calculate(ctx, rules)

    # gold 15% -> promo 10% -> volume 15% -> progressive 15%
    assert out.applied_rules == ["tier", "promo", "volume", "progressive"]
    assert [d.amount for d in out.discount_breakdown] == [D("15.00"), D("8.50"), D("11.48"), D("9.75")]
    assert out.final_price == D("55.27")
    assert out.applied_promotions == ["promo"]


def test_only_first_promotion_applies(engine, make_ctx):
    ctx = make_ctx(promo_codes=["A", "B"])
    rules = _rules(
        {"id": "promo-b", "kind": "promotion", "priority": 20, "params": {"discount_value": 50, "promo_code": "B"}},
        {"id": "promo-a", "kind": "promotion", "priority": 10, "params": {"discount_value": 10, "promo_code": "A"}},
    )
    out = engine.calculate(ctx, rules)

    assert out.applied_promotions == ["promo-a"]
    assert out.final_price == D("90.00")


def test_supplied_code_excludes_codeless_promotions(engine, make_ctx):
    rules = _rules(
        {"id": "open50", "kind": "promotion", "priority": 10, "params": {"discount_value": 50}},
        {"id": "code-a", "kind": "promotion", "priority": 20, "params": {"discount_value": 10, "promo_code": "A"}},
    )
    out = engine.calculate(make_ctx(promo_codes=["a"]), rules)

    assert out.applied_promotions == ["code-a"]
    assert out.final_price == D("90.00")


def test_unmatched_code_gets_no_promotion(engine, make_ctx):
    rules = _rules({"id": "promo", "kind": "promotion", "params": {"discount_value": 10, "promo_code": "SECRET"}})
    out = engine.calculate(make_ctx(promo_codes=["OTHER"]), rules)
    assert out.applied_rules == []
    assert out.final_price == D("100.00")


def test_no_codes_means_no_code_requirement(engine, make_ctx):
    rules = _rules({"id": "promo", "kind": "promotion", "params": {"discount_value": 10, "promo_code": "SECRET"}})
    out = engine.calculate(make_ctx(), rules)
    assert out.applied_promotions == ["promo"]
    assert out.final_price == D("90.00")


def test_free_shipping_capped(engine, make_ctx):
    rules = _rules(
        {
            "id": "freeship",
            "kind": "promotion",
            "params": {"promotion_type": "free_shipping", "max_discount_per_order": 5},
        }
    )
    out = engine.calculate(make_ctx("12.00"), rules)
    assert out.final_price == D("7.00")
    assert out.discount_breakdown[0].meta["capped_at"] == "5"


def test_buy_x_get_y(engine, make_ctx):
    rules = _rules({"id": "bundle", "kind": "promotion", "params": {"promotion_type": "buy_x_get_y"}})
    out = engine.calculate(make_ctx("90.00", quantity=3), rules)
    assert out.total_discount == D("30.00")
    assert out.discount_breakdown[0].meta["free_items"] == 1


def test_discount_never_goes_below_zero(engine, make_ctx):
    rules = _rules({"id": "c", "kind": "contract", "params": {"discount_type": "fixed_amount", "discount_value": 150}})
    out = engine.calculate(make_ctx(), rules)
    assert out.final_price == D("0.00")
    assert out.total_discount == D("100.00")


def test_contract_max_discount(engine, make_ctx):
    rules = _rules({"id": "c", "kind": "contract", "params": {"discount_value": 50, "max_discount": 20}})
    out = engine.calculate(make_ctx(), rules)
    assert out.final_price == D("80.00")


def test_tiered_contract_picks_highest_reached_tier(engine, make_ctx):
    rules = _rules(
        {
            "id": "c",
            "kind": "contract",
            "params": {
                "discount_type": "tiered",
                "tiers": [
                    {"min_value": 0, "discount_type": "percentage", "discount_value": 5},
                    {"min_value": 50, "discount_type": "percentage", "discount_value": 10},
                    {"min_value": 500, "discount_type": "percentage", "discount_value": 20},
                ],
            },
        }
    )
    out = engine.calculate(make_ctx(), rules)
    assert out.final_price == D("90.00")
    assert out.discount_breakdown[0].meta["tier_min"] == "50"


def test_min_order_value_and_zone_filters(engine, make_ctx):
    rules = _rules(
        {"id": "big-orders", "kind": "contract", "min_order_value": 500, "params": {"discount_value": 10}},
        {"id": "world-only", "kind": "contract", "zones": ["world"], "params": {"discount_value": 10}},
        {"id": "express-only", "kind": "contract", "service_types": ["express"], "params": {"discount_value": 10}},
    )
    out = engine.calculate(make_ctx(), rules)
    assert out.applied_rules == []


def test_validity_window(engine, make_ctx):
    rules = _rules(
        {"id": "expired", "kind": "contract", "valid_until": "2025-01-31", "params": {"discount_value": 10}},
        {"id": "current", "kind": "contract", "valid_from": "2025-03-01", "params": {"discount_value": 10}},
    )
    out = engine.calculate(make_ctx(), rules)
    assert out.applied_rules == ["current"]


def test_inactive_rule_warns_and_is_skipped(engine, make_ctx):
    rules = _rules({"id": "off", "kind": "contract", "active": False, "params": {"discount_value": 10}})
    out = engine.calculate(make_ctx(), rules)
    assert out.applied_rules == []
    assert [w["code"] for w in out.warnings] == ["RULE_INACTIVE"]


def test_volume_and_progressive_need_a_customer(engine, make_ctx):
    rules = _rules({"id": "volume", "kind": "volume"}, {"id": "progressive", "kind": "progressive"})
    out = engine.calculate(make_ctx(), rules)
    assert out.applied_rules == []


def test_oversize_surcharge_raises_original_price(engine, make_ctx):
    ctx = make_ctx(length_cm=130, width_cm=80, height_cm=80)
    out = engine.calculate(ctx, [])

    assert [s.amount for s in out.surcharges] == [D("10.83")]
    assert out.original_price == D("110.83")
    assert out.final_price == D("110.83")
    assert out.total_discount == D("0.00")


def test_invalid_rule_set_returns_errors_and_untouched_price(engine, make_ctx):
    rules = _rules(
        {"id": "bad", "kind": "contract", "params": {"discount_value": 150}},
        {"id": "season", "kind": "seasonal", "params": {"season": "monsoon", "percentage": 5}},
    )
    out = engine.calculate(make_ctx(), rules)

    assert not out.ok
    assert {e["code"] for e in out.errors} == {"OUT_OF_RANGE", "UNKNOWN_SEASON"}
    assert out.final_price == D("100.00")
    assert out.applied_rules == []


def test_same_input_same_output(engine, make_ctx):
    rules = _rules(
        {"id": "pct", "kind": "contract", "params": {"discount_value": 10}},
        {"id": "fixed", "kind": "contract", "priority": 10, "params": {"discount_type": "fixed", "discount_value": 3}},
    )
    ctx = make_ctx()
    assert engine.calculate(ctx, rules).to_dict() == engine.calculate(ctx, list(reversed(rules))).to_dict()
