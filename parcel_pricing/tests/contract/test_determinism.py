from parcel_pricing.engine.orchestrator import PricingOrchestrator
from parcel_pricing.engine.request import ShipmentRequest
from parcel_pricing.engine.rulebook import RuleBook


def _request():
    return ShipmentRequest(
        weight_kg="7.25",
        length_cm="40",
        width_cm="30",
        height_cm="20",
        carrier_code="INPOST",
        postal_code="00-950",
        customer_id="CUST-GOLD",
        additional_services=("sms", "insurance"),
        declared_value="250.00",
        promo_codes=("welcome10",),
    )


def test_determinism_same_input_same_output(make_rulebook, customers, fixed_date):
    rules = [
        {"id": "tier", "kind": "customer_tier"},
        {"id": "welcome", "kind": "promotion", "params": {"discount_value": 10, "promo_code": "WELCOME10"}},
        {"id": "progressive", "kind": "progressive"},
    ]
    d = make_rulebook()
    d["discount_rules"] = rules

    def run():
        orch = PricingOrchestrator(RuleBook.from_dict(d), customers=customers, today=lambda: fixed_date, workers=0)
        return orch.calculate(_request()).to_dict()

    out1, out2, out3 = run(), run(), run()
    assert out1 == out2 == out3
    assert out1["applied_rules"] == ["tier", "welcome", "progressive"]


def test_rule_order_in_rulebook_does_not_matter(make_rulebook, customers, fixed_date):
    rules = [
        {"id": "tier", "kind": "customer_tier"},
        {"id": "volume", "kind": "volume"},
        {"id": "c1", "kind": "contract", "params": {"discount_value": 5}},
    ]
    a, b = make_rulebook(), make_rulebook()
    a["discount_rules"] = rules
    b["discount_rules"] = list(reversed(rules))

    def run(d):
        orch = PricingOrchestrator(RuleBook.from_dict(d), customers=customers, today=lambda: fixed_date)
        return orch.calculate(_request()).to_dict()

    assert run(a) == run(b)


def test_pooled_comparison_matches_sequential(sample_rulebook, customers, fixed_date):
    req = _request().for_carrier(None)
    seq = PricingOrchestrator(sample_rulebook, customers=customers, today=lambda: fixed_date, workers=0)
    pooled = PricingOrchestrator(sample_rulebook, customers=customers, today=lambda: fixed_date, workers=4)
    assert seq.compare(req).to_dict() == pooled.compare(req).to_dict()
