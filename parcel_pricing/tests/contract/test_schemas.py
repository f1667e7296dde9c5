import json
from decimal import Decimal

import pytest
import yaml
from jsonschema import ValidationError as SchemaError
from jsonschema import validate
from pydantic import ValidationError

from parcel_pricing.core.settings import settings
from parcel_pricing.engine.rulebook import RuleBook
from parcel_pricing.schemas.pricing_input_v1 import BulkInputV1, CompareInputV1, ShipmentInputV1
from parcel_pricing.schemas.pricing_output_v1 import PricingOutputV1
from parcel_pricing.validators import RuleValidator


def _schema():
    with open(settings.RULEBOOK_SCHEMA_PATH, encoding="utf-8") as f:
        return json.load(f)


def test_bundled_rulebook_matches_schema():
    with open(settings.RULEBOOK_PATH, encoding="utf-8") as f:
        d = yaml.safe_load(f)
    validate(instance=d, schema=_schema())


def test_bundled_rulebook_is_consistent():
    rb = RuleBook.from_yaml_file(settings.RULEBOOK_PATH, settings.RULEBOOK_SCHEMA_PATH)
    res = RuleValidator().validate(rb.weight_rules, rb.discount_rules)
    assert res.ok, res.error_dicts()
    assert [c.code for c in rb.carriers] == ["INPOST", "DHL", "DPD", "UPS", "MEEST"]
    assert rb.bulk_discount is not None and rb.bulk_discount.threshold == 10


def test_schema_rejects_unknown_kind():
    d = {
        "version": "x",
        "carriers": [{"code": "DHL"}],
        "weight_rules": [],
        "discount_rules": [{"id": "r", "kind": "cashback"}],
    }
    with pytest.raises(SchemaError):
        validate(instance=d, schema=_schema())


def test_input_contract_forbids_extra_fields():
    with pytest.raises(ValidationError):
        ShipmentInputV1(weight_kg=1, length_cm=1, width_cm=1, height_cm=1, colour="red")


def test_input_contract_rejects_non_positive_dimensions():
    with pytest.raises(ValidationError):
        ShipmentInputV1(weight_kg=0, length_cm=1, width_cm=1, height_cm=1)


def test_input_to_request():
    inp = ShipmentInputV1(
        weight_kg="2.5",
        length_cm=30,
        width_cm=20,
        height_cm=15,
        carrier_code=" INPOST ",
        zone_code="local",
        additional_services=["sms"],
    )
    req = inp.to_request()
    assert req.weight_kg == Decimal("2.5")
    assert req.carrier_code == "INPOST"
    assert req.additional_services == ("sms",)


def test_compare_and_bulk_contracts():
    ship = {"weight_kg": 1, "length_cm": 1, "width_cm": 1, "height_cm": 1, "zone_code": "local"}
    assert CompareInputV1(shipment=ship).exclude_carriers == []
    with pytest.raises(ValidationError):
        BulkInputV1(items=[])


def test_output_contract():
    out = PricingOutputV1(
        calculation_id="abc", engine_version="0.1.0", rulebook_version="v1", status="ok", payload={"total": "1.00"}
    )
    assert out.version == "v1"
    with pytest.raises(ValidationError):
        PricingOutputV1(calculation_id="abc", engine_version="0", rulebook_version="v1", status="maybe", payload={})
