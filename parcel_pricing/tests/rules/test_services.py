from decimal import Decimal

import pytest

from parcel_pricing.core.errors import ValidationError
from parcel_pricing.rates.services import AdditionalService, price_services

D = Decimal


def test_price_each_method(sample_rulebook):
    charges = price_services(
        ["sms", "insurance", "COD", "fragile"],
        sample_rulebook.services(),
        zone_code="local",
        chargeable_weight=D("4.000"),
        declared_value=D("200"),
    )
    amounts = {c.code: c.amount for c in charges}
    assert amounts == {
        "sms": D("0.50"),
        "insurance": D("2.00"),
        "cod": D("8.00"),
        "fragile": D("2.00"),
    }


def test_all_problems_reported_at_once(sample_rulebook):
    with pytest.raises(ValidationError) as exc:
        price_services(
            ["teleport", "insurance", "cod"],
            sample_rulebook.services(),
            zone_code="local",
            chargeable_weight=D("1"),
        )
    codes = [v["code"] for v in exc.value.violations]
    assert codes == ["UNKNOWN_SERVICE", "DECLARED_VALUE_REQUIRED", "DECLARED_VALUE_REQUIRED"]


def test_zone_restricted_service():
    saturday = AdditionalService.from_dict(
        {"code": "saturday", "method": "flat_rate", "flat_fee": 15, "zones": ["local", "domestic"]}
    )
    assert saturday.method == "flat"
    with pytest.raises(ValidationError) as exc:
        price_services(["saturday"], {"saturday": saturday}, zone_code="world", chargeable_weight=D("1"))
    assert exc.value.violations[0]["code"] == "SERVICE_UNAVAILABLE"


def test_no_services_is_empty():
    assert price_services([], {}, zone_code="local", chargeable_weight=D("1")) == []
