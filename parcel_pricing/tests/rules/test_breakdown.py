import pytest

from parcel_pricing.explain import Breakdown


def test_breakdown_renders_in_insertion_order():
    b = Breakdown()
    b.add_step("BASE_RATE", "Base rate 10.00 PLN")
    b.add_check("CARRIER_CAPACITY", "INPOST can carry 2.5 kg")
    b.add_warning("POSTAL_CODE_INVALID", "Unparseable postal code")
    b.add_meta("VOLUMETRIC_WEIGHT", "Volumetric weight used")
    b.add_check("RULE_SET", "Rules invalid", status="FAIL")

    assert b.as_strings() == [
        "Base rate 10.00 PLN",
        "OK: INPOST can carry 2.5 kg",
        "WARNING: Unparseable postal code",
        "META: Volumetric weight used",
        "FAIL: Rules invalid",
    ]
    assert b.codes()[0] == "BASE_RATE"
    assert len(b) == 5


@pytest.mark.parametrize("code", ["base", "X", "BAD-CODE"])
def test_breakdown_rejects_bad_codes(code):
    with pytest.raises(ValueError):
        Breakdown().add_step(code, "message")


@pytest.mark.parametrize("message", ["", "two\nlines", "x" * 241])
def test_breakdown_rejects_bad_messages(message):
    with pytest.raises(ValueError):
        Breakdown().add_step("TOTAL", message)
