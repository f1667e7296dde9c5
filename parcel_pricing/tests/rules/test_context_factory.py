from datetime import date
from decimal import Decimal

from parcel_pricing.engine.context_factory import ContextFactory, derive_tier, snapshot_from_dict

D = Decimal


def _create(factory, **kw):
    params = dict(
        weight_kg="2.34567",
        length_cm=30,
        width_cm=20,
        height_cm=15,
        service_type="Standard",
        zone_code="LOCAL",
        base_price="19.995",
        carrier_code="inpost",
    )
    params.update(kw)
    return factory.create(**params)


def test_create_normalizes_values(factory, fixed_date):
    ctx = _create(factory, promo_codes=[" welcome10", "BUNDLE3", "WELCOME10", ""])

    assert ctx.weight_kg == D("2.346")
    assert ctx.base_price == D("20.00")
    assert ctx.service_type == "standard"
    assert ctx.zone_code == "local"
    assert ctx.carrier_code == "INPOST"
    assert ctx.promo_codes == ("BUNDLE3", "WELCOME10")
    assert ctx.calculation_date == fixed_date
    assert ctx.currency == "PLN"
    assert ctx.customer is None


def test_explicit_calculation_date_wins(factory):
    ctx = _create(factory, calculation_date=date(2025, 7, 1))
    assert ctx.seasonal_period == "summer"


def test_context_is_immutable(factory):
    ctx = _create(factory)
    changed = ctx.with_base_price("5")
    assert ctx.base_price == D("20.00")
    assert changed.base_price == D("5.00")


def test_known_customer_keeps_explicit_tier(factory):
    ctx = factory.create_for_customer("CUST-GOLD", **_kwargs())
    assert ctx.customer_tier == "gold"
    assert ctx.total_order_value == D("5500.00")
    assert ctx.qualifies_for_volume_discount()


def test_tier_derived_from_history(factory):
    ctx = factory.create_for_customer("CUST-BIG", **_kwargs())
    assert ctx.customer_tier == "gold"


def test_unknown_customer_leaves_context_untouched(factory):
    ctx = factory.create_for_customer("NOBODY", **_kwargs())
    assert ctx.customer is None
    assert ctx.customer_tier == "standard"
    assert not ContextFactory.qualifies_for_volume_discount(ctx)


def test_derive_tier_needs_both_thresholds():
    assert derive_tier(D("60000"), 120) == "platinum"
    assert derive_tier(D("60000"), 10) == "bronze"
    assert derive_tier(D("12000"), 25) == "silver"
    assert derive_tier(D("1000"), 50) == "standard"


def test_snapshot_from_dict():
    s = snapshot_from_dict({"customer_id": "C1", "monthly_spend": "150.50"})
    assert s.monthly_spend == D("150.50")
    assert s.is_first_order is True
    assert s.tier is None


def _kwargs():
    return dict(
        weight_kg="1", length_cm=10, width_cm=10, height_cm=10, service_type="standard", zone_code="local", base_price="10"
    )
