from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

import parcel_pricing.rule_types  # noqa: F401 (register all rule kinds)

from parcel_pricing.engine.collaborators import StaticCustomerHistory
from parcel_pricing.engine.context import CustomerSnapshot
from parcel_pricing.engine.context_factory import ContextFactory
from parcel_pricing.engine.discount_engine import DiscountEngine
from parcel_pricing.engine.orchestrator import PricingOrchestrator
from parcel_pricing.engine.request import ShipmentRequest
from parcel_pricing.engine.rulebook import RuleBook

FIXED_DATE = date(2025, 3, 10)  # spring: no default seasonal window
BLACK_FRIDAY = date(2025, 11, 26)


def sample_rulebook_dict(discount_rules=None):
    return {
        "version": "test-1",
        "currency": "PLN",
        "carriers": [
            {
                "code": "INPOST",
                "name": "InPost",
                "supported_zones": ["local", "domestic"],
                "max_weight_kg": 25,
                "max_dimensions_cm": [64, 41, 38],
                "volumetric_divisor": 5000,
                "sort_order": 1,
            },
            {
                "code": "DHL",
                "name": "DHL",
                "supported_zones": [],
                "max_weight_kg": 70,
                "max_dimensions_cm": [200, 120, 120],
                "volumetric_divisor": 5000,
                "sort_order": 2,
            },
            {
                "code": "DPD",
                "name": "DPD",
                "supported_zones": ["local", "domestic"],
                "max_weight_kg": 31.5,
                "max_dimensions_cm": [175, 100, 100],
                "volumetric_divisor": 4000,
                "sort_order": 3,
            },
        ],
        "weight_rules": [
            {"id": "inpost-local-0", "carrier": "INPOST", "zone": "local", "weight_from": 0, "weight_to": 5,
             "method": "flat", "price": "10.00"},
            {"id": "inpost-local-5", "carrier": "INPOST", "zone": "local", "weight_from": 5, "weight_to": None,
             "method": "tiered", "price": "15.00", "threshold_weight": 5, "price_per_kg": "1.00"},
            {"id": "inpost-dom", "carrier": "INPOST", "zone": "domestic", "weight_from": 0, "weight_to": None,
             "method": "flat", "price": "12.00"},
            {"id": "dhl-local", "carrier": "DHL", "zone": "local", "weight_from": 0, "weight_to": None,
             "method": "per_kg", "price_per_kg": "2.00", "min_price": "15.00"},
            {"id": "dhl-dom", "carrier": "DHL", "zone": "domestic", "weight_from": 0, "weight_to": None,
             "method": "per_kg", "price_per_kg": "2.50", "min_price": "18.00"},
            {"id": "dhl-euw", "carrier": "DHL", "zone": "eu_west", "weight_from": 0, "weight_to": None,
             "method": "flat", "price": "50.00"},
            {"id": "dpd-local", "carrier": "DPD", "zone": "local", "weight_from": 0, "weight_to": None,
             "method": "flat", "price": "11.00"},
            {"id": "dpd-dom", "carrier": "DPD", "zone": "domestic", "weight_from": 0, "weight_to": None,
             "method": "flat", "price": "13.00"},
        ],
        "services": [
            {"code": "insurance", "name": "Insurance", "method": "percentage", "percentage": 1},
            {"code": "cod", "name": "COD", "method": "cod", "flat_fee": 5, "percentage": 1.5},
            {"code": "sms", "name": "SMS", "method": "flat", "flat_fee": "0.50"},
            {"code": "fragile", "name": "Fragile", "method": "per_kg", "price_per_kg": "0.50"},
        ],
        "discount_rules": list(discount_rules or []),
    }


@pytest.fixture
def make_rulebook():
    """Sample rule book dict factory; tests mutate their own copy."""
    return sample_rulebook_dict


@pytest.fixture
def fixed_date():
    return FIXED_DATE


@pytest.fixture
def black_friday():
    return BLACK_FRIDAY


@pytest.fixture
def sample_rulebook():
    return RuleBook.from_dict(sample_rulebook_dict())


@pytest.fixture
def customers():
    return StaticCustomerHistory(
        {
            "CUST-GOLD": CustomerSnapshot(
                customer_id="CUST-GOLD",
                tier="gold",
                monthly_order_count=30,
                monthly_spend=Decimal("3000.00"),
                lifetime_value=Decimal("5500.00"),
                total_order_count=120,
            ),
            "CUST-NEW": CustomerSnapshot(customer_id="CUST-NEW", is_first_order=True),
            "CUST-BIG": CustomerSnapshot(
                customer_id="CUST-BIG",
                monthly_order_count=60,
                monthly_spend=Decimal("6000.00"),
                lifetime_value=Decimal("30000.00"),
                total_order_count=700,
            ),
        }
    )


@pytest.fixture
def factory(customers):
    return ContextFactory(customers, today=lambda: FIXED_DATE)


@pytest.fixture
def engine():
    return DiscountEngine()


@pytest.fixture
def make_ctx(factory):
    """Small parcel context with a given base price; kwargs override."""

    def _make(base_price="100.00", **kwargs):
        params = dict(
            weight_kg="2.0",
            length_cm="30",
            width_cm="20",
            height_cm="15",
            service_type="standard",
            zone_code="local",
            base_price=base_price,
            carrier_code="INPOST",
        )
        params.update(kwargs)
        return factory.create(**params)

    return _make


@pytest.fixture
def orchestrator(sample_rulebook, customers):
    return PricingOrchestrator(sample_rulebook, customers=customers, today=lambda: FIXED_DATE, workers=0)


@pytest.fixture
def small_parcel():
    return ShipmentRequest(
        weight_kg="2.5",
        length_cm="30",
        width_cm="20",
        height_cm="15",
        service_type="standard",
        carrier_code="INPOST",
        zone_code="local",
    )
