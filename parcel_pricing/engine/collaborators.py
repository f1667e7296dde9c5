from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Mapping, Optional, Protocol, Sequence

if TYPE_CHECKING:
    from parcel_pricing.rates.rate_calculator import CarrierProfile
    from parcel_pricing.rates.services import AdditionalService
    from parcel_pricing.rates.weight_rules import WeightRule
    from parcel_pricing.rule_types.base import RuleSpec
    from parcel_pricing.zones.models import PricingZone

    from .context import CustomerSnapshot, RuleContext


# Narrow read contracts; storage lives behind them.


class WeightRuleLookup(Protocol):
    def weight_rules_for(self, carrier_code: str, zone_code: str, service_type: str) -> Sequence["WeightRule"]: ...


class ZoneLookup(Protocol):
    def pricing_zones(self) -> Sequence["PricingZone"]: ...


class DiscountRuleLookup(Protocol):
    def discount_rules_for(self, ctx: "RuleContext") -> Sequence["RuleSpec"]: ...


class CustomerHistoryLookup(Protocol):
    def customer_snapshot(self, customer_id: str) -> Optional["CustomerSnapshot"]: ...


class CarrierLookup(Protocol):
    def carrier(self, carrier_code: str) -> Optional["CarrierProfile"]: ...

    def carrier_profiles(self) -> Sequence["CarrierProfile"]: ...


class ServiceCatalog(Protocol):
    def services(self) -> Mapping[str, "AdditionalService"]: ...


class StaticCustomerHistory:
    """In-memory customer history, keyed by customer id."""

    def __init__(self, snapshots: Optional[Dict[str, "CustomerSnapshot"]] = None):
        self._snapshots: Dict[str, "CustomerSnapshot"] = dict(snapshots or {})

    def customer_snapshot(self, customer_id: str) -> Optional["CustomerSnapshot"]:
        return self._snapshots.get(customer_id)
