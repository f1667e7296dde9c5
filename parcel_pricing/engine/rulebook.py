from __future__ import annotations

import json
import os
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from functools import cached_property
from decimal import Decimal
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import yaml
from jsonschema import ValidationError as SchemaValidationError
from jsonschema import validate

from parcel_pricing.core.errors import ConfigurationError, PricingError
from parcel_pricing.core.logging_config import logger
from parcel_pricing.rates.rate_calculator import CarrierProfile
from parcel_pricing.rates.services import AdditionalService
from parcel_pricing.rates.weight_rules import WeightRule
from parcel_pricing.rule_types import rule_from_dict
from parcel_pricing.rule_types.base import RuleSpec
from parcel_pricing.zones.models import PricingZone, ZoneType, zone_priority

from .context import RuleContext

D = Decimal


def _duplicates(ids: Sequence[str]) -> List[str]:
    seen, dups = set(), []
    for rid in ids:
        if rid in seen and rid not in dups:
            dups.append(rid)
        seen.add(rid)
    return dups


def _zone_from_dict(d: Dict[str, Any]) -> PricingZone:
    code = str(d["code"]).strip().lower()
    priority = d.get("priority")
    return PricingZone(
        code=code,
        zone_type=ZoneType(str(d.get("zone_type") or code)),
        countries=frozenset(str(c).strip().upper() for c in d.get("countries") or []),
        postal_code_patterns=tuple(str(p) for p in d.get("postal_code_patterns") or []),
        active=bool(d.get("active", True)),
        priority=int(priority) if priority is not None else zone_priority(code),
    )


@dataclass(frozen=True)
class BulkDiscountConfig:
    threshold: int
    percentage: D

    @staticmethod
    def from_dict(d: Optional[Dict[str, Any]]) -> Optional["BulkDiscountConfig"]:
        if not d:
            return None
        return BulkDiscountConfig(threshold=int(d["threshold"]), percentage=D(str(d["percentage"])))

    def qualifies(self, item_count: int) -> bool:
        return item_count >= self.threshold


@dataclass(frozen=True)
class RuleBook:
    """
    Read-only snapshot of every pricing table: carriers, zones, weight
    rules, additional services and discount rules.

    Implements the weight-rule, zone, discount-rule, carrier and service
    lookups in memory.
    """

    version: str
    currency: str = "PLN"
    carriers: Tuple[CarrierProfile, ...] = ()
    zones: Tuple[PricingZone, ...] = ()
    weight_rules: Tuple[WeightRule, ...] = ()
    discount_rules: Tuple[RuleSpec, ...] = ()
    service_catalog: Mapping[str, AdditionalService] = field(default_factory=lambda: MappingProxyType({}))
    bulk_discount: Optional[BulkDiscountConfig] = None

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "RuleBook":
        carriers = tuple(CarrierProfile.from_dict(x) for x in d.get("carriers") or [])
        zones = tuple(_zone_from_dict(x) for x in d.get("zones") or [])
        weight_rules = tuple(WeightRule.from_dict(x) for x in d.get("weight_rules") or [])
        services = [AdditionalService.from_dict(x) for x in d.get("services") or []]
        discount_rules = tuple(rule_from_dict(x) for x in d.get("discount_rules") or [])

        # Cross-validation
        for label, ids in (
            ("carrier codes", [c.code for c in carriers]),
            ("zone codes", [z.code for z in zones]),
            ("weight rule ids", [r.id for r in weight_rules]),
            ("service codes", [s.code for s in services]),
            ("discount rule ids", [r.id for r in discount_rules]),
        ):
            dups = _duplicates(ids)
            if dups:
                raise ConfigurationError(f"Duplicate {label} in rule book: {dups}", section=label, duplicates=dups)

        known = {c.code for c in carriers}
        unknown = sorted({r.carrier_code for r in weight_rules} - known)
        if unknown:
            raise ConfigurationError(
                f"Weight rules reference unknown carriers: {unknown}",
                unknown_carriers=unknown,
                rule_ids=sorted(r.id for r in weight_rules if r.carrier_code not in known),
            )

        return RuleBook(
            version=str(d.get("version") or "v1"),
            currency=str(d.get("currency") or "PLN"),
            carriers=tuple(sorted(carriers, key=lambda c: (c.sort_order, c.code))),
            zones=zones,
            weight_rules=weight_rules,
            discount_rules=discount_rules,
            service_catalog=MappingProxyType({s.code: s for s in services}),
            bulk_discount=BulkDiscountConfig.from_dict(d.get("bulk_discount")),
        )

    @classmethod
    def from_yaml_file(cls, path: str, schema_path: Optional[str] = None) -> "RuleBook":
        return cls.from_dict(load_rulebook_dict(path, schema_path))

    # --- lookups ---

    def weight_rules_for(self, carrier_code: str, zone_code: str, service_type: str) -> Sequence[WeightRule]:
        scope = (str(carrier_code).upper(), str(zone_code).lower(), str(service_type).lower())
        return self._weight_index.get(scope, ())

    @cached_property
    def _weight_index(self) -> Dict[Tuple[str, str, str], Tuple[WeightRule, ...]]:
        index: Dict[Tuple[str, str, str], List[WeightRule]] = defaultdict(list)
        for r in self.weight_rules:
            index[r.scope].append(r)
        return {k: tuple(v) for k, v in index.items()}

    def pricing_zones(self) -> Sequence[PricingZone]:
        return self.zones

    def discount_rules_for(self, ctx: RuleContext) -> Sequence[RuleSpec]:
        return self.discount_rules

    def carrier(self, carrier_code: str) -> Optional[CarrierProfile]:
        code = str(carrier_code or "").strip().upper()
        for c in self.carriers:
            if c.code == code:
                return c
        return None

    def carrier_profiles(self) -> Sequence[CarrierProfile]:
        return self.carriers

    def services(self) -> Mapping[str, AdditionalService]:
        return self.service_catalog


def load_rulebook_dict(path: str, schema_path: Optional[str] = None) -> Dict[str, Any]:
    """YAML -> dict, validated against the JSON schema."""
    rulebook_path = Path(path)

    with rulebook_path.open("r", encoding="utf-8") as f:
        d = yaml.safe_load(f) or {}

    schema_file = Path(schema_path) if schema_path else rulebook_path.parents[1] / "schemas" / "rulebook.schema.json"
    with schema_file.open("r", encoding="utf-8") as f:
        schema = json.load(f)

    validate(instance=d, schema=schema)
    return d


@dataclass(frozen=True)
class LoadedRuleBook:
    rulebook: RuleBook
    mtime_ns: int


# Anything a bad edit to the YAML can raise while parsing or building.
RELOAD_ERRORS = (
    OSError,
    yaml.YAMLError,
    SchemaValidationError,
    PricingError,
    ArithmeticError,
    LookupError,
    TypeError,
    ValueError,
)


class RuleBookLoader:
    """
    Serves a RuleBook snapshot that follows the YAML file on disk.

    The file's mtime is compared on every access. A changed file is
    rebuilt and swapped in whole; a file that is missing or fails to
    build leaves the current snapshot in service. Only the first load
    is allowed to raise.
    """

    def __init__(self, yaml_path: str, schema_path: Optional[str] = None):
        self.yaml_path = yaml_path
        self.schema_path = schema_path
        self._lock = threading.Lock()
        self._snapshot: LoadedRuleBook = self._build(self._mtime_ns())

    @property
    def rulebook(self) -> RuleBook:
        return self.get().rulebook

    def get(self) -> LoadedRuleBook:
        snapshot = self._snapshot
        if self._is_current(snapshot):
            return snapshot
        with self._lock:
            return self._refresh()

    def _is_current(self, snapshot: LoadedRuleBook) -> bool:
        try:
            return self._mtime_ns() == snapshot.mtime_ns
        except FileNotFoundError:
            return False

    def _refresh(self) -> LoadedRuleBook:
        previous = self._snapshot
        log = logger.bind(path=self.yaml_path, version=previous.rulebook.version)
        try:
            mtime_ns = self._mtime_ns()
        except FileNotFoundError:
            log.warning("rulebook_missing_keeping_previous")
            return previous
        if mtime_ns == previous.mtime_ns:
            return previous

        try:
            snapshot = self._build(mtime_ns)
        except RELOAD_ERRORS as e:
            log.bind(error=repr(e)).error("rulebook_reload_failed_keeping_previous")
            return previous

        self._snapshot = snapshot
        log.bind(new_version=snapshot.rulebook.version, mtime_ns=mtime_ns).info("rulebook_reloaded")
        return snapshot

    def _mtime_ns(self) -> int:
        return os.stat(self.yaml_path).st_mtime_ns

    def _build(self, mtime_ns: int) -> LoadedRuleBook:
        return LoadedRuleBook(RuleBook.from_yaml_file(self.yaml_path, self.schema_path), mtime_ns)
