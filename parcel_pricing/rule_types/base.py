from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any, ClassVar, Dict, FrozenSet, Optional, Type

from parcel_pricing.core.errors import ConfigurationError

D = Decimal

# Decisions (avoid string typos)
DECISION_APPLIED = "APPLIED"
DECISION_SKIPPED = "SKIPPED"

# Discount stages, folded in this order
STAGE_SURCHARGE = "surcharge"
STAGE_CONTRACT = "contract"
STAGE_PROMOTION = "promotion"
STAGE_SEASONAL = "seasonal"
STAGE_VOLUME = "volume"
STAGE_PROGRESSIVE = "progressive"

STAGES = (
    STAGE_SURCHARGE,
    STAGE_CONTRACT,
    STAGE_PROMOTION,
    STAGE_SEASONAL,
    STAGE_VOLUME,
    STAGE_PROGRESSIVE,
)

DEFAULT_PRIORITY = 100

if TYPE_CHECKING:
    from parcel_pricing.engine.context import RuleContext


def as_decimal(v: Any, default: Optional[D] = None) -> Optional[D]:
    if v is None or v == "":
        return default
    return D(str(v))


def as_date(v: Any) -> Optional[date]:
    if v is None or v == "":
        return None
    if isinstance(v, date):
        return v
    return date.fromisoformat(str(v))


def _lower_set(values: Any) -> FrozenSet[str]:
    return frozenset(str(v).strip().lower() for v in values or [])


@dataclass(frozen=True)
class RuleOutcome:
    """
    Result of evaluating one rule against the current price.
    - decision: APPLIED / SKIPPED
    - amount: always >= 0; the engine decides whether it adds or subtracts
    - meta: explainability payload for the breakdown
    """

    decision: str
    amount: D
    meta: Dict[str, Any]

    @property
    def is_applied(self) -> bool:
        return self.decision == DECISION_APPLIED

    @staticmethod
    def applied(amount: D, meta: Optional[Dict[str, Any]] = None) -> "RuleOutcome":
        return RuleOutcome(decision=DECISION_APPLIED, amount=amount, meta=meta or {})

    @staticmethod
    def skipped(meta: Optional[Dict[str, Any]] = None) -> "RuleOutcome":
        return RuleOutcome(decision=DECISION_SKIPPED, amount=D("0.00"), meta=meta or {})


@dataclass(frozen=True)
class Eligibility:
    """Conditions shared by every rule kind."""

    id: str
    title: str
    active: bool = True
    valid_from: Optional[date] = None
    valid_until: Optional[date] = None
    service_types: FrozenSet[str] = frozenset()  # empty = all
    zones: FrozenSet[str] = frozenset()  # empty = all
    min_order_value: Optional[D] = None
    priority: int = DEFAULT_PRIORITY

    @staticmethod
    def from_dict(d: Dict[str, Any], *, default_priority: int = DEFAULT_PRIORITY) -> "Eligibility":
        priority = d.get("priority")
        return Eligibility(
            id=str(d["id"]),
            title=str(d.get("title") or d["id"]),
            active=bool(d.get("active", True)),
            valid_from=as_date(d.get("valid_from")),
            valid_until=as_date(d.get("valid_until")),
            service_types=_lower_set(d.get("service_types")),
            zones=_lower_set(d.get("zones")),
            min_order_value=as_decimal(d.get("min_order_value")),
            priority=int(priority) if priority is not None else default_priority,
        )

    def in_window(self, day: date) -> bool:
        if self.valid_from is not None and day < self.valid_from:
            return False
        if self.valid_until is not None and day > self.valid_until:
            return False
        return True

    def skip_reason(self, price: D, ctx: "RuleContext") -> Optional[str]:
        if not self.active:
            return "inactive"
        if not self.in_window(ctx.calculation_date):
            return "outside_validity_window"
        if self.service_types and ctx.service_type not in self.service_types:
            return "service_type_not_covered"
        if self.zones and ctx.zone_code not in self.zones:
            return "zone_not_covered"
        if self.min_order_value is not None and price < self.min_order_value:
            return "below_min_order_value"
        return None


@dataclass(frozen=True)
class RuleSpec:
    """
    Base for every rule variant. Concrete kinds are frozen dataclasses
    registered under their `kind` tag.
    """

    kind: ClassVar[str] = "base"
    stage: ClassVar[str] = ""
    stage_order: ClassVar[int] = 0
    line_type: ClassVar[str] = "discount"
    default_priority: ClassVar[int] = DEFAULT_PRIORITY

    eligibility: Eligibility

    @property
    def id(self) -> str:
        return self.eligibility.id

    @property
    def title(self) -> str:
        return self.eligibility.title

    @property
    def sort_key(self):
        return (self.stage_order, self.eligibility.priority, self.id)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "RuleSpec":
        elig = Eligibility.from_dict(d, default_priority=cls.default_priority)
        return cls(eligibility=elig, **cls.parse_params(dict(d.get("params") or {})))

    @classmethod
    def parse_params(cls, params: Dict[str, Any]) -> Dict[str, Any]:
        return {}

    def evaluate(self, price: D, ctx: "RuleContext") -> RuleOutcome:
        raise NotImplementedError


# Registry: kind -> RuleSpec subclass
rule_registry: Dict[str, Type[RuleSpec]] = {}


def register(rule_cls: Type[RuleSpec]) -> Type[RuleSpec]:
    """
    Decorator to register a rule variant by its kind.
    Fails fast on duplicate registrations (useful during dev/reload).
    """
    key = getattr(rule_cls, "kind", None)
    if not key or key == "base":
        raise ValueError(f"Rule class {rule_cls.__name__} has no kind")

    if key in rule_registry and rule_registry[key] is not rule_cls:
        raise ValueError(
            f"Duplicate rule registration for kind '{key}': "
            f"{rule_registry[key].__name__} vs {rule_cls.__name__}"
        )

    rule_registry[key] = rule_cls
    return rule_cls


def rule_from_dict(d: Dict[str, Any]) -> RuleSpec:
    kind = str(d.get("kind") or "")
    cls = rule_registry.get(kind)
    if cls is None:
        raise ConfigurationError(f"Unknown rule kind: '{kind}'", rule_id=str(d.get("id")))
    return cls.from_dict(d)
