from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional


class PricingError(Exception):
    """
    Base error for every pricing failure.

    Carries enough context (carrier, zone, weight, rule id) to reproduce
    the failing calculation; `to_dict()` is what the API and batch
    reports expose.
    """

    code: str = "PRICING_ERROR"

    def __init__(
        self,
        message: str,
        *,
        carrier: Optional[str] = None,
        zone: Optional[str] = None,
        weight: Optional[Decimal] = None,
        rule_id: Optional[str] = None,
        **extra: Any,
    ):
        self.message = str(message)
        self.context: Dict[str, Any] = {}
        if carrier is not None:
            self.context["carrier"] = carrier
        if zone is not None:
            self.context["zone"] = zone
        if weight is not None:
            self.context["weight"] = str(weight)
        if rule_id is not None:
            self.context["rule_id"] = rule_id
        self.context.update(extra)
        super().__init__(f"{self.code}: {self.message}")

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "context": dict(self.context)}


class ConfigurationError(PricingError):
    """Missing pricing table/rule, invalid divisor, ambiguous lookup."""

    code = "CONFIGURATION_ERROR"


class ValidationError(PricingError):
    """
    Malformed request or invalid rule set.
    Always carries the complete violation list.
    """

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, violations: Optional[List[Any]] = None, **context: Any):
        self.violations: List[Any] = list(violations or [])
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        out["violations"] = [_violation_dict(v) for v in self.violations]
        return out


class CapacityError(PricingError):
    """Carrier cannot serve the requested weight/dimensions/zone."""

    code = "CAPACITY_ERROR"


class CalculationError(PricingError):
    """Unexpected arithmetic/lookup failure."""

    code = "CALCULATION_ERROR"


def _violation_dict(v: Any) -> Dict[str, Any]:
    if hasattr(v, "to_dict"):
        return v.to_dict()
    if isinstance(v, dict):
        return dict(v)
    return {"message": str(v)}
