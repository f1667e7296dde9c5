from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class RuleViolation:
    scope: str  # weight_rule / discount_rule / request
    rule_id: Optional[str]  # None = set-level
    field: Optional[str]
    code: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scope": self.scope,
            "rule_id": self.rule_id,
            "field": self.field,
            "code": self.code,
            "message": self.message,
        }


@dataclass
class ValidationResult:
    ok: bool = True
    errors: List[RuleViolation] = field(default_factory=list)
    warnings: List[RuleViolation] = field(default_factory=list)

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        return ValidationResult(
            ok=self.ok and other.ok,
            errors=self.errors + other.errors,
            warnings=self.warnings + other.warnings,
        )

    @staticmethod
    def of(errors: List[RuleViolation], warnings: Optional[List[RuleViolation]] = None) -> "ValidationResult":
        return ValidationResult(ok=not errors, errors=list(errors), warnings=list(warnings or []))

    def error_dicts(self) -> List[Dict[str, Any]]:
        return [e.to_dict() for e in self.errors]

    def warning_dicts(self) -> List[Dict[str, Any]]:
        return [w.to_dict() for w in self.warnings]


def _err(scope: str, rule_id: Optional[str], field: Optional[str], code: str, message: str) -> RuleViolation:
    return RuleViolation(scope, rule_id, field, code, message)


def _warn(scope: str, rule_id: Optional[str], field: Optional[str], code: str, message: str) -> RuleViolation:
    return RuleViolation(scope, rule_id, field, code, message)
