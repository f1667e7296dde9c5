from __future__ import annotations

from collections import defaultdict
from datetime import date
from decimal import Decimal
from itertools import combinations
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from parcel_pricing.engine.seasons import VALID_SEASONS
from parcel_pricing.rates.weight_rules import METHOD_FLAT, METHOD_PER_KG, METHOD_TIERED, WEIGHT_METHODS, WeightRule
from parcel_pricing.rule_types.base import RuleSpec
from parcel_pricing.rule_types.contract import SHAPE_TIERED, ContractDiscount
from parcel_pricing.rule_types.oversize import OversizeSurcharge
from parcel_pricing.rule_types.progressive import ProgressiveDiscount
from parcel_pricing.rule_types.promotion import PROMOTION_TYPES, PROMO_PERCENTAGE, Promotion
from parcel_pricing.rule_types.seasonal import SeasonalDiscount
from parcel_pricing.rule_types.tiered import TieredDiscount
from parcel_pricing.rule_types.volume import VolumeDiscount

from .common import RuleViolation, ValidationResult, _err, _warn

D = Decimal

OPEN_START = date(1970, 1, 1)
OPEN_END = date(2099, 12, 31)

SCOPE_WEIGHT = "weight_rule"
SCOPE_DISCOUNT = "discount_rule"


def ranges_overlap(a_from: D, a_to: Optional[D], b_from: D, b_to: Optional[D]) -> bool:
    """Half-open [from, to) ranges; None upper bound = infinity."""
    a_end_before_b = a_to is not None and a_to <= b_from
    b_end_before_a = b_to is not None and b_to <= a_from
    return not (a_end_before_b or b_end_before_a)


def windows_overlap(
    a_from: Optional[date], a_to: Optional[date], b_from: Optional[date], b_to: Optional[date]
) -> bool:
    """Inclusive date windows; open bounds count as 1970-01-01 / 2099-12-31."""
    a0, a1 = a_from or OPEN_START, a_to or OPEN_END
    b0, b1 = b_from or OPEN_START, b_to or OPEN_END
    return not (a1 < b0 or b1 < a0)


def _pct_ok(v: Optional[D]) -> bool:
    return v is None or D("0") <= v <= D("100")


class RuleValidator:
    """
    Checks a rule set before the discount engine runs.

    Never fails fast: every violation found is returned, so a broken
    rule book can be fixed in one pass.
    """

    def validate(
        self,
        weight_rules: Iterable[WeightRule] = (),
        discount_rules: Iterable[RuleSpec] = (),
    ) -> ValidationResult:
        return self.validate_weight_rules(weight_rules).merge(self.validate_discount_rules(discount_rules))

    # -----------------
    # weight rules
    # -----------------

    def validate_weight_rules(self, rules: Iterable[WeightRule]) -> ValidationResult:
        rules = list(rules)
        errors: List[RuleViolation] = []

        for r in rules:
            errors.extend(self._weight_rule_fields(r))

        by_scope: Dict[Tuple[str, str, str], List[WeightRule]] = defaultdict(list)
        for r in rules:
            if r.active:
                by_scope[r.scope].append(r)

        for scope in sorted(by_scope):
            group = sorted(by_scope[scope], key=lambda r: (r.weight_from, r.id))
            for a, b in combinations(group, 2):
                if ranges_overlap(a.weight_from, a.weight_to, b.weight_from, b.weight_to):
                    errors.append(
                        _err(
                            SCOPE_WEIGHT,
                            b.id,
                            "weight_from",
                            "WEIGHT_RANGE_OVERLAP",
                            f"{a.id} {a.describe_range()} overlaps {b.id} {b.describe_range()} in {'/'.join(scope)}",
                        )
                    )

        return ValidationResult.of(errors)

    @staticmethod
    def _weight_rule_fields(r: WeightRule) -> List[RuleViolation]:
        errors: List[RuleViolation] = []

        def err(field: str, code: str, message: str) -> None:
            errors.append(_err(SCOPE_WEIGHT, r.id, field, code, message))

        if r.weight_from < 0:
            err("weight_from", "OUT_OF_RANGE", "weight_from must be >= 0")
        if r.weight_to is not None and r.weight_to <= r.weight_from:
            err("weight_to", "INVALID_RANGE", "weight_to must be greater than weight_from")

        for name in ("price", "price_per_kg", "min_price", "max_price", "threshold_weight"):
            value = getattr(r, name)
            if value is not None and value < 0:
                err(name, "NEGATIVE_VALUE", f"{name} cannot be negative")

        if r.min_price is not None and r.max_price is not None and r.min_price > r.max_price:
            err("min_price", "INVALID_RANGE", "min_price must be <= max_price")

        if r.method not in WEIGHT_METHODS:
            err("method", "UNKNOWN_METHOD", f"Unknown calculation method: {r.method}")
        if r.method in (METHOD_FLAT, METHOD_TIERED) and r.price is None:
            err("price", "MISSING_FIELD", f"{r.method} rules need price")
        if r.method in (METHOD_PER_KG, METHOD_TIERED) and r.price_per_kg is None:
            err("price_per_kg", "MISSING_FIELD", f"{r.method} rules need price_per_kg")
        if r.method == METHOD_TIERED and r.threshold_weight is None:
            err("threshold_weight", "MISSING_FIELD", "tiered rules need threshold_weight")

        return errors

    # -----------------
    # discount rules
    # -----------------

    def validate_discount_rules(self, rules: Iterable[RuleSpec]) -> ValidationResult:
        rules = list(rules)
        errors: List[RuleViolation] = []
        warnings: List[RuleViolation] = []

        seen_ids: Dict[str, int] = defaultdict(int)
        for r in rules:
            seen_ids[r.id] += 1
            errors.extend(self._common_fields(r))
            errors.extend(self._variant_fields(r))

        for rid, count in sorted(seen_ids.items()):
            if count > 1:
                errors.append(_err(SCOPE_DISCOUNT, rid, "id", "DUPLICATE_ID", f"Rule id used {count} times"))

        errors.extend(self._promotion_overlaps([r for r in rules if isinstance(r, Promotion)]))
        errors.extend(self._duplicate_seasons([r for r in rules if isinstance(r, SeasonalDiscount)]))

        for r in rules:
            if not r.eligibility.active:
                warnings.append(_warn(SCOPE_DISCOUNT, r.id, "active", "RULE_INACTIVE", "Rule is inactive"))

        return ValidationResult.of(errors, warnings)

    @staticmethod
    def _common_fields(r: RuleSpec) -> List[RuleViolation]:
        e = r.eligibility
        errors: List[RuleViolation] = []
        if e.valid_from is not None and e.valid_until is not None and e.valid_from > e.valid_until:
            errors.append(
                _err(SCOPE_DISCOUNT, r.id, "valid_from", "INVALID_WINDOW", "valid_from must be <= valid_until")
            )
        if e.min_order_value is not None and e.min_order_value < 0:
            errors.append(
                _err(SCOPE_DISCOUNT, r.id, "min_order_value", "NEGATIVE_VALUE", "min_order_value cannot be negative")
            )
        return errors

    def _variant_fields(self, r: RuleSpec) -> List[RuleViolation]:
        errors: List[RuleViolation] = []

        def err(field: str, code: str, message: str) -> None:
            errors.append(_err(SCOPE_DISCOUNT, r.id, field, code, message))

        def check_shape(field: str, shape: str, value: D) -> None:
            if shape == PROMO_PERCENTAGE and not _pct_ok(value):
                err(field, "OUT_OF_RANGE", "percentage must be between 0 and 100")
            elif value < 0:
                err(field, "NEGATIVE_VALUE", "discount value cannot be negative")

        if isinstance(r, ContractDiscount):
            if r.max_discount is not None and r.max_discount < 0:
                err("max_discount", "NEGATIVE_VALUE", "max_discount cannot be negative")
            if r.discount_type == SHAPE_TIERED:
                if not r.tiers:
                    err("tiers", "MISSING_FIELD", "tiered contract needs a tiers table")
                for t in r.tiers:
                    if t.min_value < 0:
                        err("tiers", "NEGATIVE_VALUE", "tier min_value cannot be negative")
                    check_shape("tiers", t.shape, t.value)
            elif r.discount_type not in ("percentage", "fixed"):
                err("discount_type", "UNKNOWN_SHAPE", f"Unknown discount type: {r.discount_type}")
            else:
                check_shape("discount_value", r.discount_type, r.discount_value)

        elif isinstance(r, TieredDiscount):
            if not r.tier_pcts:
                err("tiers", "MISSING_FIELD", "customer tier discount needs a tiers table")
            for tier, pct in sorted(r.tier_pcts.items()):
                if not _pct_ok(pct):
                    err("tiers", "OUT_OF_RANGE", f"tier {tier}: percentage must be between 0 and 100")

        elif isinstance(r, Promotion):
            if r.promotion_type not in PROMOTION_TYPES:
                err("promotion_type", "UNKNOWN_SHAPE", f"Unknown promotion type: {r.promotion_type}")
            else:
                check_shape("discount_value", r.promotion_type, r.discount_value)
            if r.max_discount_per_order is not None and r.max_discount_per_order < 0:
                err("max_discount_per_order", "NEGATIVE_VALUE", "max_discount_per_order cannot be negative")
            if r.buy_quantity < 1 or r.get_quantity < 1:
                err("buy_quantity", "OUT_OF_RANGE", "buy_quantity and get_quantity must be >= 1")
            if not _pct_ok(r.get_discount_pct):
                err("get_discount_pct", "OUT_OF_RANGE", "get_discount_pct must be between 0 and 100")
            if r.usage_limit is not None and r.usage_limit < 0:
                err("usage_limit", "NEGATIVE_VALUE", "usage_limit cannot be negative")

        elif isinstance(r, SeasonalDiscount):
            if r.season not in VALID_SEASONS:
                err("season", "UNKNOWN_SEASON", f"Unknown season '{r.season}'; expected one of {list(VALID_SEASONS)}")
            if not _pct_ok(r.percentage):
                err("percentage", "OUT_OF_RANGE", "percentage must be between 0 and 100")

        elif isinstance(r, VolumeDiscount):
            if not r.tiers:
                err("tiers", "MISSING_FIELD", "volume discount needs a tiers table")
            for t in r.tiers:
                if t.min_orders < 1:
                    err("tiers", "OUT_OF_RANGE", "volume tier min_orders must be >= 1")
                if t.min_spend < 0:
                    err("tiers", "NEGATIVE_VALUE", "volume tier min_spend cannot be negative")
                if not _pct_ok(t.pct):
                    err("tiers", "OUT_OF_RANGE", "volume tier percentage must be between 0 and 100")

        elif isinstance(r, ProgressiveDiscount):
            if not r.tiers:
                err("tiers", "MISSING_FIELD", "progressive discount needs a tiers table")
            for t in r.tiers:
                if t.min_value < 0:
                    err("tiers", "NEGATIVE_VALUE", "progressive tier threshold cannot be negative")
                if not _pct_ok(t.pct):
                    err("tiers", "OUT_OF_RANGE", "progressive tier percentage must be between 0 and 100")

        elif isinstance(r, OversizeSurcharge):
            if r.base_fee < 0 or r.volume_fee < 0:
                err("base_fee", "NEGATIVE_VALUE", "surcharge fees cannot be negative")
            if len(r.limits_cm) != 3 or any(v <= 0 for v in r.limits_cm):
                err("limits_cm", "OUT_OF_RANGE", "limits_cm needs three positive values")

        return errors

    @staticmethod
    def _promotion_overlaps(promos: Sequence[Promotion]) -> List[RuleViolation]:
        """
        Two active promotions reachable by the same code (or both codeless)
        in the same zone/service scope may not run at the same time.
        """
        errors: List[RuleViolation] = []
        active = sorted((p for p in promos if p.eligibility.active), key=lambda p: p.id)
        for a, b in combinations(active, 2):
            ea, eb = a.eligibility, b.eligibility
            if (ea.zones, ea.service_types, a.promo_code) != (eb.zones, eb.service_types, b.promo_code):
                continue
            if windows_overlap(ea.valid_from, ea.valid_until, eb.valid_from, eb.valid_until):
                errors.append(
                    _err(
                        SCOPE_DISCOUNT,
                        b.id,
                        "valid_from",
                        "PROMOTION_OVERLAP",
                        f"Promotion {b.id} overlaps {a.id} in the same scope",
                    )
                )
        return errors

    @staticmethod
    def _duplicate_seasons(rules: Sequence[SeasonalDiscount]) -> List[RuleViolation]:
        errors: List[RuleViolation] = []
        by_season: Dict[str, List[str]] = defaultdict(list)
        for r in rules:
            if r.eligibility.active:
                by_season[r.season].append(r.id)
        for season, ids in sorted(by_season.items()):
            if len(ids) > 1:
                errors.append(
                    _err(
                        SCOPE_DISCOUNT,
                        sorted(ids)[1],
                        "season",
                        "DUPLICATE_SEASON",
                        f"Several seasonal rules for '{season}': {sorted(ids)}",
                    )
                )
        return errors
