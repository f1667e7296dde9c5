from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from parcel_pricing.calculators.discounts import clamp_discount
from parcel_pricing.core.logging_config import logger
from parcel_pricing.rates.weight_rules import WeightRule
from parcel_pricing.rule_types.base import (
    STAGE_CONTRACT,
    STAGE_PROGRESSIVE,
    STAGE_PROMOTION,
    STAGE_SEASONAL,
    STAGE_SURCHARGE,
    STAGE_VOLUME,
    RuleSpec,
)
from parcel_pricing.rule_types.oversize import DEFAULT_OVERSIZE
from parcel_pricing.validators.rule_validator import RuleValidator

from .context import ZERO, DiscountLine, RuleContext, RuleResult, qmoney

D = Decimal


@dataclass
class StageOutput:
    price: D
    lines: List[DiscountLine] = field(default_factory=list)
    applied_rules: List[str] = field(default_factory=list)
    applied_promotions: List[str] = field(default_factory=list)


StageFn = Callable[[D, RuleContext, Sequence[RuleSpec]], StageOutput]


def _in_stage(rules: Sequence[RuleSpec], stage: str) -> List[RuleSpec]:
    return sorted((r for r in rules if r.stage == stage), key=lambda r: r.sort_key)


def _line(rule: RuleSpec, amount: D, meta: Dict) -> DiscountLine:
    return DiscountLine(type=rule.line_type, source=rule.title, amount=amount, rule_id=rule.id, meta=dict(meta))


def _log_applied(rule: RuleSpec, ctx: RuleContext, amount: D, price_after: D) -> None:
    logger.bind(
        rule_id=rule.id,
        kind=rule.kind,
        carrier=ctx.carrier_code,
        zone=ctx.zone_code,
        amount=str(amount),
        price_after=str(price_after),
    ).debug("pricing_rule_applied")


def surcharge_stage(price: D, ctx: RuleContext, rules: Sequence[RuleSpec]) -> StageOutput:
    """Oversize adjustments raise the base; built-in defaults apply when the rule book has none."""
    specs = _in_stage(rules, STAGE_SURCHARGE) or [DEFAULT_OVERSIZE]
    out = StageOutput(price=price)
    for rule in specs:
        if rule.eligibility.skip_reason(out.price, ctx):
            continue
        outcome = rule.evaluate(out.price, ctx)
        if not outcome.is_applied or outcome.amount <= ZERO:
            continue
        amount = qmoney(outcome.amount)
        out.price = qmoney(out.price + amount)
        out.lines.append(_line(rule, amount, outcome.meta))
        out.applied_rules.append(rule.id)
        _log_applied(rule, ctx, amount, out.price)
    return out


def _stacking_stage(stage: str) -> StageFn:
    """Every eligible rule of the stage applies, each on the then-current price."""

    def run(price: D, ctx: RuleContext, rules: Sequence[RuleSpec]) -> StageOutput:
        out = StageOutput(price=price)
        for rule in _in_stage(rules, stage):
            if rule.eligibility.skip_reason(out.price, ctx):
                continue
            outcome = rule.evaluate(out.price, ctx)
            if not outcome.is_applied:
                continue
            amount = clamp_discount(outcome.amount, out.price)
            if amount <= ZERO:
                continue
            out.price = max(ZERO, qmoney(out.price - amount))
            out.lines.append(_line(rule, amount, outcome.meta))
            out.applied_rules.append(rule.id)
            _log_applied(rule, ctx, amount, out.price)
        return out

    run.__name__ = f"{stage}_stage"
    return run


def promotion_stage(price: D, ctx: RuleContext, rules: Sequence[RuleSpec]) -> StageOutput:
    """Only the first eligible promotion by (priority, id) applies."""
    out = StageOutput(price=price)
    for rule in _in_stage(rules, STAGE_PROMOTION):
        if rule.eligibility.skip_reason(out.price, ctx):
            continue
        outcome = rule.evaluate(out.price, ctx)
        if not outcome.is_applied:
            continue

        amount = clamp_discount(outcome.amount, out.price)
        if amount > ZERO:
            out.price = max(ZERO, qmoney(out.price - amount))
            out.lines.append(_line(rule, amount, outcome.meta))
            out.applied_rules.append(rule.id)
            out.applied_promotions.append(rule.id)
            _log_applied(rule, ctx, amount, out.price)
        break
    return out


# Fixed fold order
STAGES: Tuple[Tuple[str, StageFn], ...] = (
    (STAGE_SURCHARGE, surcharge_stage),
    (STAGE_CONTRACT, _stacking_stage(STAGE_CONTRACT)),
    (STAGE_PROMOTION, promotion_stage),
    (STAGE_SEASONAL, _stacking_stage(STAGE_SEASONAL)),
    (STAGE_VOLUME, _stacking_stage(STAGE_VOLUME)),
    (STAGE_PROGRESSIVE, _stacking_stage(STAGE_PROGRESSIVE)),
)


class DiscountEngine:
    """
    Deterministic ordered fold over the discount stages.

    The rule set (discount rules plus the weight rules in the shipment's
    scope) is validated first; a rule set with violations never
    reaches the stages and yields an error RuleResult with the price
    untouched.
    """

    def __init__(self, validator: Optional[RuleValidator] = None):
        self.validator = validator or RuleValidator()

    def calculate(
        self, ctx: RuleContext, rules: Sequence[RuleSpec], weight_rules: Sequence[WeightRule] = ()
    ) -> RuleResult:
        validation = self.validator.validate(weight_rules, rules)
        if not validation.ok:
            logger.bind(
                carrier=ctx.carrier_code,
                zone=ctx.zone_code,
                violations=len(validation.errors),
                codes=sorted({e.code for e in validation.errors}),
            ).warning("rule_set_invalid")
            return RuleResult.error(ctx, validation.error_dicts(), validation.warning_dicts())

        return self.apply(ctx, rules, warnings=validation.warning_dicts())

    def apply(self, ctx: RuleContext, rules: Sequence[RuleSpec], warnings: Optional[List[Dict]] = None) -> RuleResult:
        """Fold without validation (the caller already validated `rules`)."""
        price = qmoney(ctx.base_price)
        original = price
        surcharges: List[DiscountLine] = []
        discounts: List[DiscountLine] = []
        applied_rules: List[str] = []
        applied_promotions: List[str] = []

        for stage, fn in STAGES:
            out = fn(price, ctx, rules)
            price = max(ZERO, out.price)
            if stage == STAGE_SURCHARGE:
                surcharges.extend(out.lines)
                original = price
            else:
                discounts.extend(out.lines)
            applied_rules.extend(out.applied_rules)
            applied_promotions.extend(out.applied_promotions)

        final = qmoney(price)
        return RuleResult(
            currency=ctx.currency,
            original_price=original,
            final_price=final,
            total_discount=qmoney(original - final),
            weight=ctx.weight_detail,
            applied_rules=applied_rules,
            applied_promotions=applied_promotions,
            discount_breakdown=discounts,
            surcharges=surcharges,
            warnings=list(warnings or []),
            season=ctx.seasonal_period,
        )
