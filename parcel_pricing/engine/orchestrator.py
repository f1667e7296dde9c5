from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, TypeVar, Union

from parcel_pricing.calculators.discounts import percent_of
from parcel_pricing.calculators.tax import TaxBreakdown, calc_tax
from parcel_pricing.core.errors import CalculationError, ConfigurationError, PricingError, ValidationError
from parcel_pricing.core.logging_config import logger
from parcel_pricing.core.settings import settings
from parcel_pricing.explain.breakdown_builder import Breakdown
from parcel_pricing.rates.rate_calculator import BaseRate, CarrierProfile, RateCalculator
from parcel_pricing.rates.services import ServiceCharge, price_services
from parcel_pricing.validators.common import ValidationResult
from parcel_pricing.validators.request import RequestValidator
from parcel_pricing.validators.rule_validator import RuleValidator
from parcel_pricing.zones.geo import delivery_time
from parcel_pricing.zones.resolver import ZoneResolution, ZoneResolver

from .collaborators import CustomerHistoryLookup
from .context import ZERO, Dimensions, RuleResult, WeightDetail, qmoney, qweight, to_decimal
from .context_factory import ContextFactory
from .discount_engine import DiscountEngine
from .request import ShipmentRequest
from .rulebook import BulkDiscountConfig, RuleBook, RuleBookLoader

D = Decimal
T = TypeVar("T")
R = TypeVar("R")


# -----------------------------
# Results
# -----------------------------


@dataclass(frozen=True)
class PriceQuote:
    carrier_code: str
    carrier_name: str
    zone_code: str
    service_type: str
    currency: str
    base_price: D
    discounts: RuleResult
    services: List[ServiceCharge]
    services_total: D
    subtotal: D
    tax: TaxBreakdown
    total: D
    weight: WeightDetail
    rate_breakdown: List[Dict[str, Any]] = field(default_factory=list)
    steps: List[str] = field(default_factory=list)
    delivery_estimate: Optional[Dict[str, Any]] = None
    zone: Optional[ZoneResolution] = None
    warnings: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def errors(self) -> List[Dict[str, Any]]:
        return list(self.discounts.errors)

    def to_dict(self) -> Dict[str, Any]:
        rr = self.discounts
        return {
            "carrier_code": self.carrier_code,
            "carrier_name": self.carrier_name,
            "zone_code": self.zone_code,
            "service_type": self.service_type,
            "currency": self.currency,
            "base_price": str(self.base_price),
            "original_price": str(rr.original_price),
            "final_price": str(rr.final_price),
            "total_discount": str(rr.total_discount),
            "applied_rules": list(rr.applied_rules),
            "applied_promotions": list(rr.applied_promotions),
            "discount_breakdown": [d.to_dict() for d in rr.discount_breakdown],
            "surcharges": [s.to_dict() for s in rr.surcharges],
            "services": [s.to_dict() for s in self.services],
            "services_total": str(self.services_total),
            "subtotal": str(self.subtotal),
            "tax_rate_pct": str(self.tax.rate_pct),
            "tax_amount": str(self.tax.tax_amount),
            "total": str(self.total),
            "weight": self.weight.to_dict(),
            "breakdown": list(self.rate_breakdown),
            "steps": list(self.steps),
            "delivery_estimate": self.delivery_estimate,
            "zone": self.zone.to_dict() if self.zone else None,
            "season": rr.season,
            "errors": self.errors,
            "warnings": list(self.warnings) + list(rr.warnings),
        }


@dataclass(frozen=True)
class CarrierUnavailable:
    carrier_code: str
    reason: str
    error: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {"carrier_code": self.carrier_code, "reason": self.reason, "error": dict(self.error)}


@dataclass(frozen=True)
class ComparisonResult:
    quotes: List[PriceQuote]
    unavailable: List[CarrierUnavailable]
    currency: str

    @property
    def cheapest(self) -> PriceQuote:
        return self.quotes[0]

    @property
    def most_expensive(self) -> PriceQuote:
        return self.quotes[-1]

    @property
    def average_price(self) -> D:
        return qmoney(sum((q.total for q in self.quotes), ZERO) / D(len(self.quotes)))

    @property
    def savings_amount(self) -> D:
        return qmoney(self.most_expensive.total - self.cheapest.total)

    @property
    def savings_pct(self) -> D:
        top = self.most_expensive.total
        if top <= ZERO:
            return ZERO
        return qmoney(self.savings_amount * D("100") / top)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currency": self.currency,
            "quotes": [q.to_dict() for q in self.quotes],
            "unavailable": [u.to_dict() for u in self.unavailable],
            "cheapest": self.cheapest.carrier_code,
            "most_expensive": self.most_expensive.carrier_code,
            "average_price": str(self.average_price),
            "savings_potential": {"amount": str(self.savings_amount), "percentage": str(self.savings_pct)},
        }


@dataclass(frozen=True)
class BulkItemResult:
    index: int
    quote: Optional[PriceQuote] = None
    error: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.quote is not None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"index": self.index, "ok": self.ok}
        if self.quote is not None:
            out["quote"] = self.quote.to_dict()
        if self.error is not None:
            out["error"] = dict(self.error)
        return out


@dataclass(frozen=True)
class BulkResult:
    items: List[BulkItemResult]
    requested: int
    currency: str
    summary: Dict[str, Any]
    bulk_discount: Optional[Dict[str, Any]] = None
    stopped_early: bool = False

    @property
    def successful(self) -> List[PriceQuote]:
        return [i.quote for i in self.items if i.quote is not None]

    @property
    def failed(self) -> List[BulkItemResult]:
        return [i for i in self.items if not i.ok]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currency": self.currency,
            "requested": self.requested,
            "items": [i.to_dict() for i in self.items],
            "summary": dict(self.summary),
            "bulk_discount": self.bulk_discount,
            "stopped_early": self.stopped_early,
        }


# -----------------------------
# Orchestrator
# -----------------------------


RuleBookSource = Union[RuleBook, RuleBookLoader]


class PricingOrchestrator:
    """
    Request -> zone -> carrier capability -> base rate -> services ->
    discounts -> tax.

    Comparison and bulk calls run one isolated single-shipment pipeline
    per carrier/item; a failure in one never affects the others.
    """

    def __init__(
        self,
        rulebook: RuleBookSource,
        *,
        customers: Optional[CustomerHistoryLookup] = None,
        zone_resolver: Optional[ZoneResolver] = None,
        engine: Optional[DiscountEngine] = None,
        tax_rate_pct: Optional[D] = None,
        max_bulk_requests: Optional[int] = None,
        workers: Optional[int] = None,
        today: Callable[[], date] = date.today,
    ):
        self._source = rulebook
        self.factory = ContextFactory(customers, currency=self.rulebook.currency, today=today)
        self.zone_resolver = zone_resolver or ZoneResolver(zones=self.rulebook.pricing_zones())
        self.engine = engine or DiscountEngine()
        self.tax_rate_pct = tax_rate_pct if tax_rate_pct is not None else settings.TAX_RATE_PCT
        self.max_bulk_requests = max_bulk_requests or settings.MAX_BULK_REQUESTS
        self.workers = settings.WORKER_POOL_SIZE if workers is None else workers

    @property
    def rulebook(self) -> RuleBook:
        if isinstance(self._source, RuleBookLoader):
            return self._source.rulebook
        return self._source

    def check_rulebook(self) -> ValidationResult:
        rb = self.rulebook
        return RuleValidator().validate(rb.weight_rules, rb.discount_rules)

    # --- single shipment ---

    def resolve_zone(self, req: ShipmentRequest) -> ZoneResolution:
        if req.zone_code:
            return ZoneResolution(str(req.zone_code).strip().lower(), "request", req.country_code, req.postal_code)
        return self.zone_resolver.resolve(
            postal_code=req.postal_code, country_code=req.country_code, lat=req.lat, lng=req.lng
        )

    def calculate(self, req: ShipmentRequest) -> PriceQuote:
        rb = self.rulebook
        RequestValidator(known_carriers=[c.code for c in rb.carriers]).validate_or_raise(req)

        carrier = rb.carrier(str(req.carrier_code))
        if carrier is None:
            raise ConfigurationError(f"Carrier not configured: {req.carrier_code}", carrier=req.carrier_code)
        zone = self.resolve_zone(req)

        try:
            return self._price(rb, carrier, zone, req)
        except PricingError:
            raise
        except (ArithmeticError, LookupError) as e:
            logger.bind(carrier=carrier.code, zone=zone.zone_code, error=repr(e)).error("calculation_failed")
            raise CalculationError(
                f"Calculation failed: {e!r}", carrier=carrier.code, zone=zone.zone_code
            ) from e

    def _price(self, rb: RuleBook, carrier: CarrierProfile, zone: ZoneResolution, req: ShipmentRequest) -> PriceQuote:
        steps = Breakdown()
        zone_code = zone.zone_code
        service_type = str(req.service_type).strip().lower()
        dims = Dimensions.of(req.length_cm, req.width_cm, req.height_cm)
        weight_kg = qweight(req.weight_kg)

        steps.add_step("ZONE", f"Zone {zone_code} ({zone.source})")
        for w in zone.warnings:
            steps.add_warning(str(w["code"]), str(w["message"]))

        carrier.check_capacity(zone_code, weight_kg, dims)
        steps.add_check("CARRIER_CAPACITY", f"{carrier.code} can carry {weight_kg} kg to {zone_code}")

        rate: BaseRate = RateCalculator(rb).calculate(carrier, zone_code, service_type, weight_kg, dims)
        steps.add_step("BASE_RATE", f"Base rate {rate.price} {rb.currency} ({rate.method}, rule {rate.rule_id})")
        if rate.weight.volumetric_applied:
            steps.add_meta(
                "VOLUMETRIC_WEIGHT",
                f"Volumetric weight {rate.weight.volumetric} kg used instead of {rate.weight.actual} kg",
            )

        services = price_services(
            req.additional_services,
            rb.services(),
            zone_code=zone_code,
            chargeable_weight=rate.weight.chargeable,
            declared_value=to_decimal(req.declared_value),
            carrier_code=carrier.code,
        )
        services_total = qmoney(sum((s.amount for s in services), ZERO))
        for s in services:
            steps.add_step("SERVICE", f"{s.name}: +{s.amount}")

        ctx = self.factory.create_for_customer(
            req.customer_id,
            weight_kg=weight_kg,
            length_cm=req.length_cm,
            width_cm=req.width_cm,
            height_cm=req.height_cm,
            service_type=service_type,
            zone_code=zone_code,
            base_price=qmoney(rate.price + services_total),
            carrier_code=carrier.code,
            calculation_date=req.calculation_date,
            currency=req.currency,
            promo_codes=req.promo_codes,
            quantity=req.quantity,
            volumetric_divisor=carrier.divisor,
        )

        discounts = self.engine.calculate(
            ctx, rb.discount_rules_for(ctx), rb.weight_rules_for(carrier.code, zone_code, service_type)
        )
        if not discounts.ok:
            steps.add_check("RULE_SET", "Rule set invalid; no discounts applied", status="FAIL")
        for s in discounts.surcharges:
            steps.add_step("SURCHARGE", f"{s.source}: +{s.amount}")
        for d in discounts.discount_breakdown:
            steps.add_step("DISCOUNT", f"{d.source}: -{d.amount}")

        subtotal = discounts.final_price
        tax = calc_tax(subtotal, self.tax_rate_pct)
        steps.add_step("TAX", f"Tax {tax.rate_pct}%: +{tax.tax_amount}")
        steps.add_step("TOTAL", f"Total {tax.total} {ctx.currency}")

        logger.bind(
            carrier=carrier.code,
            zone=zone_code,
            service_type=service_type,
            chargeable_weight=str(rate.weight.chargeable),
            base_price=str(rate.price),
            final_price=str(discounts.final_price),
            total=str(tax.total),
            applied_rules=discounts.applied_rules,
        ).info("shipment_priced")

        return PriceQuote(
            carrier_code=carrier.code,
            carrier_name=carrier.name,
            zone_code=zone_code,
            service_type=service_type,
            currency=ctx.currency,
            base_price=rate.price,
            discounts=discounts,
            services=services,
            services_total=services_total,
            subtotal=subtotal,
            tax=tax,
            total=tax.total,
            weight=rate.weight,
            rate_breakdown=rate.breakdown,
            steps=steps.as_strings(),
            delivery_estimate=delivery_time(zone_code, carrier.code),
            zone=zone,
            warnings=list(zone.warnings),
        )

    # --- comparison ---

    def eligible_carriers(
        self,
        *,
        include: Optional[Iterable[str]] = None,
        exclude: Optional[Iterable[str]] = None,
        include_inactive: bool = False,
    ) -> List[CarrierProfile]:
        inc = {c.upper() for c in include} if include else None
        exc = {c.upper() for c in exclude or ()}
        out = []
        for c in self.rulebook.carrier_profiles():
            if inc is not None and c.code not in inc:
                continue
            if c.code in exc:
                continue
            if not c.active and not include_inactive:
                continue
            out.append(c)
        return out

    def compare(
        self,
        req: ShipmentRequest,
        *,
        include: Optional[Iterable[str]] = None,
        exclude: Optional[Iterable[str]] = None,
        include_inactive: bool = False,
    ) -> ComparisonResult:
        RequestValidator().validate_or_raise(req, require_carrier=False)
        carriers = self.eligible_carriers(include=include, exclude=exclude, include_inactive=include_inactive)

        def one(carrier: CarrierProfile) -> Union[PriceQuote, CarrierUnavailable]:
            try:
                return self.calculate(req.for_carrier(carrier.code))
            except PricingError as e:
                logger.bind(carrier=carrier.code, code=e.code, reason=e.message).warning("carrier_unavailable")
                return CarrierUnavailable(carrier_code=carrier.code, reason=e.message, error=e.to_dict())

        results = self._map(one, carriers)
        quotes = sorted((r for r in results if isinstance(r, PriceQuote)), key=lambda q: (q.total, q.carrier_code))
        unavailable = [r for r in results if isinstance(r, CarrierUnavailable)]

        if not quotes:
            raise CalculationError(
                "No carrier could price this shipment",
                carriers=[c.code for c in carriers],
                unavailable=[u.to_dict() for u in unavailable],
            )
        return ComparisonResult(quotes=quotes, unavailable=unavailable, currency=quotes[0].currency)

    # --- bulk ---

    def bulk(
        self,
        requests: Sequence[ShipmentRequest],
        *,
        stop_on_first_error: bool = False,
        bulk_discount: Optional[BulkDiscountConfig] = None,
    ) -> BulkResult:
        if not requests:
            raise ValidationError("Bulk request has no items", violations=[{"field": "items", "code": "EMPTY"}])
        if len(requests) > self.max_bulk_requests:
            raise ValidationError(
                f"Bulk request exceeds {self.max_bulk_requests} items",
                violations=[{"field": "items", "code": "TOO_MANY_ITEMS", "message": f"{len(requests)} items"}],
            )

        started = time.perf_counter()

        def one(pair) -> BulkItemResult:
            index, req = pair
            try:
                return BulkItemResult(index=index, quote=self.calculate(req))
            except PricingError as e:
                logger.bind(index=index, carrier=req.carrier_code, code=e.code, reason=e.message).warning(
                    "bulk_item_failed"
                )
                return BulkItemResult(index=index, error=e.to_dict())

        pairs = list(enumerate(requests))
        stopped_early = False
        if stop_on_first_error:
            items: List[BulkItemResult] = []
            for pair in pairs:
                item = one(pair)
                items.append(item)
                if not item.ok:
                    stopped_early = item.index < len(pairs) - 1
                    break
        else:
            items = self._map(one, pairs)

        quotes = [i.quote for i in items if i.quote is not None]
        if not quotes:
            raise CalculationError(
                "No bulk item could be priced",
                errors=[i.error for i in items if i.error is not None],
            )

        currency = quotes[0].currency
        summary = self._summary(items, len(requests), quotes)
        summary["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)

        discount = self._bulk_discount(quotes, len(requests), bulk_discount)
        logger.bind(
            requested=len(requests),
            successful=len(quotes),
            failed=len(items) - len(quotes),
            total=summary["total_amount"],
        ).info("bulk_priced")

        return BulkResult(
            items=items,
            requested=len(requests),
            currency=currency,
            summary=summary,
            bulk_discount=discount,
            stopped_early=stopped_early,
        )

    @staticmethod
    def _summary(items: List[BulkItemResult], requested: int, quotes: List[PriceQuote]) -> Dict[str, Any]:
        total = qmoney(sum((q.total for q in quotes), ZERO))
        by_carrier: Dict[str, Dict[str, Any]] = {}
        by_zone: Dict[str, Dict[str, Any]] = {}
        for q in quotes:
            for key, group in ((q.carrier_code, by_carrier), (q.zone_code, by_zone)):
                row = group.setdefault(key, {"count": 0, "total": ZERO})
                row["count"] += 1
                row["total"] = qmoney(row["total"] + q.total)

        def render(group: Dict[str, Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
            return {k: {"count": v["count"], "total": str(v["total"])} for k, v in sorted(group.items())}

        return {
            "total_items": requested,
            "processed": len(items),
            "successful": len(quotes),
            "failed": len(items) - len(quotes),
            "success_rate": str(qmoney(D(len(quotes)) * D("100") / D(requested))),
            "total_amount": str(total),
            "average_amount": str(qmoney(total / D(len(quotes)))),
            "by_carrier": render(by_carrier),
            "by_zone": render(by_zone),
        }

    def _bulk_discount(
        self, quotes: List[PriceQuote], requested: int, override: Optional[BulkDiscountConfig]
    ) -> Optional[Dict[str, Any]]:
        config = override or self.rulebook.bulk_discount
        if config is None and settings.BULK_DISCOUNT_THRESHOLD is not None and settings.BULK_DISCOUNT_PCT is not None:
            config = BulkDiscountConfig(settings.BULK_DISCOUNT_THRESHOLD, settings.BULK_DISCOUNT_PCT)
        if config is None:
            return None

        total = qmoney(sum((q.total for q in quotes), ZERO))
        if not config.qualifies(requested):
            return {
                "applied": False,
                "threshold": config.threshold,
                "percentage": str(config.percentage),
                "amount": str(ZERO),
                "total_after_discount": str(total),
            }

        amount = percent_of(total, config.percentage)
        return {
            "applied": True,
            "threshold": config.threshold,
            "percentage": str(config.percentage),
            "amount": str(amount),
            "total_after_discount": str(qmoney(total - amount)),
        }

    # --- fan-out ---

    def _map(self, fn: Callable[[T], R], items: Sequence[T]) -> List[R]:
        """Results come back in input order, pooled or not."""
        if self.workers and self.workers > 1 and len(items) > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as ex:
                return list(ex.map(fn, items))
        return [fn(x) for x in items]
