from __future__ import annotations

import time
from functools import lru_cache
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, Request

from parcel_pricing import __version__
from parcel_pricing.core.errors import (
    CalculationError,
    CapacityError,
    ConfigurationError,
    PricingError,
    ValidationError,
)
from parcel_pricing.core.logging_config import logger
from parcel_pricing.core.settings import settings
from parcel_pricing.engine.collaborators import StaticCustomerHistory
from parcel_pricing.engine.orchestrator import PricingOrchestrator
from parcel_pricing.engine.rulebook import BulkDiscountConfig, RuleBookLoader
from parcel_pricing.schemas.pricing_input_v1 import BulkInputV1, CompareInputV1, ShipmentInputV1
from parcel_pricing.schemas.pricing_output_v1 import PricingOutputV1
from parcel_pricing.zones.geo import delivery_time
from parcel_pricing.zones.models import zone_priority

router = APIRouter(prefix="/api/pricing", tags=["pricing"])

# PricingError subclass -> HTTP status
STATUS_BY_ERROR = (
    (ValidationError, 422),
    (CapacityError, 409),
    (ConfigurationError, 500),
    (CalculationError, 500),
)


@lru_cache(maxsize=1)
def get_orchestrator() -> PricingOrchestrator:
    loader = RuleBookLoader(settings.RULEBOOK_PATH, settings.RULEBOOK_SCHEMA_PATH)
    return PricingOrchestrator(loader, customers=StaticCustomerHistory())


# ----------------------------
# Helpers
# ----------------------------


def http_error(e: PricingError) -> HTTPException:
    for cls, status in STATUS_BY_ERROR:
        if isinstance(e, cls):
            return HTTPException(status_code=status, detail=e.to_dict())
    return HTTPException(status_code=500, detail=e.to_dict())


def classify(payload: Dict[str, Any]) -> str:
    if payload.get("errors"):
        return "error"
    if payload.get("warnings"):
        return "warning"
    return "ok"


def _output(orchestrator: PricingOrchestrator, payload: Dict[str, Any], status: Optional[str] = None) -> PricingOutputV1:
    return PricingOutputV1(
        calculation_id=uuid4().hex,
        engine_version=__version__,
        rulebook_version=orchestrator.rulebook.version,
        status=status or classify(payload),
        payload=payload,
    )


def _log_obs(*, request: Request, endpoint: str, duration_ms: float, result: str, status_code: int, **extra: Any) -> None:
    request_id = request.headers.get("X-Request-ID", "unknown")
    logger.bind(
        request_id=request_id,
        endpoint=endpoint,
        duration_ms=duration_ms,
        result=result,
        status_code=status_code,
        **extra,
    ).info("pricing_request")


def _ms(t0: float) -> float:
    return round((time.time() - t0) * 1000, 2)


# ----------------------------
# 1) Calculate
# ----------------------------
@router.post("/calculate", response_model=PricingOutputV1)
def calculate_price(
    payload: ShipmentInputV1,
    request: Request,
    orchestrator: PricingOrchestrator = Depends(get_orchestrator),
) -> PricingOutputV1:
    t0 = time.time()
    endpoint = "/api/pricing/calculate"
    try:
        quote = orchestrator.calculate(payload.to_request())
    except PricingError as e:
        err = http_error(e)
        _log_obs(request=request, endpoint=endpoint, duration_ms=_ms(t0), result=e.code, status_code=err.status_code)
        raise err from e

    out = _output(orchestrator, quote.to_dict())
    _log_obs(
        request=request,
        endpoint=endpoint,
        duration_ms=_ms(t0),
        result=out.status,
        status_code=200,
        carrier=quote.carrier_code,
        zone=quote.zone_code,
    )
    return out


# ----------------------------
# 2) Compare carriers
# ----------------------------
@router.post("/compare", response_model=PricingOutputV1)
def compare_carriers(
    payload: CompareInputV1,
    request: Request,
    orchestrator: PricingOrchestrator = Depends(get_orchestrator),
) -> PricingOutputV1:
    t0 = time.time()
    endpoint = "/api/pricing/compare"
    try:
        result = orchestrator.compare(
            payload.shipment.to_request(),
            include=payload.include_carriers,
            exclude=payload.exclude_carriers,
            include_inactive=payload.include_inactive_carriers,
        )
    except PricingError as e:
        err = http_error(e)
        _log_obs(request=request, endpoint=endpoint, duration_ms=_ms(t0), result=e.code, status_code=err.status_code)
        raise err from e

    body = result.to_dict()
    status = "warning" if result.unavailable else "ok"
    _log_obs(
        request=request,
        endpoint=endpoint,
        duration_ms=_ms(t0),
        result=status,
        status_code=200,
        carriers=len(result.quotes),
        unavailable=len(result.unavailable),
    )
    return _output(orchestrator, body, status)


# ----------------------------
# 3) Bulk
# ----------------------------
@router.post("/bulk", response_model=PricingOutputV1)
def bulk_prices(
    payload: BulkInputV1,
    request: Request,
    orchestrator: PricingOrchestrator = Depends(get_orchestrator),
) -> PricingOutputV1:
    t0 = time.time()
    endpoint = "/api/pricing/bulk"
    bulk_discount = None
    if payload.bulk_discount is not None:
        bulk_discount = BulkDiscountConfig(payload.bulk_discount.threshold, payload.bulk_discount.percentage)

    try:
        result = orchestrator.bulk(
            [item.to_request() for item in payload.items],
            stop_on_first_error=payload.stop_on_first_error,
            bulk_discount=bulk_discount,
        )
    except PricingError as e:
        err = http_error(e)
        _log_obs(request=request, endpoint=endpoint, duration_ms=_ms(t0), result=e.code, status_code=err.status_code)
        raise err from e

    status = "warning" if result.failed or result.stopped_early else "ok"
    _log_obs(
        request=request,
        endpoint=endpoint,
        duration_ms=_ms(t0),
        result=status,
        status_code=200,
        items=result.requested,
        failed=len(result.failed),
    )
    return _output(orchestrator, result.to_dict(), status)


# ----------------------------
# 4) Zone lookup
# ----------------------------
@router.get("/zones/resolve")
def resolve_zone(
    postal_code: Optional[str] = None,
    country_code: Optional[str] = None,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    carrier_code: Optional[str] = None,
    orchestrator: PricingOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    resolution = orchestrator.zone_resolver.resolve(
        postal_code=postal_code, country_code=country_code, lat=lat, lng=lng
    )
    out = resolution.to_dict()
    out["priority"] = zone_priority(resolution.zone_code)
    if carrier_code:
        out["delivery_estimate"] = delivery_time(resolution.zone_code, carrier_code)
    return out
