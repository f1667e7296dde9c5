# parcel_pricing/main.py
from fastapi import FastAPI

from parcel_pricing import __version__
from parcel_pricing.api.pricing import router as pricing_router
from parcel_pricing.core.logging_config import logger, setup_logging

app = FastAPI(title="Parcel Pricing", version=__version__)

setup_logging()
logger.info("startup", service="parcel-pricing-api")

app.include_router(pricing_router)


@app.get("/health", include_in_schema=True)
def health() -> dict:
    return {"status": "ok"}
