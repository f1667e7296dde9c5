# parcel_pricing/core/settings.py
from decimal import Decimal
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

PACKAGE_ROOT = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    # --- Pricing ---
    DEFAULT_CURRENCY: str = "PLN"
    TAX_RATE_PCT: Decimal = Decimal("23")

    # --- Batches ---
    MAX_BULK_REQUESTS: int = 100
    WORKER_POOL_SIZE: int = 0  # 0 = run sequentially
    BULK_DISCOUNT_THRESHOLD: int | None = None
    BULK_DISCOUNT_PCT: Decimal | None = None

    # --- Rule book ---
    RULEBOOK_PATH: str = str(PACKAGE_ROOT / "rules" / "default_rulebook.yaml")
    RULEBOOK_SCHEMA_PATH: str = str(PACKAGE_ROOT / "schemas" / "rulebook.schema.json")

    # --- Logging ---
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()  # reads .env
