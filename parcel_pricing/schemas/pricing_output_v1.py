# parcel_pricing/schemas/pricing_output_v1.py
from __future__ import annotations

from typing import Any, Dict, Literal

from pydantic import BaseModel, ConfigDict


class PricingOutputV1(BaseModel):
    """
    Strict top level; the engine output goes along as `payload`
    with every amount already rendered as a 2-decimal string.
    """

    model_config = ConfigDict(extra="forbid")

    version: Literal["v1"] = "v1"
    calculation_id: str
    engine_version: str
    rulebook_version: str
    status: Literal["ok", "warning", "error"]
    payload: Dict[str, Any]
