# Ensure registration happens by importing modules
from .base import RuleOutcome, RuleSpec, Eligibility, rule_registry, rule_from_dict  # noqa
from . import (  # noqa
    oversize,
    contract,
    tiered,
    promotion,
    seasonal,
    volume,
    progressive,
)
from .oversize import DEFAULT_OVERSIZE, OversizeSurcharge  # noqa
from .contract import ContractDiscount  # noqa
from .tiered import TieredDiscount  # noqa
from .promotion import Promotion  # noqa
from .seasonal import SeasonalDiscount  # noqa
from .volume import VolumeDiscount  # noqa
from .progressive import ProgressiveDiscount  # noqa
