from .weights import chargeable_weight, divisor_for, volumetric_weight  # noqa
from .weight_rules import WeightRule  # noqa
from .rate_calculator import BaseRate, CarrierProfile, RateCalculator  # noqa
from .services import AdditionalService, ServiceCharge, price_services  # noqa
