from .models import PricingZone, ZoneType, zone_priority  # noqa
from .resolver import ZoneResolver, ZoneResolution  # noqa
