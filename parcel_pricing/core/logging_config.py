# parcel_pricing/core/logging_config.py
import logging
import sys

import structlog

from parcel_pricing.core.settings import settings


def setup_logging() -> None:
    """
    Configure structlog + standard logging.
    Logs go as JSON to stdout.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


# Shared logger, import it everywhere
logger = structlog.get_logger("parcel_pricing")
