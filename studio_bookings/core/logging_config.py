# studio_bookings/core/logging_config.py
import logging

from studio_bookings.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure the root logger once at application start."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format=LOG_FORMAT,
    )
    # Stripe's client logs every request at INFO
    logging.getLogger("stripe").setLevel(logging.WARNING)
