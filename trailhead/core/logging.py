"""Logging setup."""

import logging

from trailhead.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Apply the configured log level to the root logger."""
    logging.basicConfig(level=(level or settings.log_level).upper(), format=LOG_FORMAT)
    # SQL echo is noisy outside debug
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.debug and settings.db_echo else logging.WARNING
    )
