"""
Logging setup for the storefront checkout service.

Call setup_logging() once when the app starts (main.py does). The level comes
from the argument, else LOG_LEVEL, else INFO; an unknown name means INFO.

Outside DEBUG, the HTTP client used for the payment service and the SQL
engine are held at WARNING so request logs stay readable. Customer contact
details are only ever logged at DEBUG.
"""
import logging
import os
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Libraries whose INFO output is connection or statement level noise
NOISY_LOGGERS = ("urllib3", "sqlalchemy.engine")


def resolve_level(level: Optional[str] = None) -> int:
    """Numeric level for a level name, falling back to LOG_LEVEL and INFO."""
    name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    numeric = logging.getLevelName(name)
    return numeric if isinstance(numeric, int) else logging.INFO


def setup_logging(level: Optional[str] = None) -> None:
    numeric_level = resolve_level(level)

    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        stream=sys.stdout,
    )
    logging.getLogger("storefront_checkout").setLevel(numeric_level)

    library_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    logging.getLogger(__name__).debug(
        "Logging configured at %s", logging.getLevelName(numeric_level)
    )
