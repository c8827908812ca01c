from .logger import setup_logging, get_logger, client_logger, api_logger
from .utcnow import utcnow, utc_isoformat

__all__ = [
    # Logger
    "setup_logging",
    "get_logger",
    "client_logger",
    "api_logger",

    # Time
    "utcnow",
    "utc_isoformat",
]
