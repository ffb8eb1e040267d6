"""Centralized logging configuration."""
import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Libraries that are excessively noisy at INFO level
QUIET_LOGGERS = [
    "httpx",
    "httpcore",
    "openai",
    "anthropic",
    "urllib3",
]


def setup_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
