import logging
import sys
from typing import Optional

from .config import settings


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# httpx logs every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore")


def _resolve_level(level: Optional[str]) -> int:
    if level:
        return getattr(logging, level.upper(), logging.INFO)
    if settings.DEBUG:
        return logging.DEBUG
    return getattr(logging, settings.LOG_LEVEL or "INFO", logging.INFO)


def setup_logging(level: Optional[str] = None) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger()
    resolved = _resolve_level(level)
    root.setLevel(resolved)

    # replace, so repeated app startups don't stack handlers
    root.handlers = [handler]

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))
