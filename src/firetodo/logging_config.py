from __future__ import annotations

import logging

from .settings import Settings

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


# PUBLIC_INTERFACE
def configure_logging(settings: Settings) -> None:
    """
    Configure root logging for the service.

    Uses LOG_LEVEL from settings; unknown level names fall back to INFO.
    Noisy third-party loggers are held at WARNING.
    """
    level = logging.getLevelName(settings.log_level)
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, format=_LOG_FORMAT)
    for name in ("google", "urllib3", "httpx"):
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
