from __future__ import annotations

import logging


def configure_app_logging(level: str = "INFO") -> None:
    """
    Minimal logging configuration for the portal.

    Notes:
    - Plain stdlib logging; uvicorn already installs handlers.
    - This only sets the level for `review_portal.*` loggers.
    - Set `APP_LOG_LEVEL=DEBUG` (or INFO/WARNING/ERROR) to control verbosity.
    """

    normalized = level.upper()
    package_logger = logging.getLogger("review_portal")
    package_logger.setLevel(normalized)
    # Child loggers under review_portal.* inherit this level.
    package_logger.propagate = True
