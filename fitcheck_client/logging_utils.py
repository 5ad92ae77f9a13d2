from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once for the client process.

    ``level`` falls back to ``FITCHECK_LOG_LEVEL`` and then ``INFO``. Calling
    this again only updates the level so repeated composition does not stack
    handlers.
    """
    resolved = (level or os.getenv("FITCHECK_LOG_LEVEL", "INFO")).strip().upper()
    numeric_level = logging.getLevelName(resolved)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=numeric_level, format=LOG_FORMAT)
    root.setLevel(numeric_level)

    # urllib3 logs every connection at DEBUG, including request lines
    logging.getLogger("urllib3").setLevel(max(numeric_level, logging.WARNING))
