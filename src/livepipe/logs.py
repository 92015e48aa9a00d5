"""Logging setup. The terminal is full-screen, so logs only ever go to a file."""

import logging
from pathlib import Path

from livepipe.config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s"


def setup_logging(settings: Settings) -> logging.Logger:
    """Configure the ``livepipe`` logger from settings and return it."""
    logger = logging.getLogger("livepipe")
    logger.setLevel(settings.log_level)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handler: logging.Handler
    if settings.log_file:
        path = Path(settings.log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
    else:
        handler = logging.NullHandler()
    logger.addHandler(handler)
    return logger
