import logging
from typing import Optional

from .config import settings


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for CLI runs.

    Library modules only ever call `logging.getLogger(__name__)`; this is called
    once by entry points. Existing handlers are left alone so embedding apps keep
    their own setup.
    """
    if logging.getLogger().handlers:
        return
    fmt = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    logging.basicConfig(level=(level or settings.LOG_LEVEL).upper(), format=fmt)


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)
