import logging
import os
from typing import Optional

LOGGER_NAME = "spotify_poster"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_logger = logging.getLogger(LOGGER_NAME)


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """Configure console (and optional file) logging for the whole application.

    Library modules log through ``logging.getLogger(__name__)``; the menus use the
    helper functions below. Both end up on the root handlers configured here.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, str(level or "INFO").upper(), logging.INFO))

    for handler in list(root.handlers):
        root.removeHandler(handler)

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(console)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(file_handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return _logger


def log_debug(message: str) -> None:
    _logger.debug(message)


def log_info(message: str) -> None:
    _logger.info(message)


def log_success(message: str) -> None:
    _logger.info(f"✅ {message}")


def log_warning(message: str) -> None:
    _logger.warning(f"⚠️ {message}")


def log_error(message: str) -> None:
    _logger.error(f"❌ {message}")
