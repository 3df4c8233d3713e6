"""
Logging setup shared by the whole application
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

from ..config import settings

_configured = False


def setup_logging(force: bool = False) -> None:
    """Configure the root logger from settings (console and/or rotating file)"""
    global _configured
    if _configured and not force:
        return

    root = logging.getLogger()
    root.setLevel(settings.log_level.upper())
    for handler in list(root.handlers):
        root.removeHandler(handler)

    formatter = logging.Formatter(settings.log_format)

    if settings.log_to_console:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(formatter)
        root.addHandler(console)

    if settings.log_to_file:
        log_dir = os.path.dirname(settings.log_file_path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            settings.log_file_path,
            maxBytes=settings.log_max_size_mb * 1024 * 1024,
            backupCount=settings.log_backup_count,
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # SQL echo is handled by the engine in full verbosity, keep the rest quiet
    if settings.log_verbosity != "full":
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("botocore").setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
