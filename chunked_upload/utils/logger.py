"""
Logging for the upload service.

Handlers are attached once to the ``chunked_upload`` package logger; module
loggers obtained with ``get_logger(__name__)`` are its children and inherit
them. Everything goes to stdout and ``app.log``; errors are also kept in
``error.log``. Both files rotate by size.
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

from chunked_upload.config import settings
from chunked_upload.core.config import LoggingConfig

ROOT_LOGGER_NAME = "chunked_upload"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _rotating_handler(path: Path, config: LoggingConfig, level: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path,
        maxBytes=config.max_file_size,
        backupCount=config.backup_count,
        encoding="utf-8"
    )
    handler.setLevel(level)
    return handler


def build_handlers(config: LoggingConfig) -> List[logging.Handler]:
    """Console, ``app.log`` and ``error.log`` handlers for the given configuration."""
    log_dir = Path(config.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    level = getattr(logging, config.level.value)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)

    handlers: List[logging.Handler] = [
        console,
        _rotating_handler(log_dir / "app.log", config, level),
        _rotating_handler(log_dir / "error.log", config, logging.ERROR),
    ]
    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def configure_logging(config: Optional[LoggingConfig] = None) -> logging.Logger:
    """
    Attach handlers to the package logger. Later calls are no-ops.

    Args:
        config: Logging settings; defaults to the application settings

    Returns:
        The package logger
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if root.handlers:
        return root

    config = config or settings.get_logging_config()
    root.setLevel(getattr(logging, config.level.value))
    for handler in build_handlers(config):
        root.addHandler(handler)
    return root


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Logger under the package hierarchy.

    Module names inside ``chunked_upload`` are used as-is; any other name is
    nested below the package logger so it shares its handlers.
    """
    root = configure_logging()
    if not name or name == ROOT_LOGGER_NAME:
        return root
    if not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
