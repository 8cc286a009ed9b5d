"""Logging setup: rotating main log, error-only log and console output."""

import logging
import logging.handlers
from pathlib import Path
from typing import Any, Dict
from .config import Config

FILE_FORMAT = '%(asctime)s [%(levelname)-8s] [%(name)s] %(message)s'
CONSOLE_FORMAT = '[%(levelname)-8s] [%(name)s] %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Third-party loggers that would otherwise echo every HTTP connection at DEBUG
QUIET_LOGGERS = ("urllib3",)


def _main_handler(path: Path, rotation: Dict[str, Any]) -> logging.Handler:
    if rotation.get("when") == "midnight":
        handler = logging.handlers.TimedRotatingFileHandler(
            path,
            when="midnight",
            backupCount=rotation["backup_count"],
            encoding="utf-8"
        )
        archive_dir = path.parent / "archive"
        archive_dir.mkdir(exist_ok=True)
        handler.namer = lambda name: str(archive_dir / Path(name).name)
        return handler
    return logging.handlers.RotatingFileHandler(
        path,
        maxBytes=rotation["max_bytes"],
        backupCount=rotation["backup_count"],
        encoding="utf-8"
    )


def setup_logging(config: Config) -> None:
    """
    Replace the root logger's handlers with the configured ones.

    Writes ``config.log_file`` (rotated at midnight into ``archive/`` or by
    size) and ``config.error_log_file`` (ERROR and above) under
    ``config.log_dir``, and echoes to the console at ``config.console_level``.

    Args:
        config: Configuration instance with logging settings
    """
    log_dir = Path(config.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    file_level = getattr(logging, config.log_level.upper(), logging.INFO)
    console_level = getattr(logging, config.console_level.upper(), logging.INFO)
    rotation = config.log_rotation

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()
    root_logger.setLevel(min(file_level, console_level))

    file_formatter = logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT)

    main_handler = _main_handler(log_dir / config.log_file, rotation)
    main_handler.setLevel(file_level)
    main_handler.setFormatter(file_formatter)
    root_logger.addHandler(main_handler)

    error_handler = logging.handlers.RotatingFileHandler(
        log_dir / config.error_log_file,
        maxBytes=rotation["max_bytes"],
        backupCount=rotation["backup_count"],
        encoding="utf-8"
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(file_formatter)
    root_logger.addHandler(error_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root_logger.addHandler(console_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(file_level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """Logger for a module; pass ``__name__``."""
    return logging.getLogger(name)
