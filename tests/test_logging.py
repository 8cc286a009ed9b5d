"""Tests for logging setup."""

import logging
import logging.handlers
import os
import tempfile
import yaml
from mempoolscope.config import Config
from mempoolscope.logging import get_logger, setup_logging


def _config(temp_dir, logging_section):
    path = os.path.join(temp_dir, "config.yaml")
    with open(path, "w") as f:
        yaml.dump({"api": {"network": "Mainnet"}, "logging": logging_section}, f)
    return Config(path)


def _with_root_handlers(test):
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        test(root)
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)


def test_setup_logging_uses_configured_file_names():
    with tempfile.TemporaryDirectory() as temp_dir:
        log_dir = os.path.join(temp_dir, "logs")
        config = _config(temp_dir, {
            "log_dir": log_dir,
            "file": "scope.log",
            "error_file": "scope-errors.log",
            "level": "DEBUG",
            "console_level": "WARNING",
            "rotation": {"when": "size", "max_bytes": 1024, "backup_count": 2},
        })

        def check(root):
            setup_logging(config)
            assert root.level == logging.DEBUG
            assert len(root.handlers) == 3

            logger = get_logger("mempoolscope.test")
            logger.info("routine message")
            logger.error("broken message")
            for handler in root.handlers:
                handler.flush()

            with open(os.path.join(log_dir, "scope.log"), encoding="utf-8") as f:
                main_log = f.read()
            with open(os.path.join(log_dir, "scope-errors.log"), encoding="utf-8") as f:
                error_log = f.read()
            assert "routine message" in main_log
            assert "broken message" in main_log
            assert "[mempoolscope.test]" in main_log
            assert "broken message" in error_log
            assert "routine message" not in error_log

            main_handler = root.handlers[0]
            assert isinstance(main_handler, logging.handlers.RotatingFileHandler)
            assert main_handler.maxBytes == 1024
            assert not os.path.exists(os.path.join(log_dir, "archive"))

        _with_root_handlers(check)


def test_setup_logging_midnight_rotation_archives():
    with tempfile.TemporaryDirectory() as temp_dir:
        log_dir = os.path.join(temp_dir, "logs")
        config = _config(temp_dir, {"log_dir": log_dir, "rotation": {"when": "midnight"}})

        def check(root):
            setup_logging(config)
            main_handler = root.handlers[0]
            assert isinstance(main_handler, logging.handlers.TimedRotatingFileHandler)
            assert main_handler.baseFilename == os.path.abspath(os.path.join(log_dir, "mempoolscope.log"))
            assert main_handler.namer("mempoolscope.log.2026-01-01") == os.path.join(
                log_dir, "archive", "mempoolscope.log.2026-01-01"
            )
            assert os.path.exists(os.path.join(log_dir, "mempoolscope-error.log"))
            assert logging.getLogger("urllib3").level == logging.WARNING

        _with_root_handlers(check)


def test_setup_logging_replaces_previous_handlers():
    with tempfile.TemporaryDirectory() as temp_dir:
        config = _config(temp_dir, {"log_dir": os.path.join(temp_dir, "logs")})

        def check(root):
            setup_logging(config)
            setup_logging(config)
            assert len(root.handlers) == 3

        _with_root_handlers(check)
