"""
Unified logging system
Console output always; rotating log files when logging.logs_dir is configured
"""

import logging
import logging.handlers
from pathlib import Path
from typing import Optional

from routine_backend.config.loader import get_config

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
)


class LoggerManager:
    """Log manager"""

    def __init__(self):
        self._loggers: dict = {}
        self._setup_root_logger()

    def _setup_root_logger(self):
        """Setup root logger from the [logging] section"""
        config = get_config()

        log_level = config.get("logging.level", "INFO")
        logs_dir = config.get("logging.logs_dir", "")

        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, str(log_level).upper(), logging.INFO))
        root_logger.handlers.clear()

        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        root_logger.addHandler(console_handler)

        if logs_dir:
            self._add_file_handlers(
                root_logger,
                Path(logs_dir),
                max_bytes=_parse_size(config.get("logging.max_file_size", "10MB")),
                backup_count=int(config.get("logging.backup_count", 5)),
            )

    def _add_file_handlers(
        self, root_logger: logging.Logger, logs_dir: Path, max_bytes: int, backup_count: int
    ) -> None:
        """Full debug log plus an error-only log, both rotating"""
        logs_dir.mkdir(parents=True, exist_ok=True)
        file_format = logging.Formatter(FILE_FORMAT)

        for file_name, level in (
            ("routine_backend.log", logging.DEBUG),
            ("error.log", logging.ERROR),
        ):
            handler = logging.handlers.RotatingFileHandler(
                logs_dir / file_name,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
            handler.setLevel(level)
            handler.setFormatter(file_format)
            root_logger.addHandler(handler)

    def get_logger(self, name: str) -> logging.Logger:
        """Get logger with specified name"""
        return self._loggers.setdefault(name, logging.getLogger(name))


_SIZE_UNITS = {"KB": 1024, "MB": 1024 ** 2, "GB": 1024 ** 3}


def _parse_size(size) -> int:
    """Parse '10MB' style sizes; plain numbers are bytes"""
    size_str = str(size).strip().upper()
    unit = size_str[-2:]
    if unit in _SIZE_UNITS:
        return int(size_str[:-2]) * _SIZE_UNITS[unit]
    return int(size_str)


# Created on first get_logger() so config is loaded before handlers are attached
_logger_manager: Optional[LoggerManager] = None


def get_logger(name: str) -> logging.Logger:
    """Convenience function to get logger"""
    global _logger_manager

    if _logger_manager is None:
        _logger_manager = LoggerManager()

    return _logger_manager.get_logger(name)


def setup_logging() -> None:
    """Rebuild handlers from the current configuration

    Called after a different config file has been loaded.
    """
    global _logger_manager

    if _logger_manager is None:
        _logger_manager = LoggerManager()
    else:
        _logger_manager._setup_root_logger()
