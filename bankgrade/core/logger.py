"""Logging setup for Bank Grade Security."""

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional


class JSONFormatter(logging.Formatter):
    """JSON formatter for the rotating scan log."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Structured context such as target, metric or hop
        if hasattr(record, "extra_data"):
            log_data["data"] = record.extra_data

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Text formatter with colors for console output."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as (optionally colored) text."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        level = record.levelname

        if self.use_colors:
            color = self.COLORS.get(level, "")
            level_str = f"{color}{level:8}{self.RESET}"
        else:
            level_str = f"{level:8}"

        message = f"{timestamp} | {level_str} | {record.name} | {record.getMessage()}"

        extra = getattr(record, "extra_data", None)
        if extra:
            pairs = " ".join(f"{k}={v}" for k, v in extra.items())
            message += f" [{pairs}]"

        if record.exc_info:
            message += f"\n{self.formatException(record.exc_info)}"

        return message


class ScanLogger(logging.Logger):
    """Logger that can attach structured data to a record."""

    def _log_with_data(
        self,
        level: int,
        msg: str,
        data: Optional[Dict[str, Any]] = None,
        *args,
        **kwargs
    ) -> None:
        if data:
            kwargs.setdefault("extra", {})["extra_data"] = data
        self.log(level, msg, *args, **kwargs)

    def info_with_data(self, msg: str, data: Optional[Dict[str, Any]] = None, **kwargs) -> None:
        self._log_with_data(logging.INFO, msg, data, **kwargs)

    def debug_with_data(self, msg: str, data: Optional[Dict[str, Any]] = None, **kwargs) -> None:
        self._log_with_data(logging.DEBUG, msg, data, **kwargs)

    def error_with_data(self, msg: str, data: Optional[Dict[str, Any]] = None, **kwargs) -> None:
        self._log_with_data(logging.ERROR, msg, data, **kwargs)


logging.setLoggerClass(ScanLogger)

ROOT_LOGGER = "bankgrade"

_loggers: Dict[str, ScanLogger] = {}


def _qualify(name: str) -> str:
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return name
    return f"{ROOT_LOGGER}.{name}"


def setup_logger(
    name: str = ROOT_LOGGER,
    level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[str] = None,
    max_size_mb: int = 10,
    backup_count: int = 5,
) -> ScanLogger:
    """
    Set up and configure a logger.

    Child loggers (``bankgrade.scanner``, ``bankgrade.module.dns_security``...)
    propagate to the ``bankgrade`` logger, so configuring it once is enough.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: File output format ('json' or 'text')
        log_file: Path to log file (optional)
        max_size_mb: Maximum log file size in MB
        backup_count: Number of backup files to keep

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(_qualify(name))
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(TextFormatter(use_colors=sys.stdout.isatty()))
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        if log_format == "json":
            file_formatter = JSONFormatter()
        else:
            file_formatter = TextFormatter(use_colors=False)

        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(file_formatter)
        logger.addHandler(file_handler)

    logger.propagate = False

    _loggers[logger.name] = logger
    return logger


def get_logger(name: str = ROOT_LOGGER) -> ScanLogger:
    """
    Get a logger below the ``bankgrade`` hierarchy.

    Args:
        name: Logger name, e.g. ``"scanner"`` or ``"module.hsts"``

    Returns:
        Logger instance
    """
    qualified = _qualify(name)
    if qualified in _loggers:
        return _loggers[qualified]

    logger = logging.getLogger(qualified)
    _loggers[qualified] = logger
    return logger
