"""
Structured logging configuration for strategylab.

Provides:
- JSON formatted logs for production
- Colored text logs for development
- Configurable log levels
- Rotating file handler for non-development environments
"""

import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Optional
import os

from pythonjsonlogger import jsonlogger

from strategylab.config import get_settings

JSON_LOG_FORMAT = '%(timestamp)s %(level)s %(name)s %(message)s'
TEXT_LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with additional fields."""

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        """Add custom fields to log record."""
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = datetime.now(timezone.utc).isoformat()
        log_record['environment'] = get_settings().effective_env
        log_record['service'] = 'strategylab'
        log_record['level'] = record.levelname

        # Source location
        log_record['logger'] = record.name
        log_record['module'] = record.module
        log_record['function'] = record.funcName
        log_record['line'] = record.lineno

        # Run context if available
        if hasattr(record, 'run_id'):
            log_record['run_id'] = record.run_id
        if hasattr(record, 'strategy'):
            log_record['strategy'] = record.strategy


class ColoredFormatter(logging.Formatter):
    """Colored formatter for development console output."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        """Format with colors."""
        # Color a copy so other handlers still see the plain level name
        record = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelname, self.RESET)
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    log_file_enabled: Optional[bool] = None,
    log_file_path: Optional[str] = None,
) -> None:
    """Configure engine logging.

    Arguments left as None fall back to `get_settings()`.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log format ('json' or 'text')
        log_file_enabled: Whether to enable file logging
        log_file_path: Path to log file
    """
    settings = get_settings()
    log_level = log_level or settings.log_level
    log_format = log_format or settings.log_format
    environment = settings.effective_env

    if log_file_enabled is None:
        log_file_enabled = settings.log_file_enabled
    if log_file_path is None:
        log_file_path = settings.log_file_path

    level = getattr(logging, log_level.upper(), logging.INFO)

    # Root logger
    logger = logging.getLogger()
    logger.setLevel(level)
    logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    if log_format == "json":
        formatter = CustomJsonFormatter(JSON_LOG_FORMAT)
    elif settings.is_development:
        formatter = ColoredFormatter(TEXT_LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')
    else:
        formatter = logging.Formatter(TEXT_LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # File handler (if enabled and not in development)
    if log_file_enabled and not settings.is_development:
        try:
            log_dir = os.path.dirname(log_file_path)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)

            file_handler = RotatingFileHandler(
                log_file_path,
                maxBytes=10 * 1024 * 1024,
                backupCount=5,
            )
            file_handler.setLevel(level)
            # Always use JSON for file logs
            file_handler.setFormatter(CustomJsonFormatter(JSON_LOG_FORMAT))
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f"Could not setup file logging: {e}")

    logger.info("Logging configured", extra={
        "log_level": log_level,
        "log_format": log_format,
        "environment": environment,
    })


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)


class RunContextFilter(logging.Filter):
    """Filter that tags log records with the current run."""

    def __init__(self, run_id: Optional[str] = None, strategy: Optional[str] = None):
        super().__init__()
        self.run_id = run_id
        self.strategy = strategy

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = self.run_id
        record.strategy = self.strategy
        return True
