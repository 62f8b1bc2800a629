"""
Centralized logging configuration for the lunch order automation.

Every log record carries the name of the thread that produced it. Runs
started from the web API execute in their own thread (named "Run-<id>"),
so the thread name is what ties a log line to a run.

Features:
    - Automatic thread name in all log messages
    - Console output (always enabled)
    - Rotating file logs (optional, for production)
    - Separate error log for ERROR/CRITICAL messages
    - Per-batch child loggers named after the restaurant

Log Format:
    2026-10-19 17:30:02 [INFO    ] [MainThread] lunch_order.cli - Logged in
    2026-10-19 17:30:15 [INFO    ] [Run-a1b2c3d4] lunch_order.batch.pizza_place - Attempt 1/3
    2026-10-19 17:30:41 [WARNING ] [Run-a1b2c3d4] lunch_order.batch.pizza_place - Retrying

Usage:
    # At process startup
    from logging_config import setup_logging, get_logger

    setup_logging(log_level=logging.INFO, enable_file_logging=False)

    # In modules
    logger = get_logger(__name__)

    # Inside the pipeline, per restaurant batch
    batch_logger = get_batch_logger("Pizza Place")
"""

import logging
import re
import sys
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


APP_NAMESPACE = "lunch_order"

_NOT_ALPHANUMERIC = re.compile(r"[\W_]+")


# =============================================================================
# THREAD CONTEXT FILTER
# =============================================================================

class ThreadContextFilter(logging.Filter):
    """
    Logging filter that adds thread context to all log records.

    Adds ``thread_name`` and ``thread_id`` attributes, used by the
    format string to show which thread produced each message.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        current_thread = threading.current_thread()
        record.thread_name = current_thread.name
        record.thread_id = threading.get_ident()
        return True


# =============================================================================
# LOGGING SETUP
# =============================================================================

def setup_logging(
    app_name: str = APP_NAMESPACE,
    log_level: int = logging.INFO,
    log_dir: Optional[Path] = None,
    enable_file_logging: bool = False,
) -> logging.Logger:
    """
    Configure application logging with thread context.

    This sets up:
    1. Console handler (always enabled)
    2. Rotating file handler (optional)
    3. Error file handler (optional) - for ERROR/CRITICAL only
    4. Thread context filter on every handler

    Args:
        app_name: Name of the root application logger
        log_level: Minimum log level (default: INFO)
        log_dir: Directory for log files (default: ./logs next to this file)
        enable_file_logging: Whether to write to log files

    Returns:
        Configured root application logger
    """
    logger = logging.getLogger(app_name)
    logger.setLevel(log_level)
    logger.propagate = False

    # Allows re-configuration (CLI and app factory may both call this)
    logger.handlers.clear()

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)-8s] [%(thread_name)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    thread_filter = ThreadContextFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(thread_filter)
    logger.addHandler(console_handler)

    if enable_file_logging:
        if log_dir is None:
            log_dir = Path(__file__).parent / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)

        app_log_file = log_dir / f"{app_name}.log"
        file_handler = RotatingFileHandler(
            filename=app_log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8"
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(thread_filter)
        logger.addHandler(file_handler)

        error_handler = RotatingFileHandler(
            filename=log_dir / f"{app_name}_error.log",
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8"
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(formatter)
        error_handler.addFilter(thread_filter)
        logger.addHandler(error_handler)

        logger.info(f"File logging enabled: {app_log_file}")

    logger.info(f"Logging configured at level {logging.getLevelName(log_level)}")
    return logger


# =============================================================================
# LOGGER FACTORY FUNCTIONS
# =============================================================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a child logger under the application namespace.

    Example:
        # In services/pipeline.py
        logger = get_logger(__name__)
        # Logger name: "lunch_order.services.pipeline"
    """
    if not name.startswith(APP_NAMESPACE):
        name = f"{APP_NAMESPACE}.{name}"
    return logging.getLogger(name)


def get_batch_logger(restaurant: str) -> logging.Logger:
    """
    Get a logger for one restaurant batch.

    The restaurant name is reduced to lowercase alphanumerics so it can be
    used as a logger name component, e.g. "Joe's Pizza & Co" becomes
    "lunch_order.batch.joe_s_pizza_co".
    """
    slug = _NOT_ALPHANUMERIC.sub("_", restaurant).strip("_").lower() or "unknown"
    return logging.getLogger(f"{APP_NAMESPACE}.batch.{slug}")


def set_thread_name(name: str) -> None:
    """Set the name of the current thread, shown in the [thread_name] log field."""
    threading.current_thread().name = name
