"""Logging configuration for the configlet client.

Provides configurable logging with:
- File-based logging with rotation
- Console output
- Timing helpers for remote workflow steps

Environment Variables:
    CVP_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
    CVP_LOG_FILE: Path to log file (default: ~/.cvp-configlet/cvp-configlet.log)
    CVP_LOG_MAX_SIZE: Max log file size in MB (default: 10)
    CVP_LOG_BACKUPS: Number of backup files to keep (default: 5)

Usage:
    from cvp_configlet.utils.logging_config import setup_logging, timed

    setup_logging()  # Call once at startup

    @timed("apply_configlets")
    async def apply_configlets_to_device(self, ...):
        ...
"""
import asyncio
import functools
import logging
import os
import time
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Callable, Any

# Timing logger - separate from main logger for easy filtering
perf_logger = logging.getLogger("cvp_configlet.perf")


def get_log_level() -> int:
    """Get log level from environment."""
    level_str = os.environ.get("CVP_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_str, logging.INFO)


def get_log_file() -> Path:
    """Get log file path from environment."""
    default_path = Path.home() / ".cvp-configlet" / "cvp-configlet.log"
    path_str = os.environ.get("CVP_LOG_FILE", str(default_path))
    return Path(path_str)


def setup_logging() -> None:
    """Configure logging for the application.

    Sets up:
    - Console handler (INFO+ by default, respects CVP_LOG_LEVEL)
    - File handler with rotation (DEBUG level - captures everything)
    """
    log_level = get_log_level()
    log_file = get_log_file()
    max_size_mb = int(os.environ.get("CVP_LOG_MAX_SIZE", "10"))
    backup_count = int(os.environ.get("CVP_LOG_BACKUPS", "5"))

    log_file.parent.mkdir(parents=True, exist_ok=True)

    main_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | %(name)-30s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(main_format)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(main_format)

    # perf_logger is a child, so it reaches these handlers too
    root_logger = logging.getLogger("cvp_configlet")
    root_logger.setLevel(logging.DEBUG)  # Capture all, handlers filter
    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)

    root_logger.info(f"Logging initialized: level={logging.getLevelName(log_level)}, file={log_file}")


def _format_timing(operation: str, device_id: Optional[str], elapsed: float, status: str) -> str:
    return f"{operation:24s} | {device_id or 'N/A':20s} | {elapsed:8.2f}ms | {status}"


def timed(operation: str):
    """Decorator to log execution time of a coroutine.

    The device is taken from a ``device_key`` or ``hostname`` keyword
    argument when one is passed.
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            dev_id = kwargs.get("device_key") or kwargs.get("hostname")
            start = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
                elapsed = (time.perf_counter() - start) * 1000  # ms
                perf_logger.info(_format_timing(operation, dev_id, elapsed, "OK"))
                return result
            except Exception as e:
                elapsed = (time.perf_counter() - start) * 1000
                perf_logger.warning(_format_timing(operation, dev_id, elapsed, f"FAIL: {e}"))
                raise

        if not asyncio.iscoroutinefunction(func):
            raise TypeError(f"timed() expects a coroutine function, got {func!r}")
        return wrapper

    return decorator


@asynccontextmanager
async def timed_section(operation: str, device_id: Optional[str] = None, **extra):
    """Async context manager for timing code sections.

    Usage:
        async with timed_section("tool:apply_configlets", device_id="leaf1"):
            ...
    """
    start = time.perf_counter()
    extra_str = " | ".join(f"{k}={v}" for k, v in extra.items()) if extra else ""

    try:
        yield
        elapsed = (time.perf_counter() - start) * 1000
        msg = _format_timing(operation, device_id, elapsed, "OK")
        if extra_str:
            msg += f" | {extra_str}"
        perf_logger.info(msg)
    except Exception as e:
        elapsed = (time.perf_counter() - start) * 1000
        msg = _format_timing(operation, device_id, elapsed, f"FAIL: {e}")
        if extra_str:
            msg += f" | {extra_str}"
        perf_logger.warning(msg)
        raise
