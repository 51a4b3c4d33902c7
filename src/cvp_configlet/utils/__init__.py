"""Retry, logging and audit helpers."""
from .connection import with_retry, NOT_SENT_EXCEPTIONS, RETRYABLE_EXCEPTIONS
from .logging_config import setup_logging, timed, timed_section, perf_logger
from .audit_log import ChangeTracker, ChangeRecord, setup_audit_logging, get_recent_changes

__all__ = [
    "with_retry",
    "RETRYABLE_EXCEPTIONS",
    "NOT_SENT_EXCEPTIONS",
    "setup_logging",
    "timed",
    "timed_section",
    "perf_logger",
    "ChangeTracker",
    "ChangeRecord",
    "setup_audit_logging",
    "get_recent_changes",
]
