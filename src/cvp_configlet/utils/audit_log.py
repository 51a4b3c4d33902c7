"""Audit trail for configlet assignment changes.

Each apply, remove and sync writes one JSON line to a dedicated audit
log, recording the configlets associated and dropped and whether the
change was only staged or also committed.
"""
import json
import logging
import os
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

audit_logger = logging.getLogger("cvp_configlet.audit")

DEFAULT_AUDIT_DIR = os.path.join("~", ".cvp-configlet")


def setup_audit_logging(log_dir: Optional[str] = None) -> str:
    """Configure audit logging to file.

    Args:
        log_dir: Directory for audit logs. Defaults to ~/.cvp-configlet/

    Returns:
        Path of the audit log file
    """
    log_dir = os.path.expanduser(log_dir or DEFAULT_AUDIT_DIR)
    Path(log_dir).mkdir(parents=True, exist_ok=True)
    audit_file = os.path.join(log_dir, "audit.log")

    audit_logger.setLevel(logging.INFO)
    audit_logger.handlers.clear()

    handler = RotatingFileHandler(
        audit_file,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=10,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    audit_logger.addHandler(handler)

    # Keep JSON lines out of the console output
    audit_logger.propagate = False
    return audit_file


@dataclass
class ChangeRecord:
    """Record of one assignment change."""
    timestamp: str
    device_id: str
    operation: str  # apply_configlets, remove_configlets, config_sync
    user: str
    success: bool
    parameters: dict
    state: Optional[str] = None  # staged, committed
    configlets: list[str] = field(default_factory=list)
    excluded: list[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_json(self) -> str:
        return json.dumps(asdict(self), indent=None)

    @classmethod
    def from_json(cls, json_str: str) -> "ChangeRecord":
        data = json.loads(json_str)
        return cls(**data)


class ChangeTracker:
    """Log assignment changes for one user."""

    def __init__(self, user: str = "system"):
        self.user = user

    def log_change(
        self,
        device_id: str,
        operation: str,
        parameters: dict,
        success: bool,
        state: Optional[str] = None,
        configlets: Optional[list[str]] = None,
        excluded: Optional[list[str]] = None,
        error: Optional[str] = None,
    ) -> ChangeRecord:
        """Write a change record to the audit log and return it."""
        record = ChangeRecord(
            timestamp=datetime.now(timezone.utc).isoformat(),
            device_id=device_id,
            operation=operation,
            user=self.user,
            success=success,
            parameters=parameters,
            state=state,
            configlets=list(configlets or []),
            excluded=list(excluded or []),
            error=error,
        )
        audit_logger.info(record.to_json())
        return record


def get_recent_changes(
    log_file: Optional[str] = None,
    device_id: Optional[str] = None,
    operation: Optional[str] = None,
    limit: int = 100,
) -> list[ChangeRecord]:
    """Read recent changes from the audit log, most recent first."""
    if log_file is None:
        log_file = os.path.join(os.path.expanduser(DEFAULT_AUDIT_DIR), "audit.log")

    if not os.path.exists(log_file):
        return []

    records = []
    with open(log_file, "r") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                record = ChangeRecord.from_json(line)
            except (json.JSONDecodeError, TypeError):
                continue  # Skip malformed lines

            if device_id and record.device_id != device_id:
                continue
            if operation and record.operation != operation:
                continue
            records.append(record)

    return list(reversed(records[-limit:]))
