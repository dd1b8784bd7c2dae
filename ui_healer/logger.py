"""
Logging Module for the UI Test Healer
=====================================

This module provides the audit trail and console logging for the healer.
Every action that mutates a file is recorded as one JSON object per line in
an append-only audit log; entries are never rewritten or deleted.

Features:
---------
- Append-only JSON-lines audit log (one write call per entry)
- Actor and process identification on every entry
- Human-readable console output with indicators
- Optional file logging for diagnostics
"""

import getpass
import json
import logging
import os
import sys
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class AuditAction(Enum):
    """Mutating actions recorded in the audit log."""
    BACKUP_CREATED = "BACKUP_CREATED"
    FILE_MODIFIED = "FILE_MODIFIED"
    ROLLBACK_PERFORMED = "ROLLBACK_PERFORMED"
    TEST_VERIFIED = "TEST_VERIFIED"
    TEST_FAILED = "TEST_FAILED"
    BACKUP_DELETED = "BACKUP_DELETED"


@dataclass(frozen=True)
class AuditEntry:
    """
    A single audit log line.

    Attributes:
        timestamp_iso: UTC timestamp in ISO 8601 format
        action: One of AuditAction values
        target_path: File the action applied to
        details: Free-form description
        actor_id: User running the healer
        process_id: PID of the healer process
    """
    timestamp_iso: str
    action: str
    target_path: str
    details: str
    actor_id: str
    process_id: int
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert entry to dictionary for JSON serialization."""
        return asdict(self)

    def to_log_message(self) -> str:
        """Format entry as a human-readable log message."""
        return f"[{self.action}] {self.target_path} | {self.details}"


class AuditLogger:
    """
    Append-only structured audit trail.

    The log file is opened in append mode for every entry and each entry is
    written with a single call, so interleaved writers never split a line.

    Usage:
        audit = AuditLogger(".healer-audit.log")
        audit.log(AuditAction.BACKUP_CREATED, "tests/app.spec.ts", "backup at ...")
    """

    INDICATORS = {
        AuditAction.BACKUP_CREATED: "💾",
        AuditAction.FILE_MODIFIED: "🔧",
        AuditAction.ROLLBACK_PERFORMED: "↩️",
        AuditAction.TEST_VERIFIED: "✅",
        AuditAction.TEST_FAILED: "❌",
        AuditAction.BACKUP_DELETED: "🗑️",
    }

    def __init__(self, log_path: str, actor_id: Optional[str] = None):
        """
        Initialize the audit logger.

        Args:
            log_path: Path of the JSON-lines audit file
            actor_id: Override the actor recorded on entries
        """
        self.log_path = Path(log_path)
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self.actor_id = actor_id or _current_user()
        self.process_id = os.getpid()

    def log(
        self,
        action: AuditAction,
        target_path: str,
        details: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> AuditEntry:
        """
        Append an entry to the audit log.

        Write failures are reported through the module logger and never
        interrupt the healing run.

        Returns:
            The entry that was recorded
        """
        entry = AuditEntry(
            timestamp_iso=datetime.now(timezone.utc).isoformat(),
            action=action.value,
            target_path=str(target_path),
            details=details,
            actor_id=self.actor_id,
            process_id=self.process_id,
            metadata=metadata or {}
        )

        line = json.dumps(entry.to_dict(), ensure_ascii=False) + "\n"
        try:
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(line)
        except OSError as e:
            logger.error("Failed to write audit log %s: %s", self.log_path, e)

        indicator = self.INDICATORS.get(action, "📝")
        logger.debug("%s %s", indicator, entry.to_log_message())
        return entry

    def read_entries(self) -> List[AuditEntry]:
        """
        Read all entries back from the audit log.

        Returns:
            Entries in the order they were written (empty if no log yet)
        """
        if not self.log_path.exists():
            return []

        entries = []
        with open(self.log_path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                entries.append(AuditEntry(**json.loads(line)))
        return entries


def _current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"


def setup_logging(verbose: bool = False, log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure Python's logging module for the healer.

    Args:
        verbose: Emit DEBUG detail on the console
        log_file: Optional file receiving every record at DEBUG level

    Returns:
        The package logger
    """
    package_logger = logging.getLogger("ui_healer")
    package_logger.setLevel(logging.DEBUG)

    # Remove existing handlers to avoid duplicates
    package_logger.handlers = []

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    return package_logger
