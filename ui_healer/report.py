"""
Healing Report Module
=====================

Per-attempt records and the aggregate report of a healing run, plus the
two files written from it:

- the error report, listing attempts that ended NOT_FIXED or ROLLED_BACK
  with remediation hints (only written when there is at least one)
- the session file ``healing-session-<timestamp>.json`` next to the
  results document
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from .detector import TestFailure
from .fixer import BackupRecord
from .validator import ValidationResult

logger = logging.getLogger(__name__)


class AttemptState(Enum):
    """Where a healing attempt is, or where it ended."""
    CLASSIFIED = "classified"
    SKIPPED = "skipped"
    SANITIZING = "sanitizing"
    ANALYZING = "analyzing"
    EXTRACTING = "extracting"
    VALIDATING = "validating"
    ANALYZED = "analyzed"           # Terminal when auto-fix is off
    WRITING = "writing"
    VERIFYING = "verifying"
    APPLIED = "applied"
    ROLLED_BACK = "rolled_back"
    NOT_FIXED = "not_fixed"


TERMINAL_STATES = {
    AttemptState.SKIPPED,
    AttemptState.ANALYZED,
    AttemptState.APPLIED,
    AttemptState.ROLLED_BACK,
    AttemptState.NOT_FIXED,
}

# States that land an attempt in the error report
FAILED_STATES = {AttemptState.NOT_FIXED, AttemptState.ROLLED_BACK}

REMEDIATION_HINTS = {
    "timeout": "Check that the application under test is running and reachable, then "
               "raise timeouts or add explicit waits for slow pages.",
    "strict_mode": "Narrow the locator so it matches a single element (getByRole with a "
                   "name, filter({ hasText }), or a data-testid).",
    "assertion": "Confirm the expected values still match the current UI; update "
                 "fixtures or expectations if the product changed intentionally.",
    "not_found": "The element may have been renamed or removed. Prefer getByRole, "
                 "getByLabel or getByTestId over styling class names.",
    "unknown": "Inspect the full error output and trace, then fix the test by hand.",
    "general": "Review the backup directory and audit log before re-running the healer; "
               "rolled-back files were restored to their original content.",
}


@dataclass
class HealingAttempt:
    """
    The record of healing one failing test.

    Created per failure, advanced through AttemptState by the orchestrator,
    and frozen by finalize() when added to the report.
    """
    failure: TestFailure
    state: AttemptState = AttemptState.CLASSIFIED
    skipped: bool = False
    skip_reason: Optional[str] = None
    raw_analysis: Optional[str] = None
    confidence: Optional[int] = None
    candidate_code: Optional[str] = None
    validation: Optional[ValidationResult] = None
    backup: Optional[BackupRecord] = None
    applied: bool = False
    verified: bool = False
    rolled_back: bool = False
    failure_reason: Optional[str] = None
    _frozen: bool = field(default=False, repr=False, compare=False)

    def __setattr__(self, name, value):
        if getattr(self, "_frozen", False):
            raise AttributeError(f"HealingAttempt is finalized; cannot set {name}")
        super().__setattr__(name, value)

    def advance(self, state: AttemptState) -> None:
        logger.debug("➡️ %s: %s -> %s", self.failure.file, self.state.value, state.value)
        self.state = state

    def fail(self, reason: str) -> None:
        """End the attempt as NOT_FIXED with a reason."""
        self.failure_reason = reason
        self.state = AttemptState.NOT_FIXED

    def finalize(self) -> "HealingAttempt":
        self._frozen = True
        return self

    @property
    def finalized(self) -> bool:
        return self._frozen

    def to_dict(self) -> Dict[str, Any]:
        """Convert the attempt to a dictionary for JSON serialization."""
        return {
            "file": self.failure.file,
            "file_path": str(self.failure.file_path) if self.failure.file_path else None,
            "title": self.failure.title,
            "error_type": self.failure.error_type.value,
            "error_summary": self.failure.error_summary,
            "category": self.failure.category,
            "severity": self.failure.severity,
            "severity_score": self.failure.severity_score,
            "confidence": self.confidence,
            "state": self.state.value,
            "skipped": self.skipped,
            "skip_reason": self.skip_reason,
            "validation": self.validation.to_dict() if self.validation else None,
            "backup_path": self.backup.backup_path if self.backup else None,
            "applied": self.applied,
            "verified": self.verified,
            "rolled_back": self.rolled_back,
            "failure_reason": self.failure_reason,
        }


class HealingReport:
    """
    Aggregate outcome of a healing run.

    Built incrementally with add(), then finalize() computes the counters;
    after that the report is read-only.
    """

    def __init__(self):
        self.tests: List[HealingAttempt] = []
        self.total_tests = 0
        self.fixed_count = 0
        self.verified_count = 0
        self.success_rate = 0
        self.duration_ms = 0
        self.generated_at: Optional[str] = None
        self._finalized = False

    def add(self, attempt: HealingAttempt) -> None:
        if self._finalized:
            raise RuntimeError("HealingReport is finalized")
        self.tests.append(attempt.finalize())

    def finalize(self, duration_ms: int) -> "HealingReport":
        if self._finalized:
            raise RuntimeError("HealingReport is already finalized")
        self.total_tests = len(self.tests)
        self.fixed_count = sum(1 for t in self.tests if t.applied)
        self.verified_count = sum(1 for t in self.tests if t.verified)
        self.success_rate = (
            round(self.verified_count / self.total_tests * 100) if self.total_tests else 0
        )
        self.duration_ms = duration_ms
        self.generated_at = datetime.now(timezone.utc).isoformat()
        self._finalized = True
        return self

    @property
    def failed_attempts(self) -> List[HealingAttempt]:
        return [t for t in self.tests if t.state in FAILED_STATES]

    @property
    def skipped_count(self) -> int:
        return sum(1 for t in self.tests if t.skipped)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generated_at": self.generated_at,
            "total_tests": self.total_tests,
            "fixed_count": self.fixed_count,
            "verified_count": self.verified_count,
            "skipped_count": self.skipped_count,
            "success_rate": self.success_rate,
            "duration_ms": self.duration_ms,
            "tests": [t.to_dict() for t in self.tests],
        }


def build_error_report(report: HealingReport) -> Dict[str, Any]:
    """Build the error report document for attempts that were not healed."""
    failures = report.failed_attempts
    hint_keys = sorted({t.failure.error_type.value for t in failures})
    return {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "failed_count": len(failures),
        "failures": [
            {
                "file": t.failure.file,
                "title": t.failure.title,
                "error_type": t.failure.error_type.value,
                "error_summary": t.failure.error_summary,
                "severity": t.failure.severity,
                "confidence": t.confidence,
                "reason": t.failure_reason or t.state.value,
            }
            for t in failures
        ],
        "remediation_hints": [REMEDIATION_HINTS[k] for k in hint_keys] + [REMEDIATION_HINTS["general"]],
    }


def write_error_report(report: HealingReport, path: str) -> Optional[Path]:
    """
    Write the error report if any attempt ended NOT_FIXED or ROLLED_BACK.

    Returns:
        The written path, or None when there was nothing to report
    """
    if not report.failed_attempts:
        return None

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", encoding="utf-8") as f:
        json.dump(build_error_report(report), f, indent=2)
    logger.info("📄 Error report written to %s", target)
    return target


def write_session_file(report: HealingReport, directory: str) -> Path:
    """Save the full report as healing-session-<timestamp>.json in directory."""
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")
    target = Path(directory) / f"healing-session-{stamp}.json"
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", encoding="utf-8") as f:
        json.dump(report.to_dict(), f, indent=2)
    logger.info("💾 Healing session saved to %s", target)
    return target
