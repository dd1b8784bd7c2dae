"""
Failure Classification Module for the UI Test Healer
====================================================

This module turns a raw failing-test record into a typed TestFailure and
decides whether healing should be attempted at all.

Classification:
---------------
- Skip keywords mark environment problems (network, TLS, DNS, ports) that
  no change to the test file can fix; those failures are not healable.
- Otherwise the error type is the first keyword group that matches the
  lower-cased error text, defaulting to UNKNOWN.

Classification is a pure function of the error text. Resolving the test
file on disk is a separate step (TestPathGuard) because it touches the
filesystem and can fail.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from .config import ErrorType
from .errors import PathValidationError
from .results import RawFailure


class ErrorPatterns:
    """
    Keyword lists used to classify failures.

    Skip keywords are plain substrings of the lower-cased error text, so
    "ssl" also catches "net::err_ssl_protocol_error".
    """

    SKIP_KEYWORDS = [
        "network error",
        "infrastructure",
        "configuration error",
        "env setup",
        "not installed",
        "connection refused",
        "econnrefused",
        "err_connection_refused",
        "eaddrinuse",
        "port",
        "certificate",
        "ssl",
        "dns",
        "err_name_not_resolved",
    ]

    # Order matters: the first matching group wins
    TYPE_KEYWORDS: List[Tuple[ErrorType, Tuple[str, ...]]] = [
        (ErrorType.TIMEOUT, ("timeout", "timed out")),
        (ErrorType.STRICT_MODE, ("strict mode", "resolved to")),
        (ErrorType.ASSERTION, ("expect", "assertion")),
        (ErrorType.NOT_FOUND, ("not found",)),
    ]

    # (category, severity, severity score) reported alongside each type
    SEVERITY: Dict[ErrorType, Tuple[str, str, int]] = {
        ErrorType.STRICT_MODE: ("LOCATOR", "critical", 95),
        ErrorType.NOT_FOUND: ("SELECTOR", "high", 85),
        ErrorType.TIMEOUT: ("TIMING", "high", 80),
        ErrorType.ASSERTION: ("VALIDATION", "medium", 60),
        ErrorType.UNKNOWN: ("UNKNOWN", "medium", 40),
    }


@dataclass
class TestFailure:
    """
    One failing test discovered in a run.

    ``file`` is the path exactly as the runner reported it. ``file_path`` is
    only set once TestPathGuard has resolved and validated it.
    """
    __test__ = False  # not a pytest test class

    file: str
    title: str
    error_message: str
    error_type: ErrorType
    file_path: Optional[Path] = None
    error_location: Optional[str] = None

    @property
    def error_summary(self) -> str:
        """First non-empty line of the error message."""
        for line in self.error_message.splitlines():
            if line.strip():
                return line.strip()
        return ""

    @property
    def category(self) -> str:
        return ErrorPatterns.SEVERITY[self.error_type][0]

    @property
    def severity(self) -> str:
        return ErrorPatterns.SEVERITY[self.error_type][1]

    @property
    def severity_score(self) -> int:
        return ErrorPatterns.SEVERITY[self.error_type][2]


class FailureClassifier:
    """
    Classifies raw failures and makes the skip/heal decision.

    Usage:
        failure, healable = FailureClassifier().classify(raw)
    """

    def skip_reason(self, error_message: Optional[str]) -> Optional[str]:
        """
        Return the matched skip keyword, or None if healing may proceed.
        """
        text = (error_message or "").lower()
        for keyword in ErrorPatterns.SKIP_KEYWORDS:
            if keyword in text:
                return keyword
        return None

    def classify_error(self, error_message: Optional[str]) -> ErrorType:
        """
        Classify error text into an ErrorType (first match wins).
        """
        text = (error_message or "").lower()
        for error_type, keywords in ErrorPatterns.TYPE_KEYWORDS:
            if any(keyword in text for keyword in keywords):
                return error_type
        return ErrorType.UNKNOWN

    def classify(self, raw: RawFailure) -> Tuple[TestFailure, bool]:
        """
        Build a TestFailure and decide whether it is healable.

        Returns:
            (failure, healable)
        """
        message = raw.error_message or ""
        failure = TestFailure(
            file=raw.file,
            title=raw.title,
            error_message=message,
            error_type=self.classify_error(message),
            error_location=raw.error_location
        )
        return failure, self.skip_reason(message) is None


class TestPathGuard:
    """
    Resolves reported test files against an allow-list of test directories.

    A file is accepted only if it exists, is a regular file, is not a
    symlink, and its resolved path lies inside one of the directories.
    """
    __test__ = False

    def __init__(self, test_directories: Sequence[Path]):
        self.test_directories = [Path(d).resolve() for d in test_directories]

    def resolve(self, reported_file: str) -> Path:
        """
        Find the on-disk test file for a reported path.

        Tries ``<dir>/<reported>`` then ``<dir>/<basename>`` for each
        allowed directory.

        Raises:
            PathValidationError: If no safe match is found
        """
        if not reported_file:
            raise PathValidationError("Failure has no test file")

        reported = Path(reported_file)
        for directory in self.test_directories:
            for candidate in (directory / reported, directory / reported.name):
                if candidate.is_symlink():
                    raise PathValidationError(f"Refusing symlinked test file: {candidate}")
                if not candidate.is_file():
                    continue
                resolved = candidate.resolve()
                if not _is_within(resolved, directory):
                    raise PathValidationError(
                        f"Test file {reported_file} resolves outside {directory}"
                    )
                return resolved

        raise PathValidationError(f"Test file not found in allowed directories: {reported_file}")


def _is_within(path: Path, directory: Path) -> bool:
    try:
        path.relative_to(directory)
        return True
    except ValueError:
        return False
