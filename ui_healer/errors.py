"""
Error Types for the UI Test Healer
==================================

Every pipeline stage signals failure with one of these exceptions. The
orchestrator catches them at the attempt boundary and records the message
as the attempt's failure reason; only configuration and startup errors are
allowed to stop a run.
"""

from typing import Optional


class HealerError(Exception):
    """Base class for all healer errors."""


class ConfigurationError(HealerError):
    """Missing or invalid configuration (fatal, raised before any test runs)."""


class ResultsFormatError(HealerError):
    """The test results document is missing or malformed."""


class PathValidationError(HealerError):
    """A reported test file is outside the allowed test directories."""


class AnalysisFailure(HealerError):
    """The text-generation service could not produce a response."""


class ExtractionFailure(HealerError):
    """No usable code block was found in the service response."""


class ValidationFailure(HealerError):
    """The candidate code failed a structural or security check."""

    def __init__(self, issues):
        self.issues = list(issues)
        super().__init__("Validation failed: " + "; ".join(self.issues))


class WriteFailure(HealerError):
    """Writing the candidate to disk failed; the original is untouched."""

    def __init__(self, message: str, backup=None):
        super().__init__(message)
        self.backup = backup


class RollbackError(HealerError):
    """Restoring a file from its backup failed."""


class VerificationFailure(HealerError):
    """The re-run of the corrected test did not pass."""

    def __init__(self, message: str, output: Optional[str] = None):
        super().__init__(message)
        self.output = output
