"""
Healing Orchestrator Module
===========================

This module provides the orchestrator that drives each failing test
through the healing pipeline and collects the outcomes in a report.

Workflow (per failure, strictly sequential):
--------------------------------------------
1. Classification -> Skip environment failures, type the rest
2. Path check     -> Resolve the test file inside an allowed directory
3. Sanitization   -> Bound and redact error text and test code
4. Analysis       -> Ask the text-generation service for a fixed file
5. Extraction     -> Pull the candidate out of the response
6. Validation     -> Reject unsafe or malformed candidates
7. Write          -> Backup, then atomic replace (auto-fix only)
8. Verification   -> Re-run the file; roll back if it still fails

Any failure of a stage ends the attempt as NOT_FIXED with a reason; the
run continues with the next failure.
"""

import logging
import time
from typing import Callable, Iterable, Optional

from .analyzer import AnalysisClient, estimate_confidence
from .config import HealerConfig, get_config
from .detector import FailureClassifier, TestPathGuard
from .errors import (
    ExtractionFailure, HealerError, RollbackError, ValidationFailure,
    VerificationFailure, WriteFailure
)
from .extractor import CodeExtractor
from .fixer import BackupStore, FileMutator
from .logger import AuditAction, AuditLogger
from .rate_limiter import RateLimiter
from .report import AttemptState, HealingAttempt, HealingReport
from .results import RawFailure
from .sanitizer import PromptSanitizer
from .validator import CodeValidator
from .verifier import VerificationResult, VerificationRunner

logger = logging.getLogger(__name__)


class HealingOrchestrator:
    """
    Coordinates all healer components.

    Every collaborator can be injected (tests pass fakes); anything not
    given is built from the configuration.

    Usage:
        healer = HealingOrchestrator(config)
        report = healer.heal_all(ResultsParser().parse_file(config.results_path))
    """

    def __init__(
        self,
        config: Optional[HealerConfig] = None,
        audit: Optional[AuditLogger] = None,
        classifier: Optional[FailureClassifier] = None,
        path_guard: Optional[TestPathGuard] = None,
        sanitizer: Optional[PromptSanitizer] = None,
        analyzer: Optional[AnalysisClient] = None,
        extractor: Optional[CodeExtractor] = None,
        validator: Optional[CodeValidator] = None,
        mutator: Optional[FileMutator] = None,
        verifier: Optional[VerificationRunner] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Configuration settings (uses the global config if None)
        """
        self.config = config or get_config()
        self.audit = audit or AuditLogger(self.config.logging.audit_log_path)
        self.classifier = classifier or FailureClassifier()
        self.path_guard = path_guard or TestPathGuard(self.config.resolved_test_directories())
        self.sanitizer = sanitizer or PromptSanitizer(
            max_error_length=self.config.safety.max_error_length,
            max_code_length=self.config.safety.max_code_length
        )
        self.analyzer = analyzer or AnalysisClient(
            self.config,
            RateLimiter(
                self.config.rate_limit.calls_per_minute,
                self.config.rate_limit.window_seconds
            )
        )
        self.extractor = extractor or CodeExtractor()
        self.validator = validator or CodeValidator(self.config.safety.max_file_size)
        self.mutator = mutator or FileMutator(
            BackupStore(self.config.backup, self.audit), self.audit
        )
        self.verifier = verifier or VerificationRunner(self.config.verification)
        self._clock = clock

    def heal_all(self, failures: Iterable[RawFailure]) -> HealingReport:
        """
        Heal every failure in order and return the finalized report.

        Args:
            failures: Raw failures from ResultsParser

        Returns:
            The finalized HealingReport
        """
        started = self._clock()
        report = HealingReport()

        failures = list(failures)
        for index, raw in enumerate(failures, 1):
            logger.info("=" * 70)
            logger.info("🔍 [%d/%d] %s :: %s", index, len(failures), raw.file, raw.title)
            report.add(self.heal(raw))

        duration_ms = int((self._clock() - started) * 1000)
        return report.finalize(duration_ms)

    def heal(self, raw: RawFailure) -> HealingAttempt:
        """
        Run one failure through the pipeline.

        Component failures never escape; they end the attempt as NOT_FIXED.
        """
        failure, healable = self.classifier.classify(raw)
        attempt = HealingAttempt(failure=failure)

        if not healable:
            attempt.skipped = True
            attempt.skip_reason = (
                f"Environment issue ({self.classifier.skip_reason(failure.error_message)})"
            )
            attempt.advance(AttemptState.SKIPPED)
            logger.info("⏭️ Skipping %s: %s", failure.file, attempt.skip_reason)
            return attempt

        logger.info(
            "🏷️ Classified as %s (%s, severity %s %d/100)", failure.error_type.value,
            failure.category, failure.severity, failure.severity_score
        )
        try:
            self._run_pipeline(attempt)
        except HealerError as e:
            attempt.fail(str(e))
        except Exception as e:
            logger.debug("Unexpected error while healing %s", failure.file, exc_info=True)
            attempt.fail(f"Unexpected error: {type(e).__name__}: {e}")

        if attempt.state is AttemptState.NOT_FIXED:
            logger.warning("❌ Not fixed: %s", attempt.failure_reason)
        return attempt

    def _run_pipeline(self, attempt: HealingAttempt) -> None:
        failure = attempt.failure
        failure.file_path = self.path_guard.resolve(failure.file)
        test_code = self._read_test_file(attempt)
        if test_code is None:
            return

        attempt.advance(AttemptState.SANITIZING)
        request = self.sanitizer.sanitize_request(failure, test_code)

        attempt.advance(AttemptState.ANALYZING)
        logger.info("🤖 Requesting analysis")
        attempt.raw_analysis = self.analyzer.analyze(request)
        attempt.confidence = estimate_confidence(attempt.raw_analysis)
        logger.info("🎯 Fix confidence %d/100", attempt.confidence)

        attempt.advance(AttemptState.EXTRACTING)
        attempt.candidate_code = self.extractor.extract(attempt.raw_analysis)
        if attempt.candidate_code is None:
            raise ExtractionFailure("No usable code found in the analysis response")

        attempt.advance(AttemptState.VALIDATING)
        attempt.validation = self.validator.validate(attempt.candidate_code)
        for warning in attempt.validation.warnings:
            logger.warning("⚠️ %s", warning)
        if not attempt.validation.ok:
            raise ValidationFailure(attempt.validation.issues)

        if not self.config.auto_fix:
            attempt.advance(AttemptState.ANALYZED)
            logger.info("📝 Candidate fix ready (auto-fix off, not applied)")
            return

        attempt.advance(AttemptState.WRITING)
        try:
            attempt.backup = self.mutator.apply(failure.file_path, attempt.candidate_code)
        except WriteFailure as e:
            attempt.backup = e.backup
            raise
        attempt.applied = True

        attempt.advance(AttemptState.VERIFYING)
        try:
            result = self.verifier.verify(failure.file_path)
        except Exception as e:
            # Candidate is already on disk; a verifier error counts as not verified
            result = VerificationResult(False, error=f"Verification error: {e}")

        if result.verified:
            self.audit.log(
                AuditAction.TEST_VERIFIED,
                str(failure.file_path),
                f"Verification passed ({result.passes} passed)"
            )
            attempt.verified = True
            attempt.advance(AttemptState.APPLIED)
            self.mutator.backups.delete(attempt.backup)
            logger.info("✅ Fix verified for %s", failure.file)
            return

        failed = VerificationFailure(
            result.error or f"Verification failed ({result.fails} failed, {result.passes} passed)",
            output=result.output
        )
        self.audit.log(AuditAction.TEST_FAILED, str(failure.file_path), str(failed))
        self._rollback(attempt, failed)

    def _rollback(self, attempt: HealingAttempt, failed: VerificationFailure) -> None:
        if failed.output:
            logger.debug("Verification output:\n%s", failed.output)
        reason = str(failed)
        try:
            self.mutator.rollback(attempt.backup)
        except RollbackError as e:
            logger.critical("🚨 %s (backup kept at %s)", e, attempt.backup.backup_path)
            attempt.fail(f"{reason}; rollback failed: {e}")
            return

        attempt.rolled_back = True
        attempt.failure_reason = reason
        attempt.advance(AttemptState.ROLLED_BACK)
        logger.info("↩️ Rolled back %s", attempt.failure.file)

    def _read_test_file(self, attempt: HealingAttempt) -> Optional[str]:
        path = attempt.failure.file_path
        size = path.stat().st_size
        if size > self.config.safety.max_file_size:
            attempt.fail(
                f"Test file is {size} bytes, limit is {self.config.safety.max_file_size}"
            )
            return None
        return path.read_text(encoding="utf-8")
