"""
UI Test Healer
==============

Heals failing Playwright UI tests with the help of a text-generation
service, without ever leaving a test file in a half-written state.

Components:
-----------
- ResultsParser: Reads failing tests from the Playwright JSON results
- FailureClassifier: Types failures and skips environment problems
- PromptSanitizer: Bounds and redacts everything sent to the service
- AnalysisClient: Rate-limited, retrying calls to the service
- CodeExtractor / CodeValidator: Pick and vet the candidate fix
- FileMutator: Backup, atomic write and rollback
- VerificationRunner: Re-runs the fixed test file
- AuditLogger: Append-only record of every file mutation
- HealingOrchestrator: Coordinates the workflow

Usage:
------
    from ui_healer import HealerConfig, HealingOrchestrator, ResultsParser

    config = HealerConfig.from_env()
    failures = ResultsParser().parse_file(config.results_path)
    report = HealingOrchestrator(config).heal_all(failures)
"""

from .config import HealerConfig, ErrorType
from .logger import AuditLogger, AuditAction
from .results import ResultsParser, RawFailure
from .detector import FailureClassifier, TestFailure, TestPathGuard
from .sanitizer import PromptSanitizer
from .analyzer import AnalysisClient
from .extractor import CodeExtractor
from .validator import CodeValidator
from .fixer import BackupStore, FileMutator
from .verifier import VerificationRunner
from .report import HealingAttempt, HealingReport, AttemptState
from .orchestrator import HealingOrchestrator

__version__ = "1.0.0"
__all__ = [
    "HealerConfig",
    "ErrorType",
    "AuditLogger",
    "AuditAction",
    "ResultsParser",
    "RawFailure",
    "FailureClassifier",
    "TestFailure",
    "TestPathGuard",
    "PromptSanitizer",
    "AnalysisClient",
    "CodeExtractor",
    "CodeValidator",
    "BackupStore",
    "FileMutator",
    "VerificationRunner",
    "HealingAttempt",
    "HealingReport",
    "AttemptState",
    "HealingOrchestrator",
]
