"""
Configuration Module for the UI Test Healer
===========================================

This module provides configuration management for the healer. It defines
all configurable parameters including the API credential, retry limits,
rate limiting, backup retention and verification settings.

Configuration is loaded from environment variables (a ``.env`` file is
loaded by the CLI before this happens) or set programmatically. Invalid
values raise ConfigurationError before any test is processed.
"""

import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import ConfigurationError


class ErrorType(Enum):
    """Classification of a failing UI test."""
    TIMEOUT = "timeout"             # Waiting for an element/navigation timed out
    STRICT_MODE = "strict_mode"     # Locator resolved to multiple elements
    ASSERTION = "assertion"         # expect() / assertion failed
    NOT_FOUND = "not_found"         # Element or resource not found
    UNKNOWN = "unknown"             # Unclassified


API_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_\-]{20,}$")


@dataclass
class RetryConfig:
    """Configuration for calls to the text-generation service."""
    max_retries: int = 3                # Retries after the first attempt
    backoff_base: float = 2.0           # Sleep backoff_base ** attempt seconds
    api_timeout_ms: int = 60000         # Per-request timeout


@dataclass
class RateLimitConfig:
    """Sliding-window rate limit for the text-generation service."""
    calls_per_minute: int = 5
    window_seconds: float = 60.0


@dataclass
class SafetyConfig:
    """Safety settings to prevent unintended damage."""
    max_file_size: int = 1048576        # Bytes; larger test files are not touched
    test_directories: List[str] = field(default_factory=lambda: ["tests"])
    max_error_length: int = 1000        # Sanitized error text bound
    max_code_length: int = 25000        # Sanitized test code bound


@dataclass
class BackupConfig:
    """Backup location and retention."""
    backup_dir: str = ".healer-backups"
    retention_days: int = 7
    max_backups_per_file: int = 5


@dataclass
class LoggingConfig:
    """Configuration for logging and the audit trail."""
    audit_log_path: str = ".healer-audit.log"
    log_file: Optional[str] = None
    verbose: bool = False


@dataclass
class VerificationConfig:
    """How a corrected test is re-run."""
    test_command: str = "npx playwright test {file} --reporter=list"
    timeout_seconds: int = 300
    working_directory: Optional[str] = None


@dataclass
class HealerConfig:
    """
    Main configuration class for the UI Test Healer.

    Aggregates all configuration sections and provides methods to load
    configuration from the environment and to validate it.

    Attributes:
        api_key: Credential for the text-generation service
        model: Model name used for analysis
        auto_fix: Apply and verify fixes (False means analyze only)
        results_path: Playwright JSON results document
        error_report_path: Where the error report is written
        retry: Retry and timeout configuration
        rate_limit: Rate limit configuration
        safety: Safety settings
        backup: Backup retention settings
        logging: Logging and audit configuration
        verification: Test re-run configuration
    """
    api_key: str = ""
    model: str = "gemini-2.5-flash"
    auto_fix: bool = False
    results_path: str = "test-results/results.json"
    error_report_path: str = "test-results/healer-error-report.json"
    retry: RetryConfig = field(default_factory=RetryConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    safety: SafetyConfig = field(default_factory=SafetyConfig)
    backup: BackupConfig = field(default_factory=BackupConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    verification: VerificationConfig = field(default_factory=VerificationConfig)

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "HealerConfig":
        """
        Load configuration from environment variables.

        Variables use the HEALER_ prefix, except the credential which is
        read from GEMINI_API_KEY. For example: HEALER_MAX_RETRIES=5

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            A validated HealerConfig

        Raises:
            ConfigurationError: If a value is missing or invalid
        """
        env = os.environ if environ is None else environ
        config = cls()

        config.api_key = env.get("GEMINI_API_KEY", "").strip()
        config.model = env.get("HEALER_MODEL", config.model)
        config.auto_fix = _parse_bool(env, "HEALER_AUTO_FIX", config.auto_fix)
        config.results_path = env.get("HEALER_RESULTS_PATH", config.results_path)
        config.error_report_path = env.get("HEALER_ERROR_REPORT", config.error_report_path)

        config.retry.max_retries = _parse_int(env, "HEALER_MAX_RETRIES", config.retry.max_retries)
        config.retry.api_timeout_ms = _parse_int(env, "HEALER_API_TIMEOUT", config.retry.api_timeout_ms)
        config.rate_limit.calls_per_minute = _parse_int(
            env, "HEALER_RATE_LIMIT", config.rate_limit.calls_per_minute
        )
        config.safety.max_file_size = _parse_int(env, "HEALER_MAX_FILE_SIZE", config.safety.max_file_size)

        if env.get("HEALER_TEST_DIRS"):
            config.safety.test_directories = [
                d for d in env["HEALER_TEST_DIRS"].split(os.pathsep) if d
            ]

        config.backup.backup_dir = env.get("HEALER_BACKUP_DIR", config.backup.backup_dir)
        config.backup.retention_days = _parse_int(
            env, "HEALER_BACKUP_RETENTION_DAYS", config.backup.retention_days
        )
        config.backup.max_backups_per_file = _parse_int(
            env, "HEALER_MAX_BACKUPS_PER_FILE", config.backup.max_backups_per_file
        )

        config.logging.audit_log_path = env.get("HEALER_AUDIT_LOG", config.logging.audit_log_path)
        config.logging.log_file = env.get("HEALER_LOG_FILE") or None
        config.logging.verbose = _parse_bool(env, "HEALER_VERBOSE", config.logging.verbose)

        config.verification.test_command = env.get(
            "HEALER_TEST_COMMAND", config.verification.test_command
        )
        config.verification.timeout_seconds = _parse_int(
            env, "HEALER_VERIFY_TIMEOUT", config.verification.timeout_seconds
        )

        config.validate()
        return config

    def validate(self) -> None:
        """
        Check every setting, raising on the first invalid one.

        Raises:
            ConfigurationError: If a value is missing or out of range
        """
        if not self.api_key:
            raise ConfigurationError("GEMINI_API_KEY is required")
        if not API_KEY_PATTERN.match(self.api_key):
            raise ConfigurationError("GEMINI_API_KEY is malformed")

        _require_min("HEALER_MAX_RETRIES", self.retry.max_retries, 0)
        _require_min("HEALER_API_TIMEOUT", self.retry.api_timeout_ms, 1000)
        _require_min("HEALER_RATE_LIMIT", self.rate_limit.calls_per_minute, 1)
        _require_min("HEALER_MAX_FILE_SIZE", self.safety.max_file_size, 1)
        _require_min("HEALER_BACKUP_RETENTION_DAYS", self.backup.retention_days, 1)
        _require_min("HEALER_MAX_BACKUPS_PER_FILE", self.backup.max_backups_per_file, 1)
        _require_min("HEALER_VERIFY_TIMEOUT", self.verification.timeout_seconds, 1)

        if not self.safety.test_directories:
            raise ConfigurationError("HEALER_TEST_DIRS must name at least one directory")
        if "{file}" not in self.verification.test_command:
            raise ConfigurationError("HEALER_TEST_COMMAND must contain a {file} placeholder")

    @property
    def api_timeout_seconds(self) -> float:
        return self.retry.api_timeout_ms / 1000.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a dictionary (the credential is masked)."""
        return {
            "api_key": "***" if self.api_key else "",
            "model": self.model,
            "auto_fix": self.auto_fix,
            "results_path": self.results_path,
            "error_report_path": self.error_report_path,
            "retry": {
                "max_retries": self.retry.max_retries,
                "backoff_base": self.retry.backoff_base,
                "api_timeout_ms": self.retry.api_timeout_ms
            },
            "rate_limit": {
                "calls_per_minute": self.rate_limit.calls_per_minute,
                "window_seconds": self.rate_limit.window_seconds
            },
            "safety": {
                "max_file_size": self.safety.max_file_size,
                "test_directories": self.safety.test_directories,
                "max_error_length": self.safety.max_error_length,
                "max_code_length": self.safety.max_code_length
            },
            "backup": {
                "backup_dir": self.backup.backup_dir,
                "retention_days": self.backup.retention_days,
                "max_backups_per_file": self.backup.max_backups_per_file
            },
            "logging": {
                "audit_log_path": self.logging.audit_log_path,
                "log_file": self.logging.log_file,
                "verbose": self.logging.verbose
            },
            "verification": {
                "test_command": self.verification.test_command,
                "timeout_seconds": self.verification.timeout_seconds
            }
        }

    def resolved_test_directories(self) -> List[Path]:
        """Return the allow-listed test directories as absolute paths."""
        return [Path(d).resolve() for d in self.safety.test_directories]


def _parse_int(env, name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw.strip())
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def _parse_bool(env, name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in ("true", "1", "yes"):
        return True
    if value in ("false", "0", "no"):
        return False
    raise ConfigurationError(f"{name} must be true or false, got {raw!r}")


def _require_min(name: str, value: int, minimum: int) -> None:
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")


# Singleton instance for global configuration
_global_config: Optional[HealerConfig] = None


def get_config() -> HealerConfig:
    """
    Get the global configuration instance.

    Returns:
        The global HealerConfig instance
    """
    global _global_config
    if _global_config is None:
        _global_config = HealerConfig.from_env()
    return _global_config


def set_config(config: HealerConfig) -> None:
    """
    Set the global configuration instance.

    Args:
        config: The configuration to use globally
    """
    global _global_config
    _global_config = config
