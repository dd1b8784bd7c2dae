"""
Tests for failure classification and test path validation.
"""

import os

import pytest

from ui_healer.config import ErrorType
from ui_healer.detector import FailureClassifier, TestFailure, TestPathGuard
from ui_healer.errors import PathValidationError
from ui_healer.results import RawFailure


class TestFailureClassifier:
    """Tests for skip decisions and error typing."""

    @pytest.mark.parametrize("message,expected", [
        ("page.click: Timeout 30000ms exceeded", ErrorType.TIMEOUT),
        ("Navigation timed out", ErrorType.TIMEOUT),
        ("strict mode violation: locator('button') resolved to 3 elements", ErrorType.STRICT_MODE),
        ("expect(received).toHaveText(expected)", ErrorType.ASSERTION),
        ("AssertionError: values differ", ErrorType.ASSERTION),
        ("Element not found", ErrorType.NOT_FOUND),
        ("Something odd happened", ErrorType.UNKNOWN),
        ("", ErrorType.UNKNOWN),
        (None, ErrorType.UNKNOWN),
    ])
    def test_classify_error(self, message, expected):
        assert FailureClassifier().classify_error(message) == expected

    def test_first_matching_group_wins(self):
        # Mentions both a timeout and an assertion; timeout is checked first
        message = "expect(locator).toBeVisible() failed: Timeout 5000ms exceeded"
        assert FailureClassifier().classify_error(message) == ErrorType.TIMEOUT

    @pytest.mark.parametrize("message", [
        "page.goto: net::ERR_CONNECTION_REFUSED at http://localhost:3000/",
        "connect ECONNREFUSED 127.0.0.1:3000",
        "Error: listen EADDRINUSE: address already in use :::3000",
        "Port 3000 is already used",
        "SSL certificate problem: unable to get local issuer certificate",
        "net::ERR_NAME_NOT_RESOLVED",
        "browserType.launch: Executable doesn't exist, chromium is not installed",
        "Network error while loading page",
    ])
    def test_environment_failures_are_not_healable(self, message):
        failure, healable = FailureClassifier().classify(RawFailure("a.spec.ts", "t", message))
        assert healable is False
        assert failure.error_message == message

    def test_locator_timeout_is_healable(self):
        failure, healable = FailureClassifier().classify(
            RawFailure("a.spec.ts", "t", "Timeout 30000ms exceeded waiting for locator '.foo'")
        )
        assert healable is True
        assert failure.error_type == ErrorType.TIMEOUT

    def test_bare_connection_refused(self):
        _, healable = FailureClassifier().classify(
            RawFailure("a.spec.ts", "t", "net::ERR_CONNECTION_REFUSED")
        )
        assert healable is False

    @pytest.mark.parametrize("message,keyword", [
        ("page.goto: net::ERR_SSL_PROTOCOL_ERROR at https://app.test/", "ssl"),
        ("page.goto: net::ERR_CERT_AUTHORITY_INVALID; dns_probe_finished_nxdomain", "dns"),
        ("bind failed on port 8080", "port"),
    ])
    def test_skip_keyword_matches_inside_error_codes(self, message, keyword):
        classifier = FailureClassifier()
        assert classifier.skip_reason(message) == keyword
        _, healable = classifier.classify(RawFailure("a.spec.ts", "t", message))
        assert healable is False

    @pytest.mark.parametrize("error_type,category,severity,score", [
        (ErrorType.STRICT_MODE, "LOCATOR", "critical", 95),
        (ErrorType.NOT_FOUND, "SELECTOR", "high", 85),
        (ErrorType.TIMEOUT, "TIMING", "high", 80),
        (ErrorType.ASSERTION, "VALIDATION", "medium", 60),
        (ErrorType.UNKNOWN, "UNKNOWN", "medium", 40),
    ])
    def test_severity_follows_error_type(self, error_type, category, severity, score):
        failure = TestFailure("a.spec.ts", "t", "msg", error_type)
        assert failure.category == category
        assert failure.severity == severity
        assert failure.severity_score == score

    def test_unknown_without_skip_keyword_is_healable(self):
        failure, healable = FailureClassifier().classify(
            RawFailure("a.spec.ts", "t", "Something odd happened")
        )
        assert healable is True
        assert failure.error_type == ErrorType.UNKNOWN

    def test_blank_message_is_healable(self):
        failure, healable = FailureClassifier().classify(RawFailure("a.spec.ts", "t", ""))
        assert healable is True
        assert failure.error_type == ErrorType.UNKNOWN

    def test_error_summary_is_first_line(self):
        failure, _ = FailureClassifier().classify(
            RawFailure("a.spec.ts", "t", "\n  Error: element not found  \n  at line 3")
        )
        assert failure.error_summary == "Error: element not found"


class TestTestPathGuard:
    """Tests for resolving reported files inside the allowed directories."""

    def test_resolves_relative_path(self, workspace):
        (workspace / "tests" / "app.spec.ts").write_text("x", encoding="utf-8")
        guard = TestPathGuard([workspace / "tests"])
        assert guard.resolve("app.spec.ts") == (workspace / "tests" / "app.spec.ts").resolve()

    def test_falls_back_to_basename(self, workspace):
        (workspace / "tests" / "app.spec.ts").write_text("x", encoding="utf-8")
        guard = TestPathGuard([workspace / "tests"])
        assert guard.resolve("e2e/tests/app.spec.ts").name == "app.spec.ts"

    def test_nested_file(self, workspace):
        (workspace / "tests" / "auth").mkdir()
        (workspace / "tests" / "auth" / "login.spec.ts").write_text("x", encoding="utf-8")
        guard = TestPathGuard([workspace / "tests"])
        assert guard.resolve("auth/login.spec.ts").parent.name == "auth"

    def test_missing_file(self, workspace):
        guard = TestPathGuard([workspace / "tests"])
        with pytest.raises(PathValidationError, match="not found"):
            guard.resolve("ghost.spec.ts")

    def test_traversal_outside_directory(self, workspace):
        (workspace / "secret.spec.ts").write_text("x", encoding="utf-8")
        guard = TestPathGuard([workspace / "tests"])
        with pytest.raises(PathValidationError, match="outside"):
            guard.resolve("../secret.spec.ts")

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unsupported")
    def test_symlink_is_rejected(self, workspace):
        real = workspace / "real.spec.ts"
        real.write_text("x", encoding="utf-8")
        (workspace / "tests" / "link.spec.ts").symlink_to(real)
        guard = TestPathGuard([workspace / "tests"])
        with pytest.raises(PathValidationError, match="symlink"):
            guard.resolve("link.spec.ts")

    def test_empty_name(self, workspace):
        with pytest.raises(PathValidationError):
            TestPathGuard([workspace / "tests"]).resolve("")
