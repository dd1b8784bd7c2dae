"""Tests for the audit trail and logging setup."""

import json
import logging
import os
from unittest.mock import patch

from ui_healer.logger import AuditAction, AuditLogger, setup_logging


class TestAuditLogger:
    """Tests for the append-only audit log."""

    def test_entry_is_one_json_line(self, workspace):
        audit = AuditLogger(str(workspace / "audit.log"), actor_id="ci-bot")
        audit.log(AuditAction.BACKUP_CREATED, "tests/a.spec.ts", "backup made", metadata={"size": 10})

        lines = (workspace / "audit.log").read_text(encoding="utf-8").splitlines()
        assert len(lines) == 1
        entry = json.loads(lines[0])
        assert entry["action"] == "BACKUP_CREATED"
        assert entry["target_path"] == "tests/a.spec.ts"
        assert entry["details"] == "backup made"
        assert entry["actor_id"] == "ci-bot"
        assert entry["process_id"] == os.getpid()
        assert entry["metadata"] == {"size": 10}
        assert entry["timestamp_iso"].endswith("+00:00")

    def test_entries_are_appended_in_order(self, workspace):
        path = workspace / "audit.log"
        first = AuditLogger(str(path), actor_id="a")
        first.log(AuditAction.BACKUP_CREATED, "x", "one")
        first.log(AuditAction.FILE_MODIFIED, "x", "two")

        # A second logger on the same file never truncates it
        second = AuditLogger(str(path), actor_id="b")
        second.log(AuditAction.ROLLBACK_PERFORMED, "x", "three")

        actions = [e.action for e in second.read_entries()]
        assert actions == ["BACKUP_CREATED", "FILE_MODIFIED", "ROLLBACK_PERFORMED"]

    def test_write_failure_does_not_raise(self, workspace, caplog):
        audit = AuditLogger(str(workspace / "audit.log"), actor_id="a")
        with patch("builtins.open", side_effect=PermissionError("read-only")):
            with caplog.at_level(logging.ERROR, logger="ui_healer.logger"):
                entry = audit.log(AuditAction.TEST_FAILED, "x", "failed")

        assert entry.action == "TEST_FAILED"
        assert "Failed to write audit log" in caplog.text

    def test_read_entries_without_log(self, workspace):
        assert AuditLogger(str(workspace / "missing.log")).read_entries() == []

    def test_actor_defaults_to_current_user(self, workspace):
        with patch("ui_healer.logger.getpass.getuser", return_value="alice"):
            audit = AuditLogger(str(workspace / "audit.log"))
        assert audit.actor_id == "alice"

    def test_log_message_format(self, workspace):
        audit = AuditLogger(str(workspace / "audit.log"), actor_id="a")
        entry = audit.log(AuditAction.TEST_VERIFIED, "tests/a.spec.ts", "passed")
        assert entry.to_log_message() == "[TEST_VERIFIED] tests/a.spec.ts | passed"


class TestSetupLogging:
    """Tests for console and file handler setup."""

    def test_console_level_follows_verbose(self):
        quiet = setup_logging(verbose=False)
        assert quiet.handlers[0].level == logging.INFO

        loud = setup_logging(verbose=True)
        try:
            assert len(loud.handlers) == 1
            assert loud.handlers[0].level == logging.DEBUG
        finally:
            loud.handlers = []

    def test_file_handler(self, workspace):
        log_file = workspace / "logs" / "healer.log"
        package_logger = setup_logging(log_file=str(log_file))
        try:
            logging.getLogger("ui_healer.test").info("hello from test")
            for handler in package_logger.handlers:
                handler.flush()
            content = log_file.read_text(encoding="utf-8")
            assert "| INFO | hello from test" in content
        finally:
            for handler in package_logger.handlers:
                handler.close()
            package_logger.handlers = []
