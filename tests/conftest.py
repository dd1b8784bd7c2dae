"""Shared test fixtures and utilities.

Provides pytest fixtures for building healer configurations, temporary
test workspaces, fake clocks and canned analysis responses.
"""
# pylint: disable=redefined-outer-name
import json

import pytest

from ui_healer.config import HealerConfig
from ui_healer.logger import AuditLogger

VALID_API_KEY = "AIzaTestKey_0123456789abcdef"

PASSING_SPEC = """import { test, expect } from '@playwright/test';

test('home page shows title', async ({ page }) => {
  await page.goto('http://localhost:3000');
  await expect(page.getByRole('heading', { name: 'Movies' })).toBeVisible();
});
"""

BROKEN_SPEC = """import { test, expect } from '@playwright/test';

test('home page shows title', async ({ page }) => {
  await page.goto('http://localhost:3000');
  await expect(page.locator('.css-1x2y3z')).toBeVisible();
});
"""


class FakeClock:
    """Manually advanced clock usable as both clock and sleep."""

    def __init__(self, start=1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def fake_clock():
    """A FakeClock starting at t=1000s"""
    return FakeClock()


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """Temporary project root with a tests/ directory, used as cwd"""
    (tmp_path / "tests").mkdir()
    (tmp_path / "test-results").mkdir()
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def make_config(workspace):
    """Factory for valid configurations rooted in the workspace"""
    def _make(**overrides):
        config = HealerConfig(api_key=VALID_API_KEY)
        config.safety.test_directories = [str(workspace / "tests")]
        config.backup.backup_dir = str(workspace / ".healer-backups")
        config.logging.audit_log_path = str(workspace / ".healer-audit.log")
        config.results_path = str(workspace / "test-results" / "results.json")
        config.error_report_path = str(workspace / "test-results" / "healer-error-report.json")
        for key, value in overrides.items():
            setattr(config, key, value)
        config.validate()
        return config
    return _make


@pytest.fixture
def audit(workspace):
    """Audit logger writing into the workspace"""
    return AuditLogger(str(workspace / ".healer-audit.log"), actor_id="tester")


@pytest.fixture
def spec_file(workspace):
    """A broken spec file inside the allowed tests directory"""
    path = workspace / "tests" / "home.spec.ts"
    path.write_text(BROKEN_SPEC, encoding="utf-8")
    return path


@pytest.fixture
def passing_spec():
    """Body of a corrected spec file"""
    return PASSING_SPEC


@pytest.fixture
def make_response():
    """Wrap code the way the service answers: prose, a snippet, then the full file"""
    return analysis_response


def analysis_response(code):
    return (
        "**Root Cause Analysis**: the CSS class selector is generated and changed.\n\n"
        "Old line:\n```typescript\nawait expect(page.locator('.css-1x2y3z')).toBeVisible();\n```\n\n"
        "**Fixed Code**:\n```typescript\n" + code + "```\n"
    )


@pytest.fixture
def make_results():
    """Build a Playwright results document from {file: [(title, ok, message), ...]}"""
    return results_document


def results_document(specs_by_file):
    suites = []
    for file_name, specs in specs_by_file.items():
        suites.append({
            "title": file_name,
            "file": file_name,
            "specs": [
                {
                    "title": title,
                    "ok": ok,
                    "tests": [{"results": [{"errors": [{"message": message}] if message else []}]}],
                }
                for title, ok, message in specs
            ],
        })
    return {"suites": suites}


@pytest.fixture
def write_results(workspace):
    """Write a results document into test-results/results.json"""
    def _write(document):
        path = workspace / "test-results" / "results.json"
        path.write_text(json.dumps(document), encoding="utf-8")
        return path
    return _write
