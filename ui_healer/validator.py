"""
Validation Module for the UI Test Healer
========================================

Acceptance checks for a candidate test file before it may touch disk.

Hard rejects (ok is False):
- empty candidate
- no test declaration
- unbalanced braces or parentheses
- markdown headings or bold emphasis (prose leaked into code)
- file-system deletion, process control, dynamic evaluation, subprocesses,
  require()/dynamic import(), or imports of Node system modules
- larger than the configured maximum file size

Soft warnings (ok stays True):
- no assertion
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .extractor import ASSERTION_PATTERN, TEST_DECLARATION_PATTERN

_SYSTEM_MODULES = r"(?:node:)?(?:fs|fs/promises|child_process|os|process|vm|worker_threads|cluster)"

# (pattern, description) pairs; any match is a hard reject
DANGEROUS_PATTERNS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"\bfs\s*\.\s*(?:rm|unlink|rmdir)(?:Sync)?\s*\("), "file system deletion"),
    (re.compile(r"\bprocess\s*\.\s*(?:exit|kill)\b"), "process control"),
    (re.compile(r"\beval\s*\("), "eval()"),
    (re.compile(r"\bnew\s+Function\b"), "new Function"),
    (re.compile(r"\bchild_process\b"), "child_process"),
    (re.compile(r"\b(?:exec|execSync|execFile|spawn)\s*\("), "subprocess execution"),
    (re.compile(r"\brequire\s*\("), "require()"),
    (re.compile(r"\bimport\s*\("), "dynamic import()"),
    (re.compile(r"\bfrom\s+['\"]" + _SYSTEM_MODULES + r"['\"]"), "system module import"),
    (re.compile(r"^\s*import\s+['\"]" + _SYSTEM_MODULES + r"['\"]", re.MULTILINE), "system module import"),
]

MARKDOWN_HEADING = re.compile(r"^\s*#{1,6}\s", re.MULTILINE)
MARKDOWN_BOLD = re.compile(r"\*\*[^*\n]+\*\*")


@dataclass
class ValidationResult:
    """Outcome of validating one candidate."""
    ok: bool
    issues: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self):
        return {"ok": self.ok, "issues": list(self.issues), "warnings": list(self.warnings)}


class CodeValidator:
    """
    Structural and security checks for candidate test code.

    Pure: the same candidate always gets the same result.
    """

    def __init__(self, max_file_size: Optional[int] = None):
        self.max_file_size = max_file_size

    def validate(self, code: Optional[str]) -> ValidationResult:
        """
        Validate a candidate.

        Args:
            code: Candidate file body

        Returns:
            ValidationResult with every issue found (not just the first)
        """
        if not code or not code.strip():
            return ValidationResult(ok=False, issues=["Candidate code is empty"])

        issues: List[str] = []
        warnings: List[str] = []

        if not TEST_DECLARATION_PATTERN.search(code):
            issues.append("No test declaration found (test(, describe( or it()")

        if code.count("{") != code.count("}"):
            issues.append(
                f"Unbalanced braces: {code.count('{')} opening, {code.count('}')} closing"
            )
        if code.count("(") != code.count(")"):
            issues.append(
                f"Unbalanced parentheses: {code.count('(')} opening, {code.count(')')} closing"
            )

        if MARKDOWN_HEADING.search(code) or MARKDOWN_BOLD.search(code):
            issues.append("Markdown formatting found in code")

        for pattern, description in DANGEROUS_PATTERNS:
            if pattern.search(code):
                issue = f"Dangerous construct: {description}"
                if issue not in issues:
                    issues.append(issue)

        if self.max_file_size is not None:
            size = len(code.encode("utf-8"))
            if size > self.max_file_size:
                issues.append(f"Candidate is {size} bytes, limit is {self.max_file_size}")

        if not ASSERTION_PATTERN.search(code):
            warnings.append("No assertion found")

        return ValidationResult(ok=not issues, issues=issues, warnings=warnings)
