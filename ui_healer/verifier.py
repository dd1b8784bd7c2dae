"""
Re-runs a single test file and decides whether a fix held.
"""

import logging
import re
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from .config import VerificationConfig

logger = logging.getLogger(__name__)

PASS_PATTERN = re.compile(r"(\d+)\s+pass", re.IGNORECASE)
FAIL_PATTERN = re.compile(r"(\d+)\s+fail", re.IGNORECASE)
NO_TESTS_PATTERN = re.compile(r"no tests found", re.IGNORECASE)


@dataclass
class VerificationResult:
    """Outcome of one verification run."""
    verified: bool
    passes: int = 0
    fails: int = 0
    output: str = ""
    error: Optional[str] = None


def interpret_output(output: str) -> VerificationResult:
    """
    Decide verification from the runner's summary lines.

    Any failure count means not verified. Passes with no failures, "no tests
    found", and output without a recognizable summary all count as verified.
    """
    passes = sum(int(n) for n in PASS_PATTERN.findall(output))
    fails = sum(int(n) for n in FAIL_PATTERN.findall(output))

    if fails > 0:
        return VerificationResult(False, passes, fails, output)
    if passes > 0 or NO_TESTS_PATTERN.search(output):
        return VerificationResult(True, passes, fails, output)

    logger.warning("⚠️ No pass/fail summary in verification output, treating as verified")
    return VerificationResult(True, passes, fails, output)


class VerificationRunner:
    """
    Runs the configured test command against one file.

    Usage:
        result = VerificationRunner(config.verification).verify(path)
    """

    def __init__(self, config: VerificationConfig, runner: Callable = subprocess.run):
        self.config = config
        self._run = runner

    def build_command(self, test_file: Path):
        return [
            part.replace("{file}", str(test_file))
            for part in shlex.split(self.config.test_command)
        ]

    def verify(self, test_file: Path) -> VerificationResult:
        """
        Run the test file and interpret its output.

        Output is captured whatever the exit code. Spawn errors and timeouts
        are reported as not verified.
        """
        command = self.build_command(test_file)
        logger.info("🧪 Verifying %s", test_file)
        logger.debug("Running: %s", " ".join(command))

        try:
            completed = self._run(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                encoding="utf-8",
                errors="replace",
                timeout=self.config.timeout_seconds,
                cwd=self.config.working_directory
            )
        except subprocess.TimeoutExpired as e:
            output = _as_text(e.output)
            return VerificationResult(
                False, output=output,
                error=f"Verification timed out after {self.config.timeout_seconds}s"
            )
        except OSError as e:
            return VerificationResult(False, error=f"Could not start test command: {e}")

        result = interpret_output(completed.stdout or "")
        logger.info(
            "%s Verification: %d passed, %d failed",
            "✅" if result.verified else "❌", result.passes, result.fails
        )
        return result


def _as_text(output) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output
