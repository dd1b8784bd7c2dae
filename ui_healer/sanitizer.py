"""
Prompt sanitization for text sent to the text-generation service.

Error messages and test files can carry local machine detail (home
directories, internal hosts, e-mail addresses, tokens) and can also carry
text crafted to steer the model. Everything that leaves the machine goes
through PromptSanitizer first.
"""

import logging
import re
from dataclasses import dataclass
from typing import List

from .detector import TestFailure

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "\n[... {count} characters truncated]"


@dataclass(frozen=True)
class SanitizedRequest:
    """Bounded, redacted inputs for one analysis call."""
    error_type: str
    error_message: str
    test_code: str
    injection_flags: List[str]


class PromptSanitizer:
    """
    Redacts and bounds untrusted text before it is put into a prompt.

    Steps, in order: flag instruction-override phrases (warning only),
    truncate to the bound, replace sensitive substrings with placeholders,
    escape code fences. The result never exceeds the bound.
    """

    INJECTION_PATTERNS = [
        re.compile(r"ignore\s*(?:all\s*)?previous\s*instructions", re.IGNORECASE),
        re.compile(r"system\s*prompt", re.IGNORECASE),
        re.compile(r"forget\s*about", re.IGNORECASE),
        re.compile(r"\bact\s+as\b", re.IGNORECASE),
        re.compile(r"pretend\s*to\s*be", re.IGNORECASE),
        re.compile(r"as\s*an\s*evil", re.IGNORECASE),
        re.compile(r"bypass\s*security", re.IGNORECASE),
        re.compile(r"disable\s*safety", re.IGNORECASE),
        re.compile(r"without\s*restrictions", re.IGNORECASE),
        re.compile(r"do\s*not\s*follow", re.IGNORECASE),
    ]

    # Applied in order; URLs go first so their paths are not seen as local paths
    REDACTIONS = [
        (re.compile(r"https?://(?!localhost\b|127\.0\.0\.1\b)[^\s'\"`<>)\]]+", re.IGNORECASE), "[URL]"),
        (re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}"), "[EMAIL]"),
        (re.compile(r"(?<![\w.])(?!127\.0\.0\.1\b)(?:\d{1,3}\.){3}\d{1,3}\b"), "[IP_ADDRESS]"),
        (re.compile(r"\b[A-Za-z]:\\[^\s'\"`]*"), "[LOCAL_PATH]"),
        (re.compile(
            r"(?<![\w.:/])/(?:home|Users|root|tmp|var|etc|opt|usr|mnt|srv|private|Volumes)"
            r"(?:/[^\s'\"`)\]]*)?"
        ), "[LOCAL_PATH]"),
        (re.compile(r"\b[A-Za-z0-9_]{40,}\b"), "[SECRET]"),
    ]

    def __init__(self, max_error_length: int = 1000, max_code_length: int = 25000):
        minimum = len(TRUNCATION_MARKER.format(count=10 ** 9)) + 1
        if max_error_length < minimum or max_code_length < minimum:
            raise ValueError(f"Sanitizer bounds must be at least {minimum} characters")
        self.max_error_length = max_error_length
        self.max_code_length = max_code_length

    def detect_injection(self, text: str) -> List[str]:
        """
        Return the instruction-override patterns found in text.
        """
        if not text:
            return []
        return [p.pattern for p in self.INJECTION_PATTERNS if p.search(text)]

    def redact(self, text: str) -> str:
        """Replace paths, e-mails, IPs, external URLs and tokens with placeholders."""
        for pattern, placeholder in self.REDACTIONS:
            text = pattern.sub(placeholder, text)
        return text

    @staticmethod
    def escape_fences(text: str) -> str:
        """Keep untrusted text from closing the prompt's code fence."""
        return text.replace("```", "\\`\\`\\`")

    def sanitize(self, text: str, max_length: int) -> str:
        """
        Truncate, redact and escape one field.

        Args:
            text: Untrusted input
            max_length: Upper bound on the returned length

        Returns:
            Sanitized text no longer than max_length
        """
        if not text:
            return ""

        head = text[:max_length]
        dropped = len(text) - len(head)
        cleaned = self.escape_fences(self.redact(head))

        if dropped == 0 and len(cleaned) <= max_length:
            return cleaned

        # Redaction and escaping can grow the text, so clip again to fit the marker
        marker = TRUNCATION_MARKER.format(count=dropped)
        budget = max_length - len(marker)
        if len(cleaned) > budget:
            dropped += len(cleaned) - budget
            marker = TRUNCATION_MARKER.format(count=dropped)
            cleaned = cleaned[:max_length - len(marker)].rstrip("\\")
        return cleaned + marker

    def sanitize_request(self, failure: TestFailure, test_code: str) -> SanitizedRequest:
        """
        Prepare the inputs of one analysis call.

        Instruction-override phrases are logged as warnings and passed on
        (redacted and escaped like everything else); they do not block.
        """
        flags = self.detect_injection(failure.error_message) + self.detect_injection(test_code)
        if flags:
            logger.warning(
                "⚠️ Possible prompt injection in %s: %s", failure.file, ", ".join(flags)
            )

        return SanitizedRequest(
            error_type=failure.error_type.value,
            error_message=self.sanitize(failure.error_message, self.max_error_length)
            or "Unknown error",
            test_code=self.sanitize(test_code, self.max_code_length),
            injection_flags=flags
        )
