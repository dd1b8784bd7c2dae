"""
Pulls the candidate test file out of a free-form analysis response.

Responses usually contain several fenced blocks (the broken snippet, a
diff, the full fixed file). The fixed file is asked for last, so the last
block that looks like test code wins.
"""

import logging
import re
from typing import List, Optional

logger = logging.getLogger(__name__)

FENCE_PATTERN = re.compile(r"```[ \t]*[\w+-]*[ \t]*\r?\n(.*?)```", re.DOTALL)

IMPORT_PATTERN = re.compile(r"^\s*import\b", re.MULTILINE)
TEST_DECLARATION_PATTERN = re.compile(r"\b(?:test|it|describe)(?:\.\w+)*\s*\(")
ASSERTION_PATTERN = re.compile(r"\bexpect(?:\.\w+)?\s*\(|\bassert\b")


def looks_like_test_code(block: str) -> bool:
    """True if the block has an import, a test declaration or an assertion."""
    return bool(
        IMPORT_PATTERN.search(block)
        or TEST_DECLARATION_PATTERN.search(block)
        or ASSERTION_PATTERN.search(block)
    )


class CodeExtractor:
    """
    Heuristic extraction of test code from an analysis response.

    Usage:
        code = CodeExtractor().extract(response_text)
        if code is None:
            ...  # nothing usable
    """

    def fenced_blocks(self, response: str) -> List[str]:
        """All fenced block bodies, in order of appearance."""
        return [m.group(1) for m in FENCE_PATTERN.finditer(response or "")]

    def extract(self, response: str) -> Optional[str]:
        """
        Return the last qualifying fenced block, or the unfenced fallback.

        Args:
            response: Raw analysis text

        Returns:
            Candidate code, or None if nothing looks like a test file
        """
        if not response:
            return None

        qualifying = [b for b in self.fenced_blocks(response) if looks_like_test_code(b)]
        if qualifying:
            logger.debug("🧩 %d qualifying code block(s), using the last", len(qualifying))
            return qualifying[-1].strip()

        fallback = self._fallback(response)
        if fallback is not None:
            logger.debug("🧩 No qualifying fenced block, using unfenced fallback")
        return fallback

    def _fallback(self, response: str) -> Optional[str]:
        # Usually a truncated final block; it runs from its first import to the end
        start = re.search(r"^import\b", response, re.MULTILINE)
        if start is None:
            return None

        code = response[start.start():].replace("```", "").strip()
        if not (TEST_DECLARATION_PATTERN.search(code) or ASSERTION_PATTERN.search(code)):
            return None

        if code.count("{") != code.count("}"):
            code += "\n});"
        return code
