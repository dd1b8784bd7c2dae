"""
Failure Analysis Module for the UI Test Healer
==============================================

This module asks the external text-generation service (Gemini) to analyze
a failing test and return a corrected version of the whole file.

Analysis Process:
-----------------
1. Build the prompt from sanitized inputs plus hints for the error type
2. Wait for a rate-limiter slot
3. POST to the generateContent endpoint with a per-request timeout
4. On timeout, transport error, 429 or 5xx, back off 2^attempt seconds
   and retry, up to max_retries times
5. Return the response text unchanged; extraction happens elsewhere
"""

import logging
import re
import time
from typing import Any, Callable, Dict, Optional

import requests

from .config import ErrorType, HealerConfig
from .errors import AnalysisFailure
from .rate_limiter import RateLimiter
from .sanitizer import SanitizedRequest

logger = logging.getLogger(__name__)

GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}

# Type-specific guidance added to the prompt; UNKNOWN gets none
ANALYSIS_HINTS: Dict[ErrorType, str] = {
    ErrorType.TIMEOUT: (
        "The test timed out. Check for missing waits on navigation or network idle "
        "(waitForLoadState, waitForURL), selectors that never become visible, and "
        "overly short timeouts."
    ),
    ErrorType.STRICT_MODE: (
        "A locator matched more than one element. Make it unique with role-based "
        "locators (getByRole with a name), filter({ hasText }), or .first()/.nth() "
        "where the order is stable."
    ),
    ErrorType.ASSERTION: (
        "An expect() assertion failed. Compare the expected value against what the "
        "page renders now, prefer web-first assertions (toHaveText, toBeVisible) "
        "that retry, and avoid asserting on brittle text."
    ),
    ErrorType.NOT_FOUND: (
        "An element was not found. The selector is probably stale; prefer "
        "accessibility-first locators (getByRole, getByLabel, getByTestId) over CSS "
        "class names generated by component libraries."
    ),
}

PROMPT_TEMPLATE = """You are an expert Playwright test automation engineer. Analyze this failing test and provide:

1. **Root Cause Analysis**: Explain why the test is failing
2. **Issues Found**: List specific problems in the test code
3. **Fixed Code**: Provide the COMPLETE corrected test code

CRITICAL: You MUST provide the complete fixed test code inside a single TypeScript code block,
as the LAST code block of your answer. It MUST include all imports, every test function and
all closing braces. Do NOT truncate it.

Error Type: {error_type}
{hints}
Error Message:
```
{error_message}
```

Current Test Code:
```typescript
{test_code}
```
"""


def build_prompt(request: SanitizedRequest) -> str:
    """
    Build the analysis prompt from sanitized inputs.

    Args:
        request: Output of PromptSanitizer.sanitize_request

    Returns:
        The prompt text
    """
    try:
        hint = ANALYSIS_HINTS.get(ErrorType(request.error_type))
    except ValueError:
        hint = None

    return PROMPT_TEMPLATE.format(
        error_type=request.error_type,
        hints=f"Analysis Focus: {hint}\n" if hint else "",
        error_message=request.error_message,
        test_code=request.test_code
    )


FIX_PATTERN = re.compile(r"page\.waitForLoadState|page\.locator|page\.getBy")


def estimate_confidence(response: Optional[str]) -> int:
    """
    Rough 0-100 score of how usable an analysis response looks.

    Starts at 50 and adds points for a TypeScript code block (+20), a
    detailed explanation over 200 characters (+15) and a recognizable
    locator or wait fix (+15).
    """
    if not response:
        return 0

    confidence = 50
    if "```typescript" in response:
        confidence += 20
    if len(response) > 200:
        confidence += 15
    if FIX_PATTERN.search(response):
        confidence += 15
    return min(confidence, 100)


class _RetryableError(Exception):
    pass


class AnalysisClient:
    """
    Client for the text-generation service with timeout, retry and rate limiting.

    Usage:
        client = AnalysisClient(config, RateLimiter(5))
        text = client.analyze(sanitized_request)
    """

    def __init__(
        self,
        config: HealerConfig,
        rate_limiter: RateLimiter,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.config = config
        self.rate_limiter = rate_limiter
        self.session = session or requests.Session()
        self._sleep = sleep
        self.call_count = 0

    def analyze(self, request: SanitizedRequest) -> str:
        """
        Get an analysis (with a fixed file) for one failing test.

        Args:
            request: Sanitized inputs

        Returns:
            The raw response text

        Raises:
            AnalysisFailure: When all attempts fail or the failure is not retryable
        """
        return self.generate(build_prompt(request))

    def generate(self, prompt: str) -> str:
        """
        Send a prompt, retrying transient failures with exponential backoff.

        Raises:
            AnalysisFailure: When all attempts fail or the failure is not retryable
        """
        max_retries = self.config.retry.max_retries
        last_error = "no attempt made"

        for attempt in range(max_retries + 1):
            if attempt > 0:
                delay = self.config.retry.backoff_base ** attempt
                logger.info("⏳ Retry %d/%d after %.0fs: %s", attempt, max_retries, delay, last_error)
                self._sleep(delay)

            self.rate_limiter.acquire()
            try:
                return self._call(prompt)
            except _RetryableError as e:
                last_error = str(e)

        raise AnalysisFailure(
            f"Analysis failed after {max_retries + 1} attempt(s): {last_error}"
        )

    def _call(self, prompt: str) -> str:
        self.call_count += 1
        url = GEMINI_ENDPOINT.format(model=self.config.model)
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": 0.7,
                "topK": 40,
                "topP": 0.95,
                "maxOutputTokens": 8192
            }
        }

        logger.debug("📡 Sending analysis request to %s", self.config.model)
        try:
            response = self.session.post(
                url,
                json=payload,
                headers={"x-goog-api-key": self.config.api_key},
                timeout=self.config.api_timeout_seconds
            )
        except requests.Timeout:
            raise _RetryableError(f"API timeout after {self.config.retry.api_timeout_ms}ms")
        except requests.RequestException as e:
            raise _RetryableError(f"Transport error: {e}")

        if response.status_code in RETRYABLE_STATUS_CODES:
            raise _RetryableError(f"HTTP {response.status_code}")
        if response.status_code >= 400:
            raise AnalysisFailure(f"API rejected the request: HTTP {response.status_code}")

        try:
            text = _response_text(response.json())
        except ValueError as e:
            raise AnalysisFailure(f"Unreadable API response: {e}")

        if not text.strip():
            raise AnalysisFailure("API returned an empty response")
        return text


def _response_text(data: Any) -> str:
    if not isinstance(data, dict):
        raise ValueError("response is not an object")
    candidates = data.get("candidates") or []
    if not candidates:
        raise ValueError("response has no candidates")
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts if isinstance(part, dict))
