"""
Parser for the Playwright JSON results document.

The document has a top-level ``suites`` list; each suite names its source
``file`` and holds ``specs`` (and possibly nested ``suites``). A spec with
``ok: false`` is a failure whose error text is the concatenation of every
``message`` found in its results. A malformed document is rejected as a
whole rather than partially processed.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .errors import ResultsFormatError

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "Test failed"


@dataclass(frozen=True)
class RawFailure:
    """A failing spec as reported by the test runner, before classification."""
    file: str
    title: str
    error_message: str
    error_location: Optional[str] = None


class ResultsParser:
    """
    Reads failing tests out of a Playwright results document.

    Usage:
        failures = ResultsParser().parse_file("test-results/results.json")
    """

    def parse_file(self, results_path: str) -> List[RawFailure]:
        """
        Load and parse a results document from disk.

        Raises:
            ResultsFormatError: If the file is missing, not JSON, or malformed
        """
        path = Path(results_path)
        if not path.exists():
            raise ResultsFormatError(f"Results file not found: {results_path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except json.JSONDecodeError as e:
            raise ResultsFormatError(f"Results file is not valid JSON: {e}")

        failures = self.parse(document)
        logger.info("📊 Found %d failing test(s) in %s", len(failures), results_path)
        return failures

    def parse(self, document: Any) -> List[RawFailure]:
        """
        Extract failures from an already-decoded results document.

        Raises:
            ResultsFormatError: If the top-level list or a suite's file/specs
                fields are missing
        """
        if not isinstance(document, dict) or not isinstance(document.get("suites"), list):
            raise ResultsFormatError("Results document has no top-level 'suites' list")

        failures: List[RawFailure] = []
        for suite in document["suites"]:
            self._walk_suite(suite, failures)
        return failures

    def _walk_suite(self, suite: Any, failures: List[RawFailure]) -> None:
        if not isinstance(suite, dict):
            raise ResultsFormatError("Suite entry is not an object")
        file_name = suite.get("file")
        specs = suite.get("specs")
        if not isinstance(file_name, str) or not file_name:
            raise ResultsFormatError(f"Suite {suite.get('title', '?')!r} is missing 'file'")
        if not isinstance(specs, list):
            raise ResultsFormatError(f"Suite for {file_name} is missing 'specs'")

        for spec in specs:
            if not isinstance(spec, dict) or spec.get("ok") is not False:
                continue
            message, location = self._collect_errors(spec)
            failures.append(RawFailure(
                file=file_name,
                title=str(spec.get("title", "")),
                error_message=message,
                error_location=location
            ))

        for child in suite.get("suites") or []:
            self._walk_suite(child, failures)

    def _collect_errors(self, spec: Dict[str, Any]):
        messages: List[str] = []
        location = None

        for result in _dicts(_walk(spec.get("tests"), "results")):
            for error in _dicts(result.get("errors")):
                if error.get("message"):
                    messages.append(str(error["message"]))
                if location is None and error.get("location"):
                    location = _format_location(error["location"])
            single = result.get("error")
            if isinstance(single, dict) and single.get("message"):
                if str(single["message"]) not in messages:
                    messages.append(str(single["message"]))

        return ("\n".join(messages) or DEFAULT_ERROR_MESSAGE), location


def _dicts(items: Any) -> Iterable[Dict[str, Any]]:
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


def _walk(tests: Any, key: str) -> List[Any]:
    collected: List[Any] = []
    for test in _dicts(tests):
        value = test.get(key)
        if isinstance(value, list):
            collected.extend(value)
    return collected


def _format_location(location: Any) -> str:
    if isinstance(location, dict):
        return f"{location.get('file', '?')}:{location.get('line', '?')}:{location.get('column', '?')}"
    return str(location)
