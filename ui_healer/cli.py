"""Command line entry point: ``ui-healer [-a] [-v] [--results PATH] [FILTER]``."""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .config import HealerConfig, set_config
from .errors import ConfigurationError, ResultsFormatError
from .logger import setup_logging
from .orchestrator import HealingOrchestrator
from .report import HealingReport, write_error_report, write_session_file
from .results import ResultsParser

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ui-healer",
        description="Analyze failing Playwright tests and, with --auto-fix, apply and verify fixes."
    )
    parser.add_argument(
        "filter", nargs="?", default=None,
        help="Only heal failures whose test file name contains this text"
    )
    parser.add_argument(
        "-a", "--auto-fix", action="store_true",
        help="Write validated fixes to disk and verify them (default: analyze only)"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Show debug output"
    )
    parser.add_argument(
        "--results", default=None, metavar="PATH",
        help="Playwright JSON results file (default: HEALER_RESULTS_PATH or test-results/results.json)"
    )
    return parser


def _print_summary(report: HealingReport, error_report: Optional[Path], session_file: Path) -> None:
    print("\n" + "=" * 70)
    print("📊 HEALING SUMMARY")
    print("=" * 70)
    print(f"Total tests:        {report.total_tests}")
    print(f"⏭️  Skipped:          {report.skipped_count}")
    print(f"🔧 Fixes applied:    {report.fixed_count}")
    print(f"✅ Verified:         {report.verified_count}")
    print(f"📈 Success rate:     {report.success_rate}%")
    print(f"⏱️  Duration:         {report.duration_ms} ms")

    if report.failed_attempts:
        print("\n" + "-" * 70)
        print("❌ NOT HEALED:")
        for attempt in report.failed_attempts:
            print(f"  • {attempt.failure.file} :: {attempt.failure.title}")
            print(f"    {attempt.failure_reason}")

    print("\n" + "-" * 70)
    print(f"💾 Session: {session_file}")
    if error_report:
        print(f"📄 Error report: {error_report}")
    print("=" * 70)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run the healer.

    Returns:
        0 when the run completed (whatever the per-test outcomes), 1 on
        configuration or startup failure
    """
    args = build_parser().parse_args(argv)
    load_dotenv()

    try:
        config = HealerConfig.from_env()
    except ConfigurationError as e:
        setup_logging(verbose=args.verbose)
        logger.error("❌ Configuration error: %s", e)
        return 1

    if args.auto_fix:
        config.auto_fix = True
    if args.verbose:
        config.logging.verbose = True
    if args.results:
        config.results_path = args.results
    set_config(config)

    setup_logging(verbose=config.logging.verbose, log_file=config.logging.log_file)
    logger.info("🚀 UI Test Healer (%s mode)", "auto-fix" if config.auto_fix else "analyze-only")
    logger.debug("Configuration: %s", config.to_dict())

    try:
        failures = ResultsParser().parse_file(config.results_path)
    except ResultsFormatError as e:
        logger.error("❌ %s", e)
        return 1

    if args.filter:
        failures = [f for f in failures if args.filter in f.file]
        logger.info("🔎 %d failure(s) match filter %r", len(failures), args.filter)

    report = HealingOrchestrator(config).heal_all(failures)

    results_dir = str(Path(config.results_path).parent)
    session_file = write_session_file(report, results_dir)
    error_report = write_error_report(report, config.error_report_path)
    _print_summary(report, error_report, session_file)
    return 0


if __name__ == "__main__":
    sys.exit(main())
