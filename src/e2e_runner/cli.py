#!/usr/bin/env python3

import argparse
import asyncio
import json
from datetime import datetime
from pathlib import Path

from e2e_runner.config import BROWSERS, RunConfig
from e2e_runner.errors import E2EError
from e2e_runner.playwright_driver import PlaywrightSessionFactory
from e2e_runner.report import archive_files, summarize, write_html_report, write_results_json
from e2e_runner.runner import run_suite
from e2e_runner.suite_loader import load_suite


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Declarative suites → Playwright → results")
    parser.add_argument("--suite", action="append", required=True, help="Suite declaration file (JSON); repeatable")
    parser.add_argument("--base-url", help="Base URL under test (default: $E2E_BASE_URL)")
    parser.add_argument("--browser", choices=BROWSERS, default="chromium")
    parser.add_argument("--headful", action="store_true", help="Run browser headful for debugging")
    parser.add_argument("--timeout-ms", type=int, help="Retry budget for queries, actions and assertions")
    parser.add_argument("--interval-ms", type=int, help="Delay between retries")
    parser.add_argument("--page-load-timeout-ms", type=int, help="Budget for a visit to finish loading")
    parser.add_argument("--case-timeout-ms", type=int, help="Abort a test case after this long")
    parser.add_argument("--out-dir", default="data/runs", help="Where run artifacts are written")
    parser.add_argument("--verbose", action="store_true", help="Print every step")
    return parser


def make_config(args: argparse.Namespace, run_dir: Path) -> RunConfig:
    return RunConfig.from_env(
        base_url=args.base_url,
        timeout_ms=args.timeout_ms,
        interval_ms=args.interval_ms,
        page_load_timeout_ms=args.page_load_timeout_ms,
        case_timeout_ms=args.case_timeout_ms,
        headless=not args.headful,
        browser=args.browser,
        run_dir=run_dir,
        verbose=args.verbose,
    )


async def execute(suites: list, config: RunConfig) -> list:
    async with PlaywrightSessionFactory(config) as sessions:
        return await run_suite(suites, sessions, config)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    run_dir = Path(args.out_dir) / f"run_{timestamp}"
    run_dir.mkdir(parents=True, exist_ok=True)

    try:
        config = make_config(args, run_dir)
    except ValueError as e:
        raise SystemExit(f"Invalid configuration: {e}")
    try:
        suites = [load_suite(path) for path in args.suite]
    except (OSError, json.JSONDecodeError, E2EError) as e:
        raise SystemExit(f"Could not load suite: {e}")

    print(f"🏃 Running {len(suites)} suite(s) with Playwright ({config.browser})...")
    try:
        results = asyncio.run(execute(suites, config))
    except E2EError as e:
        raise SystemExit(f"✖ Run failed: {e}")

    results_path = write_results_json(results, run_dir / "results.json")
    print(f"📊 Results written: {results_path}")
    report_path = write_html_report(results, run_dir / "report.html")
    print(f"📝 HTML report: {report_path}")
    shots = sorted(config.screenshots_dir.glob("*.png")) if config.screenshots_dir.exists() else []
    archive_path = archive_files(run_dir / "archive.zip", [results_path, report_path, *shots], root=run_dir)
    print(f"📦 Archive: {archive_path}")

    counts = summarize(results)
    print(f"✅ Done. Total: {counts['total']}, Passed: {counts['passed']}, "
          f"Failed: {counts['failed']}, Errored: {counts['errored']}")
    return 0 if counts["total"] == counts["passed"] else 1


if __name__ == "__main__":
    raise SystemExit(main())
