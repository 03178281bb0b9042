"""
Domain Architecture Analyzer
============================

Analyzes a code domain (a directory of TypeScript, JavaScript or Python
components), detects architectural issues and plans refactorings.

Usage:
    domainscope --recommend "track daily tasks and sync to slack"
    domainscope --analyze src/tasks              # Light analysis
    domainscope --deep src/tasks                 # Three-tier deep analysis
    domainscope --plan src/tasks --issue ISSUE-001
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Optional

from domainscope.config import DEFAULT_MIN_SEVERITY, SEVERITY_LEVELS
from domainscope.utils.lazy_imports import LazyClassLoader
from domainscope.utils.logging_config import get_logger, level_for_verbosity, setup_logging
from domainscope.utils.report_formatter import get_default_formatter

logger = get_logger(__name__)

# Lazy loader: the engine pulls in tree-sitter and numpy
_DecisionEngine = LazyClassLoader('domainscope.decision_engine', 'DecisionEngine')


def _emit(payload: Any, text: str, as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload.to_dict(), indent=2))
    else:
        print(text)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="domainscope",
        description="Architecture analysis for code domains",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  domainscope --recommend "manage tasks and post updates to slack"
  domainscope --analyze src/domains/tasks
  domainscope --deep src/domains/tasks --min-severity low --json
  domainscope --plan src/domains/tasks --issue ISSUE-002
        """
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--recommend", "-r", type=str, metavar="TEXT",
        help="Recommend a domain layout for a description"
    )
    mode.add_argument(
        "--analyze", "-a", type=str, metavar="PATH",
        help="Light analysis of a domain directory"
    )
    mode.add_argument(
        "--deep", "-d", type=str, metavar="PATH",
        help="Deep analysis: components, issues and refactoring plans"
    )
    mode.add_argument(
        "--plan", "-p", type=str, metavar="PATH",
        help="Refactoring plan and checklist for one issue (requires --issue)"
    )
    parser.add_argument(
        "--issue", "-i", type=str, metavar="ID",
        help="Issue id for --plan, e.g. ISSUE-001"
    )
    parser.add_argument(
        "--min-severity", type=str, choices=SEVERITY_LEVELS, default=DEFAULT_MIN_SEVERITY,
        help=f"Lowest severity to report (default: {DEFAULT_MIN_SEVERITY})"
    )
    parser.add_argument(
        "--skip-rule", action="append", default=[], metavar="NAME",
        help="Skip a detection rule by name (repeatable)"
    )
    parser.add_argument(
        "--base-path", type=str, default=None,
        help="Directory analyzed domains must live under (default: cwd)"
    )
    parser.add_argument(
        "--json", action="store_true",
        help="Print JSON instead of a text report"
    )
    parser.add_argument(
        "--verbose", "-v", action="count", default=0,
        help="Log progress to stderr (-vv for debug)"
    )
    parser.add_argument(
        "--log-file", type=str, default=None, metavar="PATH",
        help="Also write log records to this file"
    )
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    log_file = Path(args.log_file) if args.log_file else None
    setup_logging(level=level_for_verbosity(args.verbose), log_file=log_file)
    logger.debug(f"Arguments: {vars(args)}")

    if args.plan and not args.issue:
        parser.error("--plan requires --issue")

    if not (args.recommend or args.analyze or args.deep or args.plan):
        parser.print_help()
        return 1

    engine = _DecisionEngine(base_path=args.base_path)
    formatter = get_default_formatter()
    options = {"min_severity": args.min_severity, "skip_rules": args.skip_rule}

    try:
        if args.recommend:
            rec = engine.recommend_architecture(args.recommend)
            _emit(rec, formatter.format_recommendation(rec), args.json)

        elif args.analyze:
            analysis = engine.analyze_domain(args.analyze)
            _emit(analysis, formatter.format_domain_analysis(analysis), args.json)

        elif args.deep:
            report = engine.analyze_deep_architecture(args.deep, options)
            _emit(report, formatter.format_deep_report(report), args.json)

        else:
            plan = engine.plan_refactoring(args.plan, args.issue, options)
            _emit(plan, formatter.format_plan(plan), args.json)

    except (FileNotFoundError, NotADirectoryError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    return 0


if __name__ == "__main__":
    sys.exit(main())
