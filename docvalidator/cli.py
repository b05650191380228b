"""CLI entrypoints for docvalidator commands."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from .aggregator import Aggregator
from .config import ConfigError, ValidationOptions
from .logging import configure_logging
from .models import AggregateReport


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docvalidator",
        description="Validate project documentation for freshness, consistency and coverage.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser(
        "serve",
        help="Serve the validation tools as line-delimited JSON-RPC over stdin/stdout.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)

    validate_parser = subparsers.add_parser(
        "validate",
        help="Run the documentation validators against a project.",
    )
    _add_verbose_option(validate_parser, suppress_default=True)
    validate_parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the project root (defaults to current directory).",
    )
    validate_parser.add_argument(
        "--validators",
        nargs="+",
        metavar="NAME",
        help="Validators to run (defaults to all).",
    )
    validate_parser.add_argument(
        "--min-coverage",
        type=float,
        metavar="PERCENT",
        help="Minimum coverage percentage required to pass.",
    )
    validate_parser.add_argument(
        "--skip-external-links",
        action="store_true",
        default=None,
        help="Skip checks for external links.",
    )
    validate_parser.add_argument(
        "--require-language",
        action="store_true",
        default=None,
        help="Report code blocks without a language tag.",
    )
    validate_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full report as JSON.",
    )

    check_parser = subparsers.add_parser(
        "check",
        help="Check whether a project has documentation.",
    )
    _add_verbose_option(check_parser, suppress_default=True)
    check_parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the project root (defaults to current directory).",
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for docvalidator commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "serve":
        from .service.server import run_stdio

        run_stdio(verbose=bool(args.verbose))
        return

    configure_logging(verbose=bool(args.verbose))
    aggregator = Aggregator()

    if args.command == "validate":
        if args.min_coverage is not None and not 0 <= args.min_coverage <= 100:
            parser.error("--min-coverage must be between 0 and 100")
        options = ValidationOptions(
            validators=args.validators,
            verbose=bool(args.verbose),
            skip_external_links=args.skip_external_links,
            require_language=args.require_language,
            min_coverage_percentage=args.min_coverage,
        )
        try:
            report = asyncio.run(aggregator.run(args.path, options))
        except (FileNotFoundError, NotADirectoryError) as exc:
            parser.exit(1, f"{exc}\n")
        except (ConfigError, ValueError) as exc:
            parser.exit(1, f"docvalidator validate failed: {exc}\n")
        if args.json:
            print(json.dumps(report.to_dict(verbose=bool(args.verbose)), indent=2))
        else:
            _print_report(report)
        if not report.passed:
            sys.exit(1)
    elif args.command == "check":
        check = aggregator.documentation_exists(args.path)
        print(check.message)
        if not check.exists:
            sys.exit(1)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _print_report(report: AggregateReport) -> None:
    for name, result in report.validators.items():
        verdict = "PASS" if result.passed else "FAIL"
        print(f"[{verdict}] {name}: {result.error or result.summary}")
        for key, issues in result.issues.items():
            for issue in issues:
                location = f"{key}:{issue.line_number}" if issue.line_number else key
                print(f"    {issue.severity:<7} {location} {issue.message}")
    print(report.summary_line())


if __name__ == "__main__":
    main(sys.argv[1:])
