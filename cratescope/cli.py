"""CLI entrypoints for cratescope commands."""

from __future__ import annotations

import argparse
import json
from pathlib import Path

from .config import ConfigError
from .logging import configure_logging
from .orchestrator import Orchestrator
from .report import render_diff_json, render_diff_markdown, render_json, render_markdown, render_table
from .scanner import ScanError
from .snapshot import SnapshotError
from .workspace import WorkspaceError

_FAILURES = (ConfigError, ScanError, SnapshotError, WorkspaceError, FileNotFoundError, NotADirectoryError, ValueError)


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    kwargs["default"] = argparse.SUPPRESS if suppress_default else False
    parser.add_argument("-v", "--verbose", **kwargs)


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the crate or workspace root (defaults to current directory).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cratescope",
        description="Extract facts from Rust crates, check code health and track API drift.",
    )
    _add_verbose_option(parser)
    parser.add_argument("--log-file", type=Path, default=None, help="Also write debug logs to this file.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    check_parser = subparsers.add_parser("check", help="Run the rule set and report findings.")
    _add_verbose_option(check_parser, suppress_default=True)
    _add_path_argument(check_parser)
    check_parser.add_argument(
        "--format",
        choices=("table", "json", "markdown"),
        default="table",
        help="Output format for findings.",
    )
    check_parser.add_argument(
        "--rule",
        action="append",
        dest="rules",
        default=None,
        help="Only run the given rule code or name (repeatable).",
    )

    snapshot_parser = subparsers.add_parser("snapshot", help="Record the public API fingerprint.")
    _add_verbose_option(snapshot_parser, suppress_default=True)
    _add_path_argument(snapshot_parser)
    snapshot_parser.add_argument("--output", type=Path, default=None, help="Where to write the snapshot.")

    diff_parser = subparsers.add_parser("diff", help="Compare the crate against a saved snapshot.")
    _add_verbose_option(diff_parser, suppress_default=True)
    _add_path_argument(diff_parser)
    diff_parser.add_argument("--baseline", type=Path, default=None, help="Snapshot to compare against.")
    diff_parser.add_argument("--format", choices=("markdown", "json"), default="markdown")
    diff_parser.add_argument(
        "--fail-on-changes",
        action="store_true",
        help="Exit with status 1 when the API drifted.",
    )

    coverage_parser = subparsers.add_parser("coverage", help="Report documentation coverage of public functions.")
    _add_verbose_option(coverage_parser, suppress_default=True)
    _add_path_argument(coverage_parser)
    coverage_parser.add_argument("--format", choices=("text", "json"), default="text")
    coverage_parser.add_argument(
        "--min",
        type=float,
        default=None,
        dest="minimum",
        help="Exit with status 1 when coverage is below this percentage.",
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for cratescope commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    orchestrator = Orchestrator()

    try:
        if args.command == "check":
            outcome = orchestrator.run_check(args.path, rules=args.rules)
            if args.format == "json":
                print(render_json(outcome.findings, outcome.analysis.doc_coverage()))
            elif args.format == "markdown":
                print(render_markdown(outcome.findings, outcome.analysis.doc_coverage()))
            else:
                print(render_table(outcome.findings), end="")
            if outcome.has_denials:
                parser.exit(1)
        elif args.command == "snapshot":
            target = orchestrator.run_snapshot(args.path, args.output)
            print(f"Snapshot written to {_relativize(target)}")
        elif args.command == "diff":
            result = orchestrator.run_diff(args.path, args.baseline)
            if args.format == "json":
                print(render_diff_json(result.diff))
            else:
                print(render_diff_markdown(result.crate_name, result.diff), end="")
            if args.fail_on_changes and not result.diff.is_empty():
                parser.exit(1)
        elif args.command == "coverage":
            coverage = orchestrator.run_coverage(args.path)
            if args.format == "json":
                print(
                    json.dumps(
                        {
                            "public_total": coverage.public_total,
                            "public_documented": coverage.public_documented,
                            "percent": coverage.percent,
                        },
                        indent=2,
                    )
                )
            else:
                print(
                    f"{coverage.percent:.1f}% documented "
                    f"({coverage.public_documented}/{coverage.public_total} public functions)"
                )
            if args.minimum is not None and coverage.percent < args.minimum:
                parser.exit(1)
        else:  # pragma: no cover - argparse enforces choices
            parser.exit(1, "Unknown command\n")
    except _FAILURES as exc:
        parser.exit(2, f"cratescope {args.command} failed: {exc}\nRun with --verbose for more details.\n")


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


__all__ = ["main"]
