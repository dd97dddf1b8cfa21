"""CLI parser and command behaviour tests."""

from __future__ import annotations

import json

import pytest

from cratescope.cli import _build_parser, main
from cratescope.report import TABLE_HEADER


def test_cli_accepts_verbose_before_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["--verbose", "check"])
    assert args.verbose is True
    assert args.command == "check"
    assert args.path == "."


def test_cli_accepts_verbose_after_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["check", "--verbose"])
    assert args.verbose is True
    assert args.command == "check"


def test_cli_collects_repeated_rule_flags() -> None:
    parser = _build_parser()
    args = parser.parse_args(["check", "crate", "--rule", "KLEP001", "--rule", "KLEP004", "--format", "json"])
    assert args.path == "crate"
    assert args.rules == ["KLEP001", "KLEP004"]
    assert args.format == "json"


def test_cli_diff_and_coverage_flags() -> None:
    parser = _build_parser()
    diff = parser.parse_args(["diff", "--baseline", "old.json", "--fail-on-changes"])
    assert str(diff.baseline) == "old.json"
    assert diff.fail_on_changes is True
    assert diff.format == "markdown"

    coverage = parser.parse_args(["coverage", "--min", "80"])
    assert coverage.minimum == 80.0
    assert coverage.format == "text"


def test_check_prints_table(crate_builder, capsys) -> None:
    crate_builder.write({"src/lib.rs": "pub fn exposed() {}\n"})

    main(["check", str(crate_builder.path())])

    out = capsys.readouterr().out
    lines = out.splitlines()
    assert lines[0] == TABLE_HEADER
    assert lines[2].startswith("WARN KLEP001 src/lib.rs:1:0")
    assert lines[2].endswith("public function missing docs: crate::exposed")


def test_check_json_output(crate_builder, capsys) -> None:
    crate_builder.write({"src/lib.rs": "/// Docs.\npub fn ok() {}\n"})

    main(["check", str(crate_builder.path()), "--format", "json"])

    payload = json.loads(capsys.readouterr().out)
    assert payload["findings"] == []
    assert payload["doc_coverage"]["percent"] == 100.0


def test_check_exits_with_one_on_denials(crate_builder, capsys) -> None:
    crate_builder.write({"src/lib.rs": "#![no_std]\nuse std::sync::Arc;\n"})

    with pytest.raises(SystemExit) as excinfo:
        main(["check", str(crate_builder.path())])

    assert excinfo.value.code == 1
    assert "DENY KLEP004" in capsys.readouterr().out


def test_unknown_rule_exits_with_two(crate_builder, capsys) -> None:
    crate_builder.write({"src/lib.rs": "fn f() {}\n"})

    with pytest.raises(SystemExit) as excinfo:
        main(["check", str(crate_builder.path()), "--rule", "KLEP999"])

    assert excinfo.value.code == 2
    assert "cratescope check failed" in capsys.readouterr().err


def test_missing_path_exits_with_two(tmp_path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["coverage", str(tmp_path / "missing")])

    assert excinfo.value.code == 2


def test_snapshot_then_diff(crate_builder, capsys) -> None:
    crate_builder.write({"src/lib.rs": "pub fn f() -> u32 { 1 }\n"})
    root = crate_builder.path()

    main(["snapshot", str(root)])
    assert "Snapshot written to" in capsys.readouterr().out
    assert (root / ".cratescope" / "snapshot.json").exists()

    main(["diff", str(root), "--fail-on-changes"])
    assert "No changes since the previous snapshot." in capsys.readouterr().out

    (root / "src" / "lib.rs").write_text("pub fn f() -> u64 { 1 }\npub fn g() {}\n", encoding="utf-8")

    main(["diff", str(root), "--format", "json"])
    payload = json.loads(capsys.readouterr().out)
    assert payload["added_functions"] == ["crate::g"]
    assert payload["changed_signatures"] == [
        {"fq_name": "crate::f", "old": "fn f() -> u32", "new": "fn f() -> u64"}
    ]

    with pytest.raises(SystemExit) as excinfo:
        main(["diff", str(root), "--fail-on-changes"])
    assert excinfo.value.code == 1


def test_coverage_text_and_minimum(crate_builder, capsys) -> None:
    crate_builder.write({"src/lib.rs": "/// Docs.\npub fn a() {}\npub fn b() {}\n"})
    root = str(crate_builder.path())

    main(["coverage", root])
    assert capsys.readouterr().out.strip() == "50.0% documented (1/2 public functions)"

    with pytest.raises(SystemExit) as excinfo:
        main(["coverage", root, "--min", "75"])
    assert excinfo.value.code == 1
