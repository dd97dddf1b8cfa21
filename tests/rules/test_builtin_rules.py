"""Tests for the built-in rules and the rule runner."""

from __future__ import annotations

from types import SimpleNamespace
from typing import List

import pytest

from cratescope.models import FactSet, Finding, Location, Severity
from cratescope.rules import Rule, RuleRunner, discover_rules
from cratescope.rules.builtin import (
    PanicMacroInPublicApi,
    RiskyCallInPublicApi,
    StdInNoStd,
    UndocumentedPublicApi,
    is_risky_call,
)
from tests._fixtures.crate_builder import analyze


class TodoRule(Rule):
    """Test rule used for plugin discovery validation."""

    code = "TEST001"
    name = "todo-rule"

    def run(self, facts: FactSet) -> List[Finding]:
        return [Finding(Severity.INFO, self.code, "hello", Location("x.rs"))]


def _codes(findings: List[Finding]) -> List[str]:
    return [finding.code for finding in findings]


def test_undocumented_public_function_yields_one_finding() -> None:
    findings = analyze("pub fn exposed() {}\n").run_rules()

    assert _codes(findings) == ["KLEP001"]
    assert findings[0].severity is Severity.WARN
    assert "crate::exposed" in findings[0].message
    assert findings[0].extra == {"signature": "fn exposed()"}


def test_documented_or_private_functions_are_not_flagged() -> None:
    findings = analyze("/// Docs.\npub fn a() {}\nfn b() {}\n").run_rules()

    assert findings == []


def test_std_import_in_no_std_crate_is_denied() -> None:
    findings = analyze("#![no_std]\nuse std::sync::Arc;\n").run_rules()

    assert _codes(findings) == ["KLEP004"]
    assert findings[0].severity is Severity.DENY
    assert "std::sync::Arc" in findings[0].message


def test_std_paths_in_no_std_crate_are_denied() -> None:
    analysis = analyze(
        {
            "src/lib.rs": "#![no_std]\nmod util;\n",
            "src/util.rs": "fn f() { let _ = std::mem::size_of::<u8>(); }\n",
        }
    )

    findings = StdInNoStd().run(analysis.facts)

    assert [finding.message for finding in findings] == ["std path in no_std crate: std::mem::size_of"]


def test_std_usage_is_fine_without_no_std() -> None:
    assert StdInNoStd().run(analyze("use std::sync::Arc;\n").facts) == []


def test_risky_calls_only_inside_public_functions() -> None:
    analysis = analyze(
        """
        pub fn a(x: Option<u8>) -> u8 { x.unwrap() }
        pub fn b(x: Option<u8>) -> u8 { x.expect("present") }
        fn c(x: Option<u8>) -> u8 { x.unwrap() }
        pub fn d(x: Option<u8>) -> u8 { x.unwrap_or(0) }
        """
    )

    findings = RiskyCallInPublicApi().run(analysis.facts)

    assert [finding.message for finding in findings] == [
        "panic-ish call inside public fn crate::a: unwrap",
        "panic-ish call inside public fn crate::b: expect",
    ]
    assert findings[0].extra == {"enclosing_fn": "crate::a", "callee": "unwrap"}


def test_is_risky_call_matching() -> None:
    assert is_risky_call("unwrap", "unwrap")
    assert is_risky_call("value.unwrap", "unwrap")
    assert not is_risky_call("unwrap_or", "unwrap")
    assert not is_risky_call("Option::unwrap", "unwrap")


def test_panic_macros_inside_public_functions() -> None:
    analysis = analyze(
        """
        pub fn e() { todo!() }
        pub fn f() { unreachable!() }
        fn g() { panic!() }
        pub fn h() { println!("ok") }
        """
    )

    findings = PanicMacroInPublicApi().run(analysis.facts)

    assert [finding.message for finding in findings] == [
        "macro todo! inside public fn crate::e",
        "macro unreachable! inside public fn crate::f",
    ]


def test_default_runner_order() -> None:
    analysis = analyze(
        """
        #![no_std]
        use std::vec::Vec;

        pub fn run(x: Option<u8>) -> u8 {
            todo!();
            x.unwrap()
        }
        """
    )

    assert _codes(analysis.run_rules()) == ["KLEP001", "KLEP002", "KLEP004", "KLEP003"]


def test_runner_add_rule_appends_and_validates() -> None:
    runner = RuleRunner().add_rule(TodoRule())

    assert _codes(runner.run(FactSet())) == ["TEST001"]
    with pytest.raises(TypeError):
        runner.add_rule(object())  # type: ignore[arg-type]


def test_discover_rules_returns_builtins_in_order() -> None:
    rules = discover_rules()

    assert [type(rule) for rule in rules][:4] == [
        UndocumentedPublicApi,
        RiskyCallInPublicApi,
        StdInNoStd,
        PanicMacroInPublicApi,
    ]


def test_discover_rules_respects_enabled_filter() -> None:
    assert [rule.code for rule in discover_rules(["KLEP004"])] == ["KLEP004"]
    assert [rule.code for rule in discover_rules(["risky-call-in-public-api"])] == ["KLEP002"]
    with pytest.raises(ValueError):
        discover_rules(["KLEP999"])


def test_discover_rules_loads_entry_points(monkeypatch) -> None:
    entry = SimpleNamespace(name="todo", load=lambda: TodoRule)
    monkeypatch.setattr("cratescope.rules._iter_entry_points", lambda: [entry])

    rules = discover_rules()

    assert [rule.code for rule in rules] == ["KLEP001", "KLEP002", "KLEP004", "KLEP003", "TEST001"]
    assert [rule.code for rule in discover_rules(["TEST001"])] == ["TEST001"]
