"""Reference rules shipped with cratescope."""

from __future__ import annotations

from typing import List

from ..models import FactSet, Finding, Severity
from .base import Rule

RISKY_ACCESSORS = ("unwrap", "expect")
PANIC_MACROS = frozenset({"panic", "todo", "unreachable"})


def is_risky_call(callee: str, name: str) -> bool:
    """True for `unwrap` itself or a member access such as `opt.unwrap`."""
    return callee == name or callee.endswith(f".{name}")


class UndocumentedPublicApi(Rule):
    code = "KLEP001"
    name = "undocumented-public-api"

    def run(self, facts: FactSet) -> List[Finding]:
        return [
            Finding(
                severity=Severity.WARN,
                code=self.code,
                message=f"public function missing docs: {fn.fq_name}",
                location=fn.location,
                extra={"signature": fn.signature},
            )
            for fn in facts.functions
            if fn.is_public and not fn.has_docs
        ]


class RiskyCallInPublicApi(Rule):
    code = "KLEP002"
    name = "risky-call-in-public-api"

    def run(self, facts: FactSet) -> List[Finding]:
        findings: List[Finding] = []
        for call in facts.calls:
            if not call.enclosing_public or call.enclosing_fn is None:
                continue
            if not any(is_risky_call(call.callee, accessor) for accessor in RISKY_ACCESSORS):
                continue
            findings.append(
                Finding(
                    severity=Severity.WARN,
                    code=self.code,
                    message=f"panic-ish call inside public fn {call.enclosing_fn}: {call.callee}",
                    location=call.location,
                    extra={"enclosing_fn": call.enclosing_fn, "callee": call.callee},
                )
            )
        return findings


class PanicMacroInPublicApi(Rule):
    code = "KLEP003"
    name = "panic-macro-in-public-api"

    def run(self, facts: FactSet) -> List[Finding]:
        findings: List[Finding] = []
        for invocation in facts.macro_invocations:
            if not invocation.enclosing_public or invocation.enclosing_fn is None:
                continue
            if invocation.name not in PANIC_MACROS:
                continue
            findings.append(
                Finding(
                    severity=Severity.WARN,
                    code=self.code,
                    message=f"macro {invocation.name}! inside public fn {invocation.enclosing_fn}",
                    location=invocation.location,
                    extra={"enclosing_fn": invocation.enclosing_fn, "macro": invocation.name},
                )
            )
        return findings


class StdInNoStd(Rule):
    code = "KLEP004"
    name = "std-in-no-std"

    def run(self, facts: FactSet) -> List[Finding]:
        if not facts.no_std:
            return []
        findings: List[Finding] = []
        for fact in facts.imports:
            if fact.root != "std":
                continue
            findings.append(
                Finding(
                    severity=Severity.DENY,
                    code=self.code,
                    message=f"std import in no_std crate: {fact.full_path}",
                    location=fact.location,
                    extra={"full_path": fact.full_path},
                )
            )
        for occurrence in facts.paths:
            path = occurrence.path[2:] if occurrence.path.startswith("::") else occurrence.path
            if path != "std" and not path.startswith("std::"):
                continue
            findings.append(
                Finding(
                    severity=Severity.DENY,
                    code=self.code,
                    message=f"std path in no_std crate: {occurrence.path}",
                    location=occurrence.location,
                    extra={"path": occurrence.path},
                )
            )
        return findings


__all__ = [
    "PANIC_MACROS",
    "PanicMacroInPublicApi",
    "RISKY_ACCESSORS",
    "RiskyCallInPublicApi",
    "StdInNoStd",
    "UndocumentedPublicApi",
    "is_risky_call",
]
