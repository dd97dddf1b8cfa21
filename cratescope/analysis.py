"""Merged fact set for one crate and the read-only views built on it."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from .extract import extract_unit
from .imports import ImportSummary, classify_imports, summarize
from .index import EnclosingIndex
from .logging import get_logger
from .models import (
    CallOccurrenceFact,
    DocCoverage,
    FactSet,
    Finding,
    FunctionFact,
    FunctionSpan,
    Location,
    MacroInvocationFact,
    ParsedUnit,
    PathOccurrenceFact,
    PublicSurface,
    UseSite,
)
from .query import FunctionQuery, ImportQuery
from .rules import RuleRunner
from .rules.builtin import is_risky_call
from .snapshot import Snapshot, SnapshotDiff, diff_snapshots
from .use_sites import dep_use_sites, internal_use_sites
from .workspace import WorkspaceNames

logger = get_logger("analysis")


@dataclass
class Analysis:
    """Facts for a whole crate, plus the span index over its functions."""

    crate_name: str
    facts: FactSet
    index: EnclosingIndex
    workspace: WorkspaceNames = field(default_factory=WorkspaceNames)

    @classmethod
    def from_units(
        cls,
        units: Iterable[ParsedUnit],
        crate_name: str,
        workspace: Optional[WorkspaceNames] = None,
        *,
        span_locations: bool = True,
    ) -> "Analysis":
        """Extract every unit, then merge, index and classify in that order."""
        workspace = workspace or WorkspaceNames()
        facts = FactSet()
        index = EnclosingIndex()
        unit_count = 0
        for unit in units:
            unit_facts = extract_unit(unit, crate_name, span_locations=span_locations)
            facts.merge(unit_facts)
            index.merge(EnclosingIndex.build(unit_facts.spans))
            facts.no_std = facts.no_std or unit.is_no_std
            unit_count += 1
        facts.imports = classify_imports(facts.imports, workspace.members, workspace.dependencies)
        logger.debug(
            "Extracted %d function(s), %d import(s) from %d unit(s)",
            len(facts.functions),
            len(facts.imports),
            unit_count,
        )
        return cls(crate_name=crate_name, facts=facts, index=index, workspace=workspace)

    @property
    def no_std(self) -> bool:
        return self.facts.no_std

    # ------------------------------------------------------------------
    # Queries

    def query_functions(self) -> FunctionQuery:
        return FunctionQuery(self.facts.functions)

    def query_imports(self) -> ImportQuery:
        return ImportQuery(self.facts.imports)

    def public_api(self) -> List[FunctionFact]:
        return self.query_functions().public_only().collect()

    def undocumented_public_api(self) -> List[FunctionFact]:
        return self.query_functions().public_only().no_docs().collect()

    def public_surface(self) -> PublicSurface:
        return PublicSurface(functions=self.public_api(), exports=list(self.facts.exports))

    def doc_coverage(self) -> DocCoverage:
        public = self.public_api()
        return DocCoverage(
            public_total=len(public),
            public_documented=sum(1 for fn in public if fn.has_docs),
        )

    def import_summary(self) -> ImportSummary:
        return summarize(self.facts.imports)

    # ------------------------------------------------------------------
    # Finders

    def find_paths(self, path: str) -> List[PathOccurrenceFact]:
        return [occurrence for occurrence in self.facts.paths if occurrence.path == path]

    def find_macro_invocations(self, name: str) -> List[MacroInvocationFact]:
        return [invocation for invocation in self.facts.macro_invocations if invocation.name == name]

    def find_calls(self, needle: str) -> List[CallOccurrenceFact]:
        return [call for call in self.facts.calls if needle in call.callee]

    def unwrap_calls(self) -> List[CallOccurrenceFact]:
        return [call for call in self.facts.calls if is_risky_call(call.callee, "unwrap")]

    def expect_calls(self) -> List[CallOccurrenceFact]:
        return [call for call in self.facts.calls if is_risky_call(call.callee, "expect")]

    def enclosing(self, location: Location) -> Optional[FunctionSpan]:
        return self.index.enclosing(location)

    # ------------------------------------------------------------------
    # Cross references

    def dep_use_sites(self, roots: Iterable[str]) -> List[UseSite]:
        return dep_use_sites(self.facts, roots)

    def internal_use_sites(self) -> List[UseSite]:
        return internal_use_sites(self.facts, self.crate_name)

    # ------------------------------------------------------------------
    # Snapshots and rules

    def snapshot(self) -> Snapshot:
        return Snapshot.from_facts(
            self.crate_name,
            self.no_std,
            self.facts.functions,
            self.facts.exports,
            self.facts.imports,
        )

    def diff_snapshot(self, old: Snapshot) -> SnapshotDiff:
        return diff_snapshots(old, self.snapshot())

    def run_rules(self, runner: Optional[RuleRunner] = None) -> List[Finding]:
        runner = runner or RuleRunner.with_default_rules()
        return runner.run(self.facts)


__all__ = ["Analysis"]
