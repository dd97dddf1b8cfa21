"""Pipeline orchestration for check/snapshot/diff/coverage flows."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from .analysis import Analysis
from .config import ConfigError, CrateScopeConfig, load_config
from .logging import get_logger
from .models import DocCoverage, Finding, Severity
from .rules import RuleRunner, discover_rules
from .scanner import SourceScanner
from .snapshot import Snapshot, SnapshotDiff, SnapshotStore
from .workspace import WorkspaceError, WorkspaceLayout, WorkspaceNames, resolve_workspace

DEFAULT_SNAPSHOT = Path(".cratescope") / "snapshot.json"


@dataclass
class CheckOutcome:
    """Findings of a `check` run."""

    analysis: Analysis
    findings: List[Finding]

    @property
    def has_denials(self) -> bool:
        return any(finding.severity is Severity.DENY for finding in self.findings)


@dataclass
class DiffOutcome:
    crate_name: str
    baseline: Path
    diff: SnapshotDiff


class Orchestrator:
    """Coordinates scanning, extraction and the downstream views."""

    def __init__(
        self,
        scanner_factory: Callable[[CrateScopeConfig], SourceScanner] | None = None,
        workspace_resolver: Callable[[Path], WorkspaceLayout] | None = None,
    ) -> None:
        self.logger = get_logger("orchestrator")
        self._scanner_factory = scanner_factory or (lambda config: SourceScanner(config.scan))
        self._workspace_resolver = workspace_resolver or resolve_workspace

    def analyze(self, path: str | Path, *, crate_name: Optional[str] = None) -> Analysis:
        """Scan and extract a crate rooted at ``path``."""
        root = Path(path).expanduser().resolve()
        config = self._load_config(root)
        layout = self._resolve_workspace(root)

        name = crate_name or config.crate_name or (layout.crate_name if layout else None) or "crate"
        names = layout.names() if layout else WorkspaceNames()
        source_roots = None
        if config.scan.members:
            if layout is None:
                raise WorkspaceError("Member filtering requires a Cargo.toml")
            source_roots = layout.member_dirs(config.scan.members)

        scanner = self._scanner_factory(config)
        units = scanner.scan(root, source_roots)
        self.logger.info("Analyzing %d unit(s) for crate %s", len(units), name)
        return Analysis.from_units(units, name, names, span_locations=config.span_locations)

    def run_check(self, path: str | Path, *, rules: Optional[List[str]] = None) -> CheckOutcome:
        root = Path(path).expanduser().resolve()
        analysis = self.analyze(root)
        enabled = rules or self._load_config(root).rules.enabled
        runner = RuleRunner(discover_rules(enabled or None))
        findings = analysis.run_rules(runner)
        self.logger.info("Check produced %d finding(s)", len(findings))
        return CheckOutcome(analysis=analysis, findings=findings)

    def run_coverage(self, path: str | Path) -> DocCoverage:
        return self.analyze(path).doc_coverage()

    def run_snapshot(self, path: str | Path, output: str | Path | None = None) -> Path:
        """Write the current snapshot and return where it went."""
        root = Path(path).expanduser().resolve()
        analysis = self.analyze(root)
        target = self._snapshot_path(root, output)
        SnapshotStore(target).save(analysis.snapshot())
        self.logger.info("Snapshot written to %s", target)
        return target

    def run_diff(self, path: str | Path, baseline: str | Path | None = None) -> DiffOutcome:
        """Diff the current tree against a previously saved snapshot."""
        root = Path(path).expanduser().resolve()
        target = self._snapshot_path(root, baseline)
        old: Snapshot = SnapshotStore(target).load()
        analysis = self.analyze(root)
        return DiffOutcome(crate_name=analysis.crate_name, baseline=target, diff=analysis.diff_snapshot(old))

    # ------------------------------------------------------------------
    # Internal helpers

    def _load_config(self, root: Path) -> CrateScopeConfig:
        try:
            return load_config(root)
        except ConfigError:
            self.logger.error("Invalid configuration under %s", root)
            raise

    def _resolve_workspace(self, root: Path) -> Optional[WorkspaceLayout]:
        if not (root / "Cargo.toml").exists():
            self.logger.debug("No Cargo.toml under %s; skipping workspace resolution", root)
            return None
        return self._workspace_resolver(root)

    def _snapshot_path(self, root: Path, explicit: str | Path | None) -> Path:
        if explicit is not None:
            return Path(explicit).expanduser().resolve()
        config = self._load_config(root)
        return config.snapshot_path or root / DEFAULT_SNAPSHOT


__all__ = ["CheckOutcome", "DiffOutcome", "Orchestrator", "DEFAULT_SNAPSHOT"]
