"""Rendering of findings, coverage and snapshot diffs."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from jinja2 import Environment, FileSystemLoader

from .models import DocCoverage, Finding
from .snapshot import SnapshotDiff

SEVERITY_WIDTH = 4
CODE_WIDTH = 7
LOCATION_WIDTH = 31

TABLE_HEADER = (
    f"{'SEV':<{SEVERITY_WIDTH}} {'CODE':<{CODE_WIDTH}} {'LOCATION':<{LOCATION_WIDTH}}  MESSAGE"
)
TABLE_SEPARATOR = f"{'-' * SEVERITY_WIDTH} {'-' * CODE_WIDTH} {'-' * LOCATION_WIDTH}  {'-' * 30}"

_TEMPLATES_DIR = Path(__file__).with_name("templates")


def truncate(text: str, width: int) -> str:
    if len(text) <= width:
        return text
    return text[: width - 3] + "..."


def render_table(findings: Sequence[Finding]) -> str:
    lines = [TABLE_HEADER, TABLE_SEPARATOR]
    for finding in findings:
        location = truncate(finding.location.render(), LOCATION_WIDTH)
        lines.append(
            f"{finding.severity.label:<{SEVERITY_WIDTH}} "
            f"{finding.code:<{CODE_WIDTH}} "
            f"{location:<{LOCATION_WIDTH}}  "
            f"{finding.message}"
        )
    return "\n".join(lines) + "\n"


def finding_to_dict(finding: Finding) -> Dict[str, Any]:
    return {
        "severity": finding.severity.value,
        "code": finding.code,
        "message": finding.message,
        "location": {
            "path": finding.location.path,
            "line": finding.location.line,
            "column": finding.location.column,
        },
        "extra": finding.extra,
    }


def render_json(findings: Sequence[Finding], coverage: Optional[DocCoverage] = None) -> str:
    payload: Dict[str, Any] = {"findings": [finding_to_dict(finding) for finding in findings]}
    if coverage is not None:
        payload["doc_coverage"] = {
            "public_total": coverage.public_total,
            "public_documented": coverage.public_documented,
            "percent": coverage.percent,
        }
    return json.dumps(payload, indent=2, sort_keys=True)


class ReportRenderer:
    """Renders Markdown reports from Jinja templates."""

    def __init__(self, templates_dir: Path | None = None) -> None:
        directories: List[str] = []
        if templates_dir is not None:
            directories.append(str(templates_dir))
        directories.append(str(_TEMPLATES_DIR))
        self._env = Environment(
            loader=FileSystemLoader(directories),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def findings_markdown(
        self,
        findings: Sequence[Finding],
        *,
        coverage: Optional[DocCoverage] = None,
        title: str = "cratescope report",
    ) -> str:
        template = self._env.get_template("findings.md.j2")
        rows = [
            {
                "severity": finding.severity.label,
                "code": finding.code,
                "message": finding.message,
                "location": finding.location.render(),
            }
            for finding in findings
        ]
        return template.render(title=title, findings=rows, coverage=coverage)

    def diff_markdown(self, crate_name: str, diff: SnapshotDiff) -> str:
        template = self._env.get_template("diff.md.j2")
        return template.render(crate_name=crate_name, diff=diff)


def render_markdown(findings: Sequence[Finding], coverage: Optional[DocCoverage] = None) -> str:
    return ReportRenderer().findings_markdown(findings, coverage=coverage)


def render_diff_markdown(crate_name: str, diff: SnapshotDiff) -> str:
    return ReportRenderer().diff_markdown(crate_name, diff)


def render_diff_json(diff: SnapshotDiff) -> str:
    return json.dumps(diff.to_dict(), indent=2, sort_keys=True)


__all__ = [
    "ReportRenderer",
    "TABLE_HEADER",
    "TABLE_SEPARATOR",
    "finding_to_dict",
    "render_diff_json",
    "render_diff_markdown",
    "render_json",
    "render_markdown",
    "render_table",
    "truncate",
]
