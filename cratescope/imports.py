"""Import origin classification and import collection helpers."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field, replace
from typing import AbstractSet, Dict, Iterable, List, Optional, Tuple

from .extract import INTERNAL_ROOTS
from .models import ImportFact, ImportOrigin, UseKind

_PLATFORM_ORIGINS = {
    "std": ImportOrigin.STD,
    "core": ImportOrigin.CORE,
    "alloc": ImportOrigin.ALLOC,
}


def normalize_crate_name(name: str) -> str:
    """Cargo package names allow `-`; the paths that reference them use `_`."""
    return name.replace("-", "_")


def classify_root(
    root: str,
    workspace_members: AbstractSet[str],
    dependencies: AbstractSet[str],
) -> ImportOrigin:
    if root in INTERNAL_ROOTS:
        return ImportOrigin.INTERNAL
    platform = _PLATFORM_ORIGINS.get(root)
    if platform is not None:
        return platform
    normalized = normalize_crate_name(root)
    if normalized in workspace_members:
        return ImportOrigin.WORKSPACE_MEMBER
    if normalized in dependencies:
        return ImportOrigin.DEPENDENCY
    return ImportOrigin.UNKNOWN_EXTERNAL


def classify_imports(
    imports: Iterable[ImportFact],
    workspace_members: Iterable[str] = (),
    dependencies: Iterable[str] = (),
) -> List[ImportFact]:
    """Return copies of ``imports`` with their origin assigned."""
    members = {normalize_crate_name(name) for name in workspace_members}
    deps = {normalize_crate_name(name) for name in dependencies}
    classified: List[ImportFact] = []
    for fact in imports:
        if fact.origin is not None:
            classified.append(fact)
            continue
        classified.append(replace(fact, origin=classify_root(fact.root, members, deps)))
    return classified


def unique(imports: Iterable[ImportFact]) -> List[ImportFact]:
    """Drop repeated imports, keeping the first occurrence."""
    seen = set()
    result: List[ImportFact] = []
    for fact in imports:
        key = (fact.full_path, fact.kind, fact.alias, fact.is_absolute, fact.is_public_use)
        if key in seen:
            continue
        seen.add(key)
        result.append(fact)
    return result


def unique_prefer_pub_use(imports: Iterable[ImportFact]) -> List[ImportFact]:
    """Like :func:`unique`, but a ``pub use`` replaces an earlier private duplicate."""
    positions: Dict[Tuple[str, UseKind, Optional[str], bool], int] = {}
    result: List[ImportFact] = []
    for fact in imports:
        key = (fact.full_path, fact.kind, fact.alias, fact.is_absolute)
        index = positions.get(key)
        if index is None:
            positions[key] = len(result)
            result.append(fact)
        elif fact.is_public_use and not result[index].is_public_use:
            result[index] = fact
    return result


def group_by_origin(imports: Iterable[ImportFact]) -> Dict[Optional[ImportOrigin], List[ImportFact]]:
    groups: Dict[Optional[ImportOrigin], List[ImportFact]] = {}
    for fact in imports:
        groups.setdefault(fact.origin, []).append(fact)
    return groups


def group_by_root(imports: Iterable[ImportFact]) -> Dict[str, List[ImportFact]]:
    groups: Dict[str, List[ImportFact]] = {}
    for fact in imports:
        groups.setdefault(fact.root, []).append(fact)
    return groups


@dataclass
class ImportSummary:
    """Aggregate counts over a set of imports."""

    total: int = 0
    by_origin: Dict[str, int] = field(default_factory=dict)
    by_root: Dict[str, int] = field(default_factory=dict)
    pub_use_count: int = 0
    glob_count: int = 0
    rename_count: int = 0
    absolute_count: int = 0


def summarize(imports: Iterable[ImportFact]) -> ImportSummary:
    facts = list(imports)
    origins = Counter(fact.origin.value if fact.origin else "unclassified" for fact in facts)
    roots = Counter(fact.root for fact in facts)
    return ImportSummary(
        total=len(facts),
        by_origin=dict(sorted(origins.items())),
        by_root=dict(sorted(roots.items())),
        pub_use_count=sum(1 for fact in facts if fact.is_public_use),
        glob_count=sum(1 for fact in facts if fact.kind is UseKind.GLOB),
        rename_count=sum(1 for fact in facts if fact.kind is UseKind.RENAME),
        absolute_count=sum(1 for fact in facts if fact.is_absolute),
    )


__all__ = [
    "ImportSummary",
    "classify_imports",
    "classify_root",
    "group_by_origin",
    "group_by_root",
    "normalize_crate_name",
    "summarize",
    "unique",
    "unique_prefer_pub_use",
]
