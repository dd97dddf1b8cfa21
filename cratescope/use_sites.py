"""Cross-reference views: where a crate root is used, normalized across fact kinds."""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Set, Tuple

from .extract import INTERNAL_ROOTS
from .imports import normalize_crate_name
from .models import FactSet, Location, UseSite, UseSiteKind


def split_dep_path(path: str) -> Optional[Tuple[str, str, str]]:
    """Split ``root::head::...`` into ``(root, head, full)``.

    Single-segment paths carry no head and are not use sites.
    """
    full = path[2:] if path.startswith("::") else path
    segments = [segment for segment in full.split("::") if segment]
    if len(segments) < 2:
        return None
    return segments[0], segments[1], "::".join(segments)


def scope_label(enclosing_fn: Optional[str], module_path: Sequence[str]) -> str:
    if enclosing_fn:
        return enclosing_fn
    if not module_path:
        return "file"
    return "module::" + "::".join(module_path)


def _collect(facts: FactSet, accepts) -> List[UseSite]:  # type: ignore[no-untyped-def]
    sites: List[UseSite] = []

    for fact in facts.imports:
        root = normalize_crate_name(fact.root)
        if not accepts(root):
            continue
        head = fact.segments[0] if fact.segments else "*"
        full_path = fact.full_path[2:] if fact.full_path.startswith("::") else fact.full_path
        sites.append(
            UseSite(
                dep=root,
                path=full_path,
                head=head,
                kind=UseSiteKind.USE_STMT,
                location=fact.location,
                scope=scope_label(None, fact.module_path),
            )
        )

    for occurrence in facts.paths:
        _append_split(
            sites, accepts, occurrence.path, UseSiteKind.PATH,
            occurrence.location, occurrence.enclosing_fn, occurrence.module_path,
        )

    for invocation in facts.macro_invocations:
        if invocation.path is None:
            continue
        _append_split(
            sites, accepts, invocation.path, UseSiteKind.MACRO_CALL,
            invocation.location, invocation.enclosing_fn, invocation.module_path,
        )

    return sites


def _append_split(
    sites: List[UseSite],
    accepts,  # type: ignore[no-untyped-def]
    path: str,
    kind: UseSiteKind,
    location: Location,
    enclosing_fn: Optional[str],
    module_path: Sequence[str],
) -> None:
    split = split_dep_path(path)
    if split is None:
        return
    root, head, full = split
    root = normalize_crate_name(root)
    if not accepts(root):
        return
    sites.append(
        UseSite(
            dep=root,
            path=full,
            head=head,
            kind=kind,
            location=location,
            scope=scope_label(enclosing_fn, module_path),
        )
    )


def dep_use_sites(facts: FactSet, roots: Iterable[str]) -> List[UseSite]:
    """Use sites whose root is one of ``roots`` (compared after normalization)."""
    wanted: Set[str] = {normalize_crate_name(root) for root in roots}
    return _collect(facts, lambda root: root in wanted)


def internal_use_sites(facts: FactSet, crate_name: str) -> List[UseSite]:
    """Use sites rooted at the crate itself: crate/self/super or its own name."""
    own = normalize_crate_name(crate_name)
    return _collect(facts, lambda root: root in INTERNAL_ROOTS or root == own)


__all__ = ["dep_use_sites", "internal_use_sites", "scope_label", "split_dep_path"]
