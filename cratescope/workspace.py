"""Cargo manifest resolution: package names, workspace members and dependencies."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence, Set

from .imports import normalize_crate_name
from .logging import get_logger

_DEPENDENCY_TABLES = ("dependencies", "dev-dependencies", "build-dependencies")

logger = get_logger("workspace")


class WorkspaceError(RuntimeError):
    """Raised when the Cargo workspace cannot be resolved."""


@dataclass(frozen=True)
class WorkspaceNames:
    """Normalized package names resolved from the Cargo workspace."""

    members: FrozenSet[str] = frozenset()
    dependencies: FrozenSet[str] = frozenset()


@dataclass
class CrateManifest:
    """One package entry of a workspace."""

    name: str
    directory: Path
    dependencies: Set[str] = field(default_factory=set)


@dataclass
class WorkspaceLayout:
    root: Path
    packages: List[CrateManifest]
    shared_dependencies: Set[str] = field(default_factory=set)

    @property
    def crate_name(self) -> Optional[str]:
        """The root package name, or the only member of a virtual workspace."""
        for package in self.packages:
            if package.directory == self.root:
                return normalize_crate_name(package.name)
        if len(self.packages) == 1:
            return normalize_crate_name(self.packages[0].name)
        return None

    def names(self) -> WorkspaceNames:
        members = {normalize_crate_name(package.name) for package in self.packages}
        dependencies: Set[str] = set(self.shared_dependencies)
        for package in self.packages:
            dependencies.update(package.dependencies)
        return WorkspaceNames(members=frozenset(members), dependencies=frozenset(dependencies - members))

    def member_dirs(self, members: Sequence[str]) -> List[Path]:
        """Source directories for the named members; unknown names are an error."""
        by_name = {normalize_crate_name(package.name): package for package in self.packages}
        directories: List[Path] = []
        for member in members:
            package = by_name.get(normalize_crate_name(member))
            if package is None:
                raise WorkspaceError(f"Unknown workspace member: {member}")
            directories.append(package.directory)
        return directories


def resolve_workspace(root: str | Path) -> WorkspaceLayout:
    """Read ``Cargo.toml`` at ``root`` and any workspace members it lists."""
    root_path = Path(root).expanduser().resolve()
    manifest = _read_manifest(root_path / "Cargo.toml")

    packages: List[CrateManifest] = []
    if isinstance(manifest.get("package"), dict):
        packages.append(_crate_manifest(root_path, manifest))

    shared: Set[str] = set()
    workspace = manifest.get("workspace")
    if isinstance(workspace, dict):
        shared.update(_dependency_names(workspace.get("dependencies")))
        excluded = {
            (root_path / entry).resolve() for entry in _str_list(workspace.get("exclude"))
        }
        for directory in _expand_members(root_path, _str_list(workspace.get("members"))):
            if directory in excluded or directory == root_path:
                continue
            member_manifest = _read_manifest(directory / "Cargo.toml")
            if not isinstance(member_manifest.get("package"), dict):
                raise WorkspaceError(f"Workspace member {directory} has no [package] table")
            packages.append(_crate_manifest(directory, member_manifest))

    if not packages:
        raise WorkspaceError(f"No packages found in {root_path / 'Cargo.toml'}")

    layout = WorkspaceLayout(root=root_path, packages=packages, shared_dependencies=shared)
    logger.debug(
        "Resolved %d package(s) with %d dependency name(s)",
        len(packages),
        len(layout.names().dependencies),
    )
    return layout


def _read_manifest(path: Path) -> Dict[str, Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except FileNotFoundError as exc:
        raise WorkspaceError(f"Cargo manifest not found: {path}") from exc
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise WorkspaceError(f"Failed to read {path}: {exc}") from exc


def _crate_manifest(directory: Path, manifest: Dict[str, Any]) -> CrateManifest:
    package = manifest["package"]
    name = package.get("name")
    if not isinstance(name, str) or not name:
        raise WorkspaceError(f"Package in {directory} has no name")
    dependencies: Set[str] = set()
    for table in _dependency_tables(manifest):
        dependencies.update(_dependency_names(table))
    return CrateManifest(name=name, directory=directory, dependencies=dependencies)


def _dependency_tables(manifest: Dict[str, Any]) -> Iterable[Any]:
    for key in _DEPENDENCY_TABLES:
        yield manifest.get(key)
    targets = manifest.get("target")
    if isinstance(targets, dict):
        for target in targets.values():
            if isinstance(target, dict):
                for key in _DEPENDENCY_TABLES:
                    yield target.get(key)


def _dependency_names(table: Any) -> Set[str]:
    if not isinstance(table, dict):
        return set()
    names: Set[str] = set()
    for key, spec in table.items():
        names.add(normalize_crate_name(str(key)))
        # `alias = { package = "real-name" }` is referenced by its alias, but
        # keep the real name too so fully qualified references still match.
        if isinstance(spec, dict) and isinstance(spec.get("package"), str):
            names.add(normalize_crate_name(spec["package"]))
    return names


def _expand_members(root: Path, patterns: Sequence[str]) -> List[Path]:
    directories: List[Path] = []
    for pattern in patterns:
        if any(char in pattern for char in "*?["):
            matches = sorted(path for path in root.glob(pattern) if (path / "Cargo.toml").is_file())
        else:
            matches = [root / pattern]
        for match in matches:
            resolved = match.resolve()
            if resolved not in directories:
                directories.append(resolved)
    return directories


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if isinstance(item, str)]


__all__ = [
    "CrateManifest",
    "WorkspaceError",
    "WorkspaceLayout",
    "WorkspaceNames",
    "resolve_workspace",
]
