"""API fingerprints and drift detection between two runs."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .models import ExportFact, FunctionFact, ImportFact, Location

_SNAPSHOT_VERSION = 1


class SnapshotError(RuntimeError):
    """Raised when a persisted snapshot cannot be read."""


def signature_hash(signature: str) -> str:
    normalized = " ".join(signature.split())
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class FunctionFingerprint:
    fq_name: str
    sig_hash: str
    signature: str
    location: Location


@dataclass(frozen=True)
class ExportFingerprint:
    exported_as: str
    source_path: str
    location: Location

    @property
    def key(self) -> Tuple[str, str]:
        return self.exported_as, self.source_path


@dataclass(frozen=True)
class Snapshot:
    """Content-hashed projection of one analysis run."""

    crate_name: str
    no_std: bool
    functions: Tuple[FunctionFingerprint, ...] = ()
    exports: Tuple[ExportFingerprint, ...] = ()
    imports: Tuple[str, ...] = ()

    @classmethod
    def from_facts(
        cls,
        crate_name: str,
        no_std: bool,
        functions: Iterable[FunctionFact],
        exports: Iterable[ExportFact],
        imports: Iterable[ImportFact],
    ) -> "Snapshot":
        return cls(
            crate_name=crate_name,
            no_std=no_std,
            functions=tuple(
                FunctionFingerprint(
                    fq_name=fn.fq_name,
                    sig_hash=signature_hash(fn.signature),
                    signature=fn.signature,
                    location=fn.location,
                )
                for fn in functions
            ),
            exports=tuple(
                ExportFingerprint(
                    exported_as=export.exported_as,
                    source_path=export.source_path,
                    location=export.location,
                )
                for export in exports
            ),
            imports=tuple(sorted({fact.full_path for fact in imports})),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "crate_name": self.crate_name,
            "no_std": self.no_std,
            "functions": [
                {
                    "fq_name": fn.fq_name,
                    "sig_hash": fn.sig_hash,
                    "signature": fn.signature,
                    "location": _location_to_dict(fn.location),
                }
                for fn in self.functions
            ],
            "exports": [
                {
                    "exported_as": export.exported_as,
                    "source_path": export.source_path,
                    "location": _location_to_dict(export.location),
                }
                for export in self.exports
            ],
            "imports": list(self.imports),
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Snapshot":
        try:
            return cls(
                crate_name=str(payload["crate_name"]),
                no_std=bool(payload.get("no_std", False)),
                functions=tuple(
                    FunctionFingerprint(
                        fq_name=str(item["fq_name"]),
                        sig_hash=str(item["sig_hash"]),
                        signature=str(item["signature"]),
                        location=_location_from_dict(item.get("location")),
                    )
                    for item in payload.get("functions", [])
                ),
                exports=tuple(
                    ExportFingerprint(
                        exported_as=str(item["exported_as"]),
                        source_path=str(item["source_path"]),
                        location=_location_from_dict(item.get("location")),
                    )
                    for item in payload.get("exports", [])
                ),
                imports=tuple(sorted({str(path) for path in payload.get("imports", [])})),
            )
        except (KeyError, TypeError, AttributeError) as exc:
            raise SnapshotError(f"Malformed snapshot payload: {exc}") from exc


@dataclass
class SnapshotDiff:
    added_functions: List[FunctionFingerprint] = field(default_factory=list)
    removed_functions: List[FunctionFingerprint] = field(default_factory=list)
    changed_signatures: List[Tuple[FunctionFingerprint, FunctionFingerprint]] = field(default_factory=list)
    added_exports: List[ExportFingerprint] = field(default_factory=list)
    removed_exports: List[ExportFingerprint] = field(default_factory=list)
    added_imports: List[str] = field(default_factory=list)
    removed_imports: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not any(
            (
                self.added_functions,
                self.removed_functions,
                self.changed_signatures,
                self.added_exports,
                self.removed_exports,
                self.added_imports,
                self.removed_imports,
            )
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "added_functions": [fn.fq_name for fn in self.added_functions],
            "removed_functions": [fn.fq_name for fn in self.removed_functions],
            "changed_signatures": [
                {"fq_name": old.fq_name, "old": old.signature, "new": new.signature}
                for old, new in self.changed_signatures
            ],
            "added_exports": [list(export.key) for export in self.added_exports],
            "removed_exports": [list(export.key) for export in self.removed_exports],
            "added_imports": list(self.added_imports),
            "removed_imports": list(self.removed_imports),
        }


def diff_snapshots(old: Snapshot, new: Snapshot) -> SnapshotDiff:
    """Compare two snapshots; location changes alone never show up."""
    old_fns = {fn.fq_name: fn for fn in old.functions}
    new_fns = {fn.fq_name: fn for fn in new.functions}
    old_exports = {export.key: export for export in old.exports}
    new_exports = {export.key: export for export in new.exports}
    old_imports = set(old.imports)
    new_imports = set(new.imports)

    diff = SnapshotDiff()
    for key in sorted(new_fns.keys() - old_fns.keys()):
        diff.added_functions.append(new_fns[key])
    for key in sorted(old_fns.keys() - new_fns.keys()):
        diff.removed_functions.append(old_fns[key])
    for key in sorted(old_fns.keys() & new_fns.keys()):
        if old_fns[key].sig_hash != new_fns[key].sig_hash:
            diff.changed_signatures.append((old_fns[key], new_fns[key]))
    for key in sorted(new_exports.keys() - old_exports.keys()):
        diff.added_exports.append(new_exports[key])
    for key in sorted(old_exports.keys() - new_exports.keys()):
        diff.removed_exports.append(old_exports[key])
    diff.added_imports = sorted(new_imports - old_imports)
    diff.removed_imports = sorted(old_imports - new_imports)
    return diff


class SnapshotStore:
    """Reads and writes snapshots as versioned JSON documents."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def load(self) -> Snapshot:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise SnapshotError(f"Snapshot not found: {self._path}") from exc
        except (OSError, json.JSONDecodeError) as exc:
            raise SnapshotError(f"Failed to read snapshot {self._path}: {exc}") from exc
        if not isinstance(data, dict) or data.get("version") != _SNAPSHOT_VERSION:
            raise SnapshotError(f"Unsupported snapshot format in {self._path}")
        snapshot = data.get("snapshot")
        if not isinstance(snapshot, dict):
            raise SnapshotError(f"Snapshot payload missing in {self._path}")
        return Snapshot.from_dict(snapshot)

    def save(self, snapshot: Snapshot) -> None:
        payload = {
            "version": _SNAPSHOT_VERSION,
            "created_at": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "snapshot": snapshot.to_dict(),
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")


def _location_to_dict(location: Location) -> Dict[str, Any]:
    return {"path": location.path, "line": location.line, "column": location.column}


def _location_from_dict(payload: Optional[Dict[str, Any]]) -> Location:
    if not isinstance(payload, dict):
        return Location("")
    line = payload.get("line")
    column = payload.get("column")
    return Location(
        path=str(payload.get("path", "")),
        line=line if isinstance(line, int) else None,
        column=column if isinstance(column, int) else None,
    )


__all__ = [
    "ExportFingerprint",
    "FunctionFingerprint",
    "Snapshot",
    "SnapshotDiff",
    "SnapshotError",
    "SnapshotStore",
    "diff_snapshots",
    "signature_hash",
]
