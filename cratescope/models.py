"""Core data models shared across cratescope components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


@dataclass(frozen=True)
class Location:
    """A position in a source file; line is 1-based, column 0-based."""

    path: str
    line: Optional[int] = None
    column: Optional[int] = None

    def render(self) -> str:
        return f"{self.path}:{self.line or 0}:{self.column or 0}"


@dataclass(frozen=True)
class FreeFn:
    """A function declared directly in a module."""

    def qualifier(self) -> Optional[str]:
        return None


@dataclass(frozen=True)
class ImplMethod:
    """A function inside an `impl` block, optionally a trait implementation."""

    self_ty: str
    trait_ty: Optional[str] = None

    def qualifier(self) -> Optional[str]:
        return self.self_ty


@dataclass(frozen=True)
class TraitMethod:
    """A function declared inside a trait definition."""

    trait_name: str

    def qualifier(self) -> Optional[str]:
        return self.trait_name


FunctionKind = Union[FreeFn, ImplMethod, TraitMethod]


@dataclass(frozen=True)
class FunctionFact:
    """A function-like declaration and its signature details."""

    name: str
    fq_name: str
    is_public: bool
    has_docs: bool
    is_async: bool
    is_unsafe: bool
    is_const: bool
    is_generic: bool
    args: Tuple[str, ...]
    return_type: Optional[str]
    kind: FunctionKind
    module_path: Tuple[str, ...]
    attrs: Tuple[str, ...]
    signature: str
    location: Location


class UseKind(str, Enum):
    NAME = "name"
    GLOB = "glob"
    RENAME = "rename"


class ImportOrigin(str, Enum):
    INTERNAL = "internal"
    STD = "std"
    CORE = "core"
    ALLOC = "alloc"
    WORKSPACE_MEMBER = "workspace_member"
    DEPENDENCY = "dependency"
    UNKNOWN_EXTERNAL = "unknown_external"


@dataclass(frozen=True)
class ImportFact:
    """One flattened leaf of a `use` declaration."""

    root: str
    segments: Tuple[str, ...]
    module_path: Tuple[str, ...]
    is_internal: bool
    is_public_use: bool
    kind: UseKind
    full_path: str
    is_absolute: bool
    location: Location
    alias: Optional[str] = None
    origin: Optional[ImportOrigin] = None


@dataclass(frozen=True)
class ExportFact:
    """A `pub use` re-export and the path it resolves to."""

    exported_as: str
    source_path: str
    module_path: Tuple[str, ...]
    location: Location


@dataclass(frozen=True)
class MacroDefFact:
    name: str
    module_path: Tuple[str, ...]
    location: Location
    enclosing_fn: Optional[str] = None
    enclosing_public: Optional[bool] = None


@dataclass(frozen=True)
class MacroInvocationFact:
    name: str
    path: Optional[str]
    module_path: Tuple[str, ...]
    location: Location
    enclosing_fn: Optional[str] = None
    enclosing_public: Optional[bool] = None


@dataclass(frozen=True)
class PathOccurrenceFact:
    path: str
    module_path: Tuple[str, ...]
    location: Location
    enclosing_fn: Optional[str] = None
    enclosing_public: Optional[bool] = None


@dataclass(frozen=True)
class CallOccurrenceFact:
    callee: str
    module_path: Tuple[str, ...]
    location: Location
    enclosing_fn: Optional[str] = None
    enclosing_public: Optional[bool] = None


Position = Tuple[int, int]


@dataclass(frozen=True)
class FunctionSpan:
    """Inclusive source range of a function-like declaration."""

    fq_name: str
    is_public: bool
    kind: FunctionKind
    path: str
    start: Optional[Position] = None
    end: Optional[Position] = None

    def contains(self, location: Location) -> bool:
        if self.start is None or self.end is None:
            return False
        if location.path != self.path:
            return False
        if location.line is None or location.column is None:
            return False
        return self.start <= (location.line, location.column) <= self.end

    @property
    def line_extent(self) -> int:
        if self.start is None or self.end is None:
            return 0
        return self.end[0] - self.start[0]


class Severity(str, Enum):
    INFO = "info"
    WARN = "warn"
    DENY = "deny"

    @property
    def label(self) -> str:
        return self.name


@dataclass(frozen=True)
class Finding:
    """One rule violation."""

    severity: Severity
    code: str
    message: str
    location: Location
    extra: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class DocCoverage:
    public_total: int
    public_documented: int

    @property
    def percent(self) -> float:
        if self.public_total == 0:
            return 100.0
        return self.public_documented * 100.0 / self.public_total


@dataclass(frozen=True)
class PublicSurface:
    functions: List[FunctionFact]
    exports: List[ExportFact]


class UseSiteKind(str, Enum):
    USE_STMT = "use"
    PATH = "path"
    MACRO_CALL = "macro"


@dataclass(frozen=True)
class UseSite:
    """A normalized reference to a symbol under a tracked root."""

    dep: str
    path: str
    head: str
    kind: UseSiteKind
    location: Location
    scope: str


@dataclass(frozen=True)
class ParsedUnit:
    """A source file together with its syntax tree."""

    path: str
    modified: float
    source: bytes
    tree: Any
    is_no_std: bool = False


@dataclass
class UnitFacts:
    """Everything extracted from a single parsed unit."""

    functions: List[FunctionFact] = field(default_factory=list)
    imports: List[ImportFact] = field(default_factory=list)
    exports: List[ExportFact] = field(default_factory=list)
    macro_defs: List[MacroDefFact] = field(default_factory=list)
    macro_invocations: List[MacroInvocationFact] = field(default_factory=list)
    paths: List[PathOccurrenceFact] = field(default_factory=list)
    calls: List[CallOccurrenceFact] = field(default_factory=list)
    spans: List[FunctionSpan] = field(default_factory=list)


@dataclass
class FactSet(UnitFacts):
    """Facts merged across every unit of a run."""

    no_std: bool = False

    def merge(self, unit: UnitFacts) -> None:
        self.functions.extend(unit.functions)
        self.imports.extend(unit.imports)
        self.exports.extend(unit.exports)
        self.macro_defs.extend(unit.macro_defs)
        self.macro_invocations.extend(unit.macro_invocations)
        self.paths.extend(unit.paths)
        self.calls.extend(unit.calls)
        self.spans.extend(unit.spans)


__all__ = [
    "CallOccurrenceFact",
    "DocCoverage",
    "ExportFact",
    "FactSet",
    "Finding",
    "FreeFn",
    "FunctionFact",
    "FunctionKind",
    "FunctionSpan",
    "ImplMethod",
    "ImportFact",
    "ImportOrigin",
    "Location",
    "MacroDefFact",
    "MacroInvocationFact",
    "ParsedUnit",
    "PathOccurrenceFact",
    "Position",
    "PublicSurface",
    "Severity",
    "TraitMethod",
    "UnitFacts",
    "UseKind",
    "UseSite",
    "UseSiteKind",
]
