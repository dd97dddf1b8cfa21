"""Source discovery and parsing for Rust crates."""

from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence

import tree_sitter_rust as ts_rust
from pathspec import PathSpec
from pathspec.patterns.gitwildmatch import GitWildMatchPatternError
from tree_sitter import Language, Parser

from .config import ScanConfig
from .extract import declares_no_std
from .logging import get_logger
from .models import ParsedUnit

RUST_LANGUAGE = Language(ts_rust.language())

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".idea",
    ".cratescope",
}

_OPTIONAL_DIRS = {
    "tests": "include_tests",
    "examples": "include_examples",
    "benches": "include_benches",
}


class ScanError(RuntimeError):
    """Base class for failures while collecting source units."""


class PatternError(ScanError):
    """Raised for a malformed include/exclude glob."""


class SourceReadError(ScanError):
    """Raised when a source file or its metadata cannot be read."""


class SourceParseError(ScanError):
    """Raised when tree-sitter reports syntax errors for a file."""


class GlobSet:
    """Include/exclude patterns compiled with pathspec.

    A path matches when the gitwildmatch reading accepts it (``**`` spans
    zero or more directories) or when ``fnmatchcase`` does (``*`` also
    spans ``/``).
    """

    def __init__(self, patterns: Sequence[str]) -> None:
        self.patterns = list(patterns)
        for pattern in self.patterns:
            if not pattern or not pattern.strip():
                raise PatternError("Empty glob pattern")
            if pattern.startswith("!"):
                raise PatternError(f"Negated glob {pattern!r} is not supported")
        try:
            self._spec = PathSpec.from_lines("gitwildmatch", self.patterns)
        except GitWildMatchPatternError as exc:
            raise PatternError(f"Invalid glob: {exc}") from exc

    def match(self, rel_path: str) -> bool:
        if self._spec.match_file(rel_path):
            return True
        return any(fnmatchcase(rel_path, pattern) for pattern in self.patterns)


def compile_globs(patterns: Sequence[str]) -> GlobSet:
    """Compile patterns up front so a bad one fails before any file is read."""
    return GlobSet(patterns)


@dataclass(frozen=True)
class _Candidate:
    path: Path
    rel_path: str
    modified: float


class SourceScanner:
    """Collects `.rs` files under a root and parses them with tree-sitter."""

    def __init__(self, config: Optional[ScanConfig] = None) -> None:
        self.config = config or ScanConfig()
        self.logger = get_logger("scanner")
        # Patterns are validated before any file is touched.
        self._include = compile_globs(self.config.include)
        self._exclude = compile_globs(self.config.effective_excludes())

    def scan(self, root: str | Path, source_roots: Optional[Sequence[Path]] = None) -> List[ParsedUnit]:
        """Return parsed units in candidate order.

        ``source_roots`` limits the walk to the given directories (workspace
        members); paths in the result stay relative to ``root``.
        """
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            raise FileNotFoundError(f"Crate root not found: {root_path}")
        if not root_path.is_dir():
            raise NotADirectoryError(f"Crate root is not a directory: {root_path}")

        candidates = self.candidates(root_path, source_roots)
        self.logger.info("Parsing %d source file(s) under %s", len(candidates), root_path)

        workers = self.config.workers or min(8, (os.cpu_count() or 1))
        if workers <= 1 or len(candidates) <= 1:
            results: Iterable[Optional[ParsedUnit]] = [self._load(candidate) for candidate in candidates]
        else:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                results = list(executor.map(self._load, candidates))
        return [unit for unit in results if unit is not None]

    def candidates(self, root: Path, source_roots: Optional[Sequence[Path]] = None) -> List[_Candidate]:
        seen = set()
        found: List[_Candidate] = []
        for walk_root in source_roots or [root]:
            for candidate in self._walk(root, Path(walk_root)):
                if candidate.rel_path in seen:
                    continue
                seen.add(candidate.rel_path)
                found.append(candidate)

        found.sort(key=lambda candidate: candidate.rel_path)
        if self.config.only_newest:
            found.sort(key=lambda candidate: candidate.modified, reverse=True)
            found = found[: self.config.only_newest]
        return found

    def _walk(self, root: Path, walk_root: Path) -> Iterator[_Candidate]:
        if not walk_root.is_absolute():
            walk_root = root / walk_root
        for dirpath, dirnames, filenames in os.walk(walk_root, followlinks=self.config.follow_links):
            current = Path(dirpath)
            package_root = current == walk_root or (current / "Cargo.toml").is_file()
            dirnames[:] = sorted(name for name in dirnames if self._keep_dir(name, package_root))
            for filename in sorted(filenames):
                file_path = current / filename
                if file_path.is_symlink() and not self.config.follow_links:
                    continue
                try:
                    rel_path = file_path.relative_to(root).as_posix()
                except ValueError:
                    rel_path = file_path.as_posix()
                if not self._selected(rel_path):
                    continue
                try:
                    stat = file_path.stat()
                except OSError as exc:
                    self._fail(SourceReadError(f"Cannot stat {rel_path}: {exc}"))
                    continue
                if self.config.max_file_size is not None and stat.st_size > self.config.max_file_size:
                    self.logger.debug("Skipping %s (%d bytes over limit)", rel_path, stat.st_size)
                    continue
                yield _Candidate(path=file_path, rel_path=rel_path, modified=stat.st_mtime)

    def _keep_dir(self, name: str, package_root: bool) -> bool:
        if name in _EXCLUDED_DIRS:
            return False
        # tests/examples/benches are optional only beside a Cargo.toml;
        # deeper directories with those names are ordinary modules.
        toggle = _OPTIONAL_DIRS.get(name) if package_root else None
        if toggle is not None:
            return bool(getattr(self.config, toggle))
        return True

    def _selected(self, rel_path: str) -> bool:
        if not self._include.match(rel_path):
            return False
        return not self._exclude.match(rel_path)

    def _load(self, candidate: _Candidate) -> Optional[ParsedUnit]:
        try:
            return self._parse(candidate)
        except ScanError as exc:
            self._fail(exc)
            return None

    def _parse(self, candidate: _Candidate) -> ParsedUnit:
        try:
            source = candidate.path.read_bytes()
        except OSError as exc:
            raise SourceReadError(f"Cannot read {candidate.rel_path}: {exc}") from exc
        # Parser instances are not shared between worker threads.
        tree = Parser(RUST_LANGUAGE).parse(source)
        if tree.root_node.has_error:
            raise SourceParseError(f"Syntax errors in {candidate.rel_path}")
        return ParsedUnit(
            path=candidate.rel_path,
            modified=candidate.modified,
            source=source,
            tree=tree,
            is_no_std=declares_no_std(tree, source),
        )

    def _fail(self, error: ScanError) -> None:
        if not self.config.ignore_parse_errors:
            raise error
        self.logger.warning("%s (skipped)", error)


def parse_source(source: str | bytes, path: str = "lib.rs") -> ParsedUnit:
    """Parse an in-memory snippet into a unit without touching the filesystem."""
    data = source.encode("utf-8") if isinstance(source, str) else source
    tree = Parser(RUST_LANGUAGE).parse(data)
    return ParsedUnit(path=path, modified=0.0, source=data, tree=tree, is_no_std=declares_no_std(tree, data))


__all__ = [
    "GlobSet",
    "PatternError",
    "RUST_LANGUAGE",
    "ScanError",
    "SourceParseError",
    "SourceReadError",
    "SourceScanner",
    "compile_globs",
    "parse_source",
]
