"""Location to enclosing-function lookups."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from .models import FunctionSpan, Location


class EnclosingIndex:
    """Function spans grouped per file, answering "which fn contains this spot"."""

    def __init__(self) -> None:
        self._by_file: Dict[str, List[FunctionSpan]] = {}

    @classmethod
    def build(cls, spans: Iterable[FunctionSpan]) -> "EnclosingIndex":
        index = cls()
        for span in spans:
            index._by_file.setdefault(span.path, []).append(span)
        for file_spans in index._by_file.values():
            file_spans.sort(key=_start_line)
        return index

    def merge(self, other: "EnclosingIndex") -> None:
        """Append another index's spans; files are never re-sorted across merges."""
        for path, spans in other._by_file.items():
            self._by_file.setdefault(path, []).extend(spans)

    def spans(self, path: str | None = None) -> List[FunctionSpan]:
        if path is not None:
            return list(self._by_file.get(path, []))
        return [span for spans in self._by_file.values() for span in spans]

    def enclosing(self, location: Location) -> Optional[FunctionSpan]:
        """Return the tightest span containing ``location``.

        The tightest span has the smallest line extent. Equal extents go to the
        span that starts later (the innermost one), then to insertion order.
        """
        best: Optional[FunctionSpan] = None
        for span in self._by_file.get(location.path, []):
            if not span.contains(location):
                continue
            if best is None or _tighter(span, best):
                best = span
        return best

    def __len__(self) -> int:
        return sum(len(spans) for spans in self._by_file.values())


def _start_line(span: FunctionSpan) -> int:
    return span.start[0] if span.start is not None else 0


def _tighter(candidate: FunctionSpan, current: FunctionSpan) -> bool:
    if candidate.line_extent != current.line_extent:
        return candidate.line_extent < current.line_extent
    # Both contain the location, so their starts are set.
    return candidate.start > current.start  # type: ignore[operator]


__all__ = ["EnclosingIndex"]
