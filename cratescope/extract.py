"""Fact extraction over tree-sitter Rust syntax trees.

One walk per parsed unit produces function facts, occurrence facts (macro
definitions and invocations, qualified paths, calls) and the function spans
used by :class:`cratescope.index.EnclosingIndex`. Imports and re-exports
are collected by separate module-level walks because they only ever live
at item level.

The walker keeps three stacks while descending:

* module path, pushed for inline ``mod name { ... }`` blocks only;
* type context, pushed for ``impl`` and ``trait`` bodies, and pushed with
  ``None`` for function bodies so nested items fall back to free functions;
* function context, the fq name and visibility used to annotate every
  occurrence recorded inside a function.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Set, Tuple

from .models import (
    CallOccurrenceFact,
    ExportFact,
    FreeFn,
    FunctionFact,
    FunctionKind,
    FunctionSpan,
    ImplMethod,
    ImportFact,
    Location,
    MacroDefFact,
    MacroInvocationFact,
    ParsedUnit,
    PathOccurrenceFact,
    TraitMethod,
    UnitFacts,
    UseKind,
)

INTERNAL_ROOTS = frozenset({"crate", "self", "super"})

# Single-segment paths worth keeping; everything else needs a `::`.
BARE_PATH_ALLOWLIST = frozenset({"std", "core", "alloc"})

_COMMENT_NODES = {"line_comment", "block_comment"}
_SCOPED_PATH_NODES = {"scoped_identifier", "scoped_type_identifier"}
_GENERIC_PATH_NODES = {"generic_type", "generic_type_with_turbofish"}
_FUNCTION_NODES = {"function_item", "function_signature_item"}
_TRIVIA_BEFORE_ITEM = {"attribute_item", "line_comment", "block_comment"}
_OPAQUE_NODES = {
    "use_declaration",
    "extern_crate_declaration",
    "foreign_mod_item",
    "attribute_item",
    "inner_attribute_item",
    "visibility_modifier",
    "token_tree",
    "line_comment",
    "block_comment",
}


def _node_text(node, source: bytes) -> str:  # type: ignore[no-untyped-def]
    return source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")


def _squash(text: str) -> str:
    return " ".join(text.split())


def path_segments(node, source: bytes) -> List[str]:  # type: ignore[no-untyped-def]
    """Split a path node into its segments, dropping generic arguments.

    A leading ``::`` is represented by an empty first segment.
    """
    kind = node.type
    if kind in _SCOPED_PATH_NODES:
        prefix = node.child_by_field_name("path")
        name = node.child_by_field_name("name")
        if prefix is not None:
            segments = path_segments(prefix, source)
        elif _node_text(node, source).startswith("::"):
            segments = [""]
        else:
            segments = []
        if name is not None:
            segments.append(_node_text(name, source))
        return segments
    if kind in _GENERIC_PATH_NODES:
        inner = node.child_by_field_name("type")
        if inner is not None:
            return path_segments(inner, source)
    if kind == "bracketed_type":
        return [_squash(_node_text(node, source))]
    return ["".join(_node_text(node, source).split())]


def render_path(node, source: bytes) -> str:  # type: ignore[no-untyped-def]
    return "::".join(path_segments(node, source))


def fq_name(crate_name: str, module_path: Sequence[str], kind: FunctionKind, name: str) -> str:
    """Compose the cross-run identity of a function-like declaration."""
    parts = [crate_name, *module_path]
    qualifier = kind.qualifier()
    if qualifier:
        parts.append(qualifier)
    parts.append(name)
    return "::".join(parts)


def declares_no_std(tree, source: bytes) -> bool:  # type: ignore[no-untyped-def]
    """Return True when the unit carries a crate-level ``#![no_std]``."""
    for child in tree.root_node.named_children:
        if child.type == "inner_attribute_item" and _attribute_path(child, source) == "no_std":
            return True
    return False


def _attribute_path(item, source: bytes) -> Optional[str]:  # type: ignore[no-untyped-def]
    for child in item.named_children:
        if child.type == "attribute" and child.named_children:
            return render_path(child.named_children[0], source)
    return None


def _visibility(node, source: bytes) -> Optional[str]:  # type: ignore[no-untyped-def]
    for child in node.children:
        if child.type == "visibility_modifier":
            return "".join(_node_text(child, source).split())
    return None


def _is_doc_comment(text: str) -> bool:
    if text.startswith("///"):
        return not text.startswith("////")
    if text.startswith("/**"):
        return not text.startswith("/***") and text != "/**/"
    return False


def _leading_trivia(node) -> List:  # type: ignore[no-untyped-def]
    """Attributes and comments directly above an item, in source order."""
    items = []
    sibling = node.prev_sibling
    while sibling is not None and sibling.type in _TRIVIA_BEFORE_ITEM:
        items.append(sibling)
        sibling = sibling.prev_sibling
    items.reverse()
    return items


def _type_name(node, source: bytes) -> str:  # type: ignore[no-untyped-def]
    if node.type in _SCOPED_PATH_NODES or node.type in _GENERIC_PATH_NODES or node.type in {
        "type_identifier",
        "primitive_type",
    }:
        segments = path_segments(node, source)
        if segments and segments[-1]:
            return segments[-1]
    return _squash(_node_text(node, source))


def _modifiers(node) -> Set[str]:  # type: ignore[no-untyped-def]
    found: Set[str] = set()
    for child in node.children:
        if child.type == "function_modifiers":
            found.update(modifier.type for modifier in child.children)
    return found


def _signature(node, source: bytes) -> str:  # type: ignore[no-untyped-def]
    start = None
    for child in node.children:
        if child.type not in _TRIVIA_BEFORE_ITEM and child.type != "visibility_modifier":
            start = child.start_byte
            break
    if start is None:
        start = node.start_byte
    body = node.child_by_field_name("body")
    end = body.start_byte if body is not None else node.end_byte
    text = source[start:end].decode("utf-8", errors="replace").strip()
    if text.endswith(";"):
        text = text[:-1]
    return _squash(text)


class _UnitWalker:
    """Single context-aware traversal over one parsed unit."""

    def __init__(self, unit: ParsedUnit, crate_name: str, span_locations: bool) -> None:
        self._source = unit.source
        self._path = unit.path
        self._crate = crate_name
        self._span_locations = span_locations
        self._modules: List[str] = []
        self._types: List[Optional[FunctionKind]] = []
        self._functions: List[Tuple[str, bool]] = []
        self.facts = UnitFacts()

    # ------------------------------------------------------------------
    # Context helpers

    def _location(self, node) -> Location:  # type: ignore[no-untyped-def]
        if not self._span_locations:
            return Location(self._path)
        row, column = node.start_point
        return Location(self._path, row + 1, column)

    def _current_kind(self) -> FunctionKind:
        if self._types and self._types[-1] is not None:
            return self._types[-1]
        return FreeFn()

    def _scope(self) -> Tuple[Optional[str], Optional[bool]]:
        if not self._functions:
            return None, None
        return self._functions[-1]

    # ------------------------------------------------------------------
    # Traversal

    def walk(self, root) -> UnitFacts:  # type: ignore[no-untyped-def]
        self._visit_children(root)
        return self.facts

    def _visit_children(self, node, skip=None) -> None:  # type: ignore[no-untyped-def]
        for child in node.children:
            if skip is not None and child == skip:
                continue
            self._visit(child)

    def _visit(self, node) -> None:  # type: ignore[no-untyped-def]
        kind = node.type
        if kind in _OPAQUE_NODES:
            return
        if kind == "mod_item":
            self._visit_module(node)
        elif kind == "impl_item":
            self._visit_impl(node)
        elif kind == "trait_item":
            self._visit_trait(node)
        elif kind in _FUNCTION_NODES:
            self._visit_function(node)
        elif kind == "macro_definition":
            self._record_macro_def(node)
        elif kind == "macro_invocation":
            self._record_macro_invocation(node)
        elif kind in _SCOPED_PATH_NODES:
            self._visit_path(node)
        elif kind in {"identifier", "type_identifier"}:
            text = _node_text(node, self._source)
            if text in BARE_PATH_ALLOWLIST:
                self._record_path(text, node)
        elif kind == "call_expression":
            self._record_call(node)
            self._visit_children(node)
        else:
            self._visit_children(node)

    def _visit_module(self, node) -> None:  # type: ignore[no-untyped-def]
        name = node.child_by_field_name("name")
        body = node.child_by_field_name("body")
        if name is None or body is None:
            return
        self._modules.append(_node_text(name, self._source))
        try:
            self._visit_children(body)
        finally:
            self._modules.pop()

    def _visit_impl(self, node) -> None:  # type: ignore[no-untyped-def]
        self_node = node.child_by_field_name("type")
        trait_node = node.child_by_field_name("trait")
        body = node.child_by_field_name("body")
        self._visit_children(node, skip=body)
        if body is None or self_node is None:
            return
        trait_ty = render_path(trait_node, self._source) if trait_node is not None else None
        self._types.append(ImplMethod(self_ty=_type_name(self_node, self._source), trait_ty=trait_ty))
        try:
            self._visit_children(body)
        finally:
            self._types.pop()

    def _visit_trait(self, node) -> None:  # type: ignore[no-untyped-def]
        name = node.child_by_field_name("name")
        body = node.child_by_field_name("body")
        self._visit_children(node, skip=body)
        if body is None or name is None:
            return
        self._types.append(TraitMethod(trait_name=_node_text(name, self._source)))
        try:
            self._visit_children(body)
        finally:
            self._types.pop()

    def _visit_function(self, node) -> None:  # type: ignore[no-untyped-def]
        name_node = node.child_by_field_name("name")
        if name_node is None:
            self._visit_children(node)
            return
        source = self._source
        name = _node_text(name_node, source)
        kind = self._current_kind()
        fq = fq_name(self._crate, self._modules, kind, name)
        is_public = isinstance(kind, TraitMethod) or _visibility(node, source) == "pub"

        if not self._functions:
            self.facts.functions.append(self._function_fact(node, name, fq, kind, is_public))

        if self._span_locations:
            start = (node.start_point[0] + 1, node.start_point[1])
            end = (node.end_point[0] + 1, node.end_point[1])
        else:
            start = end = None
        self.facts.spans.append(
            FunctionSpan(fq_name=fq, is_public=is_public, kind=kind, path=self._path, start=start, end=end)
        )

        self._functions.append((fq, is_public))
        self._types.append(None)
        try:
            self._visit_children(node, skip=name_node)
        finally:
            self._types.pop()
            self._functions.pop()

    def _function_fact(self, node, name: str, fq: str, kind: FunctionKind, is_public: bool) -> FunctionFact:  # type: ignore[no-untyped-def]
        source = self._source
        has_docs = False
        attrs: List[str] = []
        for trivia in _leading_trivia(node):
            if trivia.type == "attribute_item":
                attr = _attribute_path(trivia, source)
                if attr is None:
                    continue
                attrs.append(attr)
                if attr == "doc":
                    has_docs = True
            elif _is_doc_comment(_node_text(trivia, source)):
                has_docs = True

        params = node.child_by_field_name("parameters")
        args: Tuple[str, ...] = ()
        if params is not None:
            args = tuple(
                _squash(_node_text(param, source))
                for param in params.named_children
                if param.type not in _TRIVIA_BEFORE_ITEM
            )
        return_node = node.child_by_field_name("return_type")
        modifiers = _modifiers(node)

        return FunctionFact(
            name=name,
            fq_name=fq,
            is_public=is_public,
            has_docs=has_docs,
            is_async="async" in modifiers,
            is_unsafe="unsafe" in modifiers,
            is_const="const" in modifiers,
            is_generic=node.child_by_field_name("type_parameters") is not None,
            args=args,
            return_type=_squash(_node_text(return_node, source)) if return_node is not None else None,
            kind=kind,
            module_path=tuple(self._modules),
            attrs=tuple(attrs),
            signature=_signature(node, source),
            location=self._location(node),
        )

    def _visit_path(self, node) -> None:  # type: ignore[no-untyped-def]
        rendered = render_path(node, self._source)
        if "::" in rendered or rendered in BARE_PATH_ALLOWLIST:
            self._record_path(rendered, node)
        self._visit_path_arguments(node)

    def _visit_path_arguments(self, node) -> None:  # type: ignore[no-untyped-def]
        # Prefixes of a recorded path are not paths of their own, but any
        # type arguments along the chain still are.
        if node.type in _SCOPED_PATH_NODES:
            prefix = node.child_by_field_name("path")
            if prefix is not None:
                self._visit_path_arguments(prefix)
        elif node.type in _GENERIC_PATH_NODES:
            inner = node.child_by_field_name("type")
            arguments = node.child_by_field_name("type_arguments")
            if inner is not None:
                self._visit_path_arguments(inner)
            if arguments is not None:
                self._visit(arguments)
        elif node.type == "bracketed_type":
            self._visit_children(node)

    def _record_path(self, text: str, node) -> None:  # type: ignore[no-untyped-def]
        enclosing_fn, enclosing_public = self._scope()
        self.facts.paths.append(
            PathOccurrenceFact(
                path=text,
                module_path=tuple(self._modules),
                location=self._location(node),
                enclosing_fn=enclosing_fn,
                enclosing_public=enclosing_public,
            )
        )

    def _record_macro_def(self, node) -> None:  # type: ignore[no-untyped-def]
        name = node.child_by_field_name("name")
        if name is None:
            return
        enclosing_fn, enclosing_public = self._scope()
        self.facts.macro_defs.append(
            MacroDefFact(
                name=_node_text(name, self._source),
                module_path=tuple(self._modules),
                location=self._location(node),
                enclosing_fn=enclosing_fn,
                enclosing_public=enclosing_public,
            )
        )

    def _record_macro_invocation(self, node) -> None:  # type: ignore[no-untyped-def]
        macro = node.child_by_field_name("macro")
        if macro is None:
            return
        segments = path_segments(macro, self._source)
        enclosing_fn, enclosing_public = self._scope()
        self.facts.macro_invocations.append(
            MacroInvocationFact(
                name=segments[-1],
                path="::".join(segments) if len(segments) > 1 else None,
                module_path=tuple(self._modules),
                location=self._location(node),
                enclosing_fn=enclosing_fn,
                enclosing_public=enclosing_public,
            )
        )

    def _record_call(self, node) -> None:  # type: ignore[no-untyped-def]
        function = node.child_by_field_name("function")
        if function is None:
            return
        if function.type == "generic_function":
            inner = function.child_by_field_name("function")
            function = inner if inner is not None else function
        if function.type == "field_expression":
            field = function.child_by_field_name("field")
            callee = _node_text(field, self._source) if field is not None else _squash(
                _node_text(function, self._source)
            )
        elif function.type in _SCOPED_PATH_NODES or function.type == "identifier":
            callee = render_path(function, self._source)
        else:
            callee = _squash(_node_text(function, self._source))
        enclosing_fn, enclosing_public = self._scope()
        self.facts.calls.append(
            CallOccurrenceFact(
                callee=callee,
                module_path=tuple(self._modules),
                location=self._location(node),
                enclosing_fn=enclosing_fn,
                enclosing_public=enclosing_public,
            )
        )


# ----------------------------------------------------------------------
# Use trees


@dataclass
class _UseLeaf:
    segments: List[str]
    kind: UseKind
    alias: Optional[str]
    node: object
    absolute: bool


def _strip_absolute(segments: List[str]) -> Tuple[List[str], bool]:
    if segments and segments[0] == "":
        return segments[1:], True
    return segments, False


def _flatten_use(node, source: bytes, prefix: List[str], absolute: bool) -> Iterator[_UseLeaf]:  # type: ignore[no-untyped-def]
    kind = node.type
    if kind == "scoped_use_list":
        path = node.child_by_field_name("path")
        list_node = node.child_by_field_name("list")
        next_prefix = list(prefix)
        if path is not None:
            segments, leading = _strip_absolute(path_segments(path, source))
            absolute = absolute or leading
            next_prefix.extend(segments)
        elif _node_text(node, source).startswith("::"):
            absolute = True
        if list_node is not None:
            yield from _flatten_use(list_node, source, next_prefix, absolute)
    elif kind == "use_list":
        for child in node.named_children:
            if child.type in _COMMENT_NODES:
                continue
            yield from _flatten_use(child, source, prefix, absolute)
    elif kind == "use_as_clause":
        path = node.child_by_field_name("path")
        alias = node.child_by_field_name("alias")
        if path is None or alias is None:
            return
        segments, leading = _strip_absolute(path_segments(path, source))
        if segments == ["self"] and prefix:
            segments = []
        yield _UseLeaf(prefix + segments, UseKind.RENAME, _node_text(alias, source), node, absolute or leading)
    elif kind == "use_wildcard":
        segments: List[str] = []
        leading = _node_text(node, source).startswith("::")
        for child in node.named_children:
            if child.type in _COMMENT_NODES:
                continue
            segments, leading = _strip_absolute(path_segments(child, source))
            break
        yield _UseLeaf(prefix + segments + ["*"], UseKind.GLOB, None, node, absolute or leading)
    elif kind == "self":
        # `{self, ..}` imports the enclosing path itself.
        yield _UseLeaf(list(prefix), UseKind.NAME, None, node, absolute)
    elif kind in _COMMENT_NODES:
        return
    else:
        segments, leading = _strip_absolute(path_segments(node, source))
        yield _UseLeaf(prefix + segments, UseKind.NAME, None, node, absolute or leading)


def _module_uses(node, source: bytes, module_path: List[str]) -> Iterator[Tuple[object, Tuple[str, ...]]]:  # type: ignore[no-untyped-def]
    for child in node.named_children:
        if child.type == "use_declaration":
            yield child, tuple(module_path)
        elif child.type == "mod_item":
            name = child.child_by_field_name("name")
            body = child.child_by_field_name("body")
            if name is None or body is None:
                continue
            yield from _module_uses(body, source, module_path + [_node_text(name, source)])


def _use_leaves(use_node, source: bytes) -> Iterator[_UseLeaf]:  # type: ignore[no-untyped-def]
    argument = use_node.child_by_field_name("argument")
    if argument is None:
        return
    for leaf in _flatten_use(argument, source, [], False):
        segments = [segment for segment in leaf.segments if segment]
        if not segments:
            continue
        leaf.segments = segments
        yield leaf


def _leaf_location(leaf: _UseLeaf, path: str, span_locations: bool) -> Location:
    if not span_locations:
        return Location(path)
    row, column = leaf.node.start_point  # type: ignore[attr-defined]
    return Location(path, row + 1, column)


def extract_imports(unit: ParsedUnit, *, span_locations: bool = True) -> List[ImportFact]:
    """Flatten every module-level ``use`` declaration into one fact per leaf."""
    source = unit.source
    imports: List[ImportFact] = []
    for use_node, module_path in _module_uses(unit.tree.root_node, source, []):
        is_public_use = _visibility(use_node, source) == "pub"
        for leaf in _use_leaves(use_node, source):
            root, rest = leaf.segments[0], tuple(leaf.segments[1:])
            base = "::".join(leaf.segments)
            imports.append(
                ImportFact(
                    root=root,
                    segments=rest,
                    module_path=module_path,
                    is_internal=root in INTERNAL_ROOTS,
                    is_public_use=is_public_use,
                    kind=leaf.kind,
                    full_path=f"::{base}" if leaf.absolute else base,
                    is_absolute=leaf.absolute,
                    location=_leaf_location(leaf, unit.path, span_locations),
                    alias=leaf.alias,
                )
            )
    return imports


def extract_exports(unit: ParsedUnit, *, span_locations: bool = True) -> List[ExportFact]:
    """Collect the public re-exports (``pub use``) of a unit."""
    source = unit.source
    exports: List[ExportFact] = []
    for use_node, module_path in _module_uses(unit.tree.root_node, source, []):
        if _visibility(use_node, source) != "pub":
            continue
        for leaf in _use_leaves(use_node, source):
            if leaf.kind is UseKind.RENAME and leaf.alias:
                exported_as = leaf.alias
            elif leaf.kind is UseKind.GLOB:
                exported_as = "*"
            else:
                exported_as = leaf.segments[-1]
            exports.append(
                ExportFact(
                    exported_as=exported_as,
                    source_path="::".join(leaf.segments),
                    module_path=module_path,
                    location=_leaf_location(leaf, unit.path, span_locations),
                )
            )
    return exports


def extract_unit(unit: ParsedUnit, crate_name: str, *, span_locations: bool = True) -> UnitFacts:
    """Run every extraction pass over one unit."""
    facts = _UnitWalker(unit, crate_name, span_locations).walk(unit.tree.root_node)
    facts.imports = extract_imports(unit, span_locations=span_locations)
    facts.exports = extract_exports(unit, span_locations=span_locations)
    return facts


__all__ = [
    "BARE_PATH_ALLOWLIST",
    "INTERNAL_ROOTS",
    "declares_no_std",
    "extract_exports",
    "extract_imports",
    "extract_unit",
    "fq_name",
    "path_segments",
    "render_path",
]
