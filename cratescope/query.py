"""Composable filters over function and import facts.

Every builder method adds one predicate and returns the query, so calls
chain; predicates are AND-combined and evaluated eagerly by ``collect``.
"""

from __future__ import annotations

import re
from typing import Callable, Generic, Iterable, List, TypeVar

from .models import FunctionFact, ImplMethod, ImportFact, ImportOrigin, TraitMethod

T = TypeVar("T")

_STDISH = {ImportOrigin.STD, ImportOrigin.CORE, ImportOrigin.ALLOC}


class _Query(Generic[T]):
    def __init__(self, items: Iterable[T]) -> None:
        self._items = list(items)
        self._predicates: List[Callable[[T], bool]] = []

    def where(self, predicate: Callable[[T], bool]):  # type: ignore[no-untyped-def]
        self._predicates.append(predicate)
        return self

    def collect(self) -> List[T]:
        return [item for item in self._items if all(check(item) for check in self._predicates)]

    def filter(self, predicate: Callable[[T], bool]) -> List[T]:
        return [item for item in self.collect() if predicate(item)]

    def count(self) -> int:
        return len(self.collect())


class FunctionQuery(_Query[FunctionFact]):
    """Filters over :class:`FunctionFact`."""

    def public_only(self) -> "FunctionQuery":
        return self.where(lambda fn: fn.is_public)

    def no_docs(self) -> "FunctionQuery":
        return self.where(lambda fn: not fn.has_docs)

    def in_impl(self, self_ty: str) -> "FunctionQuery":
        return self.where(lambda fn: isinstance(fn.kind, ImplMethod) and fn.kind.self_ty == self_ty)

    def impls_trait(self, trait_name: str) -> "FunctionQuery":
        def _matches(fn: FunctionFact) -> bool:
            if not isinstance(fn.kind, ImplMethod) or fn.kind.trait_ty is None:
                return False
            trait_ty = fn.kind.trait_ty
            return trait_ty == trait_name or trait_ty.endswith(f"::{trait_name}")

        return self.where(_matches)

    def in_trait(self, trait_name: str) -> "FunctionQuery":
        return self.where(lambda fn: isinstance(fn.kind, TraitMethod) and fn.kind.trait_name == trait_name)

    def named(self, name: str) -> "FunctionQuery":
        return self.where(lambda fn: fn.name == name)

    def name_contains(self, needle: str) -> "FunctionQuery":
        return self.where(lambda fn: needle in fn.name)

    def name_matches(self, pattern: str) -> "FunctionQuery":
        compiled = re.compile(pattern)
        return self.where(lambda fn: compiled.search(fn.name) is not None)

    def returns(self, needle: str) -> "FunctionQuery":
        return self.where(lambda fn: fn.return_type is not None and needle in fn.return_type)

    def takes_arg(self, needle: str) -> "FunctionQuery":
        return self.where(lambda fn: any(needle in arg for arg in fn.args))

    def is_async(self, value: bool = True) -> "FunctionQuery":
        return self.where(lambda fn: fn.is_async == value)

    def is_unsafe(self, value: bool = True) -> "FunctionQuery":
        return self.where(lambda fn: fn.is_unsafe == value)

    def is_const(self, value: bool = True) -> "FunctionQuery":
        return self.where(lambda fn: fn.is_const == value)

    def is_generic(self, value: bool = True) -> "FunctionQuery":
        return self.where(lambda fn: fn.is_generic == value)

    def has_attr(self, name: str) -> "FunctionQuery":
        return self.where(lambda fn: name in fn.attrs)


class ImportQuery(_Query[ImportFact]):
    """Filters over :class:`ImportFact`."""

    def root(self, root: str) -> "ImportQuery":
        return self.where(lambda fact: fact.root == root)

    def internal_only(self) -> "ImportQuery":
        return self.where(lambda fact: fact.is_internal)

    def public_use_only(self) -> "ImportQuery":
        return self.where(lambda fact: fact.is_public_use)

    def full_path_starts_with(self, prefix: str) -> "ImportQuery":
        return self.where(lambda fact: fact.full_path.startswith(prefix))

    def origin(self, origin: ImportOrigin) -> "ImportQuery":
        return self.where(lambda fact: fact.origin is origin)

    def workspace_only(self) -> "ImportQuery":
        return self.origin(ImportOrigin.WORKSPACE_MEMBER)

    def deps_only(self) -> "ImportQuery":
        return self.origin(ImportOrigin.DEPENDENCY)

    def stdish_only(self) -> "ImportQuery":
        return self.where(lambda fact: fact.origin in _STDISH)


__all__ = ["FunctionQuery", "ImportQuery"]
