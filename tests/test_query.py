"""Tests for cratescope.query."""

from __future__ import annotations

from cratescope.models import ImportOrigin
from cratescope.workspace import WorkspaceNames
from tests._fixtures.crate_builder import analyze

SOURCE = """
use std::collections::HashMap;
use core::fmt;
pub use crate::model::Thing;
use serde::Serialize;
use shared::Id;

/// Loads things.
pub async fn load(path: &str) -> Result<Thing, Error> {
    todo!()
}

pub fn parse_all<T>(input: &[u8]) -> Vec<T> {
    Vec::new()
}

#[test]
fn parses() {}

pub struct Store;

impl Store {
    pub const fn empty() -> Self { Store }
    pub unsafe fn raw(&self, ptr: *const u8) {}
}

impl fmt::Display for Store {
    fn fmt(&self, f: &mut fmt::Formatter<'_>) -> fmt::Result { Ok(()) }
}

pub trait Backend {
    fn open(&self) -> Result<(), Error>;
}
"""


def _analysis():  # type: ignore[no-untyped-def]
    return analyze(SOURCE, workspace=WorkspaceNames(members=frozenset({"shared"}), dependencies=frozenset({"serde"})))


def _names(functions) -> list:  # type: ignore[no-untyped-def]
    return [fn.name for fn in functions]


def test_empty_function_query_returns_everything() -> None:
    analysis = _analysis()

    assert analysis.query_functions().collect() == analysis.facts.functions


def test_function_predicates() -> None:
    query = _analysis().query_functions

    assert _names(query().public_only().no_docs().collect()) == ["parse_all", "empty", "raw", "open"]
    assert _names(query().in_impl("Store").collect()) == ["empty", "raw", "fmt"]
    assert _names(query().impls_trait("Display").collect()) == ["fmt"]
    assert _names(query().impls_trait("fmt::Display").collect()) == ["fmt"]
    assert _names(query().in_trait("Backend").collect()) == ["open"]
    assert _names(query().named("load").collect()) == ["load"]
    assert _names(query().name_contains("par").collect()) == ["parse_all", "parses"]
    assert _names(query().name_matches(r"^p.*s$").collect()) == ["parses"]
    assert _names(query().returns("Result").collect()) == ["load", "fmt", "open"]
    assert _names(query().takes_arg("&[u8]").collect()) == ["parse_all"]
    assert _names(query().is_async().collect()) == ["load"]
    assert _names(query().is_unsafe().collect()) == ["raw"]
    assert _names(query().is_const().collect()) == ["empty"]
    assert _names(query().is_generic().collect()) == ["parse_all"]
    assert _names(query().has_attr("test").collect()) == ["parses"]


def test_predicates_combine_with_and() -> None:
    query = _analysis().query_functions()

    result = query.public_only().in_impl("Store").is_const(False).collect()

    assert _names(result) == ["raw"]


def test_filter_terminal_applies_extra_predicate() -> None:
    query = _analysis().query_functions().public_only()

    assert _names(query.filter(lambda fn: fn.module_path == () and fn.is_async)) == ["load"]


def test_import_predicates() -> None:
    query = _analysis().query_imports

    assert [fact.full_path for fact in query().collect()] == [
        "std::collections::HashMap",
        "core::fmt",
        "crate::model::Thing",
        "serde::Serialize",
        "shared::Id",
    ]
    assert [fact.root for fact in query().root("serde").collect()] == ["serde"]
    assert [fact.full_path for fact in query().internal_only().collect()] == ["crate::model::Thing"]
    assert [fact.full_path for fact in query().public_use_only().collect()] == ["crate::model::Thing"]
    assert [fact.full_path for fact in query().full_path_starts_with("std::").collect()] == [
        "std::collections::HashMap"
    ]
    assert [fact.full_path for fact in query().origin(ImportOrigin.CORE).collect()] == ["core::fmt"]
    assert [fact.full_path for fact in query().workspace_only().collect()] == ["shared::Id"]
    assert [fact.full_path for fact in query().deps_only().collect()] == ["serde::Serialize"]
    assert [fact.root for fact in query().stdish_only().collect()] == ["std", "core"]


def test_public_views_and_coverage() -> None:
    analysis = _analysis()

    assert _names(analysis.public_api()) == ["load", "parse_all", "empty", "raw", "open"]
    assert _names(analysis.undocumented_public_api()) == ["parse_all", "empty", "raw", "open"]
    surface = analysis.public_surface()
    assert [export.exported_as for export in surface.exports] == ["Thing"]
    coverage = analysis.doc_coverage()
    assert coverage.public_total == 5
    assert coverage.public_documented == 1
    assert coverage.percent == 20.0


def test_coverage_is_full_without_public_functions() -> None:
    coverage = analyze("fn private() {}\n").doc_coverage()

    assert coverage.public_total == 0
    assert coverage.percent == 100.0
