"""Tests for cratescope.extract."""

from __future__ import annotations

from cratescope.extract import extract_exports, extract_imports, extract_unit, fq_name
from cratescope.models import FreeFn, ImplMethod, TraitMethod, UseKind
from cratescope.scanner import parse_source
from tests._fixtures.crate_builder import parse


def _functions(source: str):
    facts = extract_unit(parse(source), "crate")
    return {fn.name: fn for fn in facts.functions}


def test_grouped_use_with_rename_and_glob_yields_three_imports() -> None:
    imports = extract_imports(parse("use foo::{bar, baz as qux, *};\n"))

    assert [(fact.kind, fact.full_path, fact.alias) for fact in imports] == [
        (UseKind.NAME, "foo::bar", None),
        (UseKind.RENAME, "foo::baz", "qux"),
        (UseKind.GLOB, "foo::*", None),
    ]
    assert all(fact.root == "foo" for fact in imports)
    assert imports[0].segments == ("bar",)
    assert imports[2].segments == ("*",)


def test_self_leaf_imports_the_enclosing_path() -> None:
    imports = extract_imports(parse("use std::io::{self, Read};\n"))

    assert [fact.full_path for fact in imports] == ["std::io", "std::io::Read"]
    assert imports[0].segments == ("io",)
    assert imports[0].kind is UseKind.NAME


def test_absolute_imports_are_flagged() -> None:
    imports = extract_imports(parse("use ::serde::Serialize;\nuse serde::Deserialize;\n"))

    assert imports[0].is_absolute is True
    assert imports[0].root == "serde"
    assert imports[0].full_path == "::serde::Serialize"
    assert imports[1].is_absolute is False
    assert imports[1].full_path == "serde::Deserialize"


def test_nested_groups_accumulate_prefixes() -> None:
    imports = extract_imports(parse("use crate::a::{b::{c, d}, e};\n"))

    assert [fact.full_path for fact in imports] == ["crate::a::b::c", "crate::a::b::d", "crate::a::e"]
    assert all(fact.is_internal for fact in imports)
    assert all(fact.root for fact in imports)


def test_imports_carry_inline_module_path_and_visibility() -> None:
    imports = extract_imports(
        parse(
            """
            pub use crate::model::Thing;
            mod inner {
                use std::fmt;
            }
            """
        )
    )

    assert imports[0].is_public_use is True
    assert imports[0].module_path == ()
    assert imports[1].full_path == "std::fmt"
    assert imports[1].module_path == ("inner",)
    assert imports[1].is_public_use is False


def test_imports_have_locations() -> None:
    imports = extract_imports(parse_source("\nuse std::fmt;\n", "src/a.rs"))

    location = imports[0].location
    assert location.path == "src/a.rs"
    assert location.line == 2


def test_exports_only_cover_pub_use() -> None:
    exports = extract_exports(
        parse(
            """
            pub use crate::model::Thing;
            pub use other::Widget as Gadget;
            pub use helpers::*;
            use private::Hidden;
            pub(crate) use scoped::Item;
            mod nested {
                pub use crate::x::Y;
            }
            """
        )
    )

    assert [(export.exported_as, export.source_path, export.module_path) for export in exports] == [
        ("Thing", "crate::model::Thing", ()),
        ("Gadget", "other::Widget", ()),
        ("*", "helpers::*", ()),
        ("Y", "crate::x::Y", ("nested",)),
    ]


FUNCTIONS = """
/// Documented.
pub fn free(a: u32, b: &str) -> Result<u32, Error> {
    a
}

fn private() {}

pub struct Widget;

impl Widget {
    pub async fn build<T: Clone>(&self, value: T) -> Self {
        todo!()
    }

    pub(crate) fn internal(&self) {}
}

impl std::fmt::Display for Widget {
    fn fmt(&self, f: &mut std::fmt::Formatter<'_>) -> std::fmt::Result {
        Ok(())
    }
}

trait Shape {
    fn area(&self) -> f64;
}

mod geometry {
    #[inline]
    pub const unsafe fn scale() {}
}
"""


def test_free_function_details() -> None:
    free = _functions(FUNCTIONS)["free"]

    assert free.fq_name == "crate::free"
    assert free.kind == FreeFn()
    assert free.is_public is True
    assert free.has_docs is True
    assert free.args == ("a: u32", "b: &str")
    assert free.return_type == "Result<u32, Error>"
    assert free.signature == "fn free(a: u32, b: &str) -> Result<u32, Error>"
    assert free.location.line == 2


def test_visibility_requires_plain_pub() -> None:
    functions = _functions(FUNCTIONS)

    assert functions["private"].is_public is False
    assert functions["internal"].is_public is False
    assert functions["fmt"].is_public is False


def test_impl_methods_are_qualified_by_self_type() -> None:
    functions = _functions(FUNCTIONS)

    build = functions["build"]
    assert build.fq_name == "crate::Widget::build"
    assert build.kind == ImplMethod(self_ty="Widget", trait_ty=None)
    assert build.is_async is True
    assert build.is_generic is True
    assert build.args == ("&self", "value: T")
    assert build.has_docs is False

    fmt = functions["fmt"]
    assert fmt.fq_name == "crate::Widget::fmt"
    assert fmt.kind == ImplMethod(self_ty="Widget", trait_ty="std::fmt::Display")


def test_trait_methods_are_always_public() -> None:
    area = _functions(FUNCTIONS)["area"]

    assert area.kind == TraitMethod(trait_name="Shape")
    assert area.fq_name == "crate::Shape::area"
    assert area.is_public is True
    assert area.signature == "fn area(&self) -> f64"


def test_module_functions_carry_modifiers_and_attributes() -> None:
    scale = _functions(FUNCTIONS)["scale"]

    assert scale.fq_name == "crate::geometry::scale"
    assert scale.module_path == ("geometry",)
    assert scale.is_const is True
    assert scale.is_unsafe is True
    assert scale.is_async is False
    assert scale.attrs == ("inline",)
    assert scale.has_docs is False


def test_doc_attribute_counts_as_documentation() -> None:
    functions = _functions(
        """
        #[doc = "Explained."]
        pub fn a() {}

        //// Not a doc comment.
        pub fn b() {}

        /** Block docs. */
        pub fn c() {}
        """
    )

    assert functions["a"].has_docs is True
    assert functions["a"].attrs == ("doc",)
    assert functions["b"].has_docs is False
    assert functions["c"].has_docs is True


def test_generic_self_type_uses_terminal_name() -> None:
    functions = _functions(
        """
        impl<T> crate::store::Cache<T> {
            pub fn get(&self) {}
        }
        impl<'a> Iterator for &'a [u8] {
            fn next(&mut self) {}
        }
        """
    )

    assert functions["get"].fq_name == "crate::Cache::get"
    assert functions["next"].kind == ImplMethod(self_ty="&'a [u8]", trait_ty="Iterator")


def test_fq_name_composition_is_deterministic() -> None:
    first = fq_name("demo", ["a", "b"], ImplMethod("Widget"), "run")
    second = fq_name("demo", ("a", "b"), ImplMethod("Widget", "Display"), "run")

    assert first == second == "demo::a::b::Widget::run"
    assert fq_name("demo", [], FreeFn(), "run") == "demo::run"
    assert fq_name("demo", [], TraitMethod("Runner"), "run") == "demo::Runner::run"


OCCURRENCES = """
pub fn load(path: &str) -> String {
    let data = std::fs::read_to_string(path).unwrap();
    println!("{}", data);
    data
}

fn helper() {
    panic!("boom");
}

static TABLE: std::sync::Mutex<u8> = std::sync::Mutex::new(0);

macro_rules! noisy {
    () => {};
}

log::info!("top");
"""


def test_calls_are_annotated_with_enclosing_function() -> None:
    facts = extract_unit(parse(OCCURRENCES), "crate")
    calls = {call.callee: call for call in facts.calls}

    assert set(calls) == {"std::fs::read_to_string", "unwrap", "std::sync::Mutex::new"}
    assert calls["unwrap"].enclosing_fn == "crate::load"
    assert calls["unwrap"].enclosing_public is True
    assert calls["std::sync::Mutex::new"].enclosing_fn is None
    assert calls["std::sync::Mutex::new"].enclosing_public is None


def test_macros_are_annotated_with_enclosing_function() -> None:
    facts = extract_unit(parse(OCCURRENCES), "crate")
    macros = {invocation.name: invocation for invocation in facts.macro_invocations}

    assert macros["println"].enclosing_fn == "crate::load"
    assert macros["println"].path is None
    assert macros["panic"].enclosing_fn == "crate::helper"
    assert macros["panic"].enclosing_public is False
    assert macros["info"].path == "log::info"
    assert macros["info"].enclosing_fn is None
    assert [definition.name for definition in facts.macro_defs] == ["noisy"]
    assert facts.macro_defs[0].enclosing_fn is None


def test_paths_keep_multi_segment_references() -> None:
    facts = extract_unit(parse(OCCURRENCES), "crate")
    paths = [(occurrence.path, occurrence.enclosing_fn) for occurrence in facts.paths]

    assert ("std::fs::read_to_string", "crate::load") in paths
    assert ("std::sync::Mutex", None) in paths
    assert ("std::sync::Mutex::new", None) in paths
    # Prefixes of a recorded path are not recorded separately.
    assert ("std::fs", "crate::load") not in paths


def test_nested_functions_get_spans_but_no_function_fact() -> None:
    facts = extract_unit(
        parse(
            """
            pub fn outer() {
                fn inner(x: Option<u8>) {
                    x.unwrap();
                }
                inner(None);
            }
            """
        ),
        "crate",
    )

    assert [fn.fq_name for fn in facts.functions] == ["crate::outer"]
    assert [span.fq_name for span in facts.spans] == ["crate::outer", "crate::inner"]
    unwrap = next(call for call in facts.calls if call.callee == "unwrap")
    assert unwrap.enclosing_fn == "crate::inner"
    assert unwrap.enclosing_public is False


def test_extern_block_declarations_are_not_functions() -> None:
    facts = extract_unit(
        parse(
            """
            extern "C" {
                pub fn ext(len: usize) -> i32;
            }

            pub fn wrapper() -> i32 {
                unsafe { ext(0) }
            }
            """
        ),
        "crate",
    )

    assert [fn.fq_name for fn in facts.functions] == ["crate::wrapper"]
    assert [span.fq_name for span in facts.spans] == ["crate::wrapper"]
    assert [call.callee for call in facts.calls] == ["ext"]


def test_no_std_declaration_is_detected() -> None:
    assert parse("#![no_std]\nuse core::fmt;\n").is_no_std is True
    assert parse("use core::fmt;\n").is_no_std is False


def test_locations_can_be_disabled() -> None:
    facts = extract_unit(parse("pub fn a() {}\n"), "crate", span_locations=False)

    assert facts.functions[0].location.line is None
    assert facts.spans[0].start is None
