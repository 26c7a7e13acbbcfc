"""Tests for the Rust signature extractor."""

from __future__ import annotations

import pytest

from motifgen.errors import UnparsableSource
from motifgen.extractors.rust import RustExtractor
from motifgen.models import SourceUnit
from tests._fixtures.sources import RUST_RESERVOIR, RUST_RESERVOIR_UNANNOTATED


def _extract(text: str, entity: str | None = None):
    return RustExtractor().extract(SourceUnit(language="rust", text=text, entity=entity))


def test_rust_extractor_reads_struct_fields() -> None:
    signature = _extract(RUST_RESERVOIR)

    assert signature.entity == "Reservoir"
    assert signature.memory_model == "owned"
    assert signature.field_named("weight_matrix").shape == "matrix"
    assert signature.field_named("weight_matrix").domain == "real"
    assert signature.field_named("state_vector").shape == "vector"


def test_rust_extractor_reads_receivers_and_attributes() -> None:
    signature = _extract(RUST_RESERVOIR)

    assert signature.method_named("new") is None
    process = signature.method_named("process")
    assert process.receiver == "ref"
    assert process.param_shapes == ("vector",)
    assert process.behavior == "transform"
    learn = signature.method_named("learn")
    assert learn.receiver == "mut"
    assert learn.behavior == "learn"
    assert learn.annotations == ("boundary_adaptation",)
    assert _extract(RUST_RESERVOIR_UNANNOTATED).method_named("learn").annotations == ()


def test_rust_extractor_ignores_comments_and_strings() -> None:
    source = """
// struct Decoy { x: f64 }
pub struct Gate {
    /* pub skipped: String, */
    pub threshold: f32,
}

impl Gate {
    pub fn describe(&self) -> String {
        String::from("fn fake(&mut self) {")
    }
}
"""
    signature = _extract(source)

    assert signature.entity == "Gate"
    assert [field.name for field in signature.fields] == ["threshold"]
    assert [method.name for method in signature.methods] == ["describe"]


def test_rust_extractor_flags_unterminated_impl_as_partial() -> None:
    source = """
pub struct Gate {
    pub threshold: f32,
}

impl Gate {
    pub fn reset(&mut self) {
        self.threshold = 0.0;
    }
"""
    signature = _extract(source)

    assert signature.partial is True
    assert any("impl" in note for note in signature.diagnostics)
    assert signature.method_named("reset").behavior == "mutate-state"


def test_rust_extractor_requires_a_struct() -> None:
    with pytest.raises(UnparsableSource):
        _extract("fn main() {}\n")
    with pytest.raises(UnparsableSource):
        _extract(RUST_RESERVOIR, entity="Other")


def test_rust_extractor_reads_char_literals_without_losing_methods() -> None:
    source = RUST_RESERVOIR.replace(
        "        input_vector.to_vec()\n", "        let q = '\"';\n        input_vector.to_vec()\n"
    )
    signature = _extract(source)

    assert signature.partial is False
    assert [method.name for method in signature.methods] == ["process", "learn"]
    assert signature.method_named("learn").annotations == ("boundary_adaptation",)


def test_rust_extractor_reads_trait_impls_and_owned_receivers() -> None:
    source = """
pub struct Trace<T> {
    pub history: Vec<T>,
}

impl<T> Trace<T> {
    pub fn push(&mut self, value: T) {
        self.history.push(value);
    }
}

impl<T> Drop for Trace<T> {
    fn drop(mut self) {}
}
"""
    signature = _extract(source)

    assert signature.field_named("history").shape == "vector"
    assert signature.method_named("push").receiver == "mut"
    assert signature.method_named("drop").receiver == "owned"
