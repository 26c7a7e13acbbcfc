"""Tests for the Kotlin signature extractor."""

from __future__ import annotations

import pytest

from motifgen.errors import UnparsableSource
from motifgen.extractors.kotlin import KotlinExtractor
from motifgen.models import SourceUnit
from tests._fixtures.sources import KOTLIN_RESERVOIR


def _extract(text: str, entity: str | None = None):
    return KotlinExtractor().extract(SourceUnit(language="kotlin", text=text, entity=entity))


def test_kotlin_extractor_reads_body_properties() -> None:
    signature = _extract(KOTLIN_RESERVOIR)

    assert signature.entity == "Reservoir"
    assert signature.memory_model == "managed"
    assert [field.name for field in signature.fields] == ["weight_matrix", "state_vector"]
    assert signature.field_named("weight_matrix").shape == "matrix"
    assert signature.field_named("state_vector").shape == "vector"
    assert signature.field_named("state_vector").domain == "real"


def test_kotlin_extractor_reads_methods() -> None:
    signature = _extract(KOTLIN_RESERVOIR)

    process = signature.method_named("process")
    assert process.receiver == "ref"
    assert process.param_shapes == ("vector",)
    assert process.behavior == "transform"
    learn = signature.method_named("learn")
    assert learn.receiver == "mut"
    assert learn.annotations == ("boundary_adaptation",)


def test_kotlin_extractor_reads_constructor_properties() -> None:
    source = """
data class Synapse(val weight: Double, var trace: DoubleArray, label: String) {
    fun strengthen(amount: Double) {
        trace[0] = amount
    }
}
"""
    signature = _extract(source)

    assert [field.name for field in signature.fields] == ["weight", "trace"]
    assert signature.field_named("weight").shape == "scalar"
    assert signature.field_named("trace").shape == "vector"
    assert signature.method_named("strengthen").receiver == "mut"


def test_kotlin_extractor_rejects_unterminated_constructor() -> None:
    with pytest.raises(UnparsableSource):
        _extract("class Broken(val weight: Double\n")


def test_kotlin_extractor_requires_a_class() -> None:
    with pytest.raises(UnparsableSource):
        _extract("fun main() {}\n")


def test_kotlin_extractor_ignores_braces_in_strings_and_comments() -> None:
    source = """
class Gate(val threshold: Double) {
    // fun fake(x: Int) { }
    val label: String = "} fun decoy() {"

    fun isOpen(signal: Double): Boolean = signal > threshold
}
"""
    signature = _extract(source)

    assert [field.name for field in signature.fields] == ["threshold", "label"]
    assert [method.name for method in signature.methods] == ["is_open"]
    assert signature.method_named("is_open").behavior == "query"
    assert signature.partial is False
