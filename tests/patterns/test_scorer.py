"""Tests for deterministic motif scoring."""

from __future__ import annotations

from motifgen.extractors.python import PythonExtractor
from motifgen.models import ExtractedSignature, FieldSignature, MethodSignature, SourceUnit
from motifgen.patterns import PatternScorer, load_library
from tests._fixtures.sources import PYTHON_RESERVOIR


def _signature(fields=(), methods=()) -> ExtractedSignature:
    return ExtractedSignature(
        entity="Cell",
        kind="behavior" if methods else "aggregate",
        language="python",
        memory_model="managed",
        fields=tuple(fields),
        methods=tuple(methods),
    )


STATE = FieldSignature(name="state_vector", shape="vector", domain="real")
WEIGHTS = FieldSignature(name="weight_matrix", shape="matrix", domain="real")
INTEGRATE = MethodSignature(name="integrate", arity=1, param_shapes=("scalar",), behavior="accumulate", receiver="mut")
PROCESS = MethodSignature(name="process", arity=1, param_shapes=("scalar",), behavior="transform")
LEARN = MethodSignature(name="learn", arity=1, param_shapes=("vector",), behavior="learn", receiver="mut")


def test_state_field_alone_stays_below_threshold() -> None:
    scorer = PatternScorer()
    scores = {score.rule: score for score in scorer.score_rules(_signature([STATE]))}

    assert scores["soma"].confidence == 0.5
    assert scores["soma"].matched is False
    assert scorer.discover(_signature([STATE])) == []


def test_state_update_completes_soma_without_synapse() -> None:
    signature = _signature([STATE], [INTEGRATE])
    scorer = PatternScorer()

    discovered = scorer.discover(signature)

    assert [item.name for item in discovered] == ["soma"]
    assert discovered[0].confidence == 0.9
    assert discovered[0].composite is False
    assert discovered[0].signature_hash == signature.content_hash
    scores = {score.rule: score for score in scorer.score_rules(signature)}
    assert scores["synapse"].confidence < scores["synapse"].threshold


def test_reservoir_is_reported_as_composite_with_minimum_confidence() -> None:
    signature = _signature([WEIGHTS, STATE], [PROCESS, LEARN])

    discovered = PatternScorer().discover(signature)

    assert len(discovered) == 1
    reservoir = discovered[0]
    assert reservoir.composite is True
    assert reservoir.patterns == ("reservoir_computing", "axon", "soma", "synapse")
    assert dict(reservoir.constituents) == {"axon": 0.85, "soma": 0.9, "synapse": 1.0}
    assert reservoir.confidence == 0.85
    evidence = dict(reservoir.evidence)
    assert evidence["synapse.learning_rule"] == ("learn",)
    assert evidence["axon.transform_method"] == ("process",)


def test_smaller_composite_applies_when_larger_one_is_incomplete() -> None:
    discovered = PatternScorer().discover(_signature([STATE], [INTEGRATE, PROCESS]))

    assert [item.name for item in discovered] == ["integrate_and_fire"]
    assert discovered[0].patterns == ("integrate_and_fire", "axon", "soma")
    assert discovered[0].confidence == 0.85


def test_discovery_is_deterministic_for_extracted_source() -> None:
    unit = SourceUnit(language="python", text=PYTHON_RESERVOIR)
    scorer = PatternScorer(load_library())

    first = scorer.discover(PythonExtractor().extract(unit))
    second = scorer.discover(PythonExtractor().extract(unit))

    assert [item.to_dict() for item in first] == [item.to_dict() for item in second]
    assert [item.object_hash for item in first] == [item.object_hash for item in second]
    assert first[0].name == "reservoir_computing"


def test_discovery_orders_by_confidence_then_name() -> None:
    output = FieldSignature(name="output_signal", shape="vector", domain="real")
    inputs = FieldSignature(name="input_buffer", shape="vector", domain="real")
    gather = MethodSignature(name="gather", arity=1, param_shapes=("vector",), behavior="accumulate", receiver="mut")
    emit = MethodSignature(name="propagate", arity=0, behavior="transform")

    discovered = PatternScorer().discover(_signature([output, inputs], [gather, emit]))

    assert [item.name for item in discovered] == ["axon", "dendrite"]
    assert discovered[0].confidence == 1.0
    assert discovered[1].confidence == 1.0


def test_rule_scoring_exactly_its_threshold_matches() -> None:
    scorer = PatternScorer()
    signature = _signature([], [PROCESS])
    scores = {score.rule: score for score in scorer.score_rules(signature)}

    assert scores["axon"].confidence == scores["axon"].threshold == 0.6
    assert scores["axon"].matched is True
    assert [item.name for item in scorer.discover(signature)] == ["axon"]
