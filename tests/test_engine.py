"""Tests for the motif engine pipeline."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from motifgen.config import MotifConfig
from motifgen.engine import MotifEngine
from motifgen.errors import BelowAcceptanceBar, IntegrityViolation, LedgerWriteConflict, NotFound
from motifgen.models import SourceUnit
from motifgen.stores import AuditLedger, DefinitionStore
from tests._fixtures.sources import (
    PYTHON_NEURON,
    RUST_RESERVOIR_WITHOUT_LEARN,
)


def test_each_operation_appends_one_ledger_event(engine: MotifEngine, python_unit: SourceUnit) -> None:
    signature = engine.extract(python_unit)
    discovered = engine.discover(signature)
    definition = engine.define(discovered[0])

    kinds = [event.kind for event in engine.ledger.events()]
    assert kinds == ["extract", "discover", "define"]
    define_event = engine.ledger.events("define")[0]
    assert define_event.input_hash == discovered[0].object_hash
    assert define_event.output_hash == definition.content_hash
    assert engine.get_definition(definition.content_hash) is definition


def test_define_without_known_signature_fails(engine: MotifEngine, python_unit: SourceUnit) -> None:
    signature = engine.extract(python_unit)
    discovered = MotifEngine().scorer.discover(signature)[0]

    fresh = MotifEngine()
    with pytest.raises(NotFound):
        fresh.define(discovered)
    assert len(fresh.ledger) == 0


def test_define_below_acceptance_bar_records_nothing(engine: MotifEngine, python_unit: SourceUnit) -> None:
    signature = engine.extract(python_unit)
    discovered = engine.discover(signature)

    with pytest.raises(BelowAcceptanceBar):
        engine.define(discovered[0], acceptance_bar=0.95)

    assert len(engine.store) == 0
    assert engine.ledger.events("define") == ()


def test_analyze_defines_accepted_discoveries(engine: MotifEngine, python_unit: SourceUnit) -> None:
    outcome = engine.analyze(python_unit)

    assert outcome.ok
    assert [item.name for item in outcome.discovered] == ["reservoir_computing"]
    assert [item.canonical_name for item in outcome.definitions] == ["Reservoir"]


def test_analyze_skips_discoveries_below_bar(tmp_path: Path) -> None:
    engine = MotifEngine(MotifConfig(root=tmp_path, acceptance_bar=0.95))

    outcome = engine.analyze(SourceUnit(language="python", text=PYTHON_NEURON))

    assert [item.name for item in outcome.discovered] == ["soma"]
    assert outcome.definitions == []
    assert len(engine.store) == 0


def test_analyze_batch_reports_unit_failures(engine: MotifEngine, python_unit: SourceUnit) -> None:
    broken = SourceUnit(language="cobol", text="IDENTIFICATION DIVISION.")

    outcomes = engine.analyze_batch([python_unit, broken])

    assert outcomes[0].ok
    assert outcomes[1].ok is False
    assert outcomes[1].error.code == "unparsable_source"


def test_concurrent_defines_of_same_content_store_one_definition(engine: MotifEngine, python_unit: SourceUnit) -> None:
    signature = engine.extract(python_unit)
    discovered = engine.discover(signature)[0]

    with ThreadPoolExecutor(max_workers=4) as pool:
        definitions = list(pool.map(lambda _: engine.define(discovered), range(4)))

    assert len({item.content_hash for item in definitions}) == 1
    assert len(engine.store) == 1
    assert len(engine.ledger.events("define")) == 4
    assert engine.verify()["ledger_events"] == len(engine.ledger)


def test_validate_sources_records_verdict(engine: MotifEngine, python_unit: SourceUnit, rust_unit: SourceUnit) -> None:
    definition = engine.analyze(python_unit).definitions[0]

    record = engine.validate_sources(definition.content_hash, {"python": python_unit, "rust": rust_unit})
    again = engine.validate_sources(definition.content_hash, {"python": python_unit, "rust": rust_unit})

    assert record.verdict == "approved"
    assert again.record_hash == record.record_hash
    validate_events = engine.ledger.events("validate")
    assert [event.output_hash for event in validate_events] == [record.record_hash, record.record_hash]


def test_validate_sources_marks_unparsable_inputs(engine: MotifEngine, python_unit: SourceUnit) -> None:
    definition = engine.analyze(python_unit).definitions[0]

    record = engine.validate_sources(
        definition.content_hash,
        {
            "python": python_unit,
            "rust": SourceUnit(language="rust", text="fn main() {}"),
            "rust-partial": SourceUnit(language="rust", text=RUST_RESERVOIR_WITHOUT_LEARN),
        },
    )

    assert record.pair("python", "rust").verdict == "indeterminate"
    assert record.pair("python", "rust-partial").verdict == "rejected"
    assert record.verdict == "rejected"


def test_validate_unknown_definition_fails(engine: MotifEngine, python_unit: SourceUnit, rust_unit: SourceUnit) -> None:
    with pytest.raises(NotFound):
        engine.validate_sources("0" * 64, {"python": python_unit, "rust": rust_unit})


def test_state_survives_restart(tmp_path: Path, python_unit: SourceUnit) -> None:
    config = MotifConfig(root=tmp_path, state_dir=tmp_path / "state")
    engine = MotifEngine(config)
    definition = engine.analyze(python_unit).definitions[0]
    engine.persist()

    restarted = MotifEngine(MotifConfig(root=tmp_path, state_dir=tmp_path / "state"))

    assert restarted.get_definition(definition.content_hash) == definition
    assert restarted.verify() == {"ledger_events": 3, "definitions": 1}


def test_recover_drops_definitions_without_define_event(engine: MotifEngine, python_unit: SourceUnit) -> None:
    signature = engine.extract(python_unit)
    discovered = engine.discover(signature)[0]
    orphan, _ = engine.synthesizer.synthesize(discovered, signature, canonical_name="Orphan")

    assert engine.recover() == [orphan.content_hash]
    with pytest.raises(NotFound):
        engine.get_definition(orphan.content_hash)


def test_recover_refuses_tampered_ledger(engine: MotifEngine, python_unit: SourceUnit) -> None:
    engine.analyze(python_unit)
    engine.ledger.events()[0].output_hash = "forged"

    with pytest.raises(IntegrityViolation):
        engine.recover()
    with pytest.raises(IntegrityViolation):
        engine.extract(python_unit)


class _ContendedLedger(AuditLedger):
    """Ledger that loses the compare-and-append race a fixed number of times."""

    def __init__(self, conflicts: int) -> None:
        super().__init__()
        self.conflicts = conflicts

    def append(self, kind, input_hash, output_hash, **kwargs):
        if self.conflicts:
            self.conflicts -= 1
            raise LedgerWriteConflict(kwargs.get("expected_head"), "moved")
        return super().append(kind, input_hash, output_hash, **kwargs)


def test_ledger_conflicts_are_retried_with_backoff(tmp_path: Path, python_unit: SourceUnit) -> None:
    delays: list[float] = []
    engine = MotifEngine(MotifConfig(root=tmp_path), ledger=_ContendedLedger(2), sleep=delays.append)

    engine.extract(python_unit)

    assert len(engine.ledger) == 1
    assert delays == [0.01, 0.02]


def test_ledger_conflicts_give_up_after_max_attempts(tmp_path: Path, python_unit: SourceUnit) -> None:
    config = MotifConfig(root=tmp_path)
    config.ledger.max_attempts = 2
    engine = MotifEngine(config, ledger=_ContendedLedger(5), sleep=lambda _: None)

    with pytest.raises(LedgerWriteConflict):
        engine.extract(python_unit)


def test_engines_sharing_empty_store_and_ledger_use_them(tmp_path: Path, python_unit: SourceUnit) -> None:
    store = DefinitionStore()
    ledger = AuditLedger()
    first = MotifEngine(MotifConfig(root=tmp_path), store=store, ledger=ledger)
    second = MotifEngine(MotifConfig(root=tmp_path), store=store, ledger=ledger)

    assert first.store is store and second.store is store
    assert first.ledger is ledger and second.ledger is ledger

    defined = first.analyze(python_unit).definitions[0]
    again = second.analyze(python_unit).definitions[0]

    assert again is defined
    assert len(store) == 1
    assert len(ledger.events("define")) == 2


def test_define_on_halted_ledger_stores_nothing(engine: MotifEngine, python_unit: SourceUnit) -> None:
    signature = engine.extract(python_unit)
    discovered = engine.discover(signature)[0]
    engine.ledger.events()[0].output_hash = "forged"
    with pytest.raises(IntegrityViolation):
        engine.ledger.verify()

    with pytest.raises(IntegrityViolation):
        engine.define(discovered, signature=signature)

    assert len(engine.store) == 0
    assert engine.store.head("Reservoir") is None


def test_define_stores_nothing_when_ledger_conflicts_persist(tmp_path: Path, python_unit: SourceUnit) -> None:
    config = MotifConfig(root=tmp_path)
    config.ledger.max_attempts = 2
    ledger = _ContendedLedger(0)
    engine = MotifEngine(config, ledger=ledger, sleep=lambda _: None)
    signature = engine.extract(python_unit)
    discovered = engine.discover(signature)[0]
    ledger.conflicts = 5

    with pytest.raises(LedgerWriteConflict):
        engine.define(discovered, signature=signature)

    assert len(engine.store) == 0
    assert engine.ledger.events("define") == ()
