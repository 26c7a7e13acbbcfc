"""Tests for the hash-chained audit ledger."""

from __future__ import annotations

import json
from itertools import count
from pathlib import Path

import pytest

from motifgen.errors import IntegrityViolation, LedgerWriteConflict
from motifgen.models import AuditEvent
from motifgen.stores import AuditLedger


def _clock():
    ticks = count(1)
    return lambda: f"2026-01-01T00:00:{next(ticks):02d}Z"


def _filled(path: Path | None = None) -> AuditLedger:
    ledger = AuditLedger(path, clock=_clock())
    ledger.append("extract", "in-1", "out-1")
    ledger.append("discover", "out-1", "out-2")
    ledger.append("define", "out-2", "out-3")
    return ledger


def test_append_links_events_in_both_directions() -> None:
    ledger = _filled()
    first, second, third = ledger.events()

    assert [event.sequence for event in ledger.events()] == [1, 2, 3]
    assert first.prev_hash is None
    assert second.prev_hash == first.event_hash
    assert first.next_hash == second.event_hash
    assert third.next_hash is None
    assert ledger.head_hash == third.event_hash
    assert ledger.verify() == 3
    assert [event.kind for event in ledger.events("define")] == ["define"]


def test_append_rejects_unknown_kind() -> None:
    with pytest.raises(ValueError):
        AuditLedger().append("delete", "a", "b")


def test_compare_and_append_detects_moved_head() -> None:
    ledger = _filled()
    stale_head = ledger.events()[1].event_hash

    with pytest.raises(LedgerWriteConflict) as excinfo:
        ledger.append("validate", "x", "y", expected_head=stale_head)

    assert excinfo.value.retryable is True
    assert len(ledger) == 3
    event = ledger.append("validate", "x", "y", expected_head=ledger.head_hash)
    assert event.sequence == 4


def test_tampering_is_detected_and_halts_appends() -> None:
    ledger = _filled()
    original = ledger.events()[1].output_hash
    ledger.events()[1].output_hash = "forged"

    with pytest.raises(IntegrityViolation) as excinfo:
        ledger.verify()
    assert excinfo.value.position == 2
    assert ledger.halted is True
    with pytest.raises(IntegrityViolation):
        ledger.append("validate", "x", "y")

    ledger.events()[1].output_hash = original
    assert ledger.reverify() == 3
    assert ledger.halted is False
    assert ledger.append("validate", "x", "y").sequence == 4


def test_ledger_round_trips_through_jsonl(tmp_path: Path) -> None:
    path = tmp_path / "ledger.jsonl"
    ledger = _filled(path)
    ledger.persist()

    reloaded = AuditLedger(path)

    assert len(reloaded) == 3
    assert reloaded.head_hash == ledger.head_hash
    assert reloaded.verify() == 3
    assert len(path.read_text(encoding="utf-8").splitlines()) == 3


def test_edited_ledger_file_loads_halted(tmp_path: Path) -> None:
    path = tmp_path / "ledger.jsonl"
    _filled(path).persist()
    lines = path.read_text(encoding="utf-8").splitlines()
    entry = json.loads(lines[0])
    entry["input_hash"] = "rewritten"
    lines[0] = json.dumps(entry)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    reloaded = AuditLedger(path)

    assert reloaded.halted is True
    with pytest.raises(IntegrityViolation):
        reloaded.append("extract", "a", "b")
    with pytest.raises(IntegrityViolation):
        reloaded.verify()


def test_truncated_ledger_file_loads_halted(tmp_path: Path) -> None:
    path = tmp_path / "ledger.jsonl"
    _filled(path).persist()
    text = path.read_text(encoding="utf-8")
    path.write_text(text[: len(text) // 2], encoding="utf-8")

    assert AuditLedger(path).halted is True


def _write_chain(path: Path, sequences: list[int]) -> None:
    """Write correctly hashed and linked events carrying the given sequence numbers."""
    events: list[AuditEvent] = []
    for sequence in sequences:
        prev_hash = events[-1].event_hash if events else None
        timestamp = f"2026-01-01T00:00:{sequence:02d}Z"
        event_hash = AuditEvent.compute_hash(sequence, "extract", "in", "out", timestamp, prev_hash)
        event = AuditEvent(
            sequence=sequence,
            kind="extract",
            input_hash="in",
            output_hash="out",
            timestamp=timestamp,
            prev_hash=prev_hash,
            event_hash=event_hash,
        )
        if events:
            events[-1].link_next(event_hash)
        events.append(event)
    path.write_text("".join(json.dumps(event.to_dict()) + "\n" for event in events), encoding="utf-8")


@pytest.mark.parametrize("sequences", [[1, 3], [2, 3], [1, 2, 2]])
def test_sequence_gaps_fail_verification(tmp_path: Path, sequences: list[int]) -> None:
    path = tmp_path / "ledger.jsonl"
    _write_chain(path, sequences)

    ledger = AuditLedger(path)

    assert ledger.halted is True
    with pytest.raises(IntegrityViolation):
        ledger.verify()


def test_contiguous_chain_from_file_verifies(tmp_path: Path) -> None:
    path = tmp_path / "ledger.jsonl"
    _write_chain(path, [1, 2, 3])

    ledger = AuditLedger(path)

    assert ledger.halted is False
    assert ledger.verify() == 3
