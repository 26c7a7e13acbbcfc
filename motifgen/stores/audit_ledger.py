"""Append-only, hash-chained audit ledger."""

from __future__ import annotations

import json
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from ..errors import IntegrityViolation, LedgerWriteConflict
from ..logging import get_logger
from ..models import AuditEvent

_LOGGER = get_logger("stores.ledger")
_ANY_HEAD = object()

EVENT_KINDS = ("extract", "discover", "define", "validate")


def _utc_now() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


class AuditLedger:
    """Records one event per committed operation.

    Every event embeds the previous event's hash; the previous event's
    ``next_hash`` is filled in exactly once when its successor lands. A failed
    ``verify`` halts appends until ``reverify`` succeeds.
    """

    def __init__(self, path: Path | None = None, *, clock: Callable[[], str] = _utc_now) -> None:
        self._path = path
        self._clock = clock
        self._events: List[AuditEvent] = []
        self._lock = threading.Lock()
        self._dirty = False
        self._halted: Optional[IntegrityViolation] = None
        if self._path is not None:
            self._load(self._path)

    def __len__(self) -> int:
        return len(self._events)

    @property
    def head_hash(self) -> Optional[str]:
        return self._events[-1].event_hash if self._events else None

    @property
    def halted(self) -> bool:
        return self._halted is not None

    def events(self, kind: Optional[str] = None) -> Tuple[AuditEvent, ...]:
        with self._lock:
            return tuple(event for event in self._events if kind is None or event.kind == kind)

    def append(self, kind: str, input_hash: str, output_hash: str, *, expected_head: object = _ANY_HEAD) -> AuditEvent:
        """Append an event; with ``expected_head`` the append only lands on that head."""
        if kind not in EVENT_KINDS:
            raise ValueError(f"Unknown ledger event kind '{kind}'")
        with self._lock:
            if self._halted is not None:
                raise self._halted
            actual_head = self.head_hash
            if expected_head is not _ANY_HEAD and expected_head != actual_head:
                raise LedgerWriteConflict(expected_head, actual_head)  # type: ignore[arg-type]

            sequence = self._events[-1].sequence + 1 if self._events else 1
            timestamp = self._clock()
            event_hash = AuditEvent.compute_hash(sequence, kind, input_hash, output_hash, timestamp, actual_head)
            event = AuditEvent(
                sequence=sequence,
                kind=kind,
                input_hash=input_hash,
                output_hash=output_hash,
                timestamp=timestamp,
                prev_hash=actual_head,
                event_hash=event_hash,
            )
            if self._events:
                self._events[-1].link_next(event_hash)
            self._events.append(event)
            self._dirty = True
            _LOGGER.debug("Ledger #%d %s %s -> %s", sequence, kind, input_hash[:12], output_hash[:12])
            return event

    def verify(self) -> int:
        """Recompute the chain; raise ``IntegrityViolation`` and halt writes on any mismatch."""
        with self._lock:
            problem = self._check()
            if problem is not None:
                self._halted = problem
                _LOGGER.error("%s", problem)
                raise problem
            return len(self._events)

    def reverify(self) -> int:
        """Verify again and, when the chain is intact, lift a previous halt."""
        with self._lock:
            problem = self._check()
            if problem is not None:
                self._halted = problem
                raise problem
            if self._halted is not None:
                _LOGGER.info("Ledger re-verified; writes resumed")
            self._halted = None
            return len(self._events)

    def persist(self) -> None:
        if not self._dirty or self._path is None:
            return
        with self._lock:
            lines = [json.dumps(event.to_dict(), sort_keys=True) for event in self._events]
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text("\n".join(lines) + ("\n" if lines else ""), encoding="utf-8")
            self._dirty = False

    # ------------------------------------------------------------------
    # Internal helpers

    def _check(self) -> Optional[IntegrityViolation]:
        previous: Optional[AuditEvent] = None
        for event in self._events:
            if event.expected_hash() != event.event_hash:
                return IntegrityViolation("ledger", "event content does not match its hash", position=event.sequence)
            if previous is None:
                if event.sequence != 1:
                    return IntegrityViolation("ledger", "first event is not sequence 1", position=event.sequence)
                if event.prev_hash is not None:
                    return IntegrityViolation("ledger", "first event has a predecessor hash", position=event.sequence)
            else:
                if event.sequence != previous.sequence + 1:
                    return IntegrityViolation("ledger", "sequence numbers have a gap", position=event.sequence)
                if event.prev_hash != previous.event_hash:
                    return IntegrityViolation("ledger", "broken link to previous event", position=event.sequence)
                if previous.next_hash != event.event_hash:
                    return IntegrityViolation("ledger", "broken forward link", position=previous.sequence)
            previous = event
        if previous is not None and previous.next_hash is not None:
            return IntegrityViolation("ledger", "head event links to a missing successor", position=previous.sequence)
        return None

    def _load(self, path: Path) -> None:
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return
        for number, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                self._events.append(AuditEvent.from_dict(json.loads(line)))
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
                self._halted = IntegrityViolation("ledger", f"unreadable entry: {exc}", position=number)
                _LOGGER.error("%s", self._halted)
                return
        self._halted = self._check()
        if self._halted is not None:
            _LOGGER.error("%s", self._halted)


__all__ = ["AuditLedger", "EVENT_KINDS"]
