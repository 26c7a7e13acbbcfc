"""Error taxonomy shared by extraction, scoring, synthesis, compliance, and the ledger."""

from __future__ import annotations

from typing import Any, Dict, Optional


class MotifError(RuntimeError):
    """Base class for motifgen errors; carries structured detail for callers."""

    code = "motif_error"
    retryable = False
    fatal = False

    def details(self) -> Dict[str, Any]:
        return {"code": self.code, "message": str(self)}


class UnparsableSource(MotifError):
    """Raised when a source unit yields no usable aggregate declaration."""

    code = "unparsable_source"

    def __init__(self, language: str, reason: str, *, line: Optional[int] = None) -> None:
        location = f" (line {line})" if line is not None else ""
        super().__init__(f"Cannot extract a {language} signature: {reason}{location}")
        self.language = language
        self.reason = reason
        self.line = line

    def details(self) -> Dict[str, Any]:
        data = super().details()
        data.update({"language": self.language, "reason": self.reason, "line": self.line})
        return data


class NameCollision(MotifError):
    """Raised when identical canonical content is requested under a second name."""

    code = "name_collision"

    def __init__(self, requested_name: str, existing_name: str, existing_hash: str) -> None:
        super().__init__(
            f"Definition content already registered as '{existing_name}' "
            f"({existing_hash[:12]}); refusing to register it again as '{requested_name}'"
        )
        self.requested_name = requested_name
        self.existing_name = existing_name
        self.existing_hash = existing_hash

    def details(self) -> Dict[str, Any]:
        data = super().details()
        data.update(
            {
                "requested_name": self.requested_name,
                "existing_name": self.existing_name,
                "existing_hash": self.existing_hash,
            }
        )
        return data


class NotFound(MotifError):
    """Raised when a content hash does not resolve."""

    code = "not_found"

    def __init__(self, kind: str, key: str) -> None:
        super().__init__(f"No {kind} found for {key}")
        self.kind = kind
        self.key = key

    def details(self) -> Dict[str, Any]:
        data = super().details()
        data.update({"kind": self.kind, "key": self.key})
        return data


class BelowAcceptanceBar(MotifError):
    """Raised when a discovered object is too weak to be promoted into a definition."""

    code = "below_acceptance_bar"

    def __init__(self, object_hash: str, confidence: float, acceptance_bar: float) -> None:
        super().__init__(
            f"Discovered object {object_hash[:12]} has confidence {confidence:.4f}, "
            f"below the acceptance bar {acceptance_bar:.2f}"
        )
        self.object_hash = object_hash
        self.confidence = confidence
        self.acceptance_bar = acceptance_bar

    def details(self) -> Dict[str, Any]:
        data = super().details()
        data.update(
            {
                "object_hash": self.object_hash,
                "confidence": self.confidence,
                "acceptance_bar": self.acceptance_bar,
            }
        )
        return data


class LedgerWriteConflict(MotifError):
    """Raised when a compare-and-append lost the race against another writer."""

    code = "ledger_write_conflict"
    retryable = True

    def __init__(self, expected_head: Optional[str], actual_head: Optional[str]) -> None:
        super().__init__(
            f"Ledger head moved from {_short(expected_head)} to {_short(actual_head)} during append"
        )
        self.expected_head = expected_head
        self.actual_head = actual_head

    def details(self) -> Dict[str, Any]:
        data = super().details()
        data.update({"expected_head": self.expected_head, "actual_head": self.actual_head})
        return data


class IntegrityViolation(MotifError):
    """Raised when hash-chain or content-address verification fails."""

    code = "integrity_violation"
    fatal = True

    def __init__(self, store: str, reason: str, *, position: Optional[int] = None) -> None:
        where = f" at {position}" if position is not None else ""
        super().__init__(f"{store} integrity check failed{where}: {reason}")
        self.store = store
        self.reason = reason
        self.position = position

    def details(self) -> Dict[str, Any]:
        data = super().details()
        data.update({"store": self.store, "reason": self.reason, "position": self.position})
        return data


def _short(value: Optional[str]) -> str:
    return value[:12] if value else "<empty>"


__all__ = [
    "BelowAcceptanceBar",
    "IntegrityViolation",
    "LedgerWriteConflict",
    "MotifError",
    "NameCollision",
    "NotFound",
    "UnparsableSource",
]
