"""Engine coordinating extraction, discovery, definition, validation and the audit ledger."""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from .compliance import ComplianceValidator, ValidationInput
from .config import MotifConfig, load_config
from .errors import LedgerWriteConflict, MotifError, NotFound, UnparsableSource
from .extractors import Extractor, discover_extractors, extractor_for
from .hashing import content_hash
from .logging import get_logger
from .models import (
    AuditEvent,
    ComplianceRecord,
    DiscoveredObject,
    ExtractedSignature,
    FormalDefinition,
    SourceUnit,
)
from .patterns import PatternLibrary, PatternScorer, load_library
from .stores import AuditLedger, DefinitionStore
from .synthesis import DefinitionSynthesizer

DEFINITIONS_FILENAME = "definitions.json"
LEDGER_FILENAME = "ledger.jsonl"


@dataclass
class AnalysisOutcome:
    """Result of running one source unit through extract, discover and define."""

    unit: SourceUnit
    signature: Optional[ExtractedSignature] = None
    discovered: List[DiscoveredObject] = field(default_factory=list)
    definitions: List[FormalDefinition] = field(default_factory=list)
    error: Optional[MotifError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def unit_hash(unit: SourceUnit) -> str:
    return content_hash({"language": unit.language_key, "text": unit.text, "entity": unit.entity})


class MotifEngine:
    """Runs the motif pipeline; every successful core call appends one ledger event."""

    def __init__(
        self,
        config: MotifConfig | None = None,
        *,
        extractors: Optional[Iterable[Extractor]] = None,
        library: PatternLibrary | None = None,
        store: DefinitionStore | None = None,
        ledger: AuditLedger | None = None,
        validator: ComplianceValidator | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config or MotifConfig(root=Path.cwd())
        self.logger = get_logger("engine")
        state_dir = self.config.state_dir
        if store is None:
            store = DefinitionStore(state_dir / DEFINITIONS_FILENAME if state_dir else None)
        if ledger is None:
            ledger = AuditLedger(state_dir / LEDGER_FILENAME if state_dir else None)
        self.store = store
        self.ledger = ledger
        self.library = library if library is not None else load_library(self.config.scoring.rules_file)
        self.scorer = PatternScorer(self.library)
        self.synthesizer = DefinitionSynthesizer(self.store, self.library)
        if validator is None:
            validator = ComplianceValidator(self.config.compliance, self.library)
        self.validator = validator
        if extractors is not None:
            self.extractors = list(extractors)
        else:
            self.extractors = discover_extractors(self.config.extractors.enabled or None)
        self._sleep = sleep
        self._signatures: Dict[str, ExtractedSignature] = {}
        self._signature_lock = threading.Lock()

    @classmethod
    def from_path(cls, path: Path, *, state_dir: Path | None = None) -> "MotifEngine":
        """Build an engine from the ``.motifgen.yml`` found at ``path``."""
        config = load_config(path)
        if state_dir is not None:
            config.state_dir = state_dir
        return cls(config)

    # ------------------------------------------------------------------
    # Core operations

    def extract(self, unit: SourceUnit) -> ExtractedSignature:
        extractor = extractor_for(unit.language, self.extractors)
        signature = extractor.extract(unit)
        if signature.partial:
            self.logger.debug(
                "Partial %s signature for %s: %s", signature.language, signature.entity, "; ".join(signature.diagnostics)
            )
        self.remember(signature)
        self._record("extract", unit_hash(unit), signature.content_hash)
        return signature

    def discover(self, signature: ExtractedSignature) -> List[DiscoveredObject]:
        self.remember(signature)
        discovered = self.scorer.discover(signature)
        self._record(
            "discover",
            signature.content_hash,
            content_hash([item.object_hash for item in discovered]),
        )
        return discovered

    def define(
        self,
        discovered: DiscoveredObject,
        canonical_name: Optional[str] = None,
        acceptance_bar: Optional[float] = None,
        *,
        signature: ExtractedSignature | None = None,
    ) -> FormalDefinition:
        if signature is None:
            signature = self._signature_for(discovered.signature_hash)
        bar = self.config.acceptance_bar if acceptance_bar is None else acceptance_bar
        definition, created = self.synthesizer.synthesize(
            discovered,
            signature,
            canonical_name,
            bar,
            commit=lambda item: self._record("define", discovered.object_hash, item.content_hash),
        )
        if created:
            self.logger.info(
                "Committed definition %s v%d (%s)",
                definition.canonical_name,
                definition.version,
                definition.content_hash[:12],
            )
        return definition

    def validate(self, definition_hash: str, inputs: Mapping[str, ValidationInput]) -> ComplianceRecord:
        definition = self.store.get(definition_hash)
        record = self.validator.validate(definition, inputs)
        input_hash = content_hash({"definition": definition_hash, "inputs": [list(item) for item in record.signature_hashes]})
        self._record("validate", input_hash, record.record_hash)
        self.logger.info("Validated %s: %s", definition.canonical_name, record.verdict)
        return record

    def validate_sources(self, definition_hash: str, units: Mapping[str, SourceUnit]) -> ComplianceRecord:
        """Extract each unit and validate; extraction failures become indeterminate slots."""
        self.store.get(definition_hash)
        inputs: Dict[str, ValidationInput] = {}
        for language, unit in units.items():
            try:
                inputs[language] = self.extract(unit)
            except UnparsableSource as exc:
                self.logger.debug("Extraction failed for %s: %s", language, exc)
                inputs[language] = exc
        return self.validate(definition_hash, inputs)

    def get_definition(self, content_hash_value: str) -> FormalDefinition:
        return self.store.get(content_hash_value)

    # ------------------------------------------------------------------
    # Batch flows

    def analyze(self, unit: SourceUnit, *, canonical_name: Optional[str] = None) -> AnalysisOutcome:
        """Extract, discover, and define every discovery at or above the acceptance bar."""
        outcome = AnalysisOutcome(unit=unit)
        outcome.signature = self.extract(unit)
        outcome.discovered = self.discover(outcome.signature)
        seen: set[str] = set()
        for discovered in outcome.discovered:
            if discovered.confidence < self.config.acceptance_bar:
                self.logger.debug(
                    "Skipping %s at %.4f (below %.2f)", discovered.name, discovered.confidence, self.config.acceptance_bar
                )
                continue
            definition = self.define(discovered, canonical_name, signature=outcome.signature)
            if definition.content_hash not in seen:
                seen.add(definition.content_hash)
                outcome.definitions.append(definition)
        return outcome

    def analyze_batch(self, units: Sequence[SourceUnit], *, max_workers: Optional[int] = None) -> List[AnalysisOutcome]:
        """Analyze units concurrently; per-unit failures are reported, fatal ones propagate."""
        if not units:
            return []
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            return list(pool.map(self._analyze_guarded, units))

    def _analyze_guarded(self, unit: SourceUnit) -> AnalysisOutcome:
        try:
            return self.analyze(unit)
        except MotifError as exc:
            if exc.fatal:
                raise
            self.logger.debug("Analysis of %s failed: %s", unit.origin or unit.language, exc)
            return AnalysisOutcome(unit=unit, error=exc)

    # ------------------------------------------------------------------
    # State management

    def remember(self, signature: ExtractedSignature) -> None:
        with self._signature_lock:
            self._signatures[signature.content_hash] = signature

    def verify(self) -> Dict[str, int]:
        """Verify the ledger chain and every stored definition."""
        return {"ledger_events": self.ledger.verify(), "definitions": self.store.verify()}

    def recover(self) -> List[str]:
        """Drop stored definitions that never received a ``define`` ledger event."""
        self.ledger.verify()
        committed = {event.output_hash for event in self.ledger.events("define")}
        removed = self.store.retain(committed)
        if removed:
            self.logger.info("Recovery dropped %d uncommitted definitions", len(removed))
        return removed

    def persist(self) -> None:
        self.store.persist()
        self.ledger.persist()

    # ------------------------------------------------------------------
    # Internal helpers

    def _signature_for(self, signature_hash: str) -> ExtractedSignature:
        with self._signature_lock:
            signature = self._signatures.get(signature_hash)
        if signature is None:
            raise NotFound("signature", signature_hash)
        return signature

    def _record(self, kind: str, input_hash: str, output_hash: str) -> AuditEvent:
        attempts = self.config.ledger.max_attempts
        for attempt in range(1, attempts + 1):
            head = self.ledger.head_hash
            try:
                return self.ledger.append(kind, input_hash, output_hash, expected_head=head)
            except LedgerWriteConflict as exc:
                if attempt == attempts:
                    raise
                delay = self.config.ledger.backoff_seconds * (2 ** (attempt - 1))
                self.logger.debug("Ledger append conflict (%s); retry %d in %.3fs", exc, attempt, delay)
                self._sleep(delay)
        raise AssertionError("unreachable")  # pragma: no cover


__all__ = ["AnalysisOutcome", "MotifEngine", "unit_hash"]
