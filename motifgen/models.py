"""Core data models shared across motifgen components."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from functools import cached_property
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from .hashing import content_hash

SHAPES = ("scalar", "vector", "matrix", "opaque")
DOMAINS = ("integer", "real", "boolean", "text", "unknown")
KINDS = ("aggregate", "behavior")
MEMORY_MODELS = ("owned", "managed")

APPROVED = "approved"
FLAGGED = "flagged"
REJECTED = "rejected"
INDETERMINATE = "indeterminate"


@dataclass(frozen=True)
class SourceUnit:
    """Raw source text handed over by the ingestion layer."""

    language: str
    text: str
    entity: Optional[str] = None
    origin: Optional[str] = None

    @property
    def language_key(self) -> str:
        return self.language.strip().lower()


@dataclass(frozen=True)
class FieldSignature:
    name: str
    shape: str
    domain: str = "unknown"


@dataclass(frozen=True)
class MethodSignature:
    name: str
    arity: int
    param_shapes: Tuple[str, ...] = ()
    behavior: str = "other"
    receiver: str = "ref"
    annotations: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ExtractedSignature:
    """Canonical, language-agnostic description of one analyzed aggregate."""

    entity: str
    kind: str
    language: str
    memory_model: str
    fields: Tuple[FieldSignature, ...] = ()
    methods: Tuple[MethodSignature, ...] = ()
    partial: bool = False
    diagnostics: Tuple[str, ...] = ()

    @cached_property
    def content_hash(self) -> str:
        return content_hash(self.to_dict())

    def field_named(self, name: str) -> Optional[FieldSignature]:
        return next((item for item in self.fields if item.name == name), None)

    def method_named(self, name: str) -> Optional[MethodSignature]:
        return next((item for item in self.methods if item.name == name), None)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ExtractedSignature":
        return cls(
            entity=str(payload["entity"]),
            kind=str(payload.get("kind", "behavior")),
            language=str(payload["language"]),
            memory_model=str(payload.get("memory_model", "managed")),
            fields=tuple(
                FieldSignature(
                    name=str(item["name"]),
                    shape=str(item.get("shape", "opaque")),
                    domain=str(item.get("domain", "unknown")),
                )
                for item in payload.get("fields", [])
            ),
            methods=tuple(
                MethodSignature(
                    name=str(item["name"]),
                    arity=int(item.get("arity", 0)),
                    param_shapes=tuple(str(shape) for shape in item.get("param_shapes", [])),
                    behavior=str(item.get("behavior", "other")),
                    receiver=str(item.get("receiver", "ref")),
                    annotations=tuple(str(tag) for tag in item.get("annotations", [])),
                )
                for item in payload.get("methods", [])
            ),
            partial=bool(payload.get("partial", False)),
            diagnostics=tuple(str(note) for note in payload.get("diagnostics", [])),
        )


@dataclass(frozen=True)
class DiscoveredObject:
    """A scored motif candidate; references its signature by content hash only."""

    signature_hash: str
    patterns: Tuple[str, ...]
    confidence: float
    composite: bool = False
    constituents: Tuple[Tuple[str, float], ...] = ()
    evidence: Tuple[Tuple[str, Tuple[str, ...]], ...] = ()

    def __post_init__(self) -> None:
        if not self.patterns:
            raise ValueError("A discovered object must name at least one pattern")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence {self.confidence} is outside [0, 1]")

    @property
    def name(self) -> str:
        return self.patterns[0]

    @cached_property
    def object_hash(self) -> str:
        return content_hash(self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "DiscoveredObject":
        return cls(
            signature_hash=str(payload["signature_hash"]),
            patterns=tuple(str(name) for name in payload["patterns"]),
            confidence=float(payload["confidence"]),
            composite=bool(payload.get("composite", False)),
            constituents=tuple(
                (str(name), float(score)) for name, score in payload.get("constituents", [])
            ),
            evidence=tuple(
                (str(indicator), tuple(str(member) for member in members))
                for indicator, members in payload.get("evidence", [])
            ),
        )


@dataclass(frozen=True)
class PropertyDefinition:
    name: str
    shape: str
    domain: str
    role: str


@dataclass(frozen=True)
class MethodDefinition:
    name: str
    arity: int
    param_shapes: Tuple[str, ...]
    behavior: str
    role: str


@dataclass(frozen=True)
class FormalDefinition:
    """Immutable, content-addressed canonical object definition."""

    canonical_name: str
    version: int
    content_hash: str
    properties: Tuple[PropertyDefinition, ...]
    methods: Tuple[MethodDefinition, ...]
    implementation_hints: Tuple[Tuple[str, str], ...] = ()
    supersedes: Optional[str] = None
    patterns: Tuple[str, ...] = ()

    @staticmethod
    def body_payload(
        properties: Sequence[PropertyDefinition], methods: Sequence[MethodDefinition]
    ) -> Dict[str, Any]:
        return {
            "properties": [asdict(item) for item in sorted(properties, key=lambda p: p.name)],
            "methods": [asdict(item) for item in sorted(methods, key=lambda m: m.name)],
        }

    @classmethod
    def compute_hash(
        cls,
        canonical_name: str,
        properties: Sequence[PropertyDefinition],
        methods: Sequence[MethodDefinition],
    ) -> str:
        payload = {"name": canonical_name, **cls.body_payload(properties, methods)}
        return content_hash(payload)

    @property
    def body_hash(self) -> str:
        return content_hash(self.body_payload(self.properties, self.methods))

    def verify(self) -> bool:
        return self.compute_hash(self.canonical_name, self.properties, self.methods) == self.content_hash

    def hint(self, language: str) -> Optional[str]:
        return dict(self.implementation_hints).get(language)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "FormalDefinition":
        return cls(
            canonical_name=str(payload["canonical_name"]),
            version=int(payload["version"]),
            content_hash=str(payload["content_hash"]),
            properties=tuple(
                PropertyDefinition(
                    name=str(item["name"]),
                    shape=str(item["shape"]),
                    domain=str(item["domain"]),
                    role=str(item["role"]),
                )
                for item in payload.get("properties", [])
            ),
            methods=tuple(
                MethodDefinition(
                    name=str(item["name"]),
                    arity=int(item["arity"]),
                    param_shapes=tuple(str(shape) for shape in item.get("param_shapes", [])),
                    behavior=str(item["behavior"]),
                    role=str(item["role"]),
                )
                for item in payload.get("methods", [])
            ),
            implementation_hints=tuple(
                (str(language), str(outline))
                for language, outline in payload.get("implementation_hints", [])
            ),
            supersedes=payload.get("supersedes"),
            patterns=tuple(str(name) for name in payload.get("patterns", [])),
        )


@dataclass(frozen=True)
class CheckResult:
    """Outcome of a single compliance rule for one language."""

    check: str
    language: str
    passed: bool
    weight: float
    detail: str
    missing: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PairResult:
    languages: Tuple[str, str]
    verdict: str
    score: Optional[float]
    side_scores: Tuple[Tuple[str, float], ...] = ()
    checks: Tuple[CheckResult, ...] = ()
    reason: Optional[str] = None

    def failed_checks(self) -> Tuple[CheckResult, ...]:
        return tuple(check for check in self.checks if not check.passed)


@dataclass(frozen=True)
class ComplianceRecord:
    """Result of validating sibling implementations against one definition."""

    definition_hash: str
    signature_hashes: Tuple[Tuple[str, Optional[str]], ...]
    failures: Tuple[Tuple[str, str], ...]
    pairs: Tuple[PairResult, ...]
    verdict: str

    @cached_property
    def record_hash(self) -> str:
        return content_hash(self.to_dict())

    def pair(self, first: str, second: str) -> Optional[PairResult]:
        wanted = tuple(sorted((first, second)))
        return next((item for item in self.pairs if item.languages == wanted), None)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AuditEvent:
    """One hash-chained ledger entry. Only ``next_hash`` is written after creation."""

    sequence: int
    kind: str
    input_hash: str
    output_hash: str
    timestamp: str
    prev_hash: Optional[str]
    event_hash: str
    next_hash: Optional[str] = field(default=None, compare=False)

    @staticmethod
    def compute_hash(
        sequence: int,
        kind: str,
        input_hash: str,
        output_hash: str,
        timestamp: str,
        prev_hash: Optional[str],
    ) -> str:
        return content_hash(
            {
                "sequence": sequence,
                "kind": kind,
                "input_hash": input_hash,
                "output_hash": output_hash,
                "timestamp": timestamp,
                "prev_hash": prev_hash,
            }
        )

    def expected_hash(self) -> str:
        return self.compute_hash(
            self.sequence, self.kind, self.input_hash, self.output_hash, self.timestamp, self.prev_hash
        )

    def link_next(self, next_hash: str) -> None:
        if self.next_hash is not None:
            raise ValueError(f"Ledger event {self.sequence} is already linked")
        self.next_hash = next_hash

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "AuditEvent":
        return cls(
            sequence=int(payload["sequence"]),
            kind=str(payload["kind"]),
            input_hash=str(payload["input_hash"]),
            output_hash=str(payload["output_hash"]),
            timestamp=str(payload["timestamp"]),
            prev_hash=payload.get("prev_hash"),
            event_hash=str(payload["event_hash"]),
            next_hash=payload.get("next_hash"),
        )


__all__ = [
    "APPROVED",
    "AuditEvent",
    "CheckResult",
    "ComplianceRecord",
    "DOMAINS",
    "DiscoveredObject",
    "ExtractedSignature",
    "FLAGGED",
    "FieldSignature",
    "FormalDefinition",
    "INDETERMINATE",
    "KINDS",
    "MEMORY_MODELS",
    "MethodDefinition",
    "MethodSignature",
    "PairResult",
    "PropertyDefinition",
    "REJECTED",
    "SHAPES",
    "SourceUnit",
]
