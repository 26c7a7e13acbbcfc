"""Individual compliance checks run for each side of a language pair."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, List, Optional, Protocol, Set, Tuple

from ..models import ExtractedSignature, FieldSignature, FormalDefinition, MethodSignature

BOUNDARY_ANNOTATION = "boundary_adaptation"

_COMPATIBLE_TAGS: Dict[str, FrozenSet[str]] = {
    "transform": frozenset({"transform", "emit"}),
    "emit": frozenset({"emit", "transform"}),
    "accumulate": frozenset({"accumulate", "mutate-state"}),
    "mutate-state": frozenset({"mutate-state", "accumulate"}),
}


def tags_compatible(expected: str, actual: str) -> bool:
    if expected == actual or "other" in {expected, actual}:
        return True
    return actual in _COMPATIBLE_TAGS.get(expected, frozenset())


def shapes_compatible(expected: str, actual: str) -> bool:
    return expected == actual or "opaque" in {expected, actual}


@dataclass(frozen=True)
class CheckContext:
    """Everything a check sees: the definition, this side and the other side of the pair."""

    definition: FormalDefinition
    signature: ExtractedSignature
    counterpart: ExtractedSignature
    classify_role: Callable[[str], str]

    def definition_has_property(self, name: str) -> bool:
        return any(prop.name == name for prop in self.definition.properties)


@dataclass(frozen=True)
class CheckOutcome:
    passed: bool
    detail: str
    missing: Tuple[str, ...] = field(default_factory=tuple)


class ComplianceCheck(Protocol):
    """Protocol implemented by compliance checks."""

    name: str

    def evaluate(self, context: CheckContext) -> CheckOutcome:
        """Evaluate one side of a pair."""


class PropertyCoverageCheck:
    """Every defined property needs a counterpart by name or role with a compatible shape."""

    name = "property_coverage"

    def evaluate(self, context: CheckContext) -> CheckOutcome:
        used: Set[str] = set()
        missing: List[str] = []
        for prop in context.definition.properties:
            match = self._counterpart(prop.name, prop.shape, prop.role, context, used)
            if match is None:
                missing.append(prop.name)
            else:
                used.add(match.name)
        if missing:
            return CheckOutcome(False, f"missing properties: {', '.join(missing)}", tuple(missing))
        return CheckOutcome(True, f"all {len(context.definition.properties)} properties covered")

    @staticmethod
    def _counterpart(
        name: str, shape: str, role: str, context: CheckContext, used: Set[str]
    ) -> Optional[FieldSignature]:
        by_name = context.signature.field_named(name)
        if by_name is not None and by_name.name not in used and shapes_compatible(shape, by_name.shape):
            return by_name
        if role == "parameter":
            return None
        for candidate in context.signature.fields:
            if candidate.name in used or context.definition_has_property(candidate.name):
                continue
            if context.classify_role(candidate.name) == role and shapes_compatible(shape, candidate.shape):
                return candidate
        return None


class MethodCoverageCheck:
    """Every defined method needs a counterpart with equal arity and a compatible behavioral tag."""

    name = "method_coverage"

    def evaluate(self, context: CheckContext) -> CheckOutcome:
        used: Set[str] = set()
        missing: List[str] = []
        defined_names = {method.name for method in context.definition.methods}
        for method in context.definition.methods:
            match = self._counterpart(method.name, method.arity, method.behavior, context, used, defined_names)
            if match is None:
                missing.append(method.name)
            else:
                used.add(match.name)
        if missing:
            return CheckOutcome(False, f"missing methods: {', '.join(missing)}", tuple(missing))
        return CheckOutcome(True, f"all {len(context.definition.methods)} methods covered")

    @staticmethod
    def _counterpart(
        name: str,
        arity: int,
        behavior: str,
        context: CheckContext,
        used: Set[str],
        defined_names: Set[str],
    ) -> Optional[MethodSignature]:
        by_name = context.signature.method_named(name)
        if by_name is not None and by_name.name not in used:
            if by_name.arity == arity and tags_compatible(behavior, by_name.behavior):
                return by_name
            return None
        if behavior == "other":
            return None
        for candidate in context.signature.methods:
            if candidate.name in used or candidate.name in defined_names:
                continue
            if candidate.arity == arity and candidate.behavior != "other" and tags_compatible(behavior, candidate.behavior):
                return candidate
        return None


class OwnershipAdaptationCheck:
    """Methods crossing an owned/managed boundary must be annotated ``boundary_adaptation``."""

    name = "ownership_adaptation"

    def evaluate(self, context: CheckContext) -> CheckOutcome:
        mine, theirs = context.signature, context.counterpart
        if mine.memory_model == theirs.memory_model:
            return CheckOutcome(True, f"both sides use the {mine.memory_model} memory model")
        owned, managed = (mine, theirs) if mine.memory_model == "owned" else (theirs, mine)
        crossing = [method for method in owned.methods if method.receiver in {"mut", "owned"}]
        unannotated: List[str] = []
        for method in crossing:
            peer = managed.method_named(method.name)
            annotated = BOUNDARY_ANNOTATION in method.annotations or (
                peer is not None and BOUNDARY_ANNOTATION in peer.annotations
            )
            if not annotated:
                unannotated.append(method.name)
        if unannotated:
            return CheckOutcome(
                False,
                f"{owned.language} methods crossing into {managed.language} lack {BOUNDARY_ANNOTATION}: "
                + ", ".join(unannotated),
                tuple(unannotated),
            )
        return CheckOutcome(True, f"{len(crossing)} boundary-crossing methods annotated")


DEFAULT_CHECKS: Tuple[ComplianceCheck, ...] = (
    PropertyCoverageCheck(),
    MethodCoverageCheck(),
    OwnershipAdaptationCheck(),
)


__all__ = [
    "BOUNDARY_ANNOTATION",
    "CheckContext",
    "CheckOutcome",
    "ComplianceCheck",
    "DEFAULT_CHECKS",
    "MethodCoverageCheck",
    "OwnershipAdaptationCheck",
    "PropertyCoverageCheck",
    "shapes_compatible",
    "tags_compatible",
]
