"""Deterministic motif scoring over extracted signatures."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .library import Indicator, PatternLibrary, PatternRule, load_library, name_matches
from ..logging import get_logger
from ..models import DiscoveredObject, ExtractedSignature

_LOGGER = get_logger("patterns")
_PRECISION = 4


@dataclass(frozen=True)
class RuleScore:
    """Score of one base rule against one signature."""

    rule: str
    confidence: float
    threshold: float
    evidence: Tuple[Tuple[str, Tuple[str, ...]], ...]

    @property
    def matched(self) -> bool:
        """A score equal to the threshold counts as a match."""
        return self.confidence >= self.threshold


class PatternScorer:
    """Scores signatures against a pattern library and resolves composites."""

    def __init__(self, library: Optional[PatternLibrary] = None) -> None:
        self.library = library if library is not None else load_library()

    def score_rules(self, signature: ExtractedSignature) -> List[RuleScore]:
        return [self._score_rule(rule, signature) for rule in self.library.rules]

    def discover(self, signature: ExtractedSignature) -> List[DiscoveredObject]:
        """Return discovered objects ordered by descending confidence, then name."""
        matched: Dict[str, RuleScore] = {
            score.rule: score for score in self.score_rules(signature) if score.matched
        }
        _LOGGER.debug(
            "Scored %s (%s): matched %s",
            signature.entity,
            signature.language,
            ", ".join(f"{name}={score.confidence}" for name, score in sorted(matched.items())) or "nothing",
        )

        discovered: List[DiscoveredObject] = []
        absorbed: Set[str] = set()
        composites = sorted(self.library.composites, key=lambda item: (-len(item.constituents), item.name))
        for composite in composites:
            members = composite.constituents
            if not all(member in matched for member in members):
                continue
            if any(member in absorbed for member in members):
                continue
            constituents = tuple((member, matched[member].confidence) for member in members)
            evidence = tuple(
                (f"{member}.{indicator}", hits)
                for member in members
                for indicator, hits in matched[member].evidence
            )
            discovered.append(
                DiscoveredObject(
                    signature_hash=signature.content_hash,
                    patterns=(composite.name,) + members,
                    confidence=min(score for _, score in constituents),
                    composite=True,
                    constituents=constituents,
                    evidence=evidence,
                )
            )
            absorbed.update(members)

        for name in sorted(matched):
            if name in absorbed:
                continue
            score = matched[name]
            discovered.append(
                DiscoveredObject(
                    signature_hash=signature.content_hash,
                    patterns=(name,),
                    confidence=score.confidence,
                    constituents=((name, score.confidence),),
                    evidence=score.evidence,
                )
            )

        discovered.sort(key=lambda item: (-item.confidence, item.name))
        return discovered

    def _score_rule(self, rule: PatternRule, signature: ExtractedSignature) -> RuleScore:
        satisfied = 0.0
        evidence: List[Tuple[str, Tuple[str, ...]]] = []
        for indicator in rule.indicators:
            hits = _evaluate(indicator, signature)
            if hits:
                satisfied += indicator.weight
                evidence.append((indicator.name, hits))
        maximum = rule.max_weight
        confidence = round(satisfied / maximum, _PRECISION) if maximum else 0.0
        return RuleScore(
            rule=rule.name,
            confidence=min(1.0, confidence),
            threshold=rule.threshold,
            evidence=tuple(evidence),
        )


def _evaluate(indicator: Indicator, signature: ExtractedSignature) -> Tuple[str, ...]:
    """Return the member names that satisfy ``indicator``; empty means unsatisfied."""
    predicate = indicator.predicate
    hits: Sequence[str]
    if predicate == "field_name":
        hits = [
            field.name
            for field in signature.fields
            if name_matches(field.name, indicator.keywords)
            and (not indicator.shapes or field.shape in indicator.shapes)
        ]
    elif predicate == "method":
        hits = [
            method.name
            for method in signature.methods
            if method.behavior in indicator.tags or name_matches(method.name, indicator.keywords)
        ]
    elif predicate == "member_name":
        members = [field.name for field in signature.fields] + [method.name for method in signature.methods]
        hits = [name for name in members if name_matches(name, indicator.keywords)]
    elif predicate == "field_shape":
        hits = [field.name for field in signature.fields if field.shape in indicator.shapes]
    elif predicate == "param_shape":
        hits = [
            method.name
            for method in signature.methods
            if any(shape in indicator.shapes for shape in method.param_shapes)
        ]
    elif predicate == "kind":
        hits = [signature.entity] if signature.kind in indicator.kinds else []
    else:
        raise ValueError(f"Unknown indicator predicate '{predicate}'")
    return tuple(sorted(set(hits)))


__all__ = ["PatternScorer", "RuleScore"]
