"""Pairwise compliance validation of sibling implementations against a definition."""

from __future__ import annotations

from itertools import combinations
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .checks import DEFAULT_CHECKS, CheckContext, ComplianceCheck
from ..config import ComplianceConfig
from ..errors import UnparsableSource
from ..logging import get_logger
from ..models import (
    APPROVED,
    FLAGGED,
    INDETERMINATE,
    REJECTED,
    CheckResult,
    ComplianceRecord,
    ExtractedSignature,
    FormalDefinition,
    PairResult,
)
from ..patterns.library import PatternLibrary, load_library

_LOGGER = get_logger("compliance")

ValidationInput = Union[ExtractedSignature, UnparsableSource]


class ComplianceValidator:
    """Scores every language pair and derives per-pair and overall verdicts."""

    def __init__(
        self,
        config: Optional[ComplianceConfig] = None,
        library: Optional[PatternLibrary] = None,
        checks: Sequence[ComplianceCheck] = DEFAULT_CHECKS,
    ) -> None:
        self.config = config or ComplianceConfig()
        self._library = library if library is not None else load_library()
        self._checks = tuple(checks)

    def validate(self, definition: FormalDefinition, inputs: Mapping[str, ValidationInput]) -> ComplianceRecord:
        if len(inputs) < 2:
            raise ValueError("Compliance validation needs at least two language inputs")

        languages = sorted(inputs)
        signature_hashes: List[Tuple[str, Optional[str]]] = []
        failures: List[Tuple[str, str]] = []
        for language in languages:
            item = inputs[language]
            if isinstance(item, ExtractedSignature):
                signature_hashes.append((language, item.content_hash))
            else:
                signature_hashes.append((language, None))
                failures.append((language, item.reason))

        pairs = [self._validate_pair(definition, first, second, inputs) for first, second in combinations(languages, 2)]
        verdict = overall_verdict(pair.verdict for pair in pairs)
        _LOGGER.debug(
            "Validated %s across %s: %s", definition.canonical_name, ", ".join(languages), verdict
        )
        return ComplianceRecord(
            definition_hash=definition.content_hash,
            signature_hashes=tuple(signature_hashes),
            failures=tuple(failures),
            pairs=tuple(pairs),
            verdict=verdict,
        )

    def _validate_pair(
        self,
        definition: FormalDefinition,
        first: str,
        second: str,
        inputs: Mapping[str, ValidationInput],
    ) -> PairResult:
        left, right = inputs[first], inputs[second]
        failed = [language for language, item in ((first, left), (second, right)) if not isinstance(item, ExtractedSignature)]
        if failed:
            return PairResult(
                languages=(first, second),
                verdict=INDETERMINATE,
                score=None,
                reason=f"extraction failed for {', '.join(failed)}",
            )
        assert isinstance(left, ExtractedSignature) and isinstance(right, ExtractedSignature)

        checks: List[CheckResult] = []
        side_scores: List[Tuple[str, float]] = []
        for language, mine, theirs in ((first, left, right), (second, right, left)):
            results = self._run_checks(definition, language, mine, theirs)
            checks.extend(results)
            side_scores.append((language, self._score(results)))
        score = min(value for _, value in side_scores)
        return PairResult(
            languages=(first, second),
            verdict=self.verdict_for(score),
            score=score,
            side_scores=tuple(side_scores),
            checks=tuple(checks),
        )

    def _run_checks(
        self,
        definition: FormalDefinition,
        language: str,
        signature: ExtractedSignature,
        counterpart: ExtractedSignature,
    ) -> List[CheckResult]:
        context = CheckContext(
            definition=definition,
            signature=signature,
            counterpart=counterpart,
            classify_role=self._library.classify_role,
        )
        results: List[CheckResult] = []
        for check in self._checks:
            outcome = check.evaluate(context)
            results.append(
                CheckResult(
                    check=check.name,
                    language=language,
                    passed=outcome.passed,
                    weight=self.config.weights.get(check.name, 0.0),
                    detail=outcome.detail,
                    missing=outcome.missing,
                )
            )
        return results

    @staticmethod
    def _score(results: Sequence[CheckResult]) -> float:
        total = sum(result.weight for result in results)
        if total <= 0:
            return 1.0 if all(result.passed for result in results) else 0.0
        passed = sum(result.weight for result in results if result.passed)
        return round(passed / total, 4)

    def verdict_for(self, score: float) -> str:
        if score >= self.config.approve_threshold:
            return APPROVED
        if score >= self.config.flag_threshold:
            return FLAGGED
        return REJECTED


_VERDICT_PRECEDENCE: Dict[str, int] = {REJECTED: 0, FLAGGED: 1, INDETERMINATE: 2, APPROVED: 3}


def overall_verdict(verdicts: Iterable[str]) -> str:
    """Worst pair wins: rejected, then flagged, then indeterminate, then approved."""
    ranked = sorted(verdicts, key=lambda verdict: _VERDICT_PRECEDENCE[verdict])
    return ranked[0] if ranked else INDETERMINATE


__all__ = ["ComplianceValidator", "ValidationInput", "overall_verdict"]
