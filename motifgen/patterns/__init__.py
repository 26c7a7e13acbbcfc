"""Pattern library and motif scoring."""

from .library import CompositeRule, Indicator, PatternLibrary, PatternRule, load_library, parse_library
from .scorer import PatternScorer, RuleScore

__all__ = [
    "CompositeRule",
    "Indicator",
    "PatternLibrary",
    "PatternRule",
    "PatternScorer",
    "RuleScore",
    "load_library",
    "parse_library",
]
