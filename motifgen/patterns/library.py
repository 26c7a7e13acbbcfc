"""Pattern rule library loaded from YAML.

Rules are data: each base rule lists weighted indicators over a signature's
fields and methods, composites name the base rules that must co-occur, and the
role table classifies field names for definition synthesis. A loaded
``PatternLibrary`` is immutable and shared across threads without locking.
"""

from __future__ import annotations

from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple

import yaml

from ..config import ConfigError
from ..extractors.utils import name_tokens

_PREDICATES = ("field_name", "method", "member_name", "field_shape", "param_shape", "kind")
DEFAULT_ROLE = "parameter"


@dataclass(frozen=True)
class Indicator:
    """One weighted predicate of a rule."""

    name: str
    weight: float
    predicate: str
    keywords: Tuple[str, ...] = ()
    shapes: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()
    kinds: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PatternRule:
    name: str
    threshold: float
    indicators: Tuple[Indicator, ...]
    description: str = ""
    analogue: str = ""

    @property
    def max_weight(self) -> float:
        return sum(indicator.weight for indicator in self.indicators)


@dataclass(frozen=True)
class CompositeRule:
    name: str
    constituents: Tuple[str, ...]


@dataclass(frozen=True)
class PatternLibrary:
    rules: Tuple[PatternRule, ...]
    composites: Tuple[CompositeRule, ...]
    roles: Tuple[Tuple[str, Tuple[str, ...]], ...] = ()
    version: int = 1

    def rule(self, name: str) -> Optional[PatternRule]:
        return next((item for item in self.rules if item.name == name), None)

    def classify_role(self, name: str) -> str:
        """Return the first role whose keywords match ``name``; ``parameter`` otherwise."""
        for role, keywords in self.roles:
            if name_matches(name, keywords):
                return role
        return DEFAULT_ROLE


def name_matches(name: str, keywords: Iterable[str]) -> bool:
    """Match keywords against snake_case tokens by prefix; multi-token keywords match as substrings."""
    tokens = name_tokens(name)
    joined = "_".join(tokens)
    for keyword in keywords:
        if "_" in keyword:
            if keyword in joined:
                return True
        elif any(token.startswith(keyword) for token in tokens):
            return True
    return False


def load_library(path: Optional[Path] = None) -> PatternLibrary:
    """Load rules from ``path`` or from the packaged ``rules.yml``."""
    if path is None:
        text = resources.files("motifgen.patterns").joinpath("rules.yml").read_text(encoding="utf-8")
        source = "rules.yml"
    else:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Cannot read pattern rules from {path}: {exc}") from exc
        source = str(path)
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {source}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{source} must contain a mapping at the root")
    return parse_library(data, source=source)


def parse_library(data: Mapping[str, Any], *, source: str = "<rules>") -> PatternLibrary:
    rules_data = data.get("rules")
    if not isinstance(rules_data, dict) or not rules_data:
        raise ConfigError(f"{source}: 'rules' must be a non-empty mapping")

    rules = tuple(_parse_rule(name, body, source) for name, body in rules_data.items())
    known = {rule.name for rule in rules}

    composites = []
    for name, members in _mapping(data.get("composites")).items():
        constituents = tuple(str(member) for member in _sequence(members))
        if len(constituents) < 2:
            raise ConfigError(f"{source}: composite '{name}' needs at least two constituents")
        unknown = sorted(set(constituents) - known)
        if unknown:
            raise ConfigError(f"{source}: composite '{name}' references unknown rules {', '.join(unknown)}")
        composites.append(CompositeRule(name=str(name), constituents=tuple(sorted(constituents))))

    roles = tuple(
        (str(role), tuple(str(keyword).lower() for keyword in _sequence(keywords)))
        for role, keywords in _mapping(data.get("roles")).items()
    )
    return PatternLibrary(
        rules=rules,
        composites=tuple(composites),
        roles=roles,
        version=int(data.get("version", 1)),
    )


def _parse_rule(name: str, body: Any, source: str) -> PatternRule:
    if not isinstance(body, dict):
        raise ConfigError(f"{source}: rule '{name}' must be a mapping")
    threshold = body.get("threshold", 0.5)
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)) or not 0 < threshold <= 1:
        raise ConfigError(f"{source}: rule '{name}' threshold must be within (0, 1]")
    indicators = tuple(_parse_indicator(name, item, source) for item in _sequence(body.get("indicators")))
    if not indicators:
        raise ConfigError(f"{source}: rule '{name}' has no indicators")
    return PatternRule(
        name=str(name),
        threshold=float(threshold),
        indicators=indicators,
        description=str(body.get("description", "")),
        analogue=str(body.get("analogue", "")),
    )


def _parse_indicator(rule: str, item: Any, source: str) -> Indicator:
    if not isinstance(item, dict) or "name" not in item:
        raise ConfigError(f"{source}: indicators of rule '{rule}' must be mappings with a name")
    label = f"{rule}.{item['name']}"
    weight = item.get("weight")
    if isinstance(weight, bool) or not isinstance(weight, (int, float)) or weight <= 0:
        raise ConfigError(f"{source}: indicator '{label}' needs a positive weight")

    predicates = [key for key in _PREDICATES if key in item]
    if len(predicates) != 1:
        raise ConfigError(f"{source}: indicator '{label}' must define exactly one of {', '.join(_PREDICATES)}")
    predicate = predicates[0]
    value = item[predicate]

    keywords: Sequence[Any] = ()
    shapes: Sequence[Any] = _sequence(item.get("shapes"))
    tags: Sequence[Any] = ()
    kinds: Sequence[Any] = ()
    if predicate in {"field_name", "member_name"}:
        keywords = _sequence(value)
    elif predicate == "method":
        method = _mapping(value)
        keywords = _sequence(method.get("names"))
        tags = _sequence(method.get("tags"))
        if not keywords and not tags:
            raise ConfigError(f"{source}: method indicator '{label}' needs tags or names")
    elif predicate in {"field_shape", "param_shape"}:
        shapes = _sequence(value)
    else:
        kinds = _sequence(value)

    return Indicator(
        name=str(item["name"]),
        weight=float(weight),
        predicate=predicate,
        keywords=tuple(str(keyword).lower() for keyword in keywords),
        shapes=tuple(str(shape) for shape in shapes),
        tags=tuple(str(tag) for tag in tags),
        kinds=tuple(str(kind) for kind in kinds),
    )


def _mapping(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _sequence(value: Any) -> Sequence[Any]:
    if value is None:
        return ()
    if isinstance(value, (list, tuple)):
        return value
    return (value,)


__all__ = [
    "CompositeRule",
    "DEFAULT_ROLE",
    "Indicator",
    "PatternLibrary",
    "PatternRule",
    "load_library",
    "name_matches",
    "parse_library",
]
