"""Shared helper utilities for extractor implementations."""

from __future__ import annotations

import re
from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple, TypeVar

_Named = TypeVar("_Named")

# Name normalisation

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_NON_WORD = re.compile(r"[^0-9a-zA-Z]+")


def snake_case(name: str) -> str:
    """Normalise ``stateVector``, ``StateVector`` and ``_state_vector`` to ``state_vector``."""
    spaced = _CAMEL_BOUNDARY.sub("_", name.strip())
    cleaned = _NON_WORD.sub("_", spaced).strip("_").lower()
    return re.sub(r"_+", "_", cleaned)


def name_tokens(name: str) -> List[str]:
    return [token for token in snake_case(name).split("_") if token]


# Behavioral tags

_BEHAVIOR_KEYWORDS: Tuple[Tuple[str, FrozenSet[str]], ...] = (
    ("learn", frozenset({"learn", "train", "hebb", "hebbian", "plasticity", "stdp", "adapt", "backprop", "fit"})),
    (
        "accumulate",
        frozenset({"integrate", "accumulate", "aggregate", "sum", "gather", "collect", "receive", "charge"}),
    ),
    (
        "transform",
        frozenset(
            {"process", "forward", "propagate", "transmit", "predict", "compute", "apply", "transform", "map", "evaluate", "run"}
        ),
    ),
    ("emit", frozenset({"fire", "spike", "emit", "output", "readout"})),
    ("mutate-state", frozenset({"reset", "set", "update", "step", "clear", "decay", "store", "write", "push"})),
    ("query", frozenset({"get", "is", "has", "read", "peek", "len", "size", "count", "current"})),
)

_CONSTRUCTOR_NAMES = frozenset({"__init__", "__new__", "new", "constructor", "init", "create", "default"})


def is_constructor(name: str) -> bool:
    return name in _CONSTRUCTOR_NAMES


def infer_behavior(name: str, *, receiver: str = "ref", returns: bool = False) -> str:
    """Return a coarse behavioral tag from a method's name, receiver, and return presence."""
    tokens = name_tokens(name)
    if tokens:
        # The leading verb decides first; later tokens only break ties.
        for tag, keywords in _BEHAVIOR_KEYWORDS:
            if tokens[0] in keywords:
                return tag
        for tag, keywords in _BEHAVIOR_KEYWORDS:
            if any(token in keywords for token in tokens[1:]):
                return tag
    if receiver in {"mut", "owned"} and not returns:
        return "mutate-state"
    if returns:
        return "transform"
    if receiver == "mut":
        return "mutate-state"
    return "other"


# Shape and domain inference

_CONTAINER_OPENER = re.compile(
    r"(?<![a-z0-9_])(?:vec|list|array|sequence|arraylist|vecdeque|deque|mutablelist|iterable|collection)[<\[]"
)
_BARE_BRACKET = re.compile(r"(?<![a-z0-9_\])>)])\[")
_WRAPPER = re.compile(r"^(?:optional|option|box|rc|arc|refcell|cell)[<\[](.*)[>\]]$")
_PRIMITIVE_ARRAYS = ("floatarray", "doublearray", "intarray", "longarray", "booleanarray", "shortarray", "bytearray")
_MATRIX_TYPES = ("array2", "dmatrix", "matrix")
_UNRANKED_ARRAYS = ("ndarray", "array1", "dvector", "tensor", "float32array", "float64array", "arrayd")

_REAL_TOKENS = frozenset(
    {"f32", "f64", "float", "double", "real", "number", "decimal", "floatarray", "doublearray", "ndarray",
     "float32array", "float64array", "dvector", "dmatrix", "array1", "array2", "tensor"}
)
_INTEGER_TOKENS = frozenset(
    {"i8", "i16", "i32", "i64", "i128", "u8", "u16", "u32", "u64", "u128", "usize", "isize", "int",
     "long", "short", "integer", "intarray", "longarray", "shortarray", "bigint", "byte"}
)
_BOOLEAN_TOKENS = frozenset({"bool", "boolean", "booleanarray"})
_TEXT_TOKENS = frozenset({"str", "string", "char"})
_SCALAR_TOKENS = _REAL_TOKENS.union(_INTEGER_TOKENS, _BOOLEAN_TOKENS, _TEXT_TOKENS) - frozenset(
    {"floatarray", "doublearray", "ndarray", "float32array", "float64array", "dvector", "dmatrix", "array1",
     "array2", "tensor", "intarray", "longarray", "shortarray", "booleanarray"}
)

_NUMERIC_LITERAL = re.compile(r"^-?\d+(?:_\d+)*(\.\d*)?(?:[eE][-+]?\d+)?[fFdDlL]?$")
_ARRAY_FACTORY = re.compile(
    r"^(?:np|numpy|torch|jnp|tf)\.(?:random\.)?(\w+)\((.*)\)$", re.DOTALL
)
_KOTLIN_ARRAY_CALL = re.compile(
    r"(?:FloatArray|DoubleArray|IntArray|LongArray|Array|arrayOf|listOf|mutableListOf|doubleArrayOf|floatArrayOf|emptyList|ArrayList)\s*[(<{]"
)


def _clean_type(type_text: str) -> str:
    compact = re.sub(r"\s+", "", type_text).lower()
    compact = re.sub(r"'[a-z_]+", "", compact)
    compact = compact.rstrip("?")
    compact = re.sub(r"^(?:&mut|&|\*const|\*mut|mut)", "", compact)
    match = _WRAPPER.match(compact)
    while match:
        compact = match.group(1)
        match = _WRAPPER.match(compact)
    return compact


def shape_from_type(type_text: Optional[str]) -> Optional[str]:
    """Infer a shape from declared type text; ``"array"`` means unknown rank."""
    if not type_text:
        return None
    compact = _clean_type(type_text)
    if not compact:
        return None
    if any(marker in compact for marker in _MATRIX_TYPES):
        return "matrix"
    depth = len(_CONTAINER_OPENER.findall(compact))
    depth += compact.count("[]")
    depth += len(_BARE_BRACKET.findall(compact))
    depth += sum(compact.count(marker) for marker in _PRIMITIVE_ARRAYS)
    if depth >= 2:
        return "matrix"
    if depth == 1:
        return "vector"
    if any(marker in compact for marker in _UNRANKED_ARRAYS):
        return "array"
    tokens = [token for token in re.split(r"[^a-z0-9]+", compact) if token]
    if tokens and tokens[-1] in _SCALAR_TOKENS:
        return "scalar"
    return None


def shape_from_initializer(init_text: Optional[str]) -> Optional[str]:
    """Infer a shape from an initializer expression such as ``np.zeros((n, n))``."""
    if not init_text:
        return None
    text = init_text.strip()
    if not text:
        return None
    factory = _ARRAY_FACTORY.match(text)
    if factory:
        func, args = factory.group(1), factory.group(2).strip()
        if func in {"eye", "identity"}:
            return "matrix"
        if args.startswith("[["):
            return "matrix"
        if args.startswith(("(", "[")):
            return "matrix" if len(_call_arguments(args[1:])) >= 2 else "vector"
        positional = [part for part in _call_arguments(args) if "=" not in part]
        if func in {"rand", "randn"} and len(positional) >= 2:
            return "matrix"
        return "vector"
    if text.startswith("[["):
        return "matrix"
    if text.startswith("["):
        return "vector"
    array_calls = len(_KOTLIN_ARRAY_CALL.findall(text))
    if array_calls >= 2:
        return "matrix"
    if array_calls == 1 or text.startswith(("new Array", "Array.from", "vec!")):
        return "vector"
    if _NUMERIC_LITERAL.match(text) or text in {"True", "False", "true", "false"}:
        return "scalar"
    if text[:1] in {'"', "'"}:
        return "scalar"
    return None


def shape_from_name(name: str) -> Optional[str]:
    tokens = set(name_tokens(name))
    if tokens & {"matrix", "mat", "grid", "adjacency"}:
        return "matrix"
    if tokens & {"vector", "vec", "array", "buffer", "trace", "history"}:
        return "vector"
    return None


def infer_shape(
    type_text: Optional[str] = None,
    init_text: Optional[str] = None,
    name: Optional[str] = None,
) -> str:
    """Combine type, initializer, and name evidence into one of the canonical shapes."""
    shape = shape_from_type(type_text)
    if shape in (None, "array"):
        from_init = shape_from_initializer(init_text)
        if from_init and (shape is None or from_init in {"vector", "matrix"}):
            shape = from_init
    if shape in (None, "array") and name:
        from_name = shape_from_name(name)
        if from_name:
            shape = from_name
    if shape == "array":
        return "vector"
    return shape or "opaque"


def infer_domain(type_text: Optional[str] = None, init_text: Optional[str] = None) -> str:
    if type_text:
        for token in re.split(r"[^a-z0-9]+", _clean_type(type_text)):
            if token in _REAL_TOKENS:
                return "real"
            if token in _INTEGER_TOKENS:
                return "integer"
            if token in _BOOLEAN_TOKENS:
                return "boolean"
            if token in _TEXT_TOKENS:
                return "text"
    if init_text:
        text = init_text.strip()
        if _ARRAY_FACTORY.match(text) or re.search(r"\b(?:Float|Double)Array\b|doubleArrayOf|floatArrayOf", text):
            return "real"
        if re.search(r"\b(?:Int|Long)Array\b|intArrayOf", text):
            return "integer"
        leading = re.match(r"[\[(\s]*([^,\])\s*]+)", text)
        literal = leading.group(1) if leading else ""
        if literal in {"True", "False", "true", "false"}:
            return "boolean"
        if literal[:1] in {'"', "'"}:
            return "text"
        number = _NUMERIC_LITERAL.match(literal)
        if number:
            is_real = number.group(1) is not None or literal[-1:] in {"f", "F", "d", "D"} or "e" in literal.lower()
            return "real" if is_real else "integer"
    return "unknown"


def _call_arguments(text: str) -> List[str]:
    """Split argument text on depth-zero commas, stopping at the closing bracket."""
    parts: List[str] = []
    current: List[str] = []
    depth = 0
    for char in text:
        if char in "([{":
            depth += 1
        elif char in ")]}":
            if depth == 0:
                break
            depth -= 1
        elif char == "," and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)
    parts.append("".join(current))
    return [part.strip() for part in parts if part.strip()]


# Annotation and collection helpers


def normalise_annotation(name: str) -> str:
    return snake_case(name.rsplit(".", 1)[-1].rsplit("::", 1)[-1])


def dedupe_by_name(items: Iterable[_Named]) -> List[_Named]:
    seen: set[str] = set()
    unique: List[_Named] = []
    for item in items:
        if item.name in seen:
            continue
        seen.add(item.name)
        unique.append(item)
    return unique


def kind_for(methods: Sequence[object]) -> str:
    return "behavior" if methods else "aggregate"


__all__ = [
    "dedupe_by_name",
    "infer_behavior",
    "infer_domain",
    "infer_shape",
    "is_constructor",
    "kind_for",
    "name_tokens",
    "normalise_annotation",
    "shape_from_initializer",
    "shape_from_name",
    "shape_from_type",
    "snake_case",
]
