"""Per-language implementation outlines attached to formal definitions."""

from __future__ import annotations

from typing import Callable, Dict, List, Sequence, Tuple

from ..extractors.utils import name_tokens
from ..models import MethodDefinition, PropertyDefinition

_MUTATING_ROLES = {"learning_rule", "accumulation", "state_update"}

_ELEMENT_TYPES: Dict[str, Dict[str, str]] = {
    "rust": {"integer": "i64", "boolean": "bool", "text": "String", "real": "f64", "unknown": "f64"},
    "python": {"integer": "int", "boolean": "bool", "text": "str", "real": "float", "unknown": "float"},
    "kotlin": {"integer": "Long", "boolean": "Boolean", "text": "String", "real": "Double", "unknown": "Double"},
    "java": {"integer": "long", "boolean": "boolean", "text": "String", "real": "double", "unknown": "double"},
    "typescript": {"integer": "number", "boolean": "boolean", "text": "string", "real": "number", "unknown": "number"},
}


def _pascal(name: str) -> str:
    return "".join(token.capitalize() for token in name_tokens(name)) or name


def _camel(name: str) -> str:
    pascal = _pascal(name)
    return pascal[:1].lower() + pascal[1:]


def _type(language: str, shape: str, domain: str) -> str:
    element = _ELEMENT_TYPES[language].get(domain, _ELEMENT_TYPES[language]["unknown"])
    if shape == "opaque":
        return {"rust": "Box<dyn std::any::Any>", "python": "object", "kotlin": "Any", "java": "Object", "typescript": "unknown"}[
            language
        ]
    if shape == "scalar":
        return element
    rank = 2 if shape == "matrix" else 1
    if language == "rust":
        return "Vec<" * rank + element + ">" * rank
    if language == "python":
        return "list[" * rank + element + "]" * rank
    if language == "kotlin":
        inner = {"Double": "DoubleArray", "Long": "LongArray", "Boolean": "BooleanArray"}.get(element, f"Array<{element}>")
        return inner if rank == 1 else f"Array<{inner}>"
    return element + "[]" * rank


def _params(language: str, method: MethodDefinition) -> List[Tuple[str, str]]:
    shapes = list(method.param_shapes) + ["opaque"] * max(0, method.arity - len(method.param_shapes))
    return [(f"arg{index}", _type(language, shape, "unknown")) for index, shape in enumerate(shapes[: method.arity])]


def _rust(name: str, properties: Sequence[PropertyDefinition], methods: Sequence[MethodDefinition]) -> str:
    lines = [f"pub struct {_pascal(name)} {{"]
    lines += [f"    pub {prop.name}: {_type('rust', prop.shape, prop.domain)}," for prop in properties]
    lines += ["}", "", f"impl {_pascal(name)} {{"]
    for method in methods:
        receiver = "&mut self" if method.role in _MUTATING_ROLES else "&self"
        params = ", ".join([receiver] + [f"{arg}: {kind}" for arg, kind in _params("rust", method)])
        lines.append(f"    pub fn {method.name}({params}) {{ /* {method.role} */ }}")
    lines.append("}")
    return "\n".join(lines)


def _python(name: str, properties: Sequence[PropertyDefinition], methods: Sequence[MethodDefinition]) -> str:
    lines = [f"class {_pascal(name)}:"]
    lines += [f"    {prop.name}: {_type('python', prop.shape, prop.domain)}" for prop in properties]
    for method in methods:
        params = ", ".join(["self"] + [f"{arg}: {kind}" for arg, kind in _params("python", method)])
        lines += ["", f"    def {method.name}({params}):", f"        ...  # {method.role}"]
    if len(lines) == 1:
        lines.append("    pass")
    return "\n".join(lines)


def _kotlin(name: str, properties: Sequence[PropertyDefinition], methods: Sequence[MethodDefinition]) -> str:
    lines = [f"class {_pascal(name)} {{"]
    lines += [f"    var {_camel(prop.name)}: {_type('kotlin', prop.shape, prop.domain)}" for prop in properties]
    for method in methods:
        params = ", ".join(f"{arg}: {kind}" for arg, kind in _params("kotlin", method))
        lines.append(f"    fun {_camel(method.name)}({params}) {{ /* {method.role} */ }}")
    lines.append("}")
    return "\n".join(lines)


def _java(name: str, properties: Sequence[PropertyDefinition], methods: Sequence[MethodDefinition]) -> str:
    lines = [f"public class {_pascal(name)} {{"]
    lines += [f"    private {_type('java', prop.shape, prop.domain)} {_camel(prop.name)};" for prop in properties]
    for method in methods:
        params = ", ".join(f"{kind} {arg}" for arg, kind in _params("java", method))
        lines.append(f"    public void {_camel(method.name)}({params}) {{ /* {method.role} */ }}")
    lines.append("}")
    return "\n".join(lines)


def _typescript(name: str, properties: Sequence[PropertyDefinition], methods: Sequence[MethodDefinition]) -> str:
    lines = [f"export class {_pascal(name)} {{"]
    lines += [f"  {_camel(prop.name)}: {_type('typescript', prop.shape, prop.domain)};" for prop in properties]
    for method in methods:
        params = ", ".join(f"{arg}: {kind}" for arg, kind in _params("typescript", method))
        lines.append(f"  {_camel(method.name)}({params}): void {{ /* {method.role} */ }}")
    lines.append("}")
    return "\n".join(lines)


_RENDERERS: Dict[str, Callable[[str, Sequence[PropertyDefinition], Sequence[MethodDefinition]], str]] = {
    "java": _java,
    "kotlin": _kotlin,
    "python": _python,
    "rust": _rust,
    "typescript": _typescript,
}


def render_hints(
    name: str, properties: Sequence[PropertyDefinition], methods: Sequence[MethodDefinition]
) -> Tuple[Tuple[str, str], ...]:
    """Return ``(language, outline)`` pairs sorted by language."""
    return tuple((language, render(name, properties, methods)) for language, render in sorted(_RENDERERS.items()))


__all__ = ["render_hints"]
