"""Python signature extractor built on the tree-sitter Python grammar."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from tree_sitter import Node

from .syntax import ParsedSource, SyntaxTreeExtractor, name_of, syntax_notes, walk
from .utils import (
    dedupe_by_name,
    infer_behavior,
    infer_domain,
    infer_shape,
    is_constructor,
    kind_for,
    normalise_annotation,
    snake_case,
)
from ..errors import UnparsableSource
from ..models import ExtractedSignature, FieldSignature, MethodSignature, SourceUnit

_SCOPES = frozenset({"class_definition", "function_definition"})
_PLAIN_DECORATORS = frozenset({"staticmethod", "classmethod", "property"})

_Function = Tuple[Node, List[str]]


class PythonExtractor(SyntaxTreeExtractor):
    """Extracts class fields and methods from Python source."""

    languages = ("python", "py")
    memory_model = "managed"
    grammar = "python"

    def extract(self, unit: SourceUnit) -> ExtractedSignature:
        parsed = self.parse(unit.text)
        diagnostics = syntax_notes(parsed.root, lambda node: _describe(node, parsed.source_bytes))

        classes = [node for node in walk(parsed.root, stop=_SCOPES) if node.type == "class_definition"]
        if not classes:
            reason = diagnostics[0] if diagnostics else "no class declaration found"
            raise UnparsableSource("python", reason)

        target = _select_class(classes, unit.entity, parsed.source_bytes)
        if target is None:
            raise UnparsableSource("python", f"class '{unit.entity}' not found")

        body = target.child_by_field_name("body")
        functions = _functions(body, parsed)
        methods = self._collect_methods(functions, parsed)
        return ExtractedSignature(
            entity=name_of(target, parsed.source_bytes),
            kind=kind_for(methods),
            language="python",
            memory_model=self.memory_model,
            fields=tuple(self._collect_fields(body, functions, parsed)),
            methods=tuple(methods),
            partial=bool(diagnostics),
            diagnostics=tuple(diagnostics),
        )

    # ------------------------------------------------------------------
    # Fields

    def _collect_fields(
        self, body: Optional[Node], functions: Sequence[_Function], parsed: ParsedSource
    ) -> List[FieldSignature]:
        fields: List[FieldSignature] = []
        for statement in body.named_children if body is not None else []:
            if statement.type != "expression_statement" or not statement.named_children:
                continue
            assignment = statement.named_children[0]
            if assignment.type != "assignment":
                continue
            target = assignment.child_by_field_name("left")
            annotation = assignment.child_by_field_name("type")
            if target is None or target.type != "identifier" or annotation is None:
                continue
            name = parsed.text(target)
            if name.isupper():
                continue
            fields.append(_field(name, parsed.text(annotation), parsed.text(assignment.child_by_field_name("right"))))

        constructors = [item for item, _ in functions if name_of(item, parsed.source_bytes) == "__init__"]
        others = [item for item, _ in functions if name_of(item, parsed.source_bytes) != "__init__"]
        for function in constructors + others:
            param_annotations = dict(_parameters(function, parsed))
            for attribute, annotation, value in _self_assignments(function, parsed):
                type_text = annotation
                if type_text is None and value is not None and value.type == "identifier":
                    type_text = param_annotations.get(parsed.text(value))
                fields.append(_field(attribute, type_text, parsed.text(value)))
        return dedupe_by_name(fields)

    # ------------------------------------------------------------------
    # Methods

    def _collect_methods(self, functions: Sequence[_Function], parsed: ParsedSource) -> List[MethodSignature]:
        methods: List[MethodSignature] = []
        for function, decorators in functions:
            name = name_of(function, parsed.source_bytes)
            if not name or is_constructor(name) or name.startswith("_"):
                continue
            is_static = "staticmethod" in decorators or "classmethod" in decorators
            params = _parameters(function, parsed)
            if not is_static and params and params[0][0] in {"self", "cls"}:
                params = params[1:]
            if is_static:
                receiver = "none"
            else:
                receiver = "mut" if _self_assignments(function, parsed) else "ref"
            returns = _returns_value(function, parsed)
            methods.append(
                MethodSignature(
                    name=snake_case(name),
                    arity=len(params),
                    param_shapes=tuple(infer_shape(type_text, None, param) for param, type_text in params),
                    behavior=infer_behavior(name, receiver=receiver, returns=returns),
                    receiver=receiver,
                    annotations=tuple(
                        sorted(normalise_annotation(item) for item in decorators if item not in _PLAIN_DECORATORS)
                    ),
                )
            )
        return dedupe_by_name(methods)


def _field(name: str, type_text: Optional[str], value_text: Optional[str]) -> FieldSignature:
    return FieldSignature(
        name=snake_case(name),
        shape=infer_shape(type_text, value_text, name),
        domain=infer_domain(type_text, value_text),
    )


def _describe(node: Node, source_bytes: bytes) -> Optional[str]:
    if node.type == "class_definition":
        return f"class '{name_of(node, source_bytes)}'"
    if node.type == "function_definition":
        return f"def '{name_of(node, source_bytes)}'"
    return None


def _select_class(classes: Sequence[Node], entity: Optional[str], source_bytes: bytes) -> Optional[Node]:
    if entity is None:
        return classes[0]
    wanted = snake_case(entity)
    return next((item for item in classes if snake_case(name_of(item, source_bytes)) == wanted), None)


def _functions(body: Optional[Node], parsed: ParsedSource) -> List[_Function]:
    """Return ``(function_definition, decorator names)`` for each method in a class body."""
    functions: List[_Function] = []
    for child in body.named_children if body is not None else []:
        if child.type == "function_definition":
            functions.append((child, []))
        elif child.type == "decorated_definition":
            definition = child.child_by_field_name("definition")
            if definition is None or definition.type != "function_definition":
                continue
            decorators = [_decorator_name(item, parsed) for item in child.named_children if item.type == "decorator"]
            functions.append((definition, decorators))
    return functions


def _decorator_name(node: Node, parsed: ParsedSource) -> str:
    expression = node.named_children[0] if node.named_children else node
    if expression.type == "call":
        expression = expression.child_by_field_name("function") or expression
    return parsed.text(expression).lstrip("@").strip()


def _parameters(function: Node, parsed: ParsedSource) -> List[Tuple[str, Optional[str]]]:
    """Return ``(name, annotation)`` for named parameters; ``*args`` and ``**kwargs`` are skipped."""
    params: List[Tuple[str, Optional[str]]] = []
    node = function.child_by_field_name("parameters")
    for child in node.named_children if node is not None else []:
        if child.type == "identifier":
            params.append((parsed.text(child), None))
        elif child.type == "typed_parameter":
            name_node = child.named_children[0] if child.named_children else None
            if name_node is None or name_node.type != "identifier":
                continue
            params.append((parsed.text(name_node), parsed.text(child.child_by_field_name("type"))))
        elif child.type in {"default_parameter", "typed_default_parameter"}:
            name_node = child.child_by_field_name("name")
            if name_node is None or name_node.type != "identifier":
                continue
            params.append((parsed.text(name_node), parsed.text(child.child_by_field_name("type"))))
    return params


def _self_assignments(function: Node, parsed: ParsedSource) -> List[Tuple[str, Optional[str], Optional[Node]]]:
    """Return ``(attribute, annotation, value)`` for each ``self.x`` write in ``function``."""
    found: List[Tuple[str, Optional[str], Optional[Node]]] = []
    for node in walk(function):
        if node.type == "assignment":
            annotation = parsed.text(node.child_by_field_name("type"))
            value = node.child_by_field_name("right")
        elif node.type == "augmented_assignment":
            annotation, value = None, None
        else:
            continue
        target = node.child_by_field_name("left")
        if target is not None and target.type == "subscript":
            target, value = target.child_by_field_name("value"), None
        if target is None or target.type != "attribute":
            continue
        owner = target.child_by_field_name("object")
        attribute = target.child_by_field_name("attribute")
        if owner is not None and attribute is not None and parsed.text(owner) == "self":
            found.append((parsed.text(attribute), annotation, value))
    return found


def _returns_value(function: Node, parsed: ParsedSource) -> bool:
    return_type = function.child_by_field_name("return_type")
    if return_type is not None:
        return parsed.text(return_type) not in {"None", "NoReturn"}
    return any(node.type == "return_statement" and node.named_children for node in walk(function))


__all__ = ["PythonExtractor"]
