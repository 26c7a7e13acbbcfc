"""Kotlin signature extractor for class declarations."""

from __future__ import annotations

from typing import List, Optional, Set, Tuple

from tree_sitter import Node

from .syntax import (
    ParsedSource,
    SyntaxTreeExtractor,
    assigned_name,
    error_nodes,
    first_child,
    first_error_line,
    named_after,
    syntax_notes,
    walk,
)
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

_IDENTIFIERS = frozenset({"simple_identifier", "identifier"})
_CLASS_NAMES = frozenset({"type_identifier"}) | _IDENTIFIERS
_BINDINGS = frozenset({"val", "var", "binding_pattern_kind"})

# (raw name, declared type, initializer)
_Property = Tuple[str, Optional[str], Optional[str]]


class KotlinExtractor(SyntaxTreeExtractor):
    """Extracts properties and member functions from Kotlin classes."""

    languages = ("kotlin", "kt", "kts")
    memory_model = "managed"
    grammar = "kotlin"

    def extract(self, unit: SourceUnit) -> ExtractedSignature:
        parsed = self.parse(unit.text)
        classes = [node for node in walk(parsed.root) if node.type == "class_declaration" and _is_class(node)]
        if unit.entity is not None:
            classes = [node for node in classes if _class_name(node, parsed) == unit.entity]
        if not classes:
            target = f"class '{unit.entity}'" if unit.entity else "class declaration"
            raise UnparsableSource("kotlin", f"no {target} found", line=first_error_line(parsed.root))

        target = classes[0]
        name = _class_name(target, parsed)
        body = first_child(target, {"class_body"})
        damage = _header_damage(target, body, parsed.root)
        if damage is not None:
            raise UnparsableSource("kotlin", f"damaged declaration header for '{name}'", line=damage)

        properties = _constructor_properties(first_child(target, {"primary_constructor"}), parsed)
        properties.extend(_body_properties(body, parsed))
        fields = [
            FieldSignature(
                name=snake_case(raw_name),
                shape=infer_shape(type_text, init, raw_name),
                domain=infer_domain(type_text, init),
            )
            for raw_name, type_text, init in properties
        ]
        property_names = {raw_name for raw_name, _, _ in properties}
        methods = dedupe_by_name(self._methods(body, property_names, parsed))

        diagnostics = syntax_notes(parsed.root, lambda node: _describe(node, parsed))
        return ExtractedSignature(
            entity=name,
            kind=kind_for(methods),
            language="kotlin",
            memory_model=self.memory_model,
            fields=tuple(dedupe_by_name(fields)),
            methods=tuple(methods),
            partial=bool(diagnostics),
            diagnostics=tuple(diagnostics),
        )

    def _methods(self, body: Optional[Node], property_names: Set[str], parsed: ParsedSource) -> List[MethodSignature]:
        methods: List[MethodSignature] = []
        for member in body.named_children if body is not None else []:
            if member.type != "function_declaration":
                continue
            raw_name = parsed.text(first_child(member, _IDENTIFIERS))
            if not raw_name or is_constructor(raw_name):
                continue
            params = _parameters(first_child(member, {"function_value_parameters"}), parsed)
            fun_body = first_child(member, {"function_body"})
            receiver = "mut" if _writes_property(fun_body, property_names, parsed) else "ref"
            methods.append(
                MethodSignature(
                    name=snake_case(raw_name),
                    arity=len(params),
                    param_shapes=tuple(infer_shape(type_text, None, param) for param, type_text in params),
                    behavior=infer_behavior(raw_name, receiver=receiver, returns=_returns_value(member, fun_body, parsed)),
                    receiver=receiver,
                    annotations=tuple(sorted(normalise_annotation(item) for item in _annotations(member, parsed))),
                )
            )
        return methods


def _is_class(node: Node) -> bool:
    return any(not child.is_named and child.type == "class" for child in node.children)


def _class_name(node: Node, parsed: ParsedSource) -> str:
    return parsed.text(first_child(node, _CLASS_NAMES)) or ""


def _describe(node: Node, parsed: ParsedSource) -> Optional[str]:
    if node.type == "class_declaration":
        return f"class '{_class_name(node, parsed)}'"
    if node.type == "function_declaration":
        return f"fun '{parsed.text(first_child(node, _IDENTIFIERS))}'"
    return None


def _header_damage(target: Node, body: Optional[Node], root: Node) -> Optional[int]:
    """Return the line of a syntax error in the class header, where properties cannot be recovered."""
    if body is not None:
        candidates = error_nodes(target)
        end = body.start_byte
    else:
        # Without a body, anything broken after the declaration may have swallowed it.
        candidates = error_nodes(root)
        end = root.end_byte + 1
    for node in candidates:
        if target.start_byte <= node.start_byte < end:
            return node.start_point[0] + 1
    return None


def _constructor_properties(constructor: Optional[Node], parsed: ParsedSource) -> List[_Property]:
    properties: List[_Property] = []
    for param in constructor.named_children if constructor is not None else []:
        if param.type != "class_parameter":
            continue
        if not any(child.type in _BINDINGS for child in param.children):
            continue
        raw_name = parsed.text(first_child(param, _IDENTIFIERS))
        if raw_name:
            properties.append((raw_name, parsed.text(named_after(param, ":")), parsed.text(named_after(param, "="))))
    return properties


def _body_properties(body: Optional[Node], parsed: ParsedSource) -> List[_Property]:
    properties: List[_Property] = []
    for member in body.named_children if body is not None else []:
        if member.type != "property_declaration":
            continue
        declaration = first_child(member, {"variable_declaration"})
        if declaration is None:
            continue
        raw_name = parsed.text(first_child(declaration, _IDENTIFIERS))
        if raw_name:
            properties.append(
                (raw_name, parsed.text(named_after(declaration, ":")), parsed.text(named_after(member, "=")))
            )
    return properties


def _parameters(node: Optional[Node], parsed: ParsedSource) -> List[Tuple[str, Optional[str]]]:
    params: List[Tuple[str, Optional[str]]] = []
    for child in node.named_children if node is not None else []:
        if child.type != "parameter":
            continue
        name = parsed.text(first_child(child, _IDENTIFIERS))
        if name:
            params.append((name, parsed.text(named_after(child, ":"))))
    return params


def _returns_value(function: Node, body: Optional[Node], parsed: ParsedSource) -> bool:
    return_type = parsed.text(named_after(function, ":"))
    if return_type is not None:
        return return_type != "Unit"
    # Expression bodies (``fun f() = x``) return their expression.
    return body is not None and any(not child.is_named and child.type == "=" for child in body.children)


def _annotations(function: Node, parsed: ParsedSource) -> List[str]:
    modifiers = first_child(function, {"modifiers"})
    names: List[str] = []
    for child in modifiers.named_children if modifiers is not None else []:
        if child.type == "annotation":
            text = parsed.text(child) or ""
            names.append(text.lstrip("@").split("(", 1)[0].strip())
    return names


def _writes_property(body: Optional[Node], property_names: Set[str], parsed: ParsedSource) -> bool:
    if body is None:
        return False
    for node in walk(body):
        if node.type == "assignment" and node.named_children:
            target_text = parsed.text(node.named_children[0]) or ""
        elif node.type in {"postfix_expression", "prefix_expression"}:
            text = parsed.text(node) or ""
            if "++" not in text and "--" not in text:
                continue
            target_text = text.replace("++", "").replace("--", "")
        else:
            continue
        if assigned_name(target_text) in property_names:
            return True
    return False


__all__ = ["KotlinExtractor"]
