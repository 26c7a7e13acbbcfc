"""Tree-sitter powered extractor for Java and TypeScript classes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Set

from tree_sitter import Node

from .syntax import (
    SyntaxTreeExtractor,
    assigned_name,
    first_error_line,
    name_of,
    node_text,
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

_ALIASES = {
    "java": "java",
    "typescript": "typescript",
    "ts": "typescript",
}


@dataclass
class _ParsedMember:
    """Intermediate record for one class member before shape inference."""

    name: str
    type_text: Optional[str] = None
    value_text: Optional[str] = None
    params: List[tuple] = field(default_factory=list)
    returns: bool = False
    static: bool = False
    annotations: List[str] = field(default_factory=list)
    body: Optional[Node] = None
    is_method: bool = False


class TreeSitterExtractor(SyntaxTreeExtractor):
    """Extracts fields and methods from Java and TypeScript class declarations."""

    languages = ("java", "typescript", "ts")
    memory_model = "managed"

    def extract(self, unit: SourceUnit) -> ExtractedSignature:
        language_key = _ALIASES.get(unit.language_key)
        if language_key is None:
            raise UnparsableSource(unit.language, "language not handled by tree-sitter extractor")

        parsed = self.parse(unit.text, grammar=language_key)
        root, source_bytes = parsed.root, parsed.source_bytes

        classes = [node for node in walk(root) if node.type in {"class_declaration", "abstract_class_declaration"}]
        if unit.entity is not None:
            classes = [node for node in classes if name_of(node, source_bytes) == unit.entity]
        if not classes:
            target = f"class '{unit.entity}'" if unit.entity else "class declaration"
            raise UnparsableSource(language_key, f"no {target} found", line=first_error_line(root))

        target_class = classes[0]
        body = target_class.child_by_field_name("body")
        members = self._java_members(body, source_bytes) if language_key == "java" else self._ts_members(
            body, source_bytes
        )
        field_members = [member for member in members if not member.is_method]
        method_members = [member for member in members if member.is_method]

        raw_field_names = {member.name for member in field_members}
        fields = [
            FieldSignature(
                name=snake_case(member.name),
                shape=infer_shape(member.type_text, member.value_text, member.name),
                domain=infer_domain(member.type_text, member.value_text),
            )
            for member in field_members
        ]

        methods: List[MethodSignature] = []
        for member in method_members:
            if is_constructor(member.name):
                continue
            if member.static:
                receiver = "none"
            elif member.body is not None and _writes_field(member.body, source_bytes, raw_field_names):
                receiver = "mut"
            else:
                receiver = "ref"
            methods.append(
                MethodSignature(
                    name=snake_case(member.name),
                    arity=len(member.params),
                    param_shapes=tuple(infer_shape(type_text, None, name) for name, type_text in member.params),
                    behavior=infer_behavior(member.name, receiver=receiver, returns=member.returns),
                    receiver=receiver,
                    annotations=tuple(sorted(normalise_annotation(item) for item in member.annotations)),
                )
            )

        diagnostics = syntax_notes(root, lambda node: _describe(node, source_bytes))

        methods = dedupe_by_name(methods)
        return ExtractedSignature(
            entity=name_of(target_class, source_bytes),
            kind=kind_for(methods),
            language=language_key,
            memory_model=self.memory_model,
            fields=tuple(dedupe_by_name(fields)),
            methods=tuple(methods),
            partial=bool(diagnostics),
            diagnostics=tuple(diagnostics),
        )

    # ------------------------------------------------------------------
    # Java

    def _java_members(self, body: Optional[Node], source_bytes: bytes) -> List[_ParsedMember]:
        members: List[_ParsedMember] = []
        if body is None:
            return members
        for child in body.named_children:
            if child.type == "field_declaration":
                modifiers = _java_modifiers(child, source_bytes)
                if "static" in modifiers.keywords:
                    continue
                type_node = child.child_by_field_name("type")
                for declarator in child.children_by_field_name("declarator"):
                    name_node = declarator.child_by_field_name("name")
                    value_node = declarator.child_by_field_name("value")
                    if name_node is None:
                        continue
                    members.append(
                        _ParsedMember(
                            name=node_text(name_node, source_bytes),
                            type_text=node_text(type_node, source_bytes) if type_node else None,
                            value_text=node_text(value_node, source_bytes) if value_node else None,
                        )
                    )
            elif child.type in {"method_declaration", "constructor_declaration"}:
                modifiers = _java_modifiers(child, source_bytes)
                type_node = child.child_by_field_name("type")
                return_text = node_text(type_node, source_bytes) if type_node else "void"
                name = "constructor" if child.type == "constructor_declaration" else name_of(child, source_bytes)
                members.append(
                    _ParsedMember(
                        name=name,
                        params=_java_params(child.child_by_field_name("parameters"), source_bytes),
                        returns=return_text != "void",
                        static="static" in modifiers.keywords,
                        annotations=modifiers.annotations,
                        body=child.child_by_field_name("body"),
                        is_method=True,
                    )
                )
        return members

    # ------------------------------------------------------------------
    # TypeScript

    def _ts_members(self, body: Optional[Node], source_bytes: bytes) -> List[_ParsedMember]:
        members: List[_ParsedMember] = []
        if body is None:
            return members
        pending_decorators: List[str] = []
        for child in body.named_children:
            if child.type == "decorator":
                pending_decorators.append(_decorator_name(child, source_bytes))
                continue
            if child.type == "public_field_definition":
                if _has_keyword(child, "static"):
                    pending_decorators = []
                    continue
                name_node = child.child_by_field_name("name")
                type_node = child.child_by_field_name("type")
                value_node = child.child_by_field_name("value")
                if name_node is not None:
                    members.append(
                        _ParsedMember(
                            name=node_text(name_node, source_bytes),
                            type_text=_type_annotation(type_node, source_bytes),
                            value_text=node_text(value_node, source_bytes) if value_node else None,
                        )
                    )
            elif child.type in {"method_definition", "abstract_method_signature", "method_signature"}:
                name = name_of(child, source_bytes)
                params_node = child.child_by_field_name("parameters")
                if name == "constructor":
                    members.extend(_ts_parameter_properties(params_node, source_bytes))
                return_type = _type_annotation(child.child_by_field_name("return_type"), source_bytes)
                decorators = pending_decorators + [
                    _decorator_name(item, source_bytes) for item in child.named_children if item.type == "decorator"
                ]
                members.append(
                    _ParsedMember(
                        name=name,
                        params=_ts_params(params_node, source_bytes),
                        returns=return_type not in {None, "void", "Promise<void>"},
                        static=_has_keyword(child, "static"),
                        annotations=decorators,
                        body=child.child_by_field_name("body"),
                        is_method=True,
                    )
                )
            pending_decorators = []
        return members


@dataclass
class _Modifiers:
    keywords: Set[str]
    annotations: List[str]


def _describe(node: Node, source_bytes: bytes) -> Optional[str]:
    if node.type in {"class_declaration", "abstract_class_declaration"}:
        return f"class '{name_of(node, source_bytes)}'"
    if node.type in {"method_declaration", "method_definition", "constructor_declaration"}:
        return f"method '{name_of(node, source_bytes) or 'constructor'}'"
    return None


def _java_modifiers(node: Node, source_bytes: bytes) -> _Modifiers:
    keywords: Set[str] = set()
    annotations: List[str] = []
    for child in node.children:
        if child.type != "modifiers":
            continue
        for item in child.children:
            if item.type in {"marker_annotation", "annotation"}:
                annotations.append(name_of(item, source_bytes))
            else:
                keywords.add(node_text(item, source_bytes))
    return _Modifiers(keywords=keywords, annotations=annotations)


def _java_params(node: Optional[Node], source_bytes: bytes) -> List[tuple]:
    params: List[tuple] = []
    if node is None:
        return params
    for child in node.named_children:
        if child.type == "formal_parameter":
            type_node = child.child_by_field_name("type")
            params.append(
                (name_of(child, source_bytes), node_text(type_node, source_bytes) if type_node else None)
            )
        elif child.type == "spread_parameter":
            params.append((node_text(child, source_bytes), "array"))
    return params


def _ts_params(node: Optional[Node], source_bytes: bytes) -> List[tuple]:
    params: List[tuple] = []
    if node is None:
        return params
    for child in node.named_children:
        if child.type not in {"required_parameter", "optional_parameter"}:
            continue
        pattern = child.child_by_field_name("pattern")
        name = node_text(pattern, source_bytes) if pattern else ""
        if name == "this":
            continue
        params.append((name, _type_annotation(child.child_by_field_name("type"), source_bytes)))
    return params


def _ts_parameter_properties(node: Optional[Node], source_bytes: bytes) -> List[_ParsedMember]:
    """Constructor parameters declared with an accessibility modifier become fields."""
    members: List[_ParsedMember] = []
    if node is None:
        return members
    for child in node.named_children:
        if child.type not in {"required_parameter", "optional_parameter"}:
            continue
        if not any(item.type in {"accessibility_modifier", "readonly"} for item in child.children):
            continue
        pattern = child.child_by_field_name("pattern")
        value_node = child.child_by_field_name("value")
        if pattern is None:
            continue
        members.append(
            _ParsedMember(
                name=node_text(pattern, source_bytes),
                type_text=_type_annotation(child.child_by_field_name("type"), source_bytes),
                value_text=node_text(value_node, source_bytes) if value_node else None,
            )
        )
    return members


def _type_annotation(node: Optional[Node], source_bytes: bytes) -> Optional[str]:
    if node is None:
        return None
    return node_text(node, source_bytes).lstrip(":").strip() or None


def _decorator_name(node: Node, source_bytes: bytes) -> str:
    text = node_text(node, source_bytes).lstrip("@").strip()
    return text.split("(", 1)[0].strip()


def _has_keyword(node: Node, keyword: str) -> bool:
    return any(not child.is_named and child.type == keyword for child in node.children)


def _writes_field(body: Node, source_bytes: bytes, field_names: Set[str]) -> bool:
    for node in walk(body):
        if node.type in {"assignment_expression", "augmented_assignment_expression"}:
            target = node.child_by_field_name("left")
        elif node.type == "update_expression":
            target = node.child_by_field_name("argument") or (node.named_children[0] if node.named_children else None)
        else:
            continue
        if target is None:
            continue
        if assigned_name(node_text(target, source_bytes)) in field_names:
            return True
    return False


__all__ = ["TreeSitterExtractor"]
