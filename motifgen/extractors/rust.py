"""Rust signature extractor for ``struct`` declarations and their ``impl`` blocks."""

from __future__ import annotations

from typing import List, Optional, Tuple

from tree_sitter import Node

from .syntax import ParsedSource, SyntaxTreeExtractor, first_child, first_error_line, name_of, syntax_notes, walk
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

_COMMENTS = frozenset({"line_comment", "block_comment"})


class RustExtractor(SyntaxTreeExtractor):
    """Extracts struct fields and impl methods from Rust source."""

    languages = ("rust", "rs")
    memory_model = "owned"
    grammar = "rust"

    def extract(self, unit: SourceUnit) -> ExtractedSignature:
        parsed = self.parse(unit.text)
        structs = [node for node in walk(parsed.root) if node.type == "struct_item"]
        if unit.entity is not None:
            structs = [node for node in structs if name_of(node, parsed.source_bytes) == unit.entity]
        if not structs:
            target = f"struct '{unit.entity}'" if unit.entity else "struct declaration"
            raise UnparsableSource("rust", f"no {target} found", line=first_error_line(parsed.root))

        struct = structs[0]
        name = name_of(struct, parsed.source_bytes)
        fields = self._fields(struct.child_by_field_name("body"), parsed)

        methods: List[MethodSignature] = []
        for node in walk(parsed.root):
            if node.type == "impl_item" and _impl_target(node, parsed) == name:
                methods.extend(self._methods(node.child_by_field_name("body"), parsed))

        diagnostics = syntax_notes(parsed.root, lambda node: _describe(node, parsed))
        methods = dedupe_by_name(methods)
        return ExtractedSignature(
            entity=name,
            kind=kind_for(methods),
            language="rust",
            memory_model=self.memory_model,
            fields=tuple(dedupe_by_name(fields)),
            methods=tuple(methods),
            partial=bool(diagnostics),
            diagnostics=tuple(diagnostics),
        )

    def _fields(self, body: Optional[Node], parsed: ParsedSource) -> List[FieldSignature]:
        # Tuple and unit structs carry no named fields.
        if body is None or body.type != "field_declaration_list":
            return []
        fields: List[FieldSignature] = []
        for child in body.named_children:
            if child.type != "field_declaration":
                continue
            field_name = parsed.text(child.child_by_field_name("name"))
            type_text = parsed.text(child.child_by_field_name("type"))
            if not field_name:
                continue
            fields.append(
                FieldSignature(
                    name=snake_case(field_name),
                    shape=infer_shape(type_text, None, field_name),
                    domain=infer_domain(type_text),
                )
            )
        return fields

    def _methods(self, body: Optional[Node], parsed: ParsedSource) -> List[MethodSignature]:
        methods: List[MethodSignature] = []
        attributes: List[str] = []
        for child in body.named_children if body is not None else []:
            if child.type == "attribute_item":
                attributes.append(_attribute_name(child, parsed))
                continue
            if child.type in _COMMENTS:
                continue
            pending, attributes = attributes, []
            if child.type != "function_item":
                continue
            fn_name = name_of(child, parsed.source_bytes)
            if not fn_name or is_constructor(fn_name):
                continue
            receiver, params = _receiver_and_params(child.child_by_field_name("parameters"), parsed)
            return_type = parsed.text(child.child_by_field_name("return_type"))
            methods.append(
                MethodSignature(
                    name=snake_case(fn_name),
                    arity=len(params),
                    param_shapes=tuple(infer_shape(type_text, None, param) for param, type_text in params),
                    behavior=infer_behavior(fn_name, receiver=receiver, returns=return_type not in {None, "()"}),
                    receiver=receiver,
                    annotations=tuple(sorted(normalise_annotation(item) for item in pending if item)),
                )
            )
        return methods


def _impl_target(node: Node, parsed: ParsedSource) -> Optional[str]:
    type_node = node.child_by_field_name("type")
    if type_node is not None and type_node.type == "generic_type":
        type_node = type_node.child_by_field_name("type")
    if type_node is not None and type_node.type == "scoped_type_identifier":
        type_node = type_node.child_by_field_name("name")
    return parsed.text(type_node)


def _describe(node: Node, parsed: ParsedSource) -> Optional[str]:
    if node.type == "impl_item":
        return f"impl block for '{_impl_target(node, parsed)}'"
    if node.type == "struct_item":
        return f"struct '{name_of(node, parsed.source_bytes)}'"
    if node.type == "function_item":
        return f"fn '{name_of(node, parsed.source_bytes)}'"
    return None


def _attribute_name(node: Node, parsed: ParsedSource) -> str:
    attribute = first_child(node, {"attribute"})
    if attribute is None or not attribute.named_children:
        return ""
    return parsed.text(attribute.named_children[0]) or ""


def _receiver_from_text(text: str) -> str:
    compact = "".join(text.split())
    if compact.startswith("&"):
        return "mut" if compact.startswith("&mut") or "mut" in compact.split("self")[0] else "ref"
    return "owned"


def _receiver_and_params(node: Optional[Node], parsed: ParsedSource) -> Tuple[str, List[Tuple[str, Optional[str]]]]:
    receiver = "none"
    params: List[Tuple[str, Optional[str]]] = []
    for child in node.named_children if node is not None else []:
        if child.type == "self_parameter":
            receiver = _receiver_from_text(parsed.text(child) or "")
        elif child.type == "parameter":
            pattern = parsed.text(child.child_by_field_name("pattern")) or ""
            type_text = parsed.text(child.child_by_field_name("type"))
            if pattern == "self":
                receiver = _receiver_from_text(type_text or "")
                continue
            params.append((pattern, type_text))
    return receiver, params


__all__ = ["RustExtractor"]
