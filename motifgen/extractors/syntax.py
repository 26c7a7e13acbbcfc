"""Tree-sitter plumbing shared by every signature extractor."""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass
from typing import Callable, Collection, Dict, Iterator, List, Optional

import tree_sitter_java
import tree_sitter_kotlin
import tree_sitter_python
import tree_sitter_rust
import tree_sitter_typescript
from tree_sitter import Language, Node, Parser

from .base import Extractor

_GRAMMARS: Dict[str, Callable[[], object]] = {
    "java": tree_sitter_java.language,
    "kotlin": tree_sitter_kotlin.language,
    "python": tree_sitter_python.language,
    "rust": tree_sitter_rust.language,
    "typescript": tree_sitter_typescript.language_typescript,
}

_LANGUAGES: Dict[str, Language] = {}
_LANGUAGE_LOCK = threading.Lock()

_ASSIGNED_NAME = re.compile(r"^(?:this\s*\.\s*)?([A-Za-z_$][\w$]*)")


def load_language(grammar: str) -> Language:
    """Return the cached tree-sitter ``Language`` for ``grammar``."""
    with _LANGUAGE_LOCK:
        language = _LANGUAGES.get(grammar)
        if language is None:
            language = Language(_GRAMMARS[grammar]())
            _LANGUAGES[grammar] = language
        return language


@dataclass
class ParsedSource:
    root: Node
    source_bytes: bytes

    def text(self, node: Optional[Node]) -> Optional[str]:
        if node is None:
            return None
        return node_text(node, self.source_bytes)


class SyntaxTreeExtractor(Extractor):
    """Base for extractors that read a tree-sitter syntax tree."""

    grammar: str = ""

    def parse(self, text: str, grammar: Optional[str] = None) -> ParsedSource:
        source_bytes = text.encode("utf-8")
        # Parsers are not shared across threads; languages are.
        tree = Parser(load_language(grammar or self.grammar)).parse(source_bytes)
        return ParsedSource(root=tree.root_node, source_bytes=source_bytes)


def walk(node: Node, stop: Collection[str] = ()) -> Iterator[Node]:
    """Yield ``node`` and its descendants, without descending into ``stop`` node types."""
    yield node
    for child in node.children:
        if child.type in stop:
            yield child
            continue
        yield from walk(child, stop)


def node_text(node: Node, source_bytes: bytes) -> str:
    return source_bytes[node.start_byte : node.end_byte].decode("utf-8", errors="ignore")


def name_of(node: Node, source_bytes: bytes) -> str:
    name_node = node.child_by_field_name("name")
    return node_text(name_node, source_bytes) if name_node else ""


def first_child(node: Optional[Node], types: Collection[str]) -> Optional[Node]:
    if node is None:
        return None
    return next((child for child in node.children if child.type in types), None)


def named_after(node: Node, token: str) -> Optional[Node]:
    """Return the first named child following the anonymous ``token`` child of ``node``."""
    seen = False
    for child in node.children:
        if seen and child.is_named:
            return child
        if not child.is_named and child.type == token:
            seen = True
    return None


def assigned_name(target_text: str) -> Optional[str]:
    """Return the root name written by an assignment target such as ``this.trace[0]``."""
    match = _ASSIGNED_NAME.match(target_text.strip())
    return match.group(1) if match else None


def error_nodes(node: Node) -> Iterator[Node]:
    if node.type == "ERROR" or node.is_missing:
        yield node
        return
    if not node.has_error:
        return
    for child in node.children:
        yield from error_nodes(child)


def first_error_line(root: Node) -> Optional[int]:
    for node in error_nodes(root):
        return node.start_point[0] + 1
    return None


def syntax_notes(root: Node, describe: Callable[[Node], Optional[str]]) -> List[str]:
    """Describe each recovered syntax error by the closest declaration that encloses it."""
    notes: List[str] = []
    for node in error_nodes(root):
        label = "source"
        parent = node.parent
        while parent is not None:
            described = describe(parent)
            if described:
                label = described
                break
            parent = parent.parent
        line = node.start_point[0] + 1
        if node.is_missing:
            notes.append(f"missing '{node.type}' in {label} (line {line})")
        else:
            notes.append(f"syntax error in {label} (line {line})")
    return notes


__all__ = [
    "ParsedSource",
    "SyntaxTreeExtractor",
    "assigned_name",
    "error_nodes",
    "first_child",
    "first_error_line",
    "load_language",
    "name_of",
    "named_after",
    "node_text",
    "syntax_notes",
    "walk",
]
