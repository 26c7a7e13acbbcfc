"""Signature extractor implementations and discovery utilities."""

from __future__ import annotations

from importlib import metadata
from pathlib import PurePath
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .base import Extractor
from .syntax import SyntaxTreeExtractor
from .kotlin import KotlinExtractor
from .python import PythonExtractor
from .rust import RustExtractor
from .tree_sitter import TreeSitterExtractor
from ..errors import UnparsableSource

_ENTRY_POINT_GROUP = "motifgen.extractors"

_BUILTIN_FACTORIES: dict[str, Callable[[], Extractor]] = {
    "python": PythonExtractor,
    "rust": RustExtractor,
    "kotlin": KotlinExtractor,
    "tree_sitter": TreeSitterExtractor,
}

_EXTENSIONS = {
    ".py": "python",
    ".rs": "rust",
    ".kt": "kotlin",
    ".kts": "kotlin",
    ".java": "java",
    ".ts": "typescript",
}


def discover_extractors(enabled: Sequence[str] | None = None) -> List[Extractor]:
    """Instantiate built-in and plugin extractors, limited to ``enabled`` names when given."""

    factories: Dict[str, Callable[[], object]] = dict(_BUILTIN_FACTORIES)
    for entry in _iter_entry_points():
        # Plugins cannot shadow a built-in name.
        factories.setdefault(entry.name.lower(), _entry_point_loader(entry))

    if enabled is None:
        selected = list(factories)
    else:
        selected = list(dict.fromkeys(name.lower() for name in enabled))
        unknown = sorted(name for name in selected if name not in factories)
        if unknown:
            raise ValueError(f"Unknown extractors requested: {', '.join(unknown)}")

    return [_instantiate(name, factories[name]) for name in selected]


def extractor_for(language: str, extractors: Iterable[Extractor]) -> Extractor:
    """Return the first extractor that handles ``language`` or raise ``UnparsableSource``."""
    for extractor in extractors:
        if extractor.supports(language):
            return extractor
    raise UnparsableSource(language, "no extractor registered for language")


def language_for_path(path: str) -> Optional[str]:
    return _EXTENSIONS.get(PurePath(path).suffix.lower())


def _instantiate(name: str, factory: Callable[[], object]) -> Extractor:
    produced = factory()
    if isinstance(produced, type) and issubclass(produced, Extractor):
        produced = produced()
    elif not isinstance(produced, Extractor) and callable(produced):
        produced = produced()
    if not isinstance(produced, Extractor):
        raise TypeError(f"Extractor '{name}' must be an Extractor subclass or a factory returning one")
    return produced


def _entry_point_loader(entry: metadata.EntryPoint) -> Callable[[], object]:
    def _load() -> object:
        try:
            return entry.load()
        except Exception as exc:  # pragma: no cover - plugin import failure
            raise RuntimeError(f"Failed to load extractor entry point '{entry.name}': {exc}") from exc

    return _load


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points().select(group=_ENTRY_POINT_GROUP)


__all__ = [
    "Extractor",
    "KotlinExtractor",
    "PythonExtractor",
    "RustExtractor",
    "SyntaxTreeExtractor",
    "TreeSitterExtractor",
    "discover_extractors",
    "extractor_for",
    "language_for_path",
]
