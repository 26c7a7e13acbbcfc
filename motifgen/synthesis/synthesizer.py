"""Turns accepted discoveries into versioned, content-addressed definitions."""

from __future__ import annotations

from typing import Callable, List, Optional, Tuple

from .hints import render_hints
from ..errors import BelowAcceptanceBar, NameCollision
from ..hashing import content_hash as content_hash_of
from ..logging import get_logger
from ..models import (
    DiscoveredObject,
    ExtractedSignature,
    FormalDefinition,
    MethodDefinition,
    PropertyDefinition,
)
from ..patterns.library import PatternLibrary, load_library
from ..stores.definition_store import DefinitionStore

_LOGGER = get_logger("synthesis")

DEFAULT_ACCEPTANCE_BAR = 0.70

_METHOD_ROLES = {
    "learn": "learning_rule",
    "transform": "forward_transform",
    "emit": "forward_transform",
    "accumulate": "accumulation",
    "mutate-state": "state_update",
    "query": "query",
    "construct": "construction",
}


def method_role(behavior: str) -> str:
    return _METHOD_ROLES.get(behavior, "operation")


class DefinitionSynthesizer:
    """Builds FormalDefinitions and registers them in a DefinitionStore."""

    def __init__(self, store: DefinitionStore, library: Optional[PatternLibrary] = None) -> None:
        self._store = store
        self._library = library if library is not None else load_library()

    def build(
        self,
        discovered: DiscoveredObject,
        signature: ExtractedSignature,
        canonical_name: Optional[str] = None,
    ) -> Tuple[str, List[PropertyDefinition], List[MethodDefinition]]:
        """Return the normalized name, properties and methods without touching the store."""
        if discovered.signature_hash != signature.content_hash:
            raise ValueError("Discovered object does not belong to the given signature")
        name = (canonical_name or signature.entity).strip()
        if not name:
            raise ValueError("Canonical name must not be empty")

        properties = sorted(
            (
                PropertyDefinition(
                    name=field.name,
                    shape=field.shape,
                    domain=field.domain,
                    role=self._library.classify_role(field.name),
                )
                for field in signature.fields
            ),
            key=lambda item: item.name,
        )
        methods = sorted(
            (
                MethodDefinition(
                    name=method.name,
                    arity=method.arity,
                    param_shapes=method.param_shapes,
                    behavior=method.behavior,
                    role=method_role(method.behavior),
                )
                for method in signature.methods
            ),
            key=lambda item: item.name,
        )
        return name, properties, methods

    def synthesize(
        self,
        discovered: DiscoveredObject,
        signature: ExtractedSignature,
        canonical_name: Optional[str] = None,
        acceptance_bar: float = DEFAULT_ACCEPTANCE_BAR,
        *,
        commit: Optional[Callable[[FormalDefinition], object]] = None,
    ) -> Tuple[FormalDefinition, bool]:
        """Register a definition for ``discovered``; return it and whether it is new.

        Identical content under the same name resolves to the stored instance.
        Identical content under a different name raises ``NameCollision``; new
        content under an existing name becomes the next version of that name.

        ``commit`` runs under the store lock before anything is inserted. If it
        raises, the store is left unchanged.
        """
        if discovered.confidence < acceptance_bar:
            raise BelowAcceptanceBar(discovered.object_hash, discovered.confidence, acceptance_bar)

        name, properties, methods = self.build(discovered, signature, canonical_name)
        content_hash = FormalDefinition.compute_hash(name, properties, methods)

        with self._store.lock:
            if content_hash in self._store:
                _LOGGER.debug("Definition %s already stored as %s", name, content_hash[:12])
                stored = self._store.get(content_hash)
                if commit is not None:
                    commit(stored)
                return stored, False

            existing = self._store.find_by_body(content_hash_of(FormalDefinition.body_payload(properties, methods)))
            if existing is not None and existing.canonical_name != name:
                raise NameCollision(name, existing.canonical_name, existing.content_hash)

            head = self._store.head(name)
            definition = FormalDefinition(
                canonical_name=name,
                version=head.version + 1 if head else 1,
                content_hash=content_hash,
                properties=tuple(properties),
                methods=tuple(methods),
                implementation_hints=render_hints(name, properties, methods),
                supersedes=head.content_hash if head else None,
                patterns=discovered.patterns,
            )
            self._store.check_writable()
            if commit is not None:
                commit(definition)
            self._store.insert(definition)

        _LOGGER.info("Defined %s v%d (%s)", name, definition.version, content_hash[:12])
        return definition, True


__all__ = ["DEFAULT_ACCEPTANCE_BAR", "DefinitionSynthesizer", "method_role"]
