"""Content-addressed store for formal definitions and their version chains."""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..errors import IntegrityViolation, NotFound
from ..logging import get_logger
from ..models import FormalDefinition

_STORE_VERSION = 1
_LOGGER = get_logger("stores.definitions")


class DefinitionStore:
    """Holds immutable definitions keyed by content hash.

    Each canonical name has a head (its latest version); older versions stay
    addressable through the ``supersedes`` chain. Writes are serialized by
    ``lock``, which callers also hold for check-then-insert sequences.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path
        self._definitions: Dict[str, FormalDefinition] = {}
        self._heads: Dict[str, str] = {}
        self._by_body: Dict[str, str] = {}
        self._dirty = False
        self._halted: Optional[IntegrityViolation] = None
        self.lock = threading.RLock()
        if self._path is not None:
            self._load(self._path)

    def __len__(self) -> int:
        return len(self._definitions)

    def __contains__(self, content_hash: object) -> bool:
        return content_hash in self._definitions

    def get(self, content_hash: str) -> FormalDefinition:
        definition = self._definitions.get(content_hash)
        if definition is None:
            raise NotFound("definition", content_hash)
        return definition

    def head(self, canonical_name: str) -> Optional[FormalDefinition]:
        head_hash = self._heads.get(canonical_name)
        return self._definitions.get(head_hash) if head_hash else None

    def find_by_body(self, body_hash: str) -> Optional[FormalDefinition]:
        content_hash = self._by_body.get(body_hash)
        return self._definitions.get(content_hash) if content_hash else None

    def versions(self, canonical_name: str) -> List[FormalDefinition]:
        """Return the version chain for ``canonical_name``, oldest first."""
        chain: List[FormalDefinition] = []
        current = self.head(canonical_name)
        while current is not None:
            chain.append(current)
            current = self._definitions.get(current.supersedes) if current.supersedes else None
        chain.reverse()
        return chain

    def all(self) -> List[FormalDefinition]:
        return sorted(self._definitions.values(), key=lambda item: (item.canonical_name, item.version))

    def check_writable(self) -> None:
        """Raise the recorded ``IntegrityViolation`` while writes are halted."""
        if self._halted is not None:
            raise self._halted

    def insert(self, definition: FormalDefinition) -> bool:
        """Add ``definition``; return False when it is already stored."""
        with self.lock:
            self.check_writable()
            if not definition.verify():
                raise IntegrityViolation(
                    "definition store", f"content hash mismatch for '{definition.canonical_name}'"
                )
            if definition.content_hash in self._definitions:
                return False
            self._index(definition)
            self._dirty = True
            _LOGGER.debug(
                "Stored %s v%d (%s)", definition.canonical_name, definition.version, definition.content_hash[:12]
            )
            return True

    def retain(self, committed: Iterable[str]) -> List[str]:
        """Drop definitions whose hash is not in ``committed``; return the dropped hashes."""
        keep = set(committed)
        with self.lock:
            removed = sorted(key for key in self._definitions if key not in keep)
            if not removed:
                return []
            survivors = [self._definitions[key] for key in self._definitions if key in keep]
            self._definitions.clear()
            self._heads.clear()
            self._by_body.clear()
            for definition in sorted(survivors, key=lambda item: item.version):
                self._index(definition)
            self._dirty = True
            return removed

    def verify(self) -> int:
        """Recompute every content hash and chain link; halt writes on the first mismatch."""
        with self.lock:
            for content_hash, definition in self._definitions.items():
                if definition.content_hash != content_hash or not definition.verify():
                    self._halted = IntegrityViolation(
                        "definition store", f"content of '{definition.canonical_name}' does not match its hash"
                    )
                    raise self._halted
                if definition.supersedes and definition.supersedes not in self._definitions:
                    self._halted = IntegrityViolation(
                        "definition store",
                        f"'{definition.canonical_name}' v{definition.version} supersedes a missing definition",
                    )
                    raise self._halted
            self._halted = None
            return len(self._definitions)

    def persist(self) -> None:
        if not self._dirty or self._path is None:
            return
        with self.lock:
            payload = {
                "version": _STORE_VERSION,
                "definitions": {key: item.to_dict() for key, item in self._definitions.items()},
                "heads": self._heads,
            }
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
            self._dirty = False

    # ------------------------------------------------------------------
    # Internal helpers

    def _index(self, definition: FormalDefinition) -> None:
        self._definitions[definition.content_hash] = definition
        self._by_body.setdefault(definition.body_hash, definition.content_hash)
        current = self.head(definition.canonical_name)
        if current is None or definition.version > current.version:
            self._heads[definition.canonical_name] = definition.content_hash

    def _load(self, path: Path) -> None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return
        except (OSError, json.JSONDecodeError) as exc:
            _LOGGER.warning("Ignoring unreadable definition store %s: %s", path, exc)
            return
        if not isinstance(data, dict) or data.get("version") != _STORE_VERSION:
            return
        entries = data.get("definitions")
        if not isinstance(entries, dict):
            return
        loaded: List[FormalDefinition] = []
        for key, raw in entries.items():
            if not isinstance(key, str) or not isinstance(raw, dict):
                continue
            try:
                definition = FormalDefinition.from_dict(raw)
            except (KeyError, TypeError, ValueError):
                continue
            if definition.content_hash != key:
                continue
            loaded.append(definition)
        for definition in sorted(loaded, key=lambda item: item.version):
            self._index(definition)
        self._dirty = False


__all__ = ["DefinitionStore"]
