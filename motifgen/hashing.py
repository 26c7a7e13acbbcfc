"""Content addressing helpers."""

from __future__ import annotations

import hashlib
import json
from typing import Any


def canonical_json(payload: Any) -> str:
    """Serialise ``payload`` with sorted keys and no insignificant whitespace."""
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def hash_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def content_hash(payload: Any) -> str:
    """Return the SHA-256 hex digest of the canonical JSON form of ``payload``."""
    return hash_text(canonical_json(payload))


__all__ = ["canonical_json", "content_hash", "hash_text"]
