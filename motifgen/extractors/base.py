"""Base classes for signature extractor plugins."""

from abc import ABC, abstractmethod
from typing import Tuple

from ..models import ExtractedSignature, SourceUnit


class Extractor(ABC):
    """Contract for adapters that turn one language's source into a canonical signature."""

    languages: Tuple[str, ...] = ()
    memory_model: str = "managed"

    def supports(self, language: str) -> bool:
        """Return True when this extractor handles ``language``."""
        return language.strip().lower() in self.languages

    @abstractmethod
    def extract(self, unit: SourceUnit) -> ExtractedSignature:
        """Produce a signature or raise ``UnparsableSource``.

        Damaged input that still contains a clean aggregate yields a signature
        flagged ``partial`` instead of an error.
        """
