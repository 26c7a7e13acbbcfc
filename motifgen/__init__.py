"""Cross-language motif discovery, canonical definitions and compliance checking."""

from .engine import AnalysisOutcome, MotifEngine
from .errors import (
    BelowAcceptanceBar,
    IntegrityViolation,
    LedgerWriteConflict,
    MotifError,
    NameCollision,
    NotFound,
    UnparsableSource,
)
from .models import ExtractedSignature, FormalDefinition, SourceUnit

__version__ = "0.1.0"

__all__ = [
    "AnalysisOutcome",
    "BelowAcceptanceBar",
    "ExtractedSignature",
    "FormalDefinition",
    "IntegrityViolation",
    "LedgerWriteConflict",
    "MotifEngine",
    "MotifError",
    "NameCollision",
    "NotFound",
    "SourceUnit",
    "UnparsableSource",
    "__version__",
]
