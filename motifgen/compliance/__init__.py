"""Cross-language compliance validation."""

from .checks import (
    BOUNDARY_ANNOTATION,
    CheckContext,
    CheckOutcome,
    ComplianceCheck,
    MethodCoverageCheck,
    OwnershipAdaptationCheck,
    PropertyCoverageCheck,
)
from .validator import ComplianceValidator, ValidationInput, overall_verdict

__all__ = [
    "BOUNDARY_ANNOTATION",
    "CheckContext",
    "CheckOutcome",
    "ComplianceCheck",
    "ComplianceValidator",
    "MethodCoverageCheck",
    "OwnershipAdaptationCheck",
    "PropertyCoverageCheck",
    "ValidationInput",
    "overall_verdict",
]
