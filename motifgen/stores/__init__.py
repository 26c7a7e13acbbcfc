"""Persistent stores for definitions and the audit ledger."""

from .audit_ledger import AuditLedger
from .definition_store import DefinitionStore

__all__ = ["AuditLedger", "DefinitionStore"]
