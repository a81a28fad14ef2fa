"""
Data Models Package

This package contains all Pydantic models used in Tá no Prego.
Everything written to local storage must conform to these schemas.
"""

from tanoprego.models.debtor import (
    AIParsedTransaction,
    DebtStats,
    Debtor,
    Transaction,
    TransactionType,
    ValidationIssue,
    ValidationResult,
)
from tanoprego.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "AIParsedTransaction",
    "DebtStats",
    "Debtor",
    "Transaction",
    "TransactionType",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
