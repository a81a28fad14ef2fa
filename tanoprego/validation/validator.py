"""
Smart Add Validation

DESIGN DECISION: The AI's proposal is checked before it reaches the ledger.

ERRORS (block the entry):
- No person name
- No item description
- Amount missing, zero or negative

WARNINGS (entry is applied, user is told):
- Amount above the configured sanity bound

IMPORTANT: Validation NEVER silently fixes issues.
It reports them so the user can rephrase.
"""

from decimal import Decimal
from typing import Optional

from tanoprego.config import get_settings
from tanoprego.config.settings import AppSettings
from tanoprego.models.debtor import (
    AIParsedTransaction,
    ValidationIssue,
    ValidationResult,
)


class ParsedTransactionValidator:
    """Validates a Smart Add proposal."""

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def validate(self, parsed: AIParsedTransaction) -> ValidationResult:
        issues = []

        if not parsed.name:
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Não identifiquei o nome do cliente",
                severity="error",
            ))

        if not parsed.description:
            issues.append(ValidationIssue(
                field="description",
                issue_type="missing",
                message="Não identifiquei o item",
                severity="error",
            ))

        if not parsed.amount.is_finite() or parsed.amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="O valor deve ser maior que zero",
                severity="error",
            ))
        elif parsed.amount > Decimal(str(self._settings.max_transaction_amount)):
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=(
                    f"Valor ({self._settings.currency_symbol} {parsed.amount:,.2f}) "
                    "parece alto demais"
                ),
                severity="warning",
            ))

        return ValidationResult(
            is_valid=not any(issue.severity == "error" for issue in issues),
            issues=issues,
        )

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what we show to the shopkeeper.
        """
        if result.is_valid and not result.warnings:
            return ""

        lines = []
        for issue in result.issues:
            if issue.severity == "error":
                lines.append(f"❌ {issue.message}")
        for warning in result.warnings:
            lines.append(f"⚠️ {warning}")
        return "\n".join(lines)
