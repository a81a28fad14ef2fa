"""
Core Data Models for Tá no Prego

These models define the strict schemas for everything the ledger stores.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Round-trip through the JSON blobs kept in local storage
4. Support the audit trail

DESIGN DECISION: Money is Decimal, quantized to cents.
The AI and the input forms both hand us floats; we never keep them as floats.

DESIGN DECISION: Ledger records only check their shape.
Older data may hold zero amounts, empty or very long descriptions; it must
still load. Rules for NEW entries (positive amount, length limits) are
enforced by DebtLedger before a record is created.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


CENTS = Decimal("0.01")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """
    Kind of ledger entry.

    DEBT is what the shop records day to day (an item on the tab).
    PAYMENT is kept for compatibility with older data and partial payments.
    """
    DEBT = "DEBT"
    PAYMENT = "PAYMENT"


# =============================================================================
# LEDGER RECORDS
# =============================================================================

class Transaction(BaseModel):
    """A single item on a customer's tab."""

    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique transaction ID"
    )
    amount: Decimal = Field(
        ...,
        description="Amount of the item"
    )
    description: str = Field(
        default="",
        description="What was bought"
    )
    date: datetime = Field(
        default_factory=utc_now,
        description="When the item was recorded (UTC)"
    )
    type: TransactionType = Field(
        default=TransactionType.DEBT,
        description="Entry kind"
    )

    @field_validator('amount')
    @classmethod
    def quantize_amount(cls, v: Decimal) -> Decimal:
        return to_cents(v)

    @property
    def signed_amount(self) -> Decimal:
        """Amount as it counts towards the balance."""
        if self.type == TransactionType.PAYMENT:
            return -self.amount
        return self.amount


class Debtor(BaseModel):
    """
    A customer with an open tab.

    Transactions are kept in the order they were recorded.
    The display order (newest first) is computed, never stored.
    """
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique debtor ID"
    )
    name: str = Field(
        ...,
        description="Customer name"
    )
    phone: Optional[str] = Field(
        default=None,
        description="Optional contact number"
    )
    transactions: list[Transaction] = Field(default_factory=list)
    updated_at: datetime = Field(
        default_factory=utc_now,
        validation_alias=AliasChoices("updated_at", "updatedAt"),
        description="Last time the tab changed"
    )

    @property
    def balance(self) -> Decimal:
        """What the customer owes: debts minus payments."""
        return sum((t.signed_amount for t in self.transactions), Decimal("0.00"))

    @property
    def item_count(self) -> int:
        return len(self.transactions)

    @property
    def last_transaction(self) -> Optional[Transaction]:
        return self.transactions[-1] if self.transactions else None

    @property
    def initial(self) -> str:
        return self.name[:1].upper()

    def sorted_transactions(self) -> list[Transaction]:
        """Transactions newest first, for the pending items table."""
        return sorted(self.transactions, key=lambda t: t.date, reverse=True)

    def touch(self) -> None:
        self.updated_at = utc_now()


# =============================================================================
# SMART ADD
# =============================================================================

class AIParsedTransaction(BaseModel):
    """
    What the AI extracted from a free-text sentence.

    CRITICAL: This is PROPOSED data. It goes through the validator
    before the ledger applies it.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(
        default="",
        description="Name of the person"
    )
    amount: Decimal = Field(
        ...,
        description="Monetary value"
    )
    description: str = Field(
        default="",
        description="Brief description of the item"
    )


# =============================================================================
# SUMMARY
# =============================================================================

class DebtStats(BaseModel):
    """Totals shown in the header and stats row."""

    total_owed: Decimal = Field(
        default=Decimal("0.00"),
        description="Sum of every customer's balance"
    )
    total_people: int = Field(
        default=0,
        ge=0,
        description="Number of customers"
    )
    total_items: int = Field(
        default=0,
        ge=0,
        description="Number of entries across all tabs"
    )
    top_debtor: str = Field(
        default="",
        description="Customer with the highest balance"
    )


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Result of checking a Smart Add proposal before it is applied."""

    validated_at: datetime = Field(
        default_factory=utc_now
    )
    is_valid: bool = Field(
        ...,
        description="Can the proposal be applied?"
    )
    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
