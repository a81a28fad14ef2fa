"""
Audit Models for Tá no Prego

Every change to a customer's tab is logged for audit purposes.
This provides:
1. Traceability when a customer disputes their balance
2. Debugging information when things go wrong
3. Ability to reconstruct history after items are paid and removed

DESIGN DECISION: Audit logs are append-only. We never modify them.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from tanoprego.models.debtor import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Accounts
    USER_REGISTERED = "user_registered"
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    LOGGED_OUT = "logged_out"

    # Ledger
    DEBTOR_CREATED = "debtor_created"
    DEBTOR_DELETED = "debtor_deleted"
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_PAID = "transaction_paid"
    DEBTS_SETTLED = "debts_settled"

    # Smart Add
    SMART_ADD_APPLIED = "smart_add_applied"
    SMART_ADD_REJECTED = "smart_add_rejected"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every change to the ledger creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Who and what
    username: Optional[str] = Field(
        default=None,
        description="Login the event belongs to"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'debtor', 'transaction')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "username": self.username,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_log_dict(), ensure_ascii=False)


def _money(amount: Decimal) -> str:
    return f"{amount:.2f}"


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.debtor_created(username, debtor_id, name)
        event = AuditEventBuilder.transaction_paid(username, debtor_id, ...)
    """

    @staticmethod
    def user_registered(username: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_REGISTERED,
            username=username,
            entity_type="account",
            description=f"Shop registered: {username}",
            is_user_action=True,
        )

    @staticmethod
    def login(username: str, success: bool) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.LOGIN_SUCCEEDED if success
                else AuditEventType.LOGIN_FAILED
            ),
            severity=AuditSeverity.INFO if success else AuditSeverity.WARNING,
            username=username,
            entity_type="account",
            description=f"Login {'succeeded' if success else 'failed'} for {username}",
            is_user_action=True,
        )

    @staticmethod
    def logged_out(username: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOGGED_OUT,
            username=username,
            entity_type="account",
            description=f"Logged out: {username}",
            is_user_action=True,
        )

    @staticmethod
    def debtor_created(username: str, debtor_id: UUID, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBTOR_CREATED,
            username=username,
            entity_type="debtor",
            entity_id=debtor_id,
            description=f"Customer created: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def debtor_deleted(
        username: str,
        debtor_id: UUID,
        name: str,
        balance: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBTOR_DELETED,
            severity=AuditSeverity.WARNING,
            username=username,
            entity_type="debtor",
            entity_id=debtor_id,
            description=f"Customer deleted: {name}",
            details={"name": name, "balance": _money(balance)},
            is_user_action=True,
        )

    @staticmethod
    def transaction_added(
        username: str,
        debtor_id: UUID,
        transaction_id: UUID,
        amount: Decimal,
        description: str,
        transaction_type: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            username=username,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Item added: {description} ({_money(amount)})",
            details={
                "debtor_id": str(debtor_id),
                "amount": _money(amount),
                "description": description,
                "type": transaction_type,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_paid(
        username: str,
        debtor_id: UUID,
        transaction_id: UUID,
        amount: Decimal,
        description: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_PAID,
            username=username,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Item paid: {description} ({_money(amount)})",
            details={
                "debtor_id": str(debtor_id),
                "amount": _money(amount),
                "description": description,
            },
            is_user_action=True,
        )

    @staticmethod
    def debts_settled(
        username: str,
        debtor_id: UUID,
        name: str,
        amount: Decimal,
        item_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBTS_SETTLED,
            username=username,
            entity_type="debtor",
            entity_id=debtor_id,
            description=f"Tab settled for {name}: {_money(amount)}",
            details={
                "name": name,
                "amount": _money(amount),
                "item_count": item_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def smart_add_applied(
        username: str,
        debtor_id: UUID,
        text: str,
        created: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SMART_ADD_APPLIED,
            username=username,
            entity_type="debtor",
            entity_id=debtor_id,
            description="Smart Add applied" + (" (new customer)" if created else ""),
            details={"text": text, "created_debtor": created},
            is_user_action=True,
        )

    @staticmethod
    def smart_add_rejected(
        username: str,
        text: str,
        reason: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SMART_ADD_REJECTED,
            severity=AuditSeverity.WARNING,
            username=username,
            description="Smart Add could not be applied",
            details={"text": text, "reason": reason},
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        username: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            username=username,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        username: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            username=username,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
        )
