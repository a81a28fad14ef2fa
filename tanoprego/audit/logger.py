"""
Audit Logger

DESIGN DECISION: Every change to a tab is logged.
This provides:
1. Traceability when a customer disputes a balance
2. Debugging capability
3. A record of items that were paid and removed from the tab

The audit logger:
- Is async so flows can await it like any other step
- Gracefully handles failures (doesn't crash the app if logging fails)
- Tags every event with the login it belongs to
"""

import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from tanoprego.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from tanoprego.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route structlog output through the stdlib root logger at the given level."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper(), logging.INFO))


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The login's audit log in local storage (for history)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("tanoprego.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def recent_events(self, username: str, limit: int = 50) -> list[AuditEvent]:
        if not self._storage:
            return []
        return await self._storage.get_recent_events(username, limit=limit)

    async def log_user_registered(self, username: str) -> None:
        await self.log(AuditEventBuilder.user_registered(username))

    async def log_login(self, username: str, success: bool) -> None:
        await self.log(AuditEventBuilder.login(username, success))

    async def log_logged_out(self, username: str) -> None:
        await self.log(AuditEventBuilder.logged_out(username))

    async def log_debtor_created(self, username: str, debtor_id: UUID, name: str) -> None:
        await self.log(AuditEventBuilder.debtor_created(username, debtor_id, name))

    async def log_debtor_deleted(
        self,
        username: str,
        debtor_id: UUID,
        name: str,
        balance: Decimal,
    ) -> None:
        await self.log(AuditEventBuilder.debtor_deleted(username, debtor_id, name, balance))

    async def log_transaction_added(
        self,
        username: str,
        debtor_id: UUID,
        transaction_id: UUID,
        amount: Decimal,
        description: str,
        transaction_type: str,
    ) -> None:
        """Log a new item on a tab."""
        event = AuditEventBuilder.transaction_added(
            username=username,
            debtor_id=debtor_id,
            transaction_id=transaction_id,
            amount=amount,
            description=description,
            transaction_type=transaction_type,
        )
        await self.log(event)

    async def log_transaction_paid(
        self,
        username: str,
        debtor_id: UUID,
        transaction_id: UUID,
        amount: Decimal,
        description: str,
    ) -> None:
        """Log an item crossed off as paid."""
        event = AuditEventBuilder.transaction_paid(
            username=username,
            debtor_id=debtor_id,
            transaction_id=transaction_id,
            amount=amount,
            description=description,
        )
        await self.log(event)

    async def log_debts_settled(
        self,
        username: str,
        debtor_id: UUID,
        name: str,
        amount: Decimal,
        item_count: int,
    ) -> None:
        event = AuditEventBuilder.debts_settled(
            username=username,
            debtor_id=debtor_id,
            name=name,
            amount=amount,
            item_count=item_count,
        )
        await self.log(event)

    async def log_smart_add_applied(
        self,
        username: str,
        debtor_id: UUID,
        text: str,
        created: bool,
    ) -> None:
        await self.log(AuditEventBuilder.smart_add_applied(username, debtor_id, text, created))

    async def log_smart_add_rejected(self, username: str, text: str, reason: str) -> None:
        await self.log(AuditEventBuilder.smart_add_rejected(username, text, reason))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        username: Optional[str] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            username=username,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        username: Optional[str] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            username=username,
        )
        await self.log(event)
