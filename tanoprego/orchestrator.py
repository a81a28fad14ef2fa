"""
Main Orchestrator for Tá no Prego

This module ties together all the components and defines the
end-to-end flows for:
1. Accounts (register / login / logout, one data set per shop login)
2. Ledger (customer and item changes, saved after every mutation)
3. Smart Add (sentence → AI proposal → validate → apply → save)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is kept in memory without being written to storage
- The AI never writes to the ledger directly
- Every change is audited

This is the "glue" between the UI and the deterministic ledger.
"""

from decimal import Decimal
from typing import Callable, Optional, TypeVar, Union
from uuid import UUID

import structlog
from pydantic import BaseModel, Field

from tanoprego.agents import SmartAddAgent, SmartAddNotConfiguredError, SmartAddParseError
from tanoprego.audit import AuditLogger, configure_logging
from tanoprego.config import get_settings
from tanoprego.ledger import DebtLedger, InvalidEntryError, LedgerError
from tanoprego.models.debtor import (
    AIParsedTransaction,
    DebtStats,
    Debtor,
    Transaction,
    TransactionType,
)
from tanoprego.services.storage import (
    DebtorRepository,
    JsonFileStore,
    KeyValueAuditStorage,
    KeyValueStore,
    MemoryStore,
    StorageError,
    UserRepository,
)
from tanoprego.validation import ParsedTransactionValidator


logger = structlog.get_logger(__name__)

T = TypeVar("T")


# User-facing messages
MSG_FILL_ALL_FIELDS = "Preencha todos os campos."
MSG_BAD_CREDENTIALS = "Nome ou senha incorretos."
MSG_USER_EXISTS = "Este nome de comércio já existe."
MSG_PROCESSING_ERROR = "Erro ao processar."
MSG_NOT_UNDERSTOOD = "Não entendi. Tente: 'Sandro deve 30 reais da pizza'"


class NotLoggedInError(LedgerError):
    """A ledger operation was attempted with no shop logged in."""
    pass


class AccountFlow:
    """
    Orchestrates the login screen.

    Login names are normalized the way the login form types them:
    lower case, no whitespace. Passwords are compared as typed.
    """

    def __init__(
        self,
        user_repository: UserRepository,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._users = user_repository
        self._audit_logger = audit_logger

    @staticmethod
    def normalize_username(raw: str) -> str:
        return "".join((raw or "").lower().split())

    async def login(self, username: str, password: str) -> tuple[bool, str]:
        """
        Check a login.

        Returns:
            (success, message) where message is empty on success
        """
        username = self.normalize_username(username)
        if not username or not password:
            return False, MSG_FILL_ALL_FIELDS

        try:
            ok = self._users.authenticate(username, password)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_error("storage", str(e), username=username)
            return False, MSG_PROCESSING_ERROR

        if self._audit_logger:
            await self._audit_logger.log_login(username, ok)
        return ok, "" if ok else MSG_BAD_CREDENTIALS

    async def register(self, username: str, password: str) -> tuple[bool, str]:
        """
        Create a login.

        Returns:
            (success, message) where message is empty on success
        """
        username = self.normalize_username(username)
        if not username or not password:
            return False, MSG_FILL_ALL_FIELDS

        try:
            created = self._users.register(username, password)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_error("storage", str(e), username=username)
            return False, MSG_PROCESSING_ERROR

        if not created:
            return False, MSG_USER_EXISTS

        if self._audit_logger:
            await self._audit_logger.log_user_registered(username)
        return True, ""


class LedgerFlow:
    """
    Binds a DebtLedger to the logged-in shop.

    Flow per mutation:
    1. Apply to a working copy of the ledger (raises on bad input)
    2. Save the copy's full debtor list under the shop's key
    3. Swap the copy in, then audit

    If step 1 or 2 raises, the in-memory ledger is left as it was, so
    what the screen shows always matches what is stored.
    Logging out clears the in-memory list; the next login reloads it.
    """

    def __init__(
        self,
        debtor_repository: DebtorRepository,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._repository = debtor_repository
        self._audit_logger = audit_logger
        self._username: Optional[str] = None
        self._ledger = DebtLedger()

    @property
    def username(self) -> Optional[str]:
        return self._username

    @property
    def is_open(self) -> bool:
        return self._username is not None

    @property
    def debtors(self) -> list[Debtor]:
        return self._ledger.debtors

    def open(self, username: str) -> list[Debtor]:
        """Load a shop's debtors into memory."""
        ledger = DebtLedger(self._repository.load(username))
        self._username = username
        self._ledger = ledger
        logger.info("ledger_opened", username=username, debtors=len(self._ledger))
        return self._ledger.debtors

    async def close(self) -> None:
        """Log out: forget the shop and its debtors."""
        if self._username and self._audit_logger:
            await self._audit_logger.log_logged_out(self._username)
        self._username = None
        self._ledger = DebtLedger()

    def _require_open(self) -> str:
        if self._username is None:
            raise NotLoggedInError("No shop is logged in")
        return self._username

    def _commit(self, change: Callable[[DebtLedger], T]) -> T:
        """Run change on a copy, save it, and only then make it current."""
        username = self._require_open()
        working = DebtLedger([d.model_copy(deep=True) for d in self._ledger.debtors])
        result = change(working)
        try:
            self._repository.save(username, working.debtors)
        except StorageError as e:
            logger.error("ledger_save_failed", username=username, error=str(e))
            raise
        self._ledger = working
        return result

    def get(self, debtor_id: UUID) -> Debtor:
        return self._ledger.get(debtor_id)

    def stats(self) -> DebtStats:
        return self._ledger.stats()

    async def add_debtor(self, name: str) -> Debtor:
        debtor = self._commit(lambda ledger: ledger.add_debtor(name))
        if self._audit_logger:
            await self._audit_logger.log_debtor_created(self._username, debtor.id, debtor.name)
        return debtor

    async def add_transaction(
        self,
        debtor_id: UUID,
        amount: Union[Decimal, float, int, str],
        description: str,
        transaction_type: TransactionType = TransactionType.DEBT,
    ) -> Transaction:
        transaction = self._commit(
            lambda ledger: ledger.add_transaction(debtor_id, amount, description, transaction_type)
        )
        if self._audit_logger:
            await self._audit_logger.log_transaction_added(
                username=self._username,
                debtor_id=debtor_id,
                transaction_id=transaction.id,
                amount=transaction.amount,
                description=transaction.description,
                transaction_type=transaction.type.value,
            )
        return transaction

    async def mark_paid(self, debtor_id: UUID, transaction_id: UUID) -> Transaction:
        transaction = self._commit(lambda ledger: ledger.mark_paid(debtor_id, transaction_id))
        if self._audit_logger:
            await self._audit_logger.log_transaction_paid(
                username=self._username,
                debtor_id=debtor_id,
                transaction_id=transaction.id,
                amount=transaction.amount,
                description=transaction.description,
            )
        return transaction

    async def settle_all(self, debtor_id: UUID) -> list[Transaction]:
        self._require_open()
        debtor = self._ledger.get(debtor_id)
        name, balance = debtor.name, debtor.balance
        cleared = self._commit(lambda ledger: ledger.settle_all(debtor_id))
        if self._audit_logger:
            await self._audit_logger.log_debts_settled(
                username=self._username,
                debtor_id=debtor_id,
                name=name,
                amount=balance,
                item_count=len(cleared),
            )
        return cleared

    async def delete_debtor(self, debtor_id: UUID) -> Debtor:
        debtor = self._commit(lambda ledger: ledger.delete_debtor(debtor_id))
        if self._audit_logger:
            await self._audit_logger.log_debtor_deleted(
                self._username, debtor.id, debtor.name, debtor.balance
            )
        return debtor

    async def apply_parsed(
        self,
        parsed: AIParsedTransaction,
        text: str = "",
    ) -> tuple[Debtor, Transaction, bool]:
        debtor, transaction, created = self._commit(lambda ledger: ledger.apply_parsed(parsed))
        if self._audit_logger:
            username = self._username
            if created:
                await self._audit_logger.log_debtor_created(username, debtor.id, debtor.name)
            await self._audit_logger.log_transaction_added(
                username=username,
                debtor_id=debtor.id,
                transaction_id=transaction.id,
                amount=transaction.amount,
                description=transaction.description,
                transaction_type=transaction.type.value,
            )
            await self._audit_logger.log_smart_add_applied(username, debtor.id, text, created)
        return debtor, transaction, created


class SmartAddOutcome(BaseModel):
    """What the Smart Add box shows after a submission."""

    success: bool
    message: str
    debtor: Optional[Debtor] = None
    transaction: Optional[Transaction] = None
    created: bool = False
    warnings: list[str] = Field(default_factory=list)


class SmartAddFlow:
    """
    Orchestrates Smart Add.

    FLOW:
    1. Sentence → AI proposal {name, amount, description}
    2. Proposal → validation (deterministic)
    3. Proposal → ledger (deterministic name matching)
    4. Save + audit (through LedgerFlow)

    Any failure before step 3 leaves the ledger untouched.
    """

    def __init__(
        self,
        ledger_flow: LedgerFlow,
        agent: Optional[SmartAddAgent] = None,
        validator: Optional[ParsedTransactionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        currency_symbol: Optional[str] = None,
    ):
        self._ledger_flow = ledger_flow
        self._agent = agent or SmartAddAgent()
        self._validator = validator or ParsedTransactionValidator()
        self._audit_logger = audit_logger
        self._currency = currency_symbol or get_settings().app.currency_symbol

    @property
    def is_available(self) -> bool:
        return self._agent.is_available

    async def _reject(self, text: str, reason: str, message: str = MSG_NOT_UNDERSTOOD) -> SmartAddOutcome:
        username = self._ledger_flow.username
        if self._audit_logger and username:
            await self._audit_logger.log_smart_add_rejected(username, text, reason)
        return SmartAddOutcome(success=False, message=message)

    async def submit(self, text: str) -> SmartAddOutcome:
        """
        Run one Smart Add submission.

        Blank text is a no-op (success False, empty message).
        """
        text = (text or "").strip()
        if not text:
            return SmartAddOutcome(success=False, message="")

        # Step 1: AI proposal
        try:
            parsed = await self._agent.extract(text)
        except SmartAddNotConfiguredError as e:
            logger.warning("smart_add_not_configured")
            return await self._reject(text, str(e))
        except SmartAddParseError as e:
            logger.warning("smart_add_unparseable", error=str(e), raw=e.raw_text)
            return await self._reject(text, str(e))
        except Exception as e:
            logger.error("smart_add_failed", error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="gemini",
                    error_message=str(e),
                    username=self._ledger_flow.username,
                )
            return SmartAddOutcome(success=False, message=MSG_NOT_UNDERSTOOD)

        # Step 2: validation
        validation = self._validator.validate(parsed)
        summary = self._validator.get_user_friendly_summary(validation)
        if not validation.is_valid:
            return await self._reject(
                text,
                summary,
                message=f"{MSG_NOT_UNDERSTOOD}\n{summary}",
            )

        # Step 3 + 4: apply, save, audit
        try:
            debtor, transaction, created = await self._ledger_flow.apply_parsed(parsed, text)
        except InvalidEntryError as e:
            return await self._reject(text, str(e))

        if created:
            message = (
                f"Criada nova planilha para {debtor.name} com "
                f"{self._currency} {transaction.amount:.2f}"
            )
        else:
            message = (
                f'Adicionado item: "{transaction.description}" '
                f"({self._currency} {transaction.amount:.2f}) "
                f"na planilha de {debtor.name}."
            )

        return SmartAddOutcome(
            success=True,
            message=message,
            debtor=debtor,
            transaction=transaction,
            created=created,
            warnings=validation.warnings,
        )


def create_store(use_storage: bool = True) -> KeyValueStore:
    """
    Create the key-value store.

    Falls back to memory when the data directory is unusable so the
    app still starts (nothing will survive a restart in that case).
    """
    if not use_storage:
        return MemoryStore()
    try:
        return JsonFileStore()
    except StorageError as e:
        logger.warning("storage_not_configured", error=str(e))
        return MemoryStore()


def create_app_components(
    use_storage: bool = True,
    store: Optional[KeyValueStore] = None,
    agent: Optional[SmartAddAgent] = None,
) -> tuple[AccountFlow, LedgerFlow, SmartAddFlow]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to persist to the local data directory.
                    Set to False for in-memory runs.
        store: Explicit store (tests); overrides use_storage.
        agent: Explicit Smart Add agent (tests).

    Returns:
        (account_flow, ledger_flow, smart_add_flow)
    """
    settings = get_settings()
    configure_logging(settings.app.log_level)

    store = store if store is not None else create_store(use_storage)
    storage_settings = settings.storage

    audit_logger = AuditLogger(KeyValueAuditStorage(store, storage_settings))

    account_flow = AccountFlow(
        UserRepository(store, storage_settings),
        audit_logger=audit_logger,
    )
    ledger_flow = LedgerFlow(
        DebtorRepository(store, storage_settings),
        audit_logger=audit_logger,
    )
    smart_add_flow = SmartAddFlow(
        ledger_flow,
        agent=agent,
        audit_logger=audit_logger,
        currency_symbol=settings.app.currency_symbol,
    )

    return account_flow, ledger_flow, smart_add_flow
