"""
Debt Ledger

DESIGN DECISION: Ledger operations are DETERMINISTIC.
The AI only proposes a {name, amount, description} triple.
This module decides which customer it belongs to and records it.

The ledger is purely in-memory. Persisting it after each mutation
is the caller's job (see orchestrator.LedgerFlow).

Ordering rules:
- Customers: newest first (new customers are put on top)
- Items: stored in the order recorded, displayed newest first
"""

from decimal import Decimal, InvalidOperation
from typing import Optional, Union
from uuid import UUID

from pydantic import ValidationError

from tanoprego.models.debtor import (
    AIParsedTransaction,
    DebtStats,
    Debtor,
    Transaction,
    TransactionType,
    to_cents,
)


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class DebtorNotFoundError(LedgerError):
    """No customer with that ID."""

    def __init__(self, debtor_id: UUID):
        self.debtor_id = debtor_id
        super().__init__(f"Debtor not found: {debtor_id}")


class TransactionNotFoundError(LedgerError):
    """No item with that ID on the customer's tab."""

    def __init__(self, debtor_id: UUID, transaction_id: UUID):
        self.debtor_id = debtor_id
        self.transaction_id = transaction_id
        super().__init__(f"Transaction {transaction_id} not found for debtor {debtor_id}")


class InvalidEntryError(LedgerError):
    """The entry is missing a name, description or a positive amount."""
    pass


Amount = Union[Decimal, float, int, str]

MAX_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 200


def _clean_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise InvalidEntryError("Customer name is required")
    if len(name) > MAX_NAME_LENGTH:
        raise InvalidEntryError(f"Customer name is longer than {MAX_NAME_LENGTH} characters")
    return name


def _to_decimal(amount: Amount) -> Decimal:
    if isinstance(amount, Decimal):
        if not amount.is_finite():
            raise InvalidEntryError(f"Invalid amount: {amount!r}")
        return amount
    try:
        # str() first so floats keep their printed value
        value = Decimal(str(amount).strip().replace(",", "."))
    except InvalidOperation:
        raise InvalidEntryError(f"Invalid amount: {amount!r}")
    if not value.is_finite():
        raise InvalidEntryError(f"Invalid amount: {amount!r}")
    return value


class DebtLedger:
    """
    In-memory debt book of one shop.

    GUARANTEES:
    - Every item has a fresh ID and a UTC timestamp
    - Any change to a tab bumps the customer's updated_at
    - Unknown IDs raise instead of being silently ignored
    """

    def __init__(self, debtors: Optional[list[Debtor]] = None):
        self._debtors: list[Debtor] = list(debtors or [])

    @property
    def debtors(self) -> list[Debtor]:
        return list(self._debtors)

    def __len__(self) -> int:
        return len(self._debtors)

    def get(self, debtor_id: UUID) -> Debtor:
        for debtor in self._debtors:
            if debtor.id == debtor_id:
                return debtor
        raise DebtorNotFoundError(debtor_id)

    def add_debtor(self, name: str) -> Debtor:
        """Create a customer with an empty tab and put it on top of the list."""
        debtor = Debtor(name=_clean_name(name))
        self._debtors.insert(0, debtor)
        return debtor

    def _new_transaction(
        self,
        amount: Amount,
        description: str,
        transaction_type: TransactionType,
    ) -> Transaction:
        description = (description or "").strip()
        if not description:
            raise InvalidEntryError("Item description is required")
        if len(description) > MAX_DESCRIPTION_LENGTH:
            raise InvalidEntryError(
                f"Item description is longer than {MAX_DESCRIPTION_LENGTH} characters"
            )
        value = to_cents(_to_decimal(amount))
        if value <= 0:
            raise InvalidEntryError("Amount must be greater than zero")
        try:
            return Transaction(
                amount=value,
                description=description,
                type=transaction_type,
            )
        except ValidationError as e:
            raise InvalidEntryError(str(e))

    def add_transaction(
        self,
        debtor_id: UUID,
        amount: Amount,
        description: str,
        transaction_type: TransactionType = TransactionType.DEBT,
    ) -> Transaction:
        """Append an item to a customer's tab."""
        debtor = self.get(debtor_id)
        transaction = self._new_transaction(amount, description, transaction_type)
        debtor.transactions.append(transaction)
        debtor.touch()
        return transaction

    def mark_paid(self, debtor_id: UUID, transaction_id: UUID) -> Transaction:
        """
        Mark one item as paid.

        Paid items leave the tab; the audit log keeps the record.
        """
        debtor = self.get(debtor_id)
        for index, transaction in enumerate(debtor.transactions):
            if transaction.id == transaction_id:
                del debtor.transactions[index]
                debtor.touch()
                return transaction
        raise TransactionNotFoundError(debtor_id, transaction_id)

    def settle_all(self, debtor_id: UUID) -> list[Transaction]:
        """Pay the whole tab. Returns the items that were cleared."""
        debtor = self.get(debtor_id)
        cleared = list(debtor.transactions)
        debtor.transactions = []
        debtor.touch()
        return cleared

    def delete_debtor(self, debtor_id: UUID) -> Debtor:
        debtor = self.get(debtor_id)
        self._debtors.remove(debtor)
        return debtor

    def find_by_name(self, name: str) -> Optional[Debtor]:
        """
        Find a customer by a loosely written name.

        Case-insensitive; matches when either name contains the other,
        so "Sandro" finds "Sandro Silva" and "Matias da Padaria" finds
        "Matias". First match in list order wins.
        """
        needle = (name or "").strip().lower()
        if not needle:
            return None
        for debtor in self._debtors:
            candidate = debtor.name.strip().lower()
            if not candidate:
                continue
            if needle in candidate or candidate in needle:
                return debtor
        return None

    def apply_parsed(self, parsed: AIParsedTransaction) -> tuple[Debtor, Transaction, bool]:
        """
        Apply a Smart Add proposal.

        Returns:
            (debtor, transaction, created) where created is True when a
            new customer had to be opened for this item
        """
        debtor = self.find_by_name(parsed.name)
        if debtor is not None:
            transaction = self.add_transaction(
                debtor.id, parsed.amount, parsed.description, TransactionType.DEBT
            )
            return debtor, transaction, False

        # Build fully before inserting so a bad proposal leaves no empty customer
        transaction = self._new_transaction(
            parsed.amount, parsed.description, TransactionType.DEBT
        )
        debtor = Debtor(name=_clean_name(parsed.name), transactions=[transaction])
        self._debtors.insert(0, debtor)
        return debtor, transaction, True

    def total_receivable(self) -> Decimal:
        return sum((d.balance for d in self._debtors), Decimal("0.00"))

    def stats(self) -> DebtStats:
        top = max(self._debtors, key=lambda d: d.balance, default=None)
        return DebtStats(
            total_owed=self.total_receivable(),
            total_people=len(self._debtors),
            total_items=sum(d.item_count for d in self._debtors),
            top_debtor=top.name if top is not None and top.balance > 0 else "",
        )
