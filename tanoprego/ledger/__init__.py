"""Debt ledger package."""

from tanoprego.ledger.book import (
    DebtLedger,
    DebtorNotFoundError,
    InvalidEntryError,
    LedgerError,
    TransactionNotFoundError,
)

__all__ = [
    "DebtLedger",
    "DebtorNotFoundError",
    "InvalidEntryError",
    "LedgerError",
    "TransactionNotFoundError",
]
