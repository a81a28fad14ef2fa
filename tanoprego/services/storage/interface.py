"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap the local JSON files for a real database later
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The key-value interface mirrors browser local storage on purpose:
string keys, string values, nothing else. Everything richer (users
table, debtor lists, audit log) is a JSON blob under one key.
"""

from abc import ABC, abstractmethod
from typing import Optional

from tanoprego.models.audit import AuditEvent


class KeyValueStore(ABC):
    """
    Abstract interface for the local key-value store.

    Any storage implementation (files, SQLite, Redis, ...)
    must implement these methods.
    """

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """
        Read the value stored under a key.

        Returns:
            The stored string, or None if the key is absent
        """
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """
        Store a value, replacing any previous one.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def remove_item(self, key: str) -> bool:
        """
        Remove a key.

        Returns:
            True if the key existed
        """
        pass

    @abstractmethod
    def keys(self) -> list[str]:
        """List every stored key."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        username: str,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events of one login.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass
