"""Services package."""

from tanoprego.services.storage import (
    AuditStorageInterface,
    DebtorRepository,
    JsonFileStore,
    KeyValueAuditStorage,
    KeyValueStore,
    MemoryStore,
    StorageError,
    UserRepository,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "DebtorRepository",
    "JsonFileStore",
    "KeyValueAuditStorage",
    "KeyValueStore",
    "MemoryStore",
    "StorageError",
    "UserRepository",
]
