"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Currently implements local JSON files as the backend, but designed to be swappable.
"""

from tanoprego.services.storage.interface import (
    AuditStorageInterface,
    KeyValueStore,
    StorageError,
)
from tanoprego.services.storage.local_store import (
    JsonFileStore,
    MemoryStore,
)
from tanoprego.services.storage.repositories import (
    DebtorRepository,
    KeyValueAuditStorage,
    UserRepository,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "KeyValueStore",
    # Exceptions
    "StorageError",
    # Local implementation
    "JsonFileStore",
    "MemoryStore",
    # Repositories
    "DebtorRepository",
    "KeyValueAuditStorage",
    "UserRepository",
]
