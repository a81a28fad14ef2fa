"""
Repositories over the key-value store.

Each repository owns one kind of JSON blob:
- UserRepository: the login/password table (one key for all shops)
- DebtorRepository: one debtor list per login
- KeyValueAuditStorage: one append-only audit log per login

NOTE: Passwords are stored as typed. Account security is out of scope
for a single-device shop tool; the table only separates shops' data.
"""

import json
from typing import Optional

import structlog
from pydantic import TypeAdapter, ValidationError

from tanoprego.config import get_settings
from tanoprego.config.settings import StorageSettings
from tanoprego.models.audit import AuditEvent
from tanoprego.models.debtor import Debtor, utc_now
from tanoprego.services.storage.interface import (
    AuditStorageInterface,
    KeyValueStore,
    StorageError,
)


logger = structlog.get_logger(__name__)

_debtor_list = TypeAdapter(list[Debtor])

BACKUP_MARKER = ".backup-"


class UserRepository:
    """Plaintext username -> password table stored under a single key."""

    def __init__(
        self,
        store: KeyValueStore,
        settings: Optional[StorageSettings] = None,
    ):
        self._store = store
        self._settings = settings or get_settings().storage

    def _load(self) -> dict[str, str]:
        raw = self._store.get_item(self._settings.users_key)
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(f"Users table is corrupt: {e}")
        if not isinstance(data, dict):
            raise StorageError("Users table is corrupt: expected an object")
        return data

    def exists(self, username: str) -> bool:
        return username in self._load()

    def register(self, username: str, password: str) -> bool:
        """
        Add a login.

        Returns:
            False if the login already exists
        """
        users = self._load()
        if username in users:
            return False
        users[username] = password
        self._store.set_item(self._settings.users_key, json.dumps(users, ensure_ascii=False))
        return True

    def authenticate(self, username: str, password: str) -> bool:
        users = self._load()
        return username in users and users[username] == password


class DebtorRepository:
    """Per-login debtor list."""

    def __init__(
        self,
        store: KeyValueStore,
        settings: Optional[StorageSettings] = None,
    ):
        self._store = store
        self._settings = settings or get_settings().storage

    def load(self, username: str) -> list[Debtor]:
        """
        Load a login's debtors.

        A missing key means a new shop. Each debtor is validated on its
        own so one unreadable record does not hide the others. Whenever
        anything could not be read, the raw blob is copied to a backup
        key first, since the next save replaces it.
        """
        key = self._settings.data_key(username)
        raw = self._store.get_item(key)
        if not raw:
            return []

        try:
            items = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error("debtor_data_load_failed", username=username, key=key, error=str(e))
            self._backup(key, raw)
            return []
        if not isinstance(items, list):
            logger.error("debtor_data_load_failed", username=username, key=key,
                         error="expected a list")
            self._backup(key, raw)
            return []

        debtors = []
        skipped = 0
        for item in items:
            try:
                debtors.append(Debtor.model_validate(item))
            except ValidationError as e:
                skipped += 1
                logger.error("debtor_record_skipped", username=username, key=key, error=str(e))
        if skipped:
            self._backup(key, raw)
        return debtors

    def _backup(self, key: str, raw: str) -> None:
        """Keep an unreadable blob under <key>.backup-<UTC stamp>, once per content."""
        prefix = f"{key}{BACKUP_MARKER}"
        for existing in self._store.keys():
            if existing.startswith(prefix) and self._store.get_item(existing) == raw:
                return
        backup_key = f"{prefix}{utc_now():%Y%m%dT%H%M%S%f}"
        self._store.set_item(backup_key, raw)
        logger.warning("debtor_data_backed_up", key=key, backup_key=backup_key)

    def backups(self, username: str) -> list[str]:
        prefix = f"{self._settings.data_key(username)}{BACKUP_MARKER}"
        return [key for key in self._store.keys() if key.startswith(prefix)]

    def save(self, username: str, debtors: list[Debtor]) -> None:
        key = self._settings.data_key(username)
        self._store.set_item(key, _debtor_list.dump_json(debtors).decode("utf-8"))


class KeyValueAuditStorage(AuditStorageInterface):
    """
    Audit log kept in the same key-value store.

    Events are appended to a per-login JSON list; the oldest are
    dropped once the list exceeds audit_max_events.
    """

    def __init__(
        self,
        store: KeyValueStore,
        settings: Optional[StorageSettings] = None,
    ):
        self._store = store
        self._settings = settings or get_settings().storage

    def _load(self, username: str) -> list[dict]:
        raw = self._store.get_item(self._settings.audit_key(username))
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("audit_log_corrupt", username=username)
            return []
        return data if isinstance(data, list) else []

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        if not event.username:
            # Nothing to attach it to; local logging already has it
            return False
        try:
            events = self._load(event.username)
            events.append(event.model_dump(mode="json"))
            events = events[-self._settings.audit_max_events:]
            self._store.set_item(
                self._settings.audit_key(event.username),
                json.dumps(events, ensure_ascii=False),
            )
            return True
        except StorageError as e:
            # Don't raise - audit logging should not break the main flow
            logger.warning("audit_append_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_recent_events(
        self,
        username: str,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        events = []
        for item in self._load(username):
            try:
                events.append(AuditEvent.model_validate(item))
            except ValidationError:
                continue

        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
