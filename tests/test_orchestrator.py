"""
Integration tests for the account, ledger and Smart Add flows.

Everything runs against MemoryStore and a fake Gemini model.
"""

import asyncio
import json
from decimal import Decimal
from uuid import uuid4

import pytest

from tanoprego.audit import AuditLogger
from tanoprego.ledger import DebtorNotFoundError, InvalidEntryError
from tanoprego.models.audit import AuditEventType
from tanoprego.models.debtor import TransactionType
from tanoprego.orchestrator import (
    MSG_BAD_CREDENTIALS,
    MSG_FILL_ALL_FIELDS,
    MSG_NOT_UNDERSTOOD,
    MSG_PROCESSING_ERROR,
    MSG_USER_EXISTS,
    AccountFlow,
    LedgerFlow,
    NotLoggedInError,
    SmartAddFlow,
    create_app_components,
)
from tanoprego.services.storage import (
    DebtorRepository,
    KeyValueAuditStorage,
    MemoryStore,
    StorageError,
    UserRepository,
)
from tanoprego.validation import ParsedTransactionValidator


@pytest.fixture
def audit_logger(store, storage_settings):
    return AuditLogger(KeyValueAuditStorage(store, storage_settings))


@pytest.fixture
def account_flow(store, storage_settings, audit_logger):
    return AccountFlow(UserRepository(store, storage_settings), audit_logger=audit_logger)


@pytest.fixture
def ledger_flow(store, storage_settings, audit_logger):
    flow = LedgerFlow(DebtorRepository(store, storage_settings), audit_logger=audit_logger)
    flow.open("bardoze")
    return flow


@pytest.fixture
def smart_add(ledger_flow, audit_logger, app_settings, agent_factory):
    def build(answer=None, error=None):
        agent, model = agent_factory(answer=answer, error=error)
        flow = SmartAddFlow(
            ledger_flow,
            agent=agent,
            validator=ParsedTransactionValidator(app_settings),
            audit_logger=audit_logger,
            currency_symbol="R$",
        )
        return flow, model
    return build


class FailingStore(MemoryStore):
    """MemoryStore whose writes can be switched off."""

    fail_writes = False

    def set_item(self, key, value):
        if self.fail_writes:
            raise StorageError("disk full")
        super().set_item(key, value)


def event_types(audit_logger, username="bardoze"):
    events = asyncio.run(audit_logger.recent_events(username, limit=100))
    return {e.event_type for e in events}


class TestAccountFlow:
    """Tests for register / login."""

    def test_register_then_login(self, account_flow):
        assert asyncio.run(account_flow.register("Bar do Zé", "1234")) == (True, "")
        assert asyncio.run(account_flow.login("  BAR DO ZÉ ", "1234")) == (True, "")

    def test_username_normalization(self):
        assert AccountFlow.normalize_username(" Bar do\tZé ") == "bardozé"

    @pytest.mark.parametrize("username,password", [("", "1234"), ("bar", ""), ("   ", "x")])
    def test_blank_fields(self, account_flow, username, password):
        assert asyncio.run(account_flow.register(username, password)) == (False, MSG_FILL_ALL_FIELDS)
        assert asyncio.run(account_flow.login(username, password)) == (False, MSG_FILL_ALL_FIELDS)

    def test_duplicate_register(self, account_flow):
        asyncio.run(account_flow.register("bar", "1"))
        assert asyncio.run(account_flow.register("BAR", "2")) == (False, MSG_USER_EXISTS)

    def test_wrong_password(self, account_flow, audit_logger):
        asyncio.run(account_flow.register("bar", "1"))
        assert asyncio.run(account_flow.login("bar", "2")) == (False, MSG_BAD_CREDENTIALS)
        assert AuditEventType.LOGIN_FAILED in event_types(audit_logger, "bar")

    def test_unknown_user(self, account_flow):
        assert asyncio.run(account_flow.login("ninguem", "1")) == (False, MSG_BAD_CREDENTIALS)

    def test_corrupt_users_table(self, store, storage_settings, account_flow):
        store.set_item(storage_settings.users_key, "not json")
        assert asyncio.run(account_flow.login("bar", "1")) == (False, MSG_PROCESSING_ERROR)
        assert asyncio.run(account_flow.register("bar", "1")) == (False, MSG_PROCESSING_ERROR)

    def test_register_is_audited(self, account_flow, audit_logger):
        asyncio.run(account_flow.register("bar", "1"))
        assert AuditEventType.USER_REGISTERED in event_types(audit_logger, "bar")


class TestLedgerFlow:
    """Tests for saving after every mutation."""

    def reopen(self, store, storage_settings, username="bardoze"):
        flow = LedgerFlow(DebtorRepository(store, storage_settings))
        flow.open(username)
        return flow

    def test_requires_login(self, store, storage_settings):
        flow = LedgerFlow(DebtorRepository(store, storage_settings))
        assert flow.is_open is False
        with pytest.raises(NotLoggedInError):
            asyncio.run(flow.add_debtor("Ana"))

    def test_add_debtor_is_saved(self, ledger_flow, store, storage_settings):
        debtor = asyncio.run(ledger_flow.add_debtor("Ana"))
        reloaded = self.reopen(store, storage_settings)
        assert [d.id for d in reloaded.debtors] == [debtor.id]

    def test_transactions_are_saved(self, ledger_flow, store, storage_settings):
        debtor = asyncio.run(ledger_flow.add_debtor("Ana"))
        asyncio.run(ledger_flow.add_transaction(debtor.id, "10,50", "Pão"))
        asyncio.run(ledger_flow.add_transaction(debtor.id, 5, "Pix", TransactionType.PAYMENT))
        reloaded = self.reopen(store, storage_settings)
        assert reloaded.get(debtor.id).balance == Decimal("5.50")

    def test_mark_paid_is_saved(self, ledger_flow, store, storage_settings):
        debtor = asyncio.run(ledger_flow.add_debtor("Ana"))
        bread = asyncio.run(ledger_flow.add_transaction(debtor.id, 10, "Pão"))
        milk = asyncio.run(ledger_flow.add_transaction(debtor.id, 5, "Leite"))
        asyncio.run(ledger_flow.mark_paid(debtor.id, bread.id))
        reloaded = self.reopen(store, storage_settings)
        assert [t.id for t in reloaded.get(debtor.id).transactions] == [milk.id]

    def test_settle_all_is_saved_and_audited(self, ledger_flow, store, storage_settings, audit_logger):
        debtor = asyncio.run(ledger_flow.add_debtor("Ana"))
        asyncio.run(ledger_flow.add_transaction(debtor.id, 10, "Pão"))
        asyncio.run(ledger_flow.settle_all(debtor.id))
        reloaded = self.reopen(store, storage_settings)
        assert reloaded.get(debtor.id).transactions == []

        events = asyncio.run(audit_logger.recent_events("bardoze"))
        settled = [e for e in events if e.event_type == AuditEventType.DEBTS_SETTLED]
        assert settled[0].details["amount"] == "10.00"

    def test_delete_is_saved(self, ledger_flow, store, storage_settings):
        debtor = asyncio.run(ledger_flow.add_debtor("Ana"))
        asyncio.run(ledger_flow.delete_debtor(debtor.id))
        assert self.reopen(store, storage_settings).debtors == []

    def test_failed_mutation_saves_nothing(self, ledger_flow, store, storage_settings):
        with pytest.raises(InvalidEntryError):
            asyncio.run(ledger_flow.add_debtor("  "))
        with pytest.raises(DebtorNotFoundError):
            asyncio.run(ledger_flow.add_transaction(uuid4(), 10, "Pão"))
        assert store.get_item(storage_settings.data_key("bardoze")) is None

    def test_close_clears_memory(self, ledger_flow, audit_logger):
        asyncio.run(ledger_flow.add_debtor("Ana"))
        asyncio.run(ledger_flow.close())
        assert ledger_flow.is_open is False
        assert ledger_flow.debtors == []
        assert AuditEventType.LOGGED_OUT in event_types(audit_logger)

    def test_shops_do_not_share_data(self, ledger_flow, store, storage_settings):
        asyncio.run(ledger_flow.add_debtor("Ana"))
        assert self.reopen(store, storage_settings, "outraloja").debtors == []

    def test_legacy_data_survives_next_save(self, store, storage_settings):
        """Test a shop with a zero-amount item keeps every customer after a change."""
        blob = json.dumps([
            {"id": str(uuid4()), "name": "Matias", "updatedAt": "2024-05-01T10:00:00.000Z",
             "transactions": [{"id": str(uuid4()), "amount": 50, "description": "Beer",
                               "date": "2024-05-01T10:00:00.000Z", "type": "DEBT"}]},
            {"id": str(uuid4()), "name": "Sandro", "updatedAt": "2024-05-01T10:00:00.000Z",
             "transactions": [{"id": str(uuid4()), "amount": 0, "description": "Brinde",
                               "date": "2024-05-01T10:00:00.000Z", "type": "DEBT"}]},
        ])
        store.set_item(storage_settings.data_key("bar"), blob)

        flow = self.reopen(store, storage_settings, "bar")
        assert [d.name for d in flow.debtors] == ["Matias", "Sandro"]
        asyncio.run(flow.add_debtor("Novo"))

        saved = json.loads(store.get_item(storage_settings.data_key("bar")))
        assert [d["name"] for d in saved] == ["Novo", "Matias", "Sandro"]

    def test_failed_save_leaves_memory_unchanged(self, storage_settings):
        """Test what is shown still matches what is stored when a write fails."""
        failing = FailingStore()
        flow = LedgerFlow(DebtorRepository(failing, storage_settings))
        flow.open("bardoze")
        debtor = asyncio.run(flow.add_debtor("Ana"))

        failing.fail_writes = True
        with pytest.raises(StorageError):
            asyncio.run(flow.add_transaction(debtor.id, 10, "Pão"))
        assert flow.get(debtor.id).item_count == 0
        with pytest.raises(StorageError):
            asyncio.run(flow.add_debtor("Bruno"))
        assert [d.name for d in flow.debtors] == ["Ana"]

        failing.fail_writes = False
        asyncio.run(flow.add_transaction(debtor.id, 5, "Leite"))
        saved = json.loads(failing.get_item(storage_settings.data_key("bardoze")))
        assert [t["description"] for t in saved[0]["transactions"]] == ["Leite"]
        assert len(saved) == 1

    def test_failed_save_keeps_paid_item(self, storage_settings):
        failing = FailingStore()
        flow = LedgerFlow(DebtorRepository(failing, storage_settings))
        flow.open("bardoze")
        debtor = asyncio.run(flow.add_debtor("Ana"))
        bread = asyncio.run(flow.add_transaction(debtor.id, 10, "Pão"))

        failing.fail_writes = True
        with pytest.raises(StorageError):
            asyncio.run(flow.mark_paid(debtor.id, bread.id))
        with pytest.raises(StorageError):
            asyncio.run(flow.delete_debtor(debtor.id))
        assert [t.id for t in flow.get(debtor.id).transactions] == [bread.id]


class TestSmartAddFlow:
    """Tests for sentence → proposal → ledger."""

    def test_new_customer(self, smart_add, ledger_flow, audit_logger):
        flow, _ = smart_add({"name": "Sandro", "amount": 30, "description": "Pizza"})
        outcome = asyncio.run(flow.submit("Sandro deve 30 reais da pizza"))
        assert outcome.success is True
        assert outcome.created is True
        assert outcome.message == "Criada nova planilha para Sandro com R$ 30.00"
        assert ledger_flow.debtors[0].name == "Sandro"
        assert {
            AuditEventType.DEBTOR_CREATED,
            AuditEventType.TRANSACTION_ADDED,
            AuditEventType.SMART_ADD_APPLIED,
        } <= event_types(audit_logger)

    def test_existing_customer(self, smart_add, ledger_flow):
        matias = asyncio.run(ledger_flow.add_debtor("Matias"))
        flow, _ = smart_add({"name": "matias", "amount": 50, "description": "Beer"})
        outcome = asyncio.run(flow.submit("Matias owes 50 for beer"))
        assert outcome.success is True
        assert outcome.created is False
        assert outcome.message == 'Adicionado item: "Beer" (R$ 50.00) na planilha de Matias.'
        assert len(ledger_flow.debtors) == 1
        assert ledger_flow.get(matias.id).balance == Decimal("50.00")

    def test_blank_text_is_noop(self, smart_add):
        flow, model = smart_add({"name": "x", "amount": 1, "description": "y"})
        outcome = asyncio.run(flow.submit("   "))
        assert outcome.success is False
        assert outcome.message == ""
        assert model.prompts == []

    def test_not_configured(self, ledger_flow, audit_logger, app_settings, unconfigured_agent):
        flow = SmartAddFlow(
            ledger_flow,
            agent=unconfigured_agent,
            validator=ParsedTransactionValidator(app_settings),
            audit_logger=audit_logger,
        )
        assert flow.is_available is False
        outcome = asyncio.run(flow.submit("Matias deve 50"))
        assert outcome.success is False
        assert outcome.message == MSG_NOT_UNDERSTOOD
        assert ledger_flow.debtors == []

    def test_unparseable_answer(self, smart_add, ledger_flow, audit_logger):
        flow, _ = smart_add("no idea")
        outcome = asyncio.run(flow.submit("blah"))
        assert outcome.message == MSG_NOT_UNDERSTOOD
        assert ledger_flow.debtors == []
        assert AuditEventType.SMART_ADD_REJECTED in event_types(audit_logger)

    def test_model_failure(self, smart_add, ledger_flow, audit_logger):
        flow, _ = smart_add(error=RuntimeError("503"))
        outcome = asyncio.run(flow.submit("Matias deve 50"))
        assert outcome.success is False
        assert outcome.message == MSG_NOT_UNDERSTOOD
        assert ledger_flow.debtors == []
        assert AuditEventType.EXTERNAL_SERVICE_ERROR in event_types(audit_logger)

    def test_invalid_proposal(self, smart_add, ledger_flow):
        flow, _ = smart_add({"name": "", "amount": 0, "description": "Pizza"})
        outcome = asyncio.run(flow.submit("deve 0 da pizza"))
        assert outcome.success is False
        assert outcome.message.startswith(MSG_NOT_UNDERSTOOD + "\n")
        assert "❌" in outcome.message
        assert ledger_flow.debtors == []

    def test_high_amount_applies_with_warning(self, smart_add, ledger_flow):
        flow, _ = smart_add({"name": "Ana", "amount": 250000, "description": "Carro"})
        outcome = asyncio.run(flow.submit("Ana deve 250 mil do carro"))
        assert outcome.success is True
        assert len(outcome.warnings) == 1
        assert len(ledger_flow.debtors) == 1


class TestCreateAppComponents:
    """Tests for the factory used by the UI."""

    def test_components_share_store(self, agent_factory):
        store = MemoryStore()
        agent, _ = agent_factory({"name": "Ana", "amount": 10, "description": "Pão"})
        account_flow, ledger_flow, smart_add_flow = create_app_components(store=store, agent=agent)

        assert asyncio.run(account_flow.register("bar", "1"))[0] is True
        ledger_flow.open("bar")
        outcome = asyncio.run(smart_add_flow.submit("Ana deve 10 do pão"))
        assert outcome.success is True
        assert any(key.endswith("bar") and key.startswith("data_") for key in store.keys())

    def test_in_memory_mode(self, agent_factory):
        agent, _ = agent_factory()
        _, ledger_flow, _ = create_app_components(use_storage=False, agent=agent)
        ledger_flow.open("bar")
        asyncio.run(ledger_flow.add_debtor("Ana"))
        assert len(ledger_flow.debtors) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
