"""
Tests for Tá no Prego

Test strategy:
1. Unit tests for individual components (models, ledger, validator)
2. Integration tests for flows (with a fake AI model and in-memory storage)
3. No real API calls in tests
"""

import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from tanoprego.models.debtor import (
    AIParsedTransaction,
    Debtor,
    DebtStats,
    Transaction,
    TransactionType,
    ValidationIssue,
    ValidationResult,
)
from tanoprego.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestTransactionModel:
    """Tests for the Transaction model."""

    def test_transaction_defaults(self):
        """Test a new transaction gets an id, a UTC date and DEBT type."""
        t = Transaction(amount=Decimal("50"), description="Cerveja")
        assert t.id is not None
        assert t.type == TransactionType.DEBT
        assert t.date.tzinfo is not None
        assert t.amount == Decimal("50.00")

    def test_transaction_amount_quantized_to_cents(self):
        """Test amounts are rounded half-up to two places."""
        t = Transaction(amount=Decimal("10.005"), description="Pão")
        assert t.amount == Decimal("10.01")

    def test_transaction_accepts_float_amount(self):
        """Test floats from forms are converted without binary noise."""
        t = Transaction(amount=0.1, description="Bala")
        assert t.amount == Decimal("0.10")

    def test_stored_zero_amount_loads(self):
        """Test records saved with zero or negative amounts still load."""
        zero = Transaction.model_validate({"amount": 0, "description": "Nada"})
        negative = Transaction.model_validate({"amount": -5, "description": "Troco"})
        assert zero.amount == Decimal("0.00")
        assert negative.amount == Decimal("-5.00")

    def test_stored_long_description_loads(self):
        """Test old records with long or empty descriptions still load."""
        long_text = "x" * 500
        assert Transaction(amount=Decimal("5"), description=long_text).description == long_text
        assert Transaction(amount=Decimal("5"), description="   ").description == ""

    def test_transaction_requires_amount(self):
        """Test a record without an amount is rejected."""
        with pytest.raises(ValueError):
            Transaction.model_validate({"description": "Nada"})

    def test_payment_counts_negative(self):
        """Test PAYMENT entries reduce the balance."""
        t = Transaction(amount=Decimal("20"), description="Pix", type=TransactionType.PAYMENT)
        assert t.signed_amount == Decimal("-20.00")


class TestDebtorModel:
    """Tests for the Debtor model."""

    def test_debtor_strips_name(self):
        """Test that whitespace is stripped from the name."""
        debtor = Debtor(name="  Sandro  ")
        assert debtor.name == "Sandro"
        assert debtor.initial == "S"

    def test_debtor_balance(self):
        """Test balance sums debts and subtracts payments."""
        debtor = Debtor(
            name="Matias",
            transactions=[
                Transaction(amount=Decimal("50"), description="Cerveja"),
                Transaction(amount=Decimal("20"), description="Uber"),
                Transaction(amount=Decimal("30"), description="Pix", type=TransactionType.PAYMENT),
            ],
        )
        assert debtor.balance == Decimal("40.00")
        assert debtor.item_count == 3

    def test_empty_debtor(self):
        """Test a debtor with no items owes nothing."""
        debtor = Debtor(name="Ana")
        assert debtor.balance == Decimal("0.00")
        assert debtor.last_transaction is None

    def test_last_transaction_is_last_recorded(self):
        """Test last_transaction follows recording order."""
        first = Transaction(amount=Decimal("1"), description="Primeiro")
        second = Transaction(amount=Decimal("2"), description="Segundo")
        debtor = Debtor(name="Ana", transactions=[first, second])
        assert debtor.last_transaction.description == "Segundo"

    def test_sorted_transactions_newest_first(self):
        """Test display order is by date, newest first."""
        now = datetime.now(timezone.utc)
        old = Transaction(amount=Decimal("1"), description="Velho", date=now - timedelta(days=2))
        new = Transaction(amount=Decimal("2"), description="Novo", date=now)
        debtor = Debtor(name="Ana", transactions=[old, new])
        assert [t.description for t in debtor.sorted_transactions()] == ["Novo", "Velho"]

    def test_debtor_loads_legacy_camel_case(self):
        """Test blobs written with updatedAt still load."""
        blob = {
            "id": str(uuid4()),
            "name": "Sandro",
            "transactions": [
                {
                    "id": str(uuid4()),
                    "amount": 30,
                    "description": "Pizza",
                    "date": "2024-05-01T10:00:00.000Z",
                    "type": "DEBT",
                }
            ],
            "updatedAt": "2024-05-01T10:00:00.000Z",
        }
        debtor = Debtor.model_validate(blob)
        assert debtor.updated_at.year == 2024
        assert debtor.balance == Decimal("30.00")

    def test_legacy_zero_amount_item_counts_nothing(self):
        """Test a saved zero-amount item loads and leaves the balance alone."""
        debtor = Debtor.model_validate({
            "id": str(uuid4()),
            "name": "Sandro",
            "transactions": [
                {"id": str(uuid4()), "amount": 0, "description": "Brinde",
                 "date": "2024-05-01T10:00:00.000Z", "type": "DEBT"},
                {"id": str(uuid4()), "amount": 12.5, "description": "Pizza",
                 "date": "2024-05-02T10:00:00.000Z", "type": "DEBT"},
            ],
            "updatedAt": "2024-05-02T10:00:00.000Z",
        })
        assert debtor.item_count == 2
        assert debtor.balance == Decimal("12.50")

    def test_debtor_json_roundtrip_keeps_amounts(self):
        """Test amounts survive a JSON dump exactly."""
        debtor = Debtor(
            name="Ana",
            transactions=[Transaction(amount=Decimal("12.34"), description="Café")],
        )
        restored = Debtor.model_validate_json(debtor.model_dump_json())
        assert restored.transactions[0].amount == Decimal("12.34")
        assert restored.id == debtor.id


class TestAIParsedTransaction:
    """Tests for the Smart Add proposal model."""

    def test_parsed_from_json(self):
        """Test the AI's JSON answer maps onto the model."""
        parsed = AIParsedTransaction.model_validate(
            json.loads('{"name": " Matias ", "amount": 50, "description": "Beer"}')
        )
        assert parsed.name == "Matias"
        assert parsed.amount == Decimal("50")

    def test_parsed_requires_amount(self):
        """Test a proposal without amount is rejected."""
        with pytest.raises(ValueError):
            AIParsedTransaction.model_validate({"name": "Matias", "description": "Beer"})


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.DEBTOR_CREATED,
            description="Customer created",
        )
        assert event.event_type == AuditEventType.DEBTOR_CREATED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEventBuilder.transaction_added(
            username="bar_do_ze",
            debtor_id=uuid4(),
            transaction_id=uuid4(),
            amount=Decimal("50"),
            description="Cerveja",
            transaction_type="DEBT",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "transaction_added"
        assert log_dict["username"] == "bar_do_ze"
        assert log_dict["details"]["amount"] == "50.00"

    def test_audit_event_to_json(self):
        """Test events serialize to a JSON string."""
        event = AuditEventBuilder.user_registered("bar_do_ze")
        data = json.loads(event.to_json())
        assert data["event_type"] == "user_registered"
        assert data["is_user_action"] is True

    def test_failed_login_is_warning(self):
        """Test AuditEventBuilder.login marks failures as warnings."""
        ok = AuditEventBuilder.login("bar_do_ze", True)
        failed = AuditEventBuilder.login("bar_do_ze", False)
        assert ok.event_type == AuditEventType.LOGIN_SUCCEEDED
        assert failed.event_type == AuditEventType.LOGIN_FAILED
        assert failed.severity == AuditSeverity.WARNING

    def test_debtor_deleted_records_balance(self):
        """Test deleting a customer keeps what they owed."""
        debtor_id = uuid4()
        event = AuditEventBuilder.debtor_deleted("bar_do_ze", debtor_id, "Ana", Decimal("12.5"))
        assert event.entity_id == debtor_id
        assert event.details["balance"] == "12.50"


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="name",
                    issue_type="missing",
                    message="Name required",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="suspicious_value",
                    message="Too high",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.warnings == ["Too high"]


class TestDebtStats:
    """Tests for the stats model."""

    def test_defaults(self):
        """Test empty stats."""
        stats = DebtStats()
        assert stats.total_owed == Decimal("0.00")
        assert stats.top_debtor == ""


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
