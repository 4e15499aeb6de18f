"""
Tests for the append-only contract ledger.
"""

from decimal import Decimal

import pytest

from haneen.constants import Currency, Direction, TransactionType
from haneen.errors import LedgerImmutable, UniquenessConflict, ValidationFailed
from haneen.extensions import db
from haneen.ledger import (
    append_entry,
    append_once,
    contract_balance,
    entries_for_contract,
    guard_key_for,
    record_manual_entry,
    running_balance,
    summarize,
)
from haneen.models import Transaction
from haneen.workflow import resolve_contract


def _entry(direction, amount, currency="SAR", transaction_type="MANUAL_ADJUSTMENT"):
    return Transaction(
        contract_id=1,
        transaction_type=transaction_type,
        direction=direction,
        amount=Decimal(amount),
        currency=currency,
    )


class TestGuardKeys:
    def test_forecast_is_guarded_per_direction(self):
        assert guard_key_for("EXTERNAL_COMMISSION_FORECAST", "OUT") == "EXTERNAL_COMMISSION_FORECAST:OUT"
        assert guard_key_for("EXTERNAL_COMMISSION_FORECAST", "IN") == "EXTERNAL_COMMISSION_FORECAST:IN"

    def test_payable_and_reversal_are_guarded(self):
        assert guard_key_for("EXTERNAL_COMMISSION_PAYABLE", "OUT") == "EXTERNAL_COMMISSION_PAYABLE"
        assert guard_key_for("EXTERNAL_COMMISSION_REVERSAL", "IN") == "EXTERNAL_COMMISSION_REVERSAL"

    def test_other_types_are_unguarded(self):
        assert guard_key_for("CLIENT_REFUND", "OUT") is None
        assert guard_key_for("MANUAL_ADJUSTMENT", "IN") is None


class TestRunningBalance:
    def test_prefix_sums_in_insertion_order(self, rates):
        entries = [_entry("IN", "1000"), _entry("OUT", "300"), _entry("IN", "200", currency="USD")]
        lines = running_balance(entries, rates)
        assert lines[2].amount_sar == Decimal("750.00")
        assert [line.balance for line in lines] == [Decimal("1000"), Decimal("700"), Decimal("1450")]

    def test_usd_entries_are_converted(self, rates):
        lines = running_balance([_entry("OUT", "100", currency="USD")], rates)
        assert lines[0].amount_sar == Decimal("375.00")
        assert lines[0].balance == Decimal("-375.00")

    def test_empty_ledger(self, rates):
        assert running_balance([], rates) == []


class TestSummary:
    def test_falls_back_to_estimate_without_entries(self, rates):
        balance = summarize([], rates, approx_profit=Decimal("8735"))
        assert balance.effective_profit == Decimal("8735.00")
        assert balance.divergence == Decimal("0")

    def test_ledger_profit_supersedes_estimate(self, rates):
        entries = [_entry("IN", "9000"), _entry("OUT", "375")]
        balance = summarize(entries, rates, approx_profit=Decimal("8735"))
        assert balance.total_in == Decimal("9000")
        assert balance.total_out == Decimal("375")
        assert balance.effective_profit == Decimal("8625")
        assert balance.divergence == Decimal("-110.00")


class TestLedgerStorage:
    def test_running_balance_from_stored_entries(self, make_order, rates):
        contract = resolve_contract(make_order().contract_number)
        append_entry(contract.id, TransactionType.CONTRACT_REVENUE, Direction.IN, "1000")
        append_entry(contract.id, TransactionType.OTHER_EXPENSE, Direction.OUT, "300")
        append_entry(contract.id, TransactionType.MANUAL_ADJUSTMENT, Direction.IN, "200", Currency.USD)

        lines = running_balance(entries_for_contract(contract.id), rates)
        assert [line.balance for line in lines] == [Decimal("1000"), Decimal("700"), Decimal("1450")]
        assert contract_balance(contract, rates).ledger_profit == Decimal("1450")

    def test_rejects_non_positive_amount(self, make_order):
        contract = resolve_contract(make_order().contract_number)
        with pytest.raises(ValidationFailed):
            append_entry(contract.id, TransactionType.OTHER_EXPENSE, Direction.OUT, "0")

    def test_rejects_malformed_amount(self, make_order):
        contract = resolve_contract(make_order().contract_number)
        with pytest.raises(ValidationFailed, match="amount must be a number"):
            append_entry(contract.id, TransactionType.OTHER_EXPENSE, Direction.OUT, "1,000")
        assert Transaction.query.filter_by(contract_id=contract.id).count() == 0

    def test_rejects_unknown_type(self, make_order):
        contract = resolve_contract(make_order().contract_number)
        with pytest.raises(ValidationFailed):
            append_entry(contract.id, "BONUS", Direction.OUT, "10")

    def test_append_once_skips_duplicate(self, make_order):
        contract = resolve_contract(make_order().contract_number)
        first = append_once(contract.id, TransactionType.EXTERNAL_COMMISSION_PAYABLE, Direction.OUT,
                            "100", Currency.USD)
        second = append_once(contract.id, TransactionType.EXTERNAL_COMMISSION_PAYABLE, Direction.OUT,
                             "100", Currency.USD)

        assert first is not None
        assert second is None
        assert Transaction.query.filter_by(contract_id=contract.id).count() == 1

    def test_append_once_requires_guarded_type(self, make_order):
        contract = resolve_contract(make_order().contract_number)
        with pytest.raises(ValueError):
            append_once(contract.id, TransactionType.CLIENT_REFUND, Direction.OUT, "10")

    def test_duplicate_guarded_append_is_a_conflict(self, make_order):
        contract = resolve_contract(make_order().contract_number)
        append_entry(contract.id, TransactionType.EXTERNAL_COMMISSION_REVERSAL, Direction.IN, "100")
        with pytest.raises(UniquenessConflict):
            append_entry(contract.id, TransactionType.EXTERNAL_COMMISSION_REVERSAL, Direction.IN, "100")
        # the outer transaction survives the failed savepoint
        assert Transaction.query.filter_by(contract_id=contract.id).count() == 1

    def test_same_guard_on_other_contract_is_allowed(self, make_order):
        first = resolve_contract(make_order().contract_number)
        second = resolve_contract(make_order(contract_number="C-200", passport="EP200").contract_number)
        assert append_once(first.id, TransactionType.EXTERNAL_COMMISSION_PAYABLE, Direction.OUT, "100")
        assert append_once(second.id, TransactionType.EXTERNAL_COMMISSION_PAYABLE, Direction.OUT, "100")


class TestManualEntries:
    def test_allowed_types(self, make_order):
        contract = resolve_contract(make_order().contract_number)
        entry = record_manual_entry(contract.id, "OTHER_EXPENSE", "OUT", "45.5", notes="courier")
        assert entry.amount == Decimal("45.50")
        assert entry.related_party == "internal"
        assert entry.notes == "courier"

    def test_system_types_are_refused(self, make_order):
        contract = resolve_contract(make_order().contract_number)
        with pytest.raises(ValidationFailed):
            record_manual_entry(contract.id, "CONTRACT_REVENUE", "IN", "1000")
        with pytest.raises(ValidationFailed):
            record_manual_entry(contract.id, "EXTERNAL_COMMISSION_PAYABLE", "OUT", "100")


class TestImmutability:
    def test_update_is_rejected(self, make_order):
        contract = resolve_contract(make_order().contract_number)
        entry = append_entry(contract.id, TransactionType.OTHER_EXPENSE, Direction.OUT, "50")
        db.session.commit()

        entry.amount = Decimal("60")
        with pytest.raises(LedgerImmutable):
            db.session.flush()
        db.session.rollback()

    def test_delete_is_rejected(self, make_order):
        contract = resolve_contract(make_order().contract_number)
        entry = append_entry(contract.id, TransactionType.OTHER_EXPENSE, Direction.OUT, "50")
        db.session.commit()

        db.session.delete(entry)
        with pytest.raises(LedgerImmutable):
            db.session.flush()
        db.session.rollback()
        assert Transaction.query.count() == 1
