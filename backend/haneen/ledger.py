"""Append-only contract ledger."""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from itertools import count

from sqlalchemy.exc import IntegrityError

from .accounting import ZERO, parse_money, quantize, to_money
from .constants import (
    Currency, Direction, MANUAL_TRANSACTION_TYPES, RelatedParty, TransactionType,
)
from .errors import UniquenessConflict, ValidationFailed
from .extensions import db
from .models import Transaction
from .rates import RatesConfig

logger = logging.getLogger(__name__)

FORECAST = TransactionType.EXTERNAL_COMMISSION_FORECAST
PAYABLE = TransactionType.EXTERNAL_COMMISSION_PAYABLE
REVERSAL = TransactionType.EXTERNAL_COMMISSION_REVERSAL


def guard_key_for(transaction_type, direction) -> str | None:
    transaction_type = TransactionType(transaction_type)
    if transaction_type is FORECAST:
        return f"{FORECAST.value}:{Direction(direction).value}"
    if transaction_type in (PAYABLE, REVERSAL):
        return transaction_type.value
    return None


def _build_entry(contract_id, transaction_type, direction, amount, currency,
                 related_party, notes, external_office_id, passport_number) -> Transaction:
    try:
        transaction_type = TransactionType(transaction_type)
        direction = Direction(direction)
        currency = Currency(currency)
        related_party = RelatedParty(related_party)
    except ValueError as exc:
        raise ValidationFailed(str(exc)) from exc

    amount = parse_money(amount, "amount")
    if amount <= 0:
        raise ValidationFailed("amount must be greater than zero")

    return Transaction(
        contract_id=contract_id,
        transaction_type=transaction_type.value,
        direction=direction.value,
        amount=amount,
        currency=currency.value,
        related_party=related_party.value,
        external_office_id=external_office_id,
        passport_number=passport_number or None,
        notes=notes or None,
        guard_key=guard_key_for(transaction_type, direction),
    )


def _insert(entry: Transaction) -> Transaction | None:
    if entry.guard_key is None:
        db.session.add(entry)
        db.session.flush()
        return entry

    # the (contract_id, guard_key) unique constraint turns a duplicate into a no-op
    try:
        with db.session.begin_nested():
            db.session.add(entry)
    except IntegrityError:
        logger.info(
            "ledger: %s already booked for contract %s, skipped",
            entry.guard_key, entry.contract_id,
        )
        return None
    return entry


def append_entry(contract_id, transaction_type, direction, amount,
                 currency=Currency.SAR, related_party=RelatedParty.INTERNAL, *,
                 notes=None, external_office_id=None, passport_number=None) -> Transaction:
    """Insert a ledger entry. A second once-per-contract entry is a conflict."""
    entry = _build_entry(contract_id, transaction_type, direction, amount, currency,
                         related_party, notes, external_office_id, passport_number)
    inserted = _insert(entry)
    if inserted is None:
        raise UniquenessConflict(
            f"{entry.transaction_type} ({entry.direction}) already exists for this contract"
        )
    logger.info(
        "ledger: contract %s %s %s %s %s",
        contract_id, entry.transaction_type, entry.direction, entry.amount, entry.currency,
    )
    return inserted


def append_once(contract_id, transaction_type, direction, amount,
                currency=Currency.SAR, related_party=RelatedParty.INTERNAL, *,
                notes=None, external_office_id=None, passport_number=None) -> Transaction | None:
    """Insert a guarded entry unless it already exists; returns None when skipped."""
    entry = _build_entry(contract_id, transaction_type, direction, amount, currency,
                         related_party, notes, external_office_id, passport_number)
    if entry.guard_key is None:
        raise ValueError(f"{entry.transaction_type} is not a once-per-contract entry")
    inserted = _insert(entry)
    if inserted is not None:
        logger.info(
            "ledger: contract %s %s %s %s %s",
            contract_id, entry.transaction_type, entry.direction, entry.amount, entry.currency,
        )
    return inserted


def record_manual_entry(contract_id, transaction_type, direction, amount,
                        currency=Currency.SAR, notes=None) -> Transaction:
    try:
        manual_type = TransactionType(transaction_type)
    except ValueError as exc:
        raise ValidationFailed(str(exc)) from exc
    if manual_type not in MANUAL_TRANSACTION_TYPES:
        raise ValidationFailed(f"{manual_type.value} cannot be entered manually")
    return append_entry(contract_id, transaction_type, direction, amount, currency,
                        RelatedParty.INTERNAL, notes=notes)


def find_entry(contract_id, transaction_type, direction=None) -> Transaction | None:
    query = Transaction.query.filter_by(
        contract_id=contract_id, transaction_type=TransactionType(transaction_type).value,
    )
    if direction is not None:
        query = query.filter_by(direction=Direction(direction).value)
    return query.order_by(Transaction.id).first()


def entries_for_contract(contract_id) -> list[Transaction]:
    return (
        Transaction.query.filter_by(contract_id=contract_id)
        .order_by(Transaction.created_at, Transaction.id)
        .all()
    )


def amount_sar(entry, rates: RatesConfig) -> Decimal:
    amount = to_money(entry.amount)
    if entry.currency == Currency.USD.value:
        return quantize(amount * rates.usd_to_sar)
    return amount


def signed_amount_sar(entry, rates: RatesConfig) -> Decimal:
    value = amount_sar(entry, rates)
    return value if entry.direction == Direction.IN.value else -value


@dataclass(frozen=True)
class LedgerLine:
    entry: Transaction
    amount_sar: Decimal
    balance: Decimal


def _chronological(entries):
    seq = count()
    keyed = []
    for entry in entries:
        # unsaved entries sort last
        stamp = (entry.created_at is None, entry.created_at or datetime.min)
        ident = entry.id if entry.id is not None else float("inf")
        keyed.append((stamp, ident, next(seq), entry))
    keyed.sort(key=lambda k: k[:3])
    return [k[3] for k in keyed]


def running_balance(entries, rates: RatesConfig) -> list[LedgerLine]:
    """Prefix sums of signed SAR amounts, oldest first; ties fall back to insertion order."""
    lines = []
    balance = ZERO
    for entry in _chronological(entries):
        signed = signed_amount_sar(entry, rates)
        balance += signed
        lines.append(LedgerLine(entry=entry, amount_sar=amount_sar(entry, rates), balance=balance))
    return lines


@dataclass(frozen=True)
class ContractBalance:
    total_in: Decimal
    total_out: Decimal
    ledger_profit: Decimal
    approx_profit: Decimal
    has_entries: bool

    @property
    def effective_profit(self) -> Decimal:
        return self.ledger_profit if self.has_entries else self.approx_profit

    @property
    def divergence(self) -> Decimal:
        if not self.has_entries:
            return ZERO
        return self.ledger_profit - self.approx_profit

    def to_dict(self):
        return {
            "total_in": str(self.total_in),
            "total_out": str(self.total_out),
            "ledger_profit": str(self.ledger_profit),
            "approx_profit": str(self.approx_profit),
            "effective_profit": str(self.effective_profit),
            "divergence": str(self.divergence),
        }


def summarize(entries, rates: RatesConfig, approx_profit=None) -> ContractBalance:
    entries = list(entries)
    total_in = sum((amount_sar(e, rates) for e in entries if e.direction == Direction.IN.value), ZERO)
    total_out = sum((amount_sar(e, rates) for e in entries if e.direction == Direction.OUT.value), ZERO)
    return ContractBalance(
        total_in=total_in,
        total_out=total_out,
        ledger_profit=total_in - total_out,
        approx_profit=to_money(approx_profit),
        has_entries=bool(entries),
    )


def contract_balance(contract, rates: RatesConfig) -> ContractBalance:
    return summarize(entries_for_contract(contract.id), rates, contract.approx_profit)
