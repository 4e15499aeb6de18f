from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from .accounting import ZERO, quantize, sar_to_usd, to_money
from .constants import Currency, PaymentType, TransactionType
from .models import ExternalAccount, ExternalOffice, Transaction
from .rates import RatesConfig

PAYABLE = TransactionType.EXTERNAL_COMMISSION_PAYABLE.value
REVERSAL = TransactionType.EXTERNAL_COMMISSION_REVERSAL.value

PAYMENT_TYPE_LABELS = {
    PaymentType.WORKER_PAYMENT.value: "دفع عاملة",
    PaymentType.ADVANCE.value: "دفعة مقدمة",
    PaymentType.SETTLEMENT.value: "تسوية",
}


def commission_usd(entry, rates: RatesConfig) -> Decimal:
    if entry.currency == Currency.USD.value:
        return to_money(entry.amount)
    return sar_to_usd(entry.amount, rates)


@dataclass(frozen=True)
class OfficeBalance:
    office_id: int
    office_name: str
    country: str
    gross_owed_usd: Decimal
    total_reversal_usd: Decimal
    total_paid_usd: Decimal
    usd_to_sar: Decimal

    @property
    def total_owed_usd(self) -> Decimal:
        return self.gross_owed_usd - self.total_reversal_usd

    @property
    def balance_usd(self) -> Decimal:
        # positive: we owe the office
        return self.total_owed_usd - self.total_paid_usd

    @property
    def balance_sar(self) -> Decimal:
        return quantize(self.balance_usd * self.usd_to_sar)

    @property
    def classification(self) -> str:
        if self.balance_usd > 0:
            return "we_owe"
        if self.balance_usd < 0:
            return "owes_us"
        return "settled"

    def to_dict(self):
        return {
            "office_id": self.office_id,
            "office_name": self.office_name,
            "country": self.country,
            "gross_owed_usd": str(self.gross_owed_usd),
            "total_reversal_usd": str(self.total_reversal_usd),
            "total_owed_usd": str(self.total_owed_usd),
            "total_paid_usd": str(self.total_paid_usd),
            "balance_usd": str(self.balance_usd),
            "balance_sar": str(self.balance_sar),
            "classification": self.classification,
        }


def compute_office_balance(office, transactions, payments, rates: RatesConfig) -> OfficeBalance:
    gross = ZERO
    reversals = ZERO
    for entry in transactions:
        if entry.transaction_type == PAYABLE:
            gross += commission_usd(entry, rates)
        elif entry.transaction_type == REVERSAL:
            reversals += commission_usd(entry, rates)
    paid = sum((to_money(p.amount_usd) for p in payments), ZERO)
    return OfficeBalance(
        office_id=office.id,
        office_name=office.office_name,
        country=office.country,
        gross_owed_usd=gross,
        total_reversal_usd=reversals,
        total_paid_usd=paid,
        usd_to_sar=rates.usd_to_sar,
    )


def _commission_entries(office_id):
    return (
        Transaction.query
        .filter(
            Transaction.external_office_id == office_id,
            Transaction.transaction_type.in_([PAYABLE, REVERSAL]),
        )
        .order_by(Transaction.created_at, Transaction.id)
        .all()
    )


def _payments(office_id):
    return (
        ExternalAccount.query.filter_by(external_office_id=office_id)
        .order_by(ExternalAccount.payment_date, ExternalAccount.id)
        .all()
    )


def office_balance(office: ExternalOffice, rates: RatesConfig) -> OfficeBalance:
    return compute_office_balance(office, _commission_entries(office.id), _payments(office.id), rates)


def all_office_balances(rates: RatesConfig) -> list[OfficeBalance]:
    offices = ExternalOffice.query.order_by(ExternalOffice.office_name).all()
    balances = [office_balance(office, rates) for office in offices]
    balances.sort(key=lambda b: b.balance_usd, reverse=True)
    return balances


def balances_summary(balances) -> dict:
    return {
        "total_owed_usd": str(sum((b.total_owed_usd for b in balances), ZERO)),
        "total_reversal_usd": str(sum((b.total_reversal_usd for b in balances), ZERO)),
        "total_balance_usd": str(sum((b.balance_usd for b in balances), ZERO)),
        "offices_we_owe": sum(1 for b in balances if b.classification == "we_owe"),
        "offices_owing_us": sum(1 for b in balances if b.classification == "owes_us"),
    }


@dataclass(frozen=True)
class StatementLine:
    date: date
    kind: str  # payable / reversal / payment
    description: str
    debit_usd: Decimal
    credit_usd: Decimal
    balance_usd: Decimal
    contract_number: str | None = None

    def to_dict(self):
        return {
            "date": self.date.isoformat(),
            "kind": self.kind,
            "description": self.description,
            "contract_number": self.contract_number,
            "debit_usd": str(self.debit_usd),
            "credit_usd": str(self.credit_usd),
            "balance_usd": str(self.balance_usd),
        }


def _as_date(value) -> date:
    return value.date() if isinstance(value, datetime) else value


def build_statement(transactions, payments, rates: RatesConfig) -> list[StatementLine]:
    """
    Merge commission entries and payments into one dated running account.

    Sorting is stable on the date alone, so on a shared date ledger
    entries come before payments and each keeps its own order.
    """
    raw = []
    for entry in transactions:
        if entry.transaction_type not in (PAYABLE, REVERSAL):
            continue
        amount = commission_usd(entry, rates)
        contract = entry.contract
        contract_number = contract.contract_number if contract else None
        if entry.transaction_type == REVERSAL:
            raw.append((_as_date(entry.created_at), "reversal",
                        f"استرداد ضمان - عقد {contract_number or ''}", ZERO, amount, contract_number))
        else:
            client = contract.client_name if contract else ""
            raw.append((_as_date(entry.created_at), "payable",
                        f"عمولة عقد - {client or ''}", amount, ZERO, contract_number))

    for payment in payments:
        label = PAYMENT_TYPE_LABELS.get(payment.payment_type, payment.payment_type)
        description = f"دفعة - {label}"
        if payment.description:
            description += f" - {payment.description}"
        raw.append((payment.payment_date, "payment", description, ZERO, to_money(payment.amount_usd), None))

    raw.sort(key=lambda row: row[0])

    lines = []
    running = ZERO
    for day, kind, description, debit, credit, contract_number in raw:
        running += debit - credit
        lines.append(StatementLine(
            date=day, kind=kind, description=description, debit_usd=debit,
            credit_usd=credit, balance_usd=running, contract_number=contract_number,
        ))
    return lines


def office_statement(office: ExternalOffice, rates: RatesConfig) -> list[StatementLine]:
    return build_statement(_commission_entries(office.id), _payments(office.id), rates)