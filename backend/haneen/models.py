import secrets
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import event
from sqlalchemy.orm import object_session

from .extensions import db
from .constants import (
    CancellationStatus, FinancialStatus, MusanedFeeType, OrderStatus, TERMINAL_STATUSES,
)
from .errors import LedgerImmutable

Money = db.Numeric(12, 2)


def new_magic_token() -> str:
    return secrets.token_urlsafe(24)


class SerializeMixin:
    def to_dict(self):
        out = {}
        for column in self.__table__.columns:
            value = getattr(self, column.key)
            if isinstance(value, Decimal):
                value = str(value)
            elif isinstance(value, (date, datetime)):
                value = value.isoformat()
            out[column.key] = value
        return out


class ExternalOffice(SerializeMixin, db.Model):
    __tablename__ = "external_offices"

    id = db.Column(db.Integer, primary_key=True)
    office_name = db.Column(db.String(120), nullable=False)
    type = db.Column(db.String(10), default="office")  # office/person
    country = db.Column(db.String(32), nullable=False)
    code = db.Column(db.String(32))
    email = db.Column(db.String(120))
    phone = db.Column(db.String(32))
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class CV(SerializeMixin, db.Model):
    __tablename__ = "cvs"

    id = db.Column(db.Integer, primary_key=True)
    worker_name = db.Column(db.String(120), nullable=False)
    passport_number = db.Column(db.String(32), unique=True, nullable=False)
    date_of_birth = db.Column(db.Date)
    religion = db.Column(db.String(16))
    marital_status = db.Column(db.String(16))
    children_count = db.Column(db.Integer, default=0)
    new_or_experienced = db.Column(db.String(16), default="new")
    nationality = db.Column(db.String(32), nullable=False)
    profession = db.Column(db.String(32), nullable=False)
    salary = db.Column(Money, default=0)
    medical_exam_date = db.Column(db.Date)
    musaned_status = db.Column(db.String(16), default="not_uploaded")
    external_office_status = db.Column(db.String(16), default="not_available")
    internal_status = db.Column(db.String(16), default="accepted")
    external_office_id = db.Column(db.Integer, db.ForeignKey("external_offices.id"), nullable=False)
    broker_name = db.Column(db.String(120))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    external_office = db.relationship("ExternalOffice")


class Order(SerializeMixin, db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    client_name = db.Column(db.String(120), nullable=False)
    phone = db.Column(db.String(32))
    national_id = db.Column(db.String(32))
    visa_number = db.Column(db.String(32), unique=True)
    nationality = db.Column(db.String(32), nullable=False)
    profession = db.Column(db.String(32), nullable=False)
    passport_number = db.Column(db.String(32), index=True)
    worker_name = db.Column(db.String(120))
    external_office = db.Column(db.String(120))
    contract_number = db.Column(db.String(32), index=True)
    order_type = db.Column(db.String(16), default="by_specs")  # by_specs/named_worker
    contract_date = db.Column(db.Date)
    order_status = db.Column(db.String(32), default=OrderStatus.SELECTED.value, nullable=False)
    travel_date = db.Column(db.Date)
    arrival_date = db.Column(db.Date)
    return_date = db.Column(db.Date)
    client_city = db.Column(db.String(64))
    delivery_method = db.Column(db.String(32))
    notes = db.Column(db.Text)
    delay_reason = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_active(self):
        return OrderStatus(self.order_status) not in TERMINAL_STATUSES


class Contract(SerializeMixin, db.Model):
    __tablename__ = "contracts"

    id = db.Column(db.Integer, primary_key=True)
    contract_number = db.Column(db.String(32), unique=True, nullable=False)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"))
    client_name = db.Column(db.String(120))
    contract_date = db.Column(db.Date)

    # raw inputs
    client_payment = db.Column(Money, default=0)
    musaned_fee_type = db.Column(db.String(16), default=MusanedFeeType.PERCENT.value)
    actual_from_musaned = db.Column(Money)
    musaned_transfer_date = db.Column(db.Date)
    tax_base = db.Column(Money)
    external_commission_usd = db.Column(Money, default=0)
    ahmed_commission = db.Column(Money, default=0)
    wajdi_commission = db.Column(Money, default=0)
    pool_commission = db.Column(Money, default=0)
    sadaqa = db.Column(Money, default=0)
    other_expenses = db.Column(Money, default=0)

    # derived, see accounting.apply_contract_figures
    musaned_fee_value = db.Column(Money, default=0)
    expected_from_musaned = db.Column(Money, default=0)
    external_commission_sar = db.Column(Money, default=0)
    agency_fee = db.Column(Money, default=0)
    tax_15_percent = db.Column(Money, default=0)
    total_expenses = db.Column(Money, default=0)
    approx_profit = db.Column(Money, default=0)

    cancellation_status = db.Column(db.String(16), default=CancellationStatus.NONE.value, nullable=False)
    refund_amount = db.Column(Money)
    refund_date = db.Column(db.Date)
    cancellation_notes = db.Column(db.Text)
    financial_status = db.Column(db.String(32), default=FinancialStatus.UNDER_MUSANED_HOLD.value, nullable=False)
    guarantee_expiry = db.Column(db.Date)
    closed_date = db.Column(db.Date)
    magic_token = db.Column(db.String(64), unique=True, nullable=False, default=new_magic_token)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    order = db.relationship("Order")


class Transaction(SerializeMixin, db.Model):
    """Ledger entry. Insert-only: corrections are new offsetting entries."""

    __tablename__ = "transactions"
    __table_args__ = (
        db.UniqueConstraint("contract_id", "guard_key", name="uq_transactions_contract_guard"),
    )

    id = db.Column(db.Integer, primary_key=True)
    contract_id = db.Column(db.Integer, db.ForeignKey("contracts.id"), nullable=False, index=True)
    transaction_type = db.Column(db.String(40), nullable=False)
    direction = db.Column(db.String(3), nullable=False)
    amount = db.Column(Money, nullable=False)
    currency = db.Column(db.String(3), default="SAR", nullable=False)
    related_party = db.Column(db.String(20), default="internal", nullable=False)
    external_office_id = db.Column(db.Integer, db.ForeignKey("external_offices.id"), index=True)
    passport_number = db.Column(db.String(32))
    notes = db.Column(db.Text)
    # set only for entries that may exist once per contract
    guard_key = db.Column(db.String(64))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    contract = db.relationship("Contract")


class ExternalAccount(SerializeMixin, db.Model):
    __tablename__ = "external_accounts"

    id = db.Column(db.Integer, primary_key=True)
    external_office_id = db.Column(db.Integer, db.ForeignKey("external_offices.id"), nullable=False, index=True)
    payment_date = db.Column(db.Date, nullable=False)
    amount_usd = db.Column(Money, nullable=False)
    amount_sar = db.Column(Money, default=0)
    payment_type = db.Column(db.String(20), default="worker_payment")
    payment_method = db.Column(db.String(20), default="bank_transfer")
    description = db.Column(db.Text)
    receipt_url = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    external_office = db.relationship("ExternalOffice")


@event.listens_for(Transaction, "before_update")
def _reject_transaction_update(mapper, connection, target):
    session = object_session(target)
    if session is None or session.is_modified(target, include_collections=False):
        raise LedgerImmutable(f"ledger entry {target.id} cannot be modified; record an offsetting entry")


@event.listens_for(Transaction, "before_delete")
def _reject_transaction_delete(mapper, connection, target):
    raise LedgerImmutable(f"ledger entry {target.id} cannot be deleted; record an offsetting entry")
