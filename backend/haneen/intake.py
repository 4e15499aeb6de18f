"""Validated creation and editing of back-office records."""
import logging
from datetime import date

from .accounting import apply_contract_figures, parse_money, parse_money_or_none, usd_to_sar
from .availability import active_order_for, age_in_bounds
from .constants import (
    ExternalOfficeStatus, FinancialStatus, InternalStatus, MAX_WORKER_AGE, MIN_WORKER_AGE,
    MusanedFeeType, MusanedUpload, Nationality, OrderStatus, PaymentMethod, PaymentType,
    Profession,
)
from .errors import RecordNotFound, UniquenessConflict, ValidationFailed
from .extensions import db
from .models import CV, Contract, ExternalAccount, ExternalOffice, Order
from .rates import RatesConfig

logger = logging.getLogger(__name__)

CV_FIELDS = (
    "worker_name", "passport_number", "date_of_birth", "religion", "marital_status",
    "children_count", "new_or_experienced", "nationality", "profession", "salary",
    "medical_exam_date", "musaned_status", "external_office_status", "internal_status",
    "external_office_id", "broker_name",
)
ORDER_FIELDS = (
    "client_name", "phone", "national_id", "visa_number", "nationality", "profession",
    "passport_number", "worker_name", "external_office", "contract_number", "order_type",
    "contract_date", "travel_date", "arrival_date", "client_city", "delivery_method",
    "notes", "delay_reason",
)
CONTRACT_MONEY_FIELDS = (
    "client_payment", "external_commission_usd", "ahmed_commission", "wajdi_commission",
    "pool_commission", "sadaqa", "other_expenses",
)
CONTRACT_OPTIONAL_MONEY_FIELDS = ("tax_base", "actual_from_musaned")
# financial states an operator may set by hand; the rest are owned by workflow
MANUAL_FINANCIAL_STATUSES = (FinancialStatus.FUNDS_RECEIVED, FinancialStatus.SETTLED,
                             FinancialStatus.UNDER_MUSANED_HOLD)
DATE_FIELDS = {"date_of_birth", "medical_exam_date", "contract_date", "travel_date",
               "arrival_date", "musaned_transfer_date", "payment_date"}


def parse_date(value, field_name="date") -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as exc:
        raise ValidationFailed(f"{field_name} must be a date (YYYY-MM-DD)") from exc


def _choice(value, enum_cls, field_name):
    try:
        return enum_cls(value).value
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationFailed(f"{field_name} must be one of {allowed}") from exc


def _blank_to_none(value):
    if isinstance(value, str):
        value = value.strip()
    return value if value not in ("", None) else None


def _clean(data, allowed):
    out = {}
    for name in allowed:
        if name not in data:
            continue
        value = _blank_to_none(data[name])
        if name in DATE_FIELDS:
            value = parse_date(value, name)
        out[name] = value
    return out


def _require(values, *names):
    for name in names:
        if values.get(name) in (None, ""):
            raise ValidationFailed(f"{name} is required")


def _as_id(value, field_name):
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationFailed(f"{field_name} must be a record id") from exc


def get_or_404(model, ident):
    record = db.session.get(model, ident)
    if record is None:
        raise RecordNotFound(f"{model.__tablename__} {ident} not found")
    return record


# --- external offices ---

def create_external_office(data) -> ExternalOffice:
    values = _clean(data, ("office_name", "type", "country", "code", "email", "phone", "notes"))
    _require(values, "office_name", "country")
    values["country"] = _choice(values["country"], Nationality, "country")
    if values.get("type") not in (None, "office", "person"):
        raise ValidationFailed("type must be office or person")

    office = ExternalOffice(**values)
    db.session.add(office)
    db.session.flush()
    logger.info("external office %s created (%s)", office.id, office.office_name)
    return office


# --- CVs ---

def _validate_cv(values, today: date):
    if "nationality" in values:
        values["nationality"] = _choice(values["nationality"], Nationality, "nationality")
    if "profession" in values:
        values["profession"] = _choice(values["profession"], Profession, "profession")
    if values.get("musaned_status") is not None:
        values["musaned_status"] = _choice(values["musaned_status"], MusanedUpload, "musaned_status")
    if values.get("external_office_status") is not None:
        values["external_office_status"] = _choice(
            values["external_office_status"], ExternalOfficeStatus, "external_office_status")
    if values.get("internal_status") is not None:
        values["internal_status"] = _choice(values["internal_status"], InternalStatus, "internal_status")
    if "salary" in values:
        values["salary"] = parse_money(values["salary"], "salary")
    if values.get("children_count") is not None:
        try:
            values["children_count"] = int(values["children_count"])
        except (TypeError, ValueError) as exc:
            raise ValidationFailed("children_count must be a whole number") from exc

    dob = values.get("date_of_birth")
    if dob is not None and not age_in_bounds(dob, today):
        raise ValidationFailed(f"worker age must be between {MIN_WORKER_AGE} and {MAX_WORKER_AGE}")

    if "external_office_id" in values:
        if values["external_office_id"] is None:
            raise ValidationFailed("external_office_id is required")
        values["external_office_id"] = _as_id(values["external_office_id"], "external_office_id")
        get_or_404(ExternalOffice, values["external_office_id"])


def _passport_taken(passport_number, exclude_id=None) -> bool:
    query = CV.query.filter(CV.passport_number == passport_number)
    if exclude_id is not None:
        query = query.filter(CV.id != exclude_id)
    return db.session.query(query.exists()).scalar()


def create_cv(data, today: date | None = None) -> CV:
    today = today or date.today()
    values = _clean(data, CV_FIELDS)
    _require(values, "worker_name", "passport_number", "nationality", "profession", "external_office_id")
    _validate_cv(values, today)
    if _passport_taken(values["passport_number"]):
        raise UniquenessConflict("passport number already exists")

    cv = CV(**values)
    db.session.add(cv)
    db.session.flush()
    logger.info("cv %s created for passport %s", cv.id, cv.passport_number)
    return cv


def update_cv(cv: CV, data, today: date | None = None) -> CV:
    today = today or date.today()
    values = _clean(data, CV_FIELDS)
    for name in ("worker_name", "passport_number", "nationality", "profession"):
        if name in values and values[name] is None:
            raise ValidationFailed(f"{name} is required")
    _validate_cv(values, today)
    if values.get("passport_number") and _passport_taken(values["passport_number"], exclude_id=cv.id):
        raise UniquenessConflict("passport number already exists")

    for name, value in values.items():
        setattr(cv, name, value)
    db.session.flush()
    return cv


# --- orders and contracts ---

def _visa_taken(visa_number, exclude_id=None) -> bool:
    query = Order.query.filter(Order.visa_number == visa_number)
    if exclude_id is not None:
        query = query.filter(Order.id != exclude_id)
    return db.session.query(query.exists()).scalar()


def _check_worker(values, order_id=None):
    passport = values.get("passport_number")
    if not passport:
        return
    cv = CV.query.filter_by(passport_number=passport).first()
    if cv is None:
        raise ValidationFailed("no worker CV with this passport number")
    active = active_order_for(passport)
    if active is not None and active.id != order_id:
        raise UniquenessConflict("this worker is already linked to an active order")
    if not values.get("worker_name"):
        values["worker_name"] = cv.worker_name
    if not values.get("external_office") and cv.external_office is not None:
        values["external_office"] = cv.external_office.office_name


def ensure_contract(order: Order) -> Contract | None:
    """Create or link the contract record named by ``order.contract_number``."""
    if not order.contract_number:
        return None
    contract = Contract.query.filter_by(contract_number=order.contract_number).first()
    if contract is None:
        contract = Contract(
            contract_number=order.contract_number,
            order_id=order.id,
            client_name=order.client_name,
            contract_date=order.contract_date,
        )
        db.session.add(contract)
        db.session.flush()
        logger.info("contract %s created for order %s", contract.contract_number, order.id)
        return contract
    if contract.order_id not in (None, order.id):
        raise UniquenessConflict("contract number belongs to another order")
    contract.order_id = order.id
    return contract


def create_order(data) -> Order:
    values = _clean(data, ORDER_FIELDS)
    _require(values, "client_name", "nationality", "profession")
    values["nationality"] = _choice(values["nationality"], Nationality, "nationality")
    values["profession"] = _choice(values["profession"], Profession, "profession")
    if values.get("order_type") not in (None, "by_specs", "named_worker"):
        raise ValidationFailed("order_type must be by_specs or named_worker")
    if values.get("visa_number") and _visa_taken(values["visa_number"]):
        raise UniquenessConflict("visa number already used")
    _check_worker(values)
    if values.get("contract_number"):
        existing = Contract.query.filter_by(contract_number=values["contract_number"]).first()
        if existing is not None and existing.order_id is not None:
            raise UniquenessConflict("contract number belongs to another order")

    order = Order(order_status=OrderStatus.SELECTED.value, **values)
    db.session.add(order)
    db.session.flush()
    ensure_contract(order)
    logger.info("order %s created for %s", order.id, order.client_name)
    return order


def update_order_details(order: Order, data) -> Order:
    """Edit order fields. Status changes go through ``workflow.transition_order``."""
    if "order_status" in data and data["order_status"] != order.order_status:
        raise ValidationFailed("order_status can only be changed through a status transition")
    values = _clean(data, ORDER_FIELDS)
    for name in ("client_name", "nationality", "profession"):
        if name in values and values[name] is None:
            raise ValidationFailed(f"{name} is required")
    if "nationality" in values:
        values["nationality"] = _choice(values["nationality"], Nationality, "nationality")
    if "profession" in values:
        values["profession"] = _choice(values["profession"], Profession, "profession")
    if values.get("visa_number") and _visa_taken(values["visa_number"], exclude_id=order.id):
        raise UniquenessConflict("visa number already used")
    if values.get("passport_number") and values["passport_number"] != order.passport_number:
        _check_worker(values, order_id=order.id)

    for name, value in values.items():
        setattr(order, name, value)
    db.session.flush()
    ensure_contract(order)
    return order


def save_contract(contract: Contract, data, rates: RatesConfig) -> Contract:
    """Store the raw contract inputs and recompute every derived figure."""
    for name in CONTRACT_MONEY_FIELDS:
        if name in data:
            amount = parse_money(data[name], name)
            if amount < 0:
                raise ValidationFailed(f"{name} cannot be negative")
            setattr(contract, name, amount)
    for name in CONTRACT_OPTIONAL_MONEY_FIELDS:
        if name in data:
            setattr(contract, name, parse_money_or_none(data[name], name))
    if "musaned_fee_type" in data:
        contract.musaned_fee_type = _choice(data["musaned_fee_type"], MusanedFeeType, "musaned_fee_type")
    if "musaned_transfer_date" in data:
        contract.musaned_transfer_date = parse_date(data["musaned_transfer_date"], "musaned_transfer_date")
    if "cancellation_notes" in data:
        contract.cancellation_notes = _blank_to_none(data["cancellation_notes"])
    if "financial_status" in data and data["financial_status"] != contract.financial_status:
        status = FinancialStatus(_choice(data["financial_status"], FinancialStatus, "financial_status"))
        if status not in MANUAL_FINANCIAL_STATUSES:
            raise ValidationFailed(f"{status.value} is set by order status changes")
        contract.financial_status = status.value

    figures = apply_contract_figures(contract, rates)
    db.session.flush()
    logger.info("contract %s saved, approx profit %s", contract.contract_number, figures.approx_profit)
    return contract


# --- external office payments ---

def record_external_payment(data, rates: RatesConfig) -> ExternalAccount:
    office_id = _blank_to_none(data.get("external_office_id"))
    if office_id is None:
        raise ValidationFailed("external_office_id is required")
    office = get_or_404(ExternalOffice, _as_id(office_id, "external_office_id"))

    amount = parse_money(data.get("amount_usd"), "amount_usd")
    if amount <= 0:
        raise ValidationFailed("amount_usd must be greater than zero")
    payment_date = parse_date(_blank_to_none(data.get("payment_date")), "payment_date")
    if payment_date is None:
        raise ValidationFailed("payment_date is required")

    payment = ExternalAccount(
        external_office_id=office.id,
        payment_date=payment_date,
        amount_usd=amount,
        amount_sar=usd_to_sar(amount, rates),
        payment_type=_choice(data.get("payment_type") or PaymentType.WORKER_PAYMENT.value,
                             PaymentType, "payment_type"),
        payment_method=_choice(data.get("payment_method") or PaymentMethod.BANK_TRANSFER.value,
                               PaymentMethod, "payment_method"),
        description=_blank_to_none(data.get("description")),
        receipt_url=_blank_to_none(data.get("receipt_url")),
    )
    db.session.add(payment)
    db.session.flush()
    logger.info("payment of %s USD recorded for office %s", amount, office.office_name)
    return payment
