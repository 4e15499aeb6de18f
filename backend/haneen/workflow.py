"""Order status transitions and the bookkeeping each one triggers."""
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal

from .accounting import parse_money_or_none, to_money
from .constants import (
    CancellationStatus, Currency, Direction, FinancialStatus, GUARANTEE_DAYS,
    GUARANTEE_WINDOW_EVENTS, HAPPY_PATH, OrderStatus, POST_GUARANTEE_EVENTS,
    RelatedParty, TransactionType,
)
from .errors import ValidationFailed
from .extensions import db
from .ledger import FORECAST, PAYABLE, REVERSAL, append_entry, append_once, find_entry
from .models import CV, Contract, Order
from .rates import RatesConfig

logger = logging.getLogger(__name__)

# order fields an operator may change in the same save as a status change
TRANSITION_FIELDS = ("travel_date", "arrival_date", "contract_date", "delay_reason", "notes")


def _forward_from(status):
    index = HAPPY_PATH.index(status)
    return frozenset(HAPPY_PATH[index:])


TRANSITIONS = {
    OrderStatus.SELECTED: _forward_from(OrderStatus.SELECTED) | {OrderStatus.CANCELLED},
    OrderStatus.CONTRACTED: _forward_from(OrderStatus.CONTRACTED) | {OrderStatus.CANCELLED},
    OrderStatus.MEDICAL_EXAM: _forward_from(OrderStatus.MEDICAL_EXAM) | {OrderStatus.CANCELLED},
    OrderStatus.MOL_APPROVAL: _forward_from(OrderStatus.MOL_APPROVAL) | {OrderStatus.CANCELLED},
    OrderStatus.NEEDS_AGENCY: _forward_from(OrderStatus.NEEDS_AGENCY) | {OrderStatus.CANCELLED},
    OrderStatus.AGENCY_DONE: _forward_from(OrderStatus.AGENCY_DONE) | {OrderStatus.CANCELLED},
    OrderStatus.EMBASSY_SUBMITTED: _forward_from(OrderStatus.EMBASSY_SUBMITTED) | {OrderStatus.CANCELLED},
    OrderStatus.VISA_ISSUED: _forward_from(OrderStatus.VISA_ISSUED) | {OrderStatus.CANCELLED},
    OrderStatus.TICKET_BOOKED: _forward_from(OrderStatus.TICKET_BOOKED) | {OrderStatus.CANCELLED},
    OrderStatus.ARRIVED: frozenset({OrderStatus.ARRIVED}) | GUARANTEE_WINDOW_EVENTS | POST_GUARANTEE_EVENTS,
    OrderStatus.CANCELLED: frozenset({OrderStatus.CANCELLED}),
    OrderStatus.RUNAWAY_WITHIN_90: frozenset({OrderStatus.RUNAWAY_WITHIN_90}),
    OrderStatus.RETURN_WITHIN_90: frozenset({OrderStatus.RETURN_WITHIN_90}),
    OrderStatus.RUNAWAY_AFTER_90: frozenset({OrderStatus.RUNAWAY_AFTER_90}),
    OrderStatus.RETURN_AFTER_90: frozenset({OrderStatus.RETURN_AFTER_90}),
}


@dataclass(frozen=True)
class CancellationDecision:
    timing: str
    refund_amount: Decimal | None = None
    notes: str | None = None

    def __post_init__(self):
        allowed = (CancellationStatus.WITHIN_5_DAYS.value, CancellationStatus.AFTER_5_DAYS.value)
        if self.timing not in allowed:
            raise ValidationFailed(f"cancellation timing must be one of {', '.join(allowed)}")


@dataclass(frozen=True)
class GuaranteeEventDecision:
    refund_amount: Decimal | None = None


@dataclass
class TransitionResult:
    order: Order
    previous_status: str
    contract: Contract | None = None
    entries: list = field(default_factory=list)
    skipped: list = field(default_factory=list)
    already_processed: bool = False
    messages: list = field(default_factory=list)

    def to_dict(self):
        return {
            "order_id": self.order.id,
            "previous_status": self.previous_status,
            "order_status": self.order.order_status,
            "contract_id": self.contract.id if self.contract else None,
            "entries": [e.to_dict() for e in self.entries],
            "skipped": self.skipped,
            "already_processed": self.already_processed,
            "messages": self.messages,
        }


def days_since(start: date, today: date) -> int:
    return (today - start).days


def within_guarantee(arrival_date: date | None, today: date) -> bool:
    return arrival_date is not None and days_since(arrival_date, today) <= GUARANTEE_DAYS


def resolve_contract(contract_number) -> Contract | None:
    if not contract_number:
        return None
    return Contract.query.filter_by(contract_number=contract_number).first()


def office_for_passport(passport_number) -> int | None:
    if not passport_number:
        return None
    cv = CV.query.filter_by(passport_number=passport_number).first()
    return cv.external_office_id if cv else None


def check_transition(current: OrderStatus, target: OrderStatus, values: dict, today: date):
    """Reject an invalid move before anything is written."""
    if target not in TRANSITIONS[current]:
        raise ValidationFailed(f"cannot move order from {current.value} to {target.value}")

    # a skip straight to arrived still needs the dates set at ticket_booked
    if target in (OrderStatus.TICKET_BOOKED, OrderStatus.ARRIVED):
        for name in ("travel_date", "arrival_date"):
            if not values.get(name):
                raise ValidationFailed(f"{name} is required for {target.value}")

    if current is target:
        return

    if target in GUARANTEE_WINDOW_EVENTS:
        arrival = values.get("arrival_date")
        if arrival is None:
            raise ValidationFailed("arrival_date is required for a guarantee event")
        if values.get("return_date") is not None:
            raise ValidationFailed("order already has a return date")
        if not within_guarantee(arrival, today):
            raise ValidationFailed(f"guarantee period of {GUARANTEE_DAYS} days has ended")

    if target in POST_GUARANTEE_EVENTS:
        arrival = values.get("arrival_date")
        if arrival is None:
            raise ValidationFailed("arrival_date is required for a post-guarantee event")
        if within_guarantee(arrival, today):
            raise ValidationFailed(f"order is still within the {GUARANTEE_DAYS}-day guarantee")


def _worker_suffix(order):
    return f" - {order.worker_name}" if order.worker_name else ""


def _book_once(result, contract, order, transaction_type, direction, amount, notes):
    entry = append_once(
        contract.id, transaction_type, direction, amount, Currency.USD,
        RelatedParty.EXTERNAL_OFFICE,
        notes=notes,
        external_office_id=office_for_passport(order.passport_number),
        passport_number=order.passport_number,
    )
    if entry is None:
        result.skipped.append(f"{TransactionType(transaction_type).value}:{Direction(direction).value}")
    else:
        result.entries.append(entry)
    return entry


def _refund_client(result, contract, order, amount, notes):
    if amount is None or to_money(amount) <= 0:
        return None
    entry = append_entry(
        contract.id, TransactionType.CLIENT_REFUND, Direction.OUT, amount, Currency.SAR,
        RelatedParty.CLIENT, notes=notes + _worker_suffix(order),
    )
    result.entries.append(entry)
    return entry


def _on_contracted(result, order, contract, rates, today, cancellation, guarantee_event):
    commission = to_money(contract.external_commission_usd)
    if commission <= 0:
        return
    if _book_once(result, contract, order, FORECAST, Direction.OUT, commission,
                  "توقع عمولة مكتب خارجي - إصدار العقد" + _worker_suffix(order)):
        result.messages.append("commission forecast booked")


def _on_arrived(result, order, contract, rates, today, cancellation, guarantee_event):
    commission = to_money(contract.external_commission_usd)
    if commission > 0:
        if _book_once(result, contract, order, PAYABLE, Direction.OUT, commission,
                      "عمولة مكتب خارجي - وصول العاملة" + _worker_suffix(order)):
            result.messages.append("external commission payable booked")

    # a replay keeps whatever financial status the contract has moved on to
    if result.previous_status != OrderStatus.ARRIVED.value:
        contract.financial_status = FinancialStatus.UNDER_GUARANTEE.value
    if order.arrival_date:
        contract.guarantee_expiry = order.arrival_date + timedelta(days=GUARANTEE_DAYS)


def _reverse_forecast(result, order, contract, notes):
    forecast = find_entry(contract.id, FORECAST, Direction.OUT)
    if forecast is None:
        return
    _book_once(result, contract, order, FORECAST, Direction.IN, forecast.amount,
               notes + _worker_suffix(order))


def _on_cancelled(result, order, contract, rates, today, cancellation, guarantee_event):
    if contract.cancellation_status != CancellationStatus.NONE.value:
        result.already_processed = True
        result.messages.append("cancellation was already recorded for this contract")
        return

    contract.cancellation_status = cancellation.timing
    contract.financial_status = FinancialStatus.CANCELLED_BEFORE_ARRIVAL.value
    if cancellation.notes:
        contract.cancellation_notes = cancellation.notes

    if cancellation.timing == CancellationStatus.WITHIN_5_DAYS.value:
        _reverse_forecast(result, order, contract, "عكس توقع العمولة - إلغاء العقد خلال 5 أيام")
    else:
        refund = _refund_client(result, contract, order, cancellation.refund_amount,
                                "استرداد للكفيل - إلغاء العقد بعد 5 أيام")
        if refund is not None:
            contract.refund_amount = refund.amount
            contract.refund_date = today
        _reverse_forecast(result, order, contract, "عكس توقع العمولة - إلغاء العقد بعد 5 أيام")
    result.messages.append(f"contract cancelled ({cancellation.timing})")


def guarantee_already_processed(contract) -> bool:
    if contract.financial_status == FinancialStatus.REFUNDED_DURING_GUARANTEE.value:
        return True
    return find_entry(contract.id, REVERSAL) is not None


def _on_guarantee_event(result, order, contract, rates, today, cancellation, guarantee_event):
    commission = to_money(contract.external_commission_usd)
    if commission > 0:
        _book_once(result, contract, order, REVERSAL, Direction.IN, commission,
                   "استرداد عمولة - حدث ضمان" + _worker_suffix(order))
    refund_amount = guarantee_event.refund_amount if guarantee_event else None
    refund = _refund_client(result, contract, order, refund_amount, "استرداد للكفيل - حدث ضمان")
    if refund is not None:
        contract.refund_amount = refund.amount
        contract.refund_date = today
    contract.financial_status = FinancialStatus.REFUNDED_DURING_GUARANTEE.value
    result.messages.append("guarantee event recorded")


SIDE_EFFECTS = {
    OrderStatus.SELECTED: None,
    OrderStatus.CONTRACTED: _on_contracted,
    OrderStatus.MEDICAL_EXAM: None,
    OrderStatus.MOL_APPROVAL: None,
    OrderStatus.NEEDS_AGENCY: None,
    OrderStatus.AGENCY_DONE: None,
    OrderStatus.EMBASSY_SUBMITTED: None,
    OrderStatus.VISA_ISSUED: None,
    OrderStatus.TICKET_BOOKED: None,
    OrderStatus.ARRIVED: _on_arrived,
    OrderStatus.CANCELLED: _on_cancelled,
    OrderStatus.RUNAWAY_WITHIN_90: _on_guarantee_event,
    OrderStatus.RETURN_WITHIN_90: _on_guarantee_event,
    OrderStatus.RUNAWAY_AFTER_90: None,
    OrderStatus.RETURN_AFTER_90: None,
}


def transition_order(order: Order, target, rates: RatesConfig, *, changes=None,
                     cancellation: CancellationDecision | None = None,
                     guarantee_event: GuaranteeEventDecision | None = None,
                     today: date | None = None) -> TransitionResult:
    """
    Move ``order`` to ``target`` and book the financial consequences.

    Validation happens before any write. Changes are flushed, not
    committed; the caller owns the unit of work.
    """
    today = today or date.today()
    try:
        target = OrderStatus(target)
        current = OrderStatus(order.order_status)
    except ValueError as exc:
        raise ValidationFailed(str(exc)) from exc

    changes = dict(changes or {})
    unknown = set(changes) - set(TRANSITION_FIELDS)
    if unknown:
        raise ValidationFailed(f"fields cannot be changed with a status update: {', '.join(sorted(unknown))}")

    values = {name: getattr(order, name) for name in TRANSITION_FIELDS + ("return_date",)}
    values.update(changes)
    check_transition(current, target, values, today)

    contract = resolve_contract(order.contract_number)
    result = TransitionResult(order=order, previous_status=current.value, contract=contract)

    if contract is not None and target is OrderStatus.CANCELLED and cancellation is None:
        if contract.cancellation_status == CancellationStatus.NONE.value:
            raise ValidationFailed("cancellation timing decision is required")

    if target in GUARANTEE_WINDOW_EVENTS and contract is not None and guarantee_already_processed(contract):
        result.already_processed = True
        result.messages.append("guarantee refund was already recorded for this contract")
        logger.info("order %s: guarantee event replay ignored", order.id)
        return result

    for name, value in changes.items():
        setattr(order, name, value)
    order.order_status = target.value
    if target in GUARANTEE_WINDOW_EVENTS and current is not target:
        order.return_date = today
    db.session.flush()

    logger.info("order %s: %s -> %s", order.id, current.value, target.value)

    handler = SIDE_EFFECTS[target]
    if handler is None:
        return result
    if contract is None:
        logger.info("order %s: no contract for %r, bookkeeping skipped", order.id, order.contract_number)
        return result

    handler(result, order, contract, rates, today, cancellation, guarantee_event)
    db.session.flush()
    return result


def return_during_guarantee(order: Order, rates: RatesConfig,
                            decision: GuaranteeEventDecision | None = None,
                            today: date | None = None) -> TransitionResult:
    """Record a worker returned by the client inside the guarantee window."""
    if OrderStatus(order.order_status) is not OrderStatus.ARRIVED:
        raise ValidationFailed("only an arrived order can be returned during the guarantee")
    return transition_order(order, OrderStatus.RETURN_WITHIN_90, rates,
                            guarantee_event=decision, today=today)


def parse_cancellation(payload) -> CancellationDecision | None:
    if not payload:
        return None
    return CancellationDecision(
        timing=payload.get("timing"),
        refund_amount=parse_money_or_none(payload.get("refund_amount"), "refund_amount"),
        notes=payload.get("notes"),
    )


def parse_guarantee_event(payload) -> GuaranteeEventDecision | None:
    if payload is None:
        return None
    refund = parse_money_or_none(payload.get("refund_amount"), "refund_amount")
    return GuaranteeEventDecision(refund_amount=refund)
