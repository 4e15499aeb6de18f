"""
Client-facing order tracking, looked up by a contract's magic token.
"""
from dataclasses import dataclass, asdict
from datetime import date
from decimal import Decimal, ROUND_HALF_UP

from .constants import (
    GUARANTEE_DAYS, GUARANTEE_WINDOW_EVENTS, OrderStatus, POST_GUARANTEE_EVENTS,
    TRACKING_DELAY_MESSAGE_DAYS,
)
from .errors import RecordNotFound
from .models import Contract, Order

TRACKING_STEPS = (
    OrderStatus.SELECTED,
    OrderStatus.CONTRACTED,
    OrderStatus.MEDICAL_EXAM,
    OrderStatus.MOL_APPROVAL,
    OrderStatus.NEEDS_AGENCY,
    OrderStatus.EMBASSY_SUBMITTED,
    OrderStatus.VISA_ISSUED,
    OrderStatus.TICKET_BOOKED,
    OrderStatus.ARRIVED,
)
LAST_STEP = len(TRACKING_STEPS) - 1
AFTER_ARRIVAL = GUARANTEE_WINDOW_EVENTS | POST_GUARANTEE_EVENTS
IN_PROCESSING = frozenset({
    OrderStatus.MEDICAL_EXAM, OrderStatus.MOL_APPROVAL,
    OrderStatus.NEEDS_AGENCY, OrderStatus.AGENCY_DONE,
})


def step_index(status) -> int:
    status = OrderStatus(status)
    if status in TRACKING_STEPS:
        return TRACKING_STEPS.index(status)
    if status in AFTER_ARRIVAL:
        return LAST_STEP
    # agency_done has no step of its own; cancelled never shows progress
    return 0


def progress_percent(status) -> int:
    if OrderStatus(status) is OrderStatus.CANCELLED:
        return 0
    ratio = Decimal(step_index(status) * 100) / Decimal(LAST_STEP)
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def guarantee_days_remaining(arrival_date: date | None, today: date) -> int | None:
    if arrival_date is None:
        return None
    return max(0, GUARANTEE_DAYS - (today - arrival_date).days)


def status_message(status, days_since_contract: int, delay_reason: str | None,
                   guarantee_remaining: int | None) -> str:
    status = OrderStatus(status)

    if status is OrderStatus.CANCELLED:
        return "تم إلغاء هذا الطلب. يرجى التواصل مع المكتب لمعرفة التفاصيل."

    if status is OrderStatus.ARRIVED:
        if guarantee_remaining:
            return f"تم الوصول بنجاح! متبقي {guarantee_remaining} يوم من فترة الضمان."
        return "تم الوصول وانتهت فترة الضمان. نتمنى لكم التوفيق."

    if status in AFTER_ARRIVAL:
        return "تم إغلاق الطلب بعد الوصول. يرجى التواصل مع المكتب لمعرفة التفاصيل."

    if status is OrderStatus.TICKET_BOOKED:
        return "تم حجز التذكرة! العاملة في طريقها إليكم قريباً."

    if days_since_contract > TRACKING_DELAY_MESSAGE_DAYS:
        if delay_reason:
            return f"طلبكم يشهد تأخيراً نأسف لذلك. السبب: {delay_reason}"
        return "مضى أكثر من 45 يوماً على تقديم الطلب. نعمل بجد لإتمام إجراءاتكم في أقرب وقت."

    if status is OrderStatus.VISA_ISSUED:
        return "تم إصدار الفيزا بنجاح! نحن الآن بمرحلة حجز التذكرة."

    if status in IN_PROCESSING:
        return "الطلب قيد المعالجة. الإجراءات تسير بشكل طبيعي."

    return "طلبكم قيد التنفيذ. سنُحدثكم عند كل مستجد."


@dataclass(frozen=True)
class TrackingView:
    contract_number: str
    client_name: str | None
    nationality: str | None
    order_status: str
    contract_date: date | None
    travel_date: date | None
    arrival_date: date | None
    delay_reason: str | None
    days_since_contract: int
    step_index: int
    total_steps: int
    progress_percent: int
    message: str
    financial_status: str
    guarantee_expiry: date | None
    guarantee_days_remaining: int | None

    def to_dict(self):
        out = asdict(self)
        for key, value in out.items():
            if isinstance(value, date):
                out[key] = value.isoformat()
        return out


def build_tracking(order, contract, today: date) -> TrackingView:
    status = OrderStatus(order.order_status)
    contract_date = order.contract_date or contract.contract_date
    days = (today - contract_date).days if contract_date else 0
    remaining = (
        guarantee_days_remaining(order.arrival_date, today)
        if status is OrderStatus.ARRIVED else None
    )
    return TrackingView(
        contract_number=contract.contract_number,
        client_name=order.client_name,
        nationality=order.nationality,
        order_status=status.value,
        contract_date=contract_date,
        travel_date=order.travel_date,
        arrival_date=order.arrival_date,
        delay_reason=order.delay_reason,
        days_since_contract=days,
        step_index=step_index(status),
        total_steps=len(TRACKING_STEPS),
        progress_percent=progress_percent(status),
        message=status_message(status, days, order.delay_reason, remaining),
        financial_status=contract.financial_status,
        guarantee_expiry=contract.guarantee_expiry,
        guarantee_days_remaining=remaining,
    )


def tracking_for_token(token: str, today: date | None = None) -> TrackingView:
    today = today or date.today()
    contract = Contract.query.filter_by(magic_token=token).first() if token else None
    if contract is None:
        raise RecordNotFound("no order is linked to this tracking link")
    order = contract.order or Order.query.filter_by(contract_number=contract.contract_number).first()
    if order is None:
        raise RecordNotFound("no order is linked to this tracking link")
    return build_tracking(order, contract, today)
