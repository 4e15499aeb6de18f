"""Closed vocabularies and fixed business policy. Enums subclass ``str``."""
import enum

GUARANTEE_DAYS = 90
DELAYED_THRESHOLD_DAYS = 30
TRACKING_DELAY_MESSAGE_DAYS = 45
MIN_WORKER_AGE = 21
MAX_WORKER_AGE = 45

ETHIOPIA = "ethiopia"
ETHIOPIA_MEDICAL_VALIDITY = 90
OTHER_MEDICAL_VALIDITY = 60


class Nationality(str, enum.Enum):
    ETHIOPIA = "ethiopia"
    KENYA = "kenya"
    UGANDA = "uganda"
    PHILIPPINES = "philippines"
    INDIA = "india"


class Profession(str, enum.Enum):
    HOUSEMAID = "housemaid"
    PRIVATE_DRIVER = "private_driver"


class OrderStatus(str, enum.Enum):
    SELECTED = "selected"
    CONTRACTED = "contracted"
    MEDICAL_EXAM = "medical_exam"
    MOL_APPROVAL = "mol_approval"
    NEEDS_AGENCY = "needs_agency"
    AGENCY_DONE = "agency_done"
    EMBASSY_SUBMITTED = "embassy_submitted"
    VISA_ISSUED = "visa_issued"
    TICKET_BOOKED = "ticket_booked"
    ARRIVED = "arrived"
    CANCELLED = "cancelled"
    RUNAWAY_WITHIN_90 = "runaway_within_90"
    RETURN_WITHIN_90 = "return_within_90"
    RUNAWAY_AFTER_90 = "runaway_after_90"
    RETURN_AFTER_90 = "return_after_90"


HAPPY_PATH = (
    OrderStatus.SELECTED,
    OrderStatus.CONTRACTED,
    OrderStatus.MEDICAL_EXAM,
    OrderStatus.MOL_APPROVAL,
    OrderStatus.NEEDS_AGENCY,
    OrderStatus.AGENCY_DONE,
    OrderStatus.EMBASSY_SUBMITTED,
    OrderStatus.VISA_ISSUED,
    OrderStatus.TICKET_BOOKED,
    OrderStatus.ARRIVED,
)

GUARANTEE_WINDOW_EVENTS = frozenset({OrderStatus.RUNAWAY_WITHIN_90, OrderStatus.RETURN_WITHIN_90})
POST_GUARANTEE_EVENTS = frozenset({OrderStatus.RUNAWAY_AFTER_90, OrderStatus.RETURN_AFTER_90})
TERMINAL_STATUSES = frozenset(
    {OrderStatus.ARRIVED, OrderStatus.CANCELLED} | GUARANTEE_WINDOW_EVENTS | POST_GUARANTEE_EVENTS
)

ORDER_STATUS_LABELS = {
    OrderStatus.SELECTED: "تم الاختيار",
    OrderStatus.CONTRACTED: "تم التعاقد",
    OrderStatus.MEDICAL_EXAM: "بانتظار الفحص",
    OrderStatus.MOL_APPROVAL: "بانتظار موافقة العمل",
    OrderStatus.NEEDS_AGENCY: "يحتاج وكالة",
    OrderStatus.AGENCY_DONE: "تمت الوكالة",
    OrderStatus.EMBASSY_SUBMITTED: "تم الإدخال للسفارة",
    OrderStatus.VISA_ISSUED: "تم إصدار الفيزا",
    OrderStatus.TICKET_BOOKED: "تم حجز التذكرة",
    OrderStatus.ARRIVED: "تم الوصول",
    OrderStatus.CANCELLED: "ملغي",
    OrderStatus.RUNAWAY_WITHIN_90: "هروب خلال الضمان",
    OrderStatus.RETURN_WITHIN_90: "إرجاع خلال الضمان",
    OrderStatus.RUNAWAY_AFTER_90: "هروب بعد الضمان",
    OrderStatus.RETURN_AFTER_90: "إرجاع بعد الضمان",
}


class FinancialStatus(str, enum.Enum):
    UNDER_MUSANED_HOLD = "under_masaned_hold"
    FUNDS_RECEIVED = "funds_received"
    CANCELLED_BEFORE_ARRIVAL = "cancelled_before_arrival"
    UNDER_GUARANTEE = "under_guarantee"
    REFUNDED_DURING_GUARANTEE = "refunded_during_guarantee"
    SETTLED = "settled"


class MusanedFeeType(str, enum.Enum):
    FIXED = "fixed_125_35"
    PERCENT = "percent_2_4"


class CancellationStatus(str, enum.Enum):
    NONE = "none"
    WITHIN_5_DAYS = "within_5_days"
    AFTER_5_DAYS = "after_5_days"


class TransactionType(str, enum.Enum):
    CONTRACT_REVENUE = "CONTRACT_REVENUE"
    MASANED_FEE = "MASANED_FEE"
    CLIENT_REFUND = "CLIENT_REFUND"
    EXTERNAL_COMMISSION_PAYABLE = "EXTERNAL_COMMISSION_PAYABLE"
    EXTERNAL_COMMISSION_FORECAST = "EXTERNAL_COMMISSION_FORECAST"
    EXTERNAL_COMMISSION_REVERSAL = "EXTERNAL_COMMISSION_REVERSAL"
    AHMED_COMMISSION = "AHMED_COMMISSION"
    WAJDI_COMMISSION = "WAJDI_COMMISSION"
    AGENCY_FEE = "AGENCY_FEE"
    POOL_COMMISSION = "POOL_COMMISSION"
    SADAQA = "SADAQA"
    OTHER_EXPENSE = "OTHER_EXPENSE"
    MANUAL_ADJUSTMENT = "MANUAL_ADJUSTMENT"


MANUAL_TRANSACTION_TYPES = frozenset({
    TransactionType.MANUAL_ADJUSTMENT,
    TransactionType.OTHER_EXPENSE,
    TransactionType.CLIENT_REFUND,
    TransactionType.EXTERNAL_COMMISSION_REVERSAL,
})


class Direction(str, enum.Enum):
    IN = "IN"
    OUT = "OUT"


class Currency(str, enum.Enum):
    SAR = "SAR"
    USD = "USD"


class RelatedParty(str, enum.Enum):
    CLIENT = "client"
    MUSANED = "musaned"
    EXTERNAL_OFFICE = "external_office"
    INTERNAL = "internal"


class MusanedUpload(str, enum.Enum):
    UPLOADED = "uploaded"
    NOT_UPLOADED = "not_uploaded"


class ExternalOfficeStatus(str, enum.Enum):
    READY = "ready"
    CANCEL = "cancel"
    NOT_AVAILABLE = "not_available"


class InternalStatus(str, enum.Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class PaymentType(str, enum.Enum):
    WORKER_PAYMENT = "worker_payment"
    ADVANCE = "advance"
    SETTLEMENT = "settlement"


class PaymentMethod(str, enum.Enum):
    BANK_TRANSFER = "bank_transfer"
    CASH = "cash"
