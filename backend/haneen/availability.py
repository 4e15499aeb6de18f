from datetime import date, timedelta

from .constants import (
    ETHIOPIA, ETHIOPIA_MEDICAL_VALIDITY, ExternalOfficeStatus, InternalStatus,
    MAX_WORKER_AGE, MIN_WORKER_AGE, MusanedUpload, OTHER_MEDICAL_VALIDITY,
    TERMINAL_STATUSES,
)
from .models import CV, Order

AVAILABLE = "available"
NOT_AVAILABLE = "not_available"
IN_USE = "in_use"


def medical_validity_days(nationality) -> int:
    return ETHIOPIA_MEDICAL_VALIDITY if nationality == ETHIOPIA else OTHER_MEDICAL_VALIDITY


def medical_expiry(cv) -> date | None:
    if cv.medical_exam_date is None:
        return None
    return cv.medical_exam_date + timedelta(days=medical_validity_days(cv.nationality))


def is_medical_valid(cv, today: date) -> bool:
    expiry = medical_expiry(cv)
    return expiry is not None and expiry > today


def medical_days_left(cv, today: date) -> int | None:
    expiry = medical_expiry(cv)
    return (expiry - today).days if expiry else None


def worker_age(date_of_birth: date, today: date) -> int:
    years = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        years -= 1
    return years


def age_in_bounds(date_of_birth: date, today: date) -> bool:
    return MIN_WORKER_AGE <= worker_age(date_of_birth, today) <= MAX_WORKER_AGE


def availability_checks(cv, has_active_order: bool, today: date) -> dict:
    """Each availability condition with whether it currently holds."""
    return {
        "internal_accepted": cv.internal_status == InternalStatus.ACCEPTED.value,
        "musaned_uploaded": cv.musaned_status == MusanedUpload.UPLOADED.value,
        "office_ready": cv.external_office_status == ExternalOfficeStatus.READY.value,
        "medical_valid": cv.nationality != ETHIOPIA or is_medical_valid(cv, today),
        "no_active_order": not has_active_order,
    }


def worker_availability(cv, has_active_order: bool, today: date) -> str:
    if has_active_order:
        return IN_USE
    if all(availability_checks(cv, has_active_order, today).values()):
        return AVAILABLE
    return NOT_AVAILABLE


def _active_filter():
    return Order.order_status.notin_([s.value for s in TERMINAL_STATUSES])


def active_order_for(passport_number) -> Order | None:
    if not passport_number:
        return None
    return (
        Order.query
        .filter(Order.passport_number == passport_number, _active_filter())
        .order_by(Order.id)
        .first()
    )


def cv_availability(cv, today: date | None = None) -> str:
    today = today or date.today()
    return worker_availability(cv, active_order_for(cv.passport_number) is not None, today)


def available_workers(today: date | None = None, nationality=None, profession=None) -> list:
    today = today or date.today()
    query = CV.query.filter(
        CV.internal_status == InternalStatus.ACCEPTED.value,
        CV.musaned_status == MusanedUpload.UPLOADED.value,
        CV.external_office_status == ExternalOfficeStatus.READY.value,
    )
    if nationality:
        query = query.filter(CV.nationality == nationality)
    if profession:
        query = query.filter(CV.profession == profession)

    busy = {
        row.passport_number
        for row in Order.query.with_entities(Order.passport_number)
        .filter(Order.passport_number.isnot(None), _active_filter())
    }
    return [
        cv for cv in query.order_by(CV.id.desc()).all()
        if worker_availability(cv, cv.passport_number in busy, today) == AVAILABLE
    ]
