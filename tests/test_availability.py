"""
Tests for worker availability, medical validity and age bounds.
"""

from datetime import date, timedelta
from types import SimpleNamespace

from conftest import TODAY
from haneen.availability import (
    AVAILABLE,
    IN_USE,
    NOT_AVAILABLE,
    age_in_bounds,
    available_workers,
    cv_availability,
    is_medical_valid,
    medical_days_left,
    worker_age,
    worker_availability,
)


def _cv(**overrides):
    values = dict(
        nationality="ethiopia",
        medical_exam_date=TODAY,
        internal_status="accepted",
        musaned_status="uploaded",
        external_office_status="ready",
    )
    values.update(overrides)
    return SimpleNamespace(**values)


class TestMedicalValidity:
    def test_ethiopia_boundary(self):
        assert is_medical_valid(_cv(medical_exam_date=TODAY - timedelta(days=89)), TODAY)
        assert not is_medical_valid(_cv(medical_exam_date=TODAY - timedelta(days=90)), TODAY)

    def test_other_nationalities_use_sixty_days(self):
        assert is_medical_valid(_cv(nationality="kenya", medical_exam_date=TODAY - timedelta(days=59)), TODAY)
        assert not is_medical_valid(_cv(nationality="kenya", medical_exam_date=TODAY - timedelta(days=60)), TODAY)

    def test_missing_exam_is_invalid(self):
        assert not is_medical_valid(_cv(medical_exam_date=None), TODAY)
        assert medical_days_left(_cv(medical_exam_date=None), TODAY) is None

    def test_days_left(self):
        assert medical_days_left(_cv(medical_exam_date=TODAY - timedelta(days=30)), TODAY) == 60


class TestAge:
    def test_birthday_not_yet_reached(self):
        assert worker_age(date(2000, 6, 2), TODAY) == 24
        assert worker_age(date(2000, 6, 1), TODAY) == 25

    def test_bounds_are_inclusive(self):
        assert age_in_bounds(date(2004, 6, 1), TODAY)
        assert not age_in_bounds(date(2004, 6, 2), TODAY)
        assert age_in_bounds(date(1979, 6, 2), TODAY)
        assert not age_in_bounds(date(1979, 6, 1), TODAY)


class TestWorkerAvailability:
    def test_all_conditions_met(self):
        assert worker_availability(_cv(), False, TODAY) == AVAILABLE

    def test_active_order_means_in_use(self):
        assert worker_availability(_cv(), True, TODAY) == IN_USE

    def test_each_condition_blocks(self):
        assert worker_availability(_cv(internal_status="rejected"), False, TODAY) == NOT_AVAILABLE
        assert worker_availability(_cv(musaned_status="not_uploaded"), False, TODAY) == NOT_AVAILABLE
        assert worker_availability(_cv(external_office_status="cancel"), False, TODAY) == NOT_AVAILABLE
        expired = _cv(medical_exam_date=TODAY - timedelta(days=90))
        assert worker_availability(expired, False, TODAY) == NOT_AVAILABLE

    def test_availability_flips_with_order_lifecycle(self, make_cv, make_order):
        cv = make_cv(passport="EP300")
        assert cv_availability(cv, TODAY) == AVAILABLE
        assert cv in available_workers(TODAY)

        order = make_order(passport="EP300", with_cv=False, contract_number=None)
        assert cv_availability(cv, TODAY) == IN_USE
        assert cv not in available_workers(TODAY)

        order.order_status = "arrived"
        assert cv_availability(cv, TODAY) == AVAILABLE

    def test_listing_filters(self, make_cv):
        make_cv(passport="EP301")
        make_cv(passport="KE302", nationality="kenya")
        assert [cv.passport_number for cv in available_workers(TODAY, nationality="kenya")] == ["KE302"]
        assert available_workers(TODAY, profession="private_driver") == []
