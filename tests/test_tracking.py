"""
Tests for the client-facing tracking projection.
"""

from datetime import timedelta

import pytest

from conftest import TODAY
from haneen.errors import RecordNotFound
from haneen.tracking import (
    TRACKING_STEPS,
    build_tracking,
    guarantee_days_remaining,
    progress_percent,
    status_message,
    step_index,
    tracking_for_token,
)
from haneen.workflow import resolve_contract


class TestProgress:
    def test_nine_steps(self):
        assert len(TRACKING_STEPS) == 9
        assert "agency_done" not in [s.value for s in TRACKING_STEPS]

    def test_visa_issued_is_three_quarters(self):
        assert step_index("visa_issued") == 6
        assert progress_percent("visa_issued") == 75

    def test_rounds_half_up(self):
        assert progress_percent("contracted") == 13
        assert progress_percent("mol_approval") == 38

    def test_ends_at_arrival(self):
        assert progress_percent("selected") == 0
        assert progress_percent("arrived") == 100
        assert progress_percent("return_within_90") == 100

    def test_cancelled_shows_no_progress(self):
        assert progress_percent("cancelled") == 0


class TestMessages:
    def test_cancelled(self):
        message = status_message("cancelled", 100, "embassy backlog", None)
        assert message == "تم إلغاء هذا الطلب. يرجى التواصل مع المكتب لمعرفة التفاصيل."

    def test_delay_reason_is_shown_verbatim(self):
        message = status_message("medical_exam", 46, "تأخر الفحص الطبي", None)
        assert message == "طلبكم يشهد تأخيراً نأسف لذلك. السبب: تأخر الفحص الطبي"

    def test_generic_delay_without_reason(self):
        message = status_message("embassy_submitted", 46, None, None)
        assert message.startswith("مضى أكثر من 45 يوماً")

    def test_no_delay_at_threshold(self):
        assert status_message("medical_exam", 45, "x", None) == "الطلب قيد المعالجة. الإجراءات تسير بشكل طبيعي."

    def test_ticket_booked_beats_delay(self):
        assert status_message("ticket_booked", 80, "x", None).startswith("تم حجز التذكرة")

    def test_arrived_with_guarantee_left(self):
        assert status_message("arrived", 80, None, 60) == "تم الوصول بنجاح! متبقي 60 يوم من فترة الضمان."

    def test_arrived_after_guarantee(self):
        assert status_message("arrived", 200, None, 0) == "تم الوصول وانتهت فترة الضمان. نتمنى لكم التوفيق."


class TestGuaranteeDays:
    def test_counts_down_from_arrival(self):
        assert guarantee_days_remaining(TODAY - timedelta(days=30), TODAY) == 60

    def test_never_negative(self):
        assert guarantee_days_remaining(TODAY - timedelta(days=120), TODAY) == 0

    def test_unknown_arrival(self):
        assert guarantee_days_remaining(None, TODAY) is None


class TestTrackingLookup:
    def test_projection_for_token(self, make_order):
        order = make_order(status="visa_issued", contract_date=TODAY - timedelta(days=20))
        contract = resolve_contract(order.contract_number)

        view = tracking_for_token(contract.magic_token, today=TODAY)
        assert view.contract_number == "C-100"
        assert view.step_index == 6
        assert view.progress_percent == 75
        assert view.days_since_contract == 20
        assert view.message == "تم إصدار الفيزا بنجاح! نحن الآن بمرحلة حجز التذكرة."
        assert view.to_dict()["contract_date"] == (TODAY - timedelta(days=20)).isoformat()

    def test_arrived_projection(self, make_order):
        order = make_order(status="arrived", arrival_date=TODAY - timedelta(days=30))
        view = build_tracking(order, resolve_contract(order.contract_number), TODAY)
        assert view.guarantee_days_remaining == 60

    def test_unknown_token(self, app):
        with pytest.raises(RecordNotFound):
            tracking_for_token("no-such-token", today=TODAY)
