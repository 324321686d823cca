"""
Unit tests for the recurring inspection schedule tracker.
"""

from datetime import date

import pytest

from facility_compliance.core.errors import FacilityNotFound
from facility_compliance.models.enums import InspectionType
from facility_compliance.models.inspection_schedule import InspectionSchedule
from facility_compliance.services.inspection_tracker import (
    compute_schedule,
    get_schedule,
    record_inspection,
    refresh_overdue_flags,
    set_frequency,
)


class TestComputeSchedule:
    def test_never_inspected_has_no_due_date(self):
        s = compute_schedule(None, 365, date(2024, 8, 1))
        assert s.next_due_date is None
        assert s.is_overdue is False

    def test_fixed_day_count(self):
        s = compute_schedule(date(2024, 1, 31), 30, date(2024, 2, 1))
        assert s.next_due_date == date(2024, 3, 1)
        assert s.is_overdue is False

    def test_due_today_is_not_overdue(self):
        s = compute_schedule(date(2024, 1, 1), 30, date(2024, 1, 31))
        assert s.next_due_date == date(2024, 1, 31)
        assert s.is_overdue is False

    def test_day_after_due_is_overdue(self):
        assert compute_schedule(date(2024, 1, 1), 30, date(2024, 2, 1)).is_overdue is True

    @pytest.mark.parametrize("freq", [0, -5])
    def test_rejects_non_positive_frequency(self, freq):
        with pytest.raises(ValueError):
            compute_schedule(date(2024, 1, 1), freq, date(2024, 2, 1))


class TestRecordInspection:
    def test_unknown_facility(self, test_db_session):
        with pytest.raises(FacilityNotFound):
            record_inspection(test_db_session, 999, date(2024, 1, 1), today=date(2024, 2, 1))

    def test_creates_default_schedule_and_mirrors_facility(self, test_db_session, make_facility):
        fac = make_facility(inspection_frequency_days=90)
        sched = record_inspection(test_db_session, fac.id, date(2024, 5, 1), today=date(2024, 8, 1))

        assert sched.inspection_type == InspectionType.SPCC.value
        assert sched.frequency_days == 90
        assert sched.next_due_date == date(2024, 7, 30)
        assert sched.is_overdue is True

        test_db_session.refresh(fac)
        assert fac.last_inspection_date == date(2024, 5, 1)

    def test_new_inspection_clears_overdue(self, test_db_session, make_facility):
        fac = make_facility(inspection_frequency_days=30, last_inspection_date=date(2024, 1, 1))
        sched = get_schedule(test_db_session, fac.id, InspectionType.SPCC)
        assert sched.is_overdue is True

        sched = record_inspection(test_db_session, fac.id, date(2024, 7, 20), today=date(2024, 8, 1))
        assert sched.last_inspection_date == date(2024, 7, 20)
        assert sched.next_due_date == date(2024, 8, 19)
        assert sched.is_overdue is False

    def test_older_inspection_never_moves_schedule_back(self, test_db_session, make_facility):
        fac = make_facility()
        record_inspection(test_db_session, fac.id, date(2024, 6, 1), today=date(2024, 8, 1))
        sched = record_inspection(test_db_session, fac.id, date(2024, 3, 1), today=date(2024, 8, 1))
        assert sched.last_inspection_date == date(2024, 6, 1)
        assert sched.next_due_date == date(2025, 6, 1)

    def test_other_types_are_tracked_separately(self, test_db_session, make_facility):
        fac = make_facility()
        safety = record_inspection(
            test_db_session,
            fac.id,
            date(2024, 6, 1),
            today=date(2024, 8, 1),
            inspection_type=InspectionType.SAFETY,
        )
        assert safety.inspection_type == "safety"
        assert safety.frequency_days == 365
        assert get_schedule(test_db_session, fac.id, InspectionType.SPCC) is None

        test_db_session.refresh(fac)
        assert fac.last_inspection_date is None

    def test_recording_resets_reminder_marker(self, test_db_session, make_facility):
        from datetime import datetime

        fac = make_facility(last_inspection_date=date(2023, 1, 1))
        sched = get_schedule(test_db_session, fac.id, "spcc")
        sched.reminder_sent_at = datetime(2024, 7, 31, 8, 0)
        test_db_session.commit()

        sched = record_inspection(test_db_session, fac.id, date(2024, 8, 1), today=date(2024, 8, 1))
        assert sched.reminder_sent_at is None


class TestSetFrequency:
    def test_changes_next_due(self, test_db_session, make_facility):
        fac = make_facility(last_inspection_date=date(2024, 1, 1))
        sched = set_frequency(test_db_session, fac.id, 30, today=date(2024, 8, 1))
        assert sched.next_due_date == date(2024, 1, 31)
        assert sched.is_overdue is True

        test_db_session.refresh(fac)
        assert fac.inspection_frequency_days == 30

    def test_can_deactivate(self, test_db_session, make_facility):
        fac = make_facility()
        sched = set_frequency(
            test_db_session,
            fac.id,
            180,
            today=date(2024, 8, 1),
            inspection_type="environmental",
            is_active=False,
        )
        assert sched.is_active is False
        assert sched.next_due_date is None

    def test_rejects_zero(self, test_db_session, make_facility):
        fac = make_facility()
        with pytest.raises(ValueError):
            set_frequency(test_db_session, fac.id, 0, today=date(2024, 8, 1))


class TestRefreshOverdueFlags:
    def test_flags_flip_as_days_pass(self, test_db_session, make_facility):
        fac = make_facility(
            inspection_frequency_days=30,
            last_inspection_date=date(2024, 7, 1),
            today=date(2024, 7, 15),
        )
        assert get_schedule(test_db_session, fac.id, "spcc").is_overdue is False

        assert refresh_overdue_flags(test_db_session, date(2024, 7, 31)) == 0
        assert refresh_overdue_flags(test_db_session, date(2024, 8, 1)) == 1
        assert get_schedule(test_db_session, fac.id, "spcc").is_overdue is True

    def test_scoped_to_tenant(self, test_db_session, make_facility):
        make_facility(tenant_id=1, last_inspection_date=date(2023, 1, 1), today=date(2023, 1, 2))
        make_facility(tenant_id=2, last_inspection_date=date(2023, 1, 1), today=date(2023, 1, 2))

        assert refresh_overdue_flags(test_db_session, date(2024, 8, 1), tenant_id=2) == 1
        rows = test_db_session.query(InspectionSchedule).order_by(InspectionSchedule.tenant_id).all()
        assert [r.is_overdue for r in rows] == [False, True]
