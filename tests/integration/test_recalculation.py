"""
Integration tests for the recalculate-on-write hook.
"""

import logging
from datetime import date, datetime

from facility_compliance.crud.facility import delete_facility, update_facility
from facility_compliance.models.compliance_record import ComplianceRecord
from facility_compliance.models.inspection_schedule import InspectionSchedule
from facility_compliance.models.notification import NotificationQueueEntry
from facility_compliance.schemas.facility import FacilityUpdate
from facility_compliance.services.notification_history import list_history
from facility_compliance.services.notifications import run_delivery_cycle, run_scan_cycle
from facility_compliance.services.recalculation import (
    _snapshot,
    get_record,
    recalculate_all,
    recalculate_facility,
)

TODAY = date(2024, 8, 1)
SCAN_AT = datetime(2024, 8, 1, 6, 0)


class TestCreate:
    def test_creation_with_production_date_writes_record(self, test_db_session, make_facility):
        fac = make_facility(production_start_date=date(2024, 1, 1))
        record = get_record(test_db_session, fac.id)

        assert record is not None
        assert record.status == "overdue"
        assert record.is_compliant is False
        assert record.initial_due_date == date(2024, 7, 1)
        assert record.current_renewal_due_date == date(2024, 7, 1)
        assert record.days_until_due == -31
        assert record.calculated_for == TODAY
        assert record.tenant_id == fac.tenant_id

    def test_creation_without_dates_writes_nothing(self, test_db_session, make_facility):
        fac = make_facility()
        assert get_record(test_db_session, fac.id) is None

    def test_pe_stamp_wins_over_plan_completed(self, test_db_session, make_facility):
        fac = make_facility(
            production_start_date=date(2020, 1, 1),
            plan_completed_date=date(2020, 3, 1),
            pe_stamp_date=date(2020, 6, 1),
        )
        record = get_record(test_db_session, fac.id)
        assert record.completion_date == date(2020, 6, 1)
        assert record.current_renewal_due_date == date(2025, 6, 1)
        assert record.status == "initial_complete"


class TestUpdate:
    def test_completion_date_change_recalculates(self, test_db_session, make_facility):
        fac = make_facility(production_start_date=date(2024, 1, 1))
        update_facility(test_db_session, fac, FacilityUpdate(pe_stamp_date=date(2024, 7, 15)), today=TODAY)

        record = get_record(test_db_session, fac.id)
        assert record.status == "initial_complete"
        assert record.renewal_cycle_number == 1
        assert record.current_renewal_due_date == date(2029, 7, 15)

    def test_unrelated_change_does_not_recalculate(self, test_db_session, make_facility):
        fac = make_facility(production_start_date=date(2024, 1, 1), today=date(2024, 3, 1))
        update_facility(test_db_session, fac, FacilityUpdate(name="Renamed"), today=TODAY)

        record = get_record(test_db_session, fac.id)
        assert record.calculated_for == date(2024, 3, 1)
        assert record.status == "initial_due"

    def test_tenant_change_moves_derived_rows(self, test_db_session, make_facility):
        fac = make_facility(
            tenant_id=1,
            production_start_date=date(2024, 1, 1),
            last_inspection_date=date(2024, 1, 1),
        )
        update_facility(test_db_session, fac, FacilityUpdate(tenant_id=7), today=TODAY)

        assert get_record(test_db_session, fac.id).tenant_id == 7
        sched = test_db_session.query(InspectionSchedule).filter_by(facility_id=fac.id).one()
        assert sched.tenant_id == 7

    def test_tenant_change_moves_pending_reminders(self, test_db_session, make_facility, queue_config):
        fac = make_facility(tenant_id=1, production_start_date=date(2024, 1, 1))
        run_scan_cycle(test_db_session, 1, today=TODAY, now=SCAN_AT, config=queue_config)

        update_facility(test_db_session, fac, FacilityUpdate(tenant_id=2), today=TODAY)

        entry = test_db_session.query(NotificationQueueEntry).filter_by(facility_id=fac.id).one()
        assert entry.status == "pending"
        assert entry.tenant_id == 2

        assert run_delivery_cycle(test_db_session, now=SCAN_AT, config=queue_config)["sent"] == 1
        assert [h.facility_id for h in list_history(test_db_session, 2)] == [fac.id]
        assert list_history(test_db_session, 1) == []

    def test_clearing_production_date_returns_to_not_started(self, test_db_session, make_facility):
        fac = make_facility(production_start_date=date(2024, 1, 1))
        update_facility(test_db_session, fac, FacilityUpdate(production_start_date=None), today=TODAY)

        record = get_record(test_db_session, fac.id)
        assert record.status == "not_started"
        assert record.current_renewal_due_date is None
        assert record.days_until_due is None

    def test_frequency_change_updates_default_schedule(self, test_db_session, make_facility):
        fac = make_facility(last_inspection_date=date(2024, 7, 1))
        update_facility(test_db_session, fac, FacilityUpdate(inspection_frequency_days=10), today=TODAY)

        sched = test_db_session.query(InspectionSchedule).filter_by(facility_id=fac.id).one()
        assert sched.frequency_days == 10
        assert sched.next_due_date == date(2024, 7, 11)
        assert sched.is_overdue is True


class TestRecalculateFacility:
    def test_vanished_facility_is_a_noop(self, test_db_session, caplog):
        with caplog.at_level(logging.DEBUG, logger="facility_compliance.recalc"):
            assert recalculate_facility(test_db_session, 424242, TODAY) is None
        assert "no longer exists" in caplog.text

    def test_idempotent(self, test_db_session, make_facility):
        fac = make_facility(production_start_date=date(2019, 1, 1), pe_stamp_date=date(2019, 5, 1))
        first = _snapshot(recalculate_facility(test_db_session, fac.id, TODAY))
        second = _snapshot(recalculate_facility(test_db_session, fac.id, TODAY))
        assert first == second
        assert test_db_session.query(ComplianceRecord).count() == 1

    def test_unchanged_record_ends_the_transaction(self, test_db_session, make_facility):
        fac = make_facility(production_start_date=date(2019, 1, 1), pe_stamp_date=date(2019, 5, 1))
        recalculate_facility(test_db_session, fac.id, TODAY)

        record = recalculate_facility(test_db_session, fac.id, TODAY)
        assert not test_db_session.in_transaction()
        assert record.calculated_for == TODAY

    def test_not_started_without_record_ends_the_transaction(self, test_db_session, make_facility):
        fac = make_facility()
        assert recalculate_facility(test_db_session, fac.id, TODAY) is None
        assert not test_db_session.in_transaction()

    def test_new_day_rewrites_every_field(self, test_db_session, make_facility):
        fac = make_facility(production_start_date=date(2024, 1, 1), today=date(2024, 3, 1))
        record = recalculate_facility(test_db_session, fac.id, date(2024, 8, 1))
        assert record.calculated_for == date(2024, 8, 1)
        assert record.status == "overdue"
        assert record.days_until_due == -31

    def test_preserves_last_notified_marker(self, test_db_session, make_facility):
        fac = make_facility(production_start_date=date(2024, 1, 1), today=date(2024, 3, 1))
        record = get_record(test_db_session, fac.id)
        record.last_notified_at = datetime(2024, 7, 31, 6, 0)
        test_db_session.commit()

        record = recalculate_facility(test_db_session, fac.id, TODAY)
        assert record.last_notified_at == datetime(2024, 7, 31, 6, 0)

    def test_completion_before_production_is_logged(self, test_db_session, make_facility, caplog):
        with caplog.at_level(logging.WARNING, logger="facility_compliance.recalc"):
            make_facility(production_start_date=date(2024, 1, 1), plan_completed_date=date(2023, 1, 1))
        assert "precedes production start" in caplog.text


class TestRecalculateAll:
    def test_backfill_over_tenant(self, test_db_session, make_facility):
        make_facility(tenant_id=1, name="A", production_start_date=date(2024, 1, 1), today=date(2024, 2, 1))
        make_facility(tenant_id=1, name="B")
        make_facility(tenant_id=2, name="C", production_start_date=date(2024, 1, 1), today=date(2024, 2, 1))

        assert recalculate_all(test_db_session, TODAY, tenant_id=1) == 1

        statuses = {
            r.tenant_id: (r.status, r.calculated_for)
            for r in test_db_session.query(ComplianceRecord).all()
        }
        assert statuses[1] == ("overdue", TODAY)
        assert statuses[2] == ("initial_due", date(2024, 2, 1))


def test_delete_cascades_to_derived_rows(test_db_session, make_facility):
    fac = make_facility(production_start_date=date(2024, 1, 1), last_inspection_date=date(2024, 1, 1))
    delete_facility(test_db_session, fac)

    assert test_db_session.query(ComplianceRecord).count() == 0
    assert test_db_session.query(InspectionSchedule).count() == 0
