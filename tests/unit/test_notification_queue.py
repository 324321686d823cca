"""
Unit tests for the notification queue state machine.

Covers enqueue dedup (cooldown + storage-level key), claiming, the
pending -> sent / failed transitions with bounded retry, and the worker loop.
"""

from datetime import date, datetime, timedelta

import pytest

from facility_compliance.core.errors import InvalidTransition, NotificationNotFound
from facility_compliance.models.compliance_record import ComplianceRecord
from facility_compliance.models.enums import NotificationType
from facility_compliance.models.notification import NotificationHistoryEntry, NotificationQueueEntry
from facility_compliance.services.notification_queue import (
    DeliveryError,
    claim_entry,
    cooldown_bucket,
    dedupe_key,
    due_entries,
    enqueue,
    list_queue,
    mark_failed,
    mark_sent,
    process_pending,
    retry_backoff,
)

NOW = datetime(2024, 8, 1, 6, 0)


@pytest.fixture
def overdue_facility(make_facility):
    return make_facility(name="North Pad", production_start_date=date(2024, 1, 1))


def _enqueue(db, facility, config, now=NOW, ntype=NotificationType.SPCC_OVERDUE, **payload):
    return enqueue(
        db,
        tenant_id=facility.tenant_id,
        facility_id=facility.id,
        notification_type=ntype,
        payload={"facility_name": facility.name, "days_until_due": -31, **payload},
        now=now,
        config=config,
        due_date=date(2024, 7, 1),
    )


class FailingDeliverer:
    def __init__(self):
        self.calls = 0

    def deliver(self, entry):
        self.calls += 1
        raise DeliveryError("smtp unavailable")


class RecordingDeliverer:
    def __init__(self):
        self.delivered = []

    def deliver(self, entry):
        self.delivered.append(entry.id)


class TestEnqueue:
    def test_creates_pending_entry(self, test_db_session, overdue_facility, queue_config):
        entry = _enqueue(test_db_session, overdue_facility, queue_config)

        assert entry.status == "pending"
        assert entry.retry_count == 0
        assert entry.scheduled_for == NOW
        assert entry.subject.startswith("Overdue: SPCC Plan 31 days past due")
        assert entry.dedupe_key == f"f{overdue_facility.id}:spcc_overdue:{cooldown_bucket(NOW, 24)}"

    def test_lead_time_delays_scheduled_for(self, test_db_session, overdue_facility, queue_config):
        from dataclasses import replace

        entry = _enqueue(test_db_session, overdue_facility, replace(queue_config, lead_minutes=30))
        assert entry.scheduled_for == NOW + timedelta(minutes=30)

    def test_second_pending_for_same_pair_is_skipped(self, test_db_session, overdue_facility, queue_config):
        assert _enqueue(test_db_session, overdue_facility, queue_config) is not None
        # even days later, an undelivered entry blocks a duplicate
        assert _enqueue(test_db_session, overdue_facility, queue_config, now=NOW + timedelta(days=3)) is None
        assert test_db_session.query(NotificationQueueEntry).count() == 1

    def test_other_type_is_independent(self, test_db_session, overdue_facility, queue_config):
        assert _enqueue(test_db_session, overdue_facility, queue_config) is not None
        assert _enqueue(
            test_db_session, overdue_facility, queue_config, ntype=NotificationType.INSPECTION_OVERDUE
        ) is not None

    def test_inspection_reminders_are_tracked_per_schedule(self, test_db_session, overdue_facility, queue_config):
        due = NotificationType.INSPECTION_DUE
        spcc = _enqueue(test_db_session, overdue_facility, queue_config, ntype=due, inspection_type="spcc")
        safety = _enqueue(test_db_session, overdue_facility, queue_config, ntype=due, inspection_type="safety")

        assert spcc is not None and safety is not None
        assert safety.inspection_type == "safety"
        assert safety.dedupe_key == f"f{overdue_facility.id}:inspection_due:safety:{cooldown_bucket(NOW, 24)}"
        assert _enqueue(test_db_session, overdue_facility, queue_config, ntype=due, inspection_type="spcc") is None

    def test_spcc_entries_carry_no_inspection_type(self, test_db_session, overdue_facility, queue_config):
        entry = _enqueue(test_db_session, overdue_facility, queue_config, inspection_type="safety")
        assert entry.inspection_type is None

    def test_recently_sent_blocks_until_cooldown_passes(self, test_db_session, overdue_facility, queue_config):
        entry = _enqueue(test_db_session, overdue_facility, queue_config)
        mark_sent(test_db_session, entry.id, now=NOW)

        assert _enqueue(test_db_session, overdue_facility, queue_config, now=NOW + timedelta(hours=23)) is None
        later = _enqueue(test_db_session, overdue_facility, queue_config, now=NOW + timedelta(hours=25))
        assert later is not None
        assert later.dedupe_key != entry.dedupe_key

    def test_unique_key_catches_a_concurrent_insert(self, test_db_session, overdue_facility, queue_config):
        # Another writer already holds this window's key but is not visible to the
        # cooldown check (e.g. committed between check and insert).
        key = dedupe_key(
            tenant_id=overdue_facility.tenant_id,
            facility_id=overdue_facility.id,
            notification_type=NotificationType.SPCC_OVERDUE,
            bucket=cooldown_bucket(NOW, 24),
        )
        test_db_session.add(
            NotificationQueueEntry(
                tenant_id=overdue_facility.tenant_id,
                facility_id=overdue_facility.id,
                notification_type="spcc_overdue",
                subject="s",
                message="m",
                payload={},
                scheduled_for=NOW,
                status="sent",
                sent_at=None,
                dedupe_key=key,
            )
        )
        test_db_session.commit()

        assert _enqueue(test_db_session, overdue_facility, queue_config) is None
        assert test_db_session.query(NotificationQueueEntry).count() == 1


class TestClaim:
    def test_only_one_claim_succeeds(self, test_db_session, overdue_facility, queue_config):
        entry = _enqueue(test_db_session, overdue_facility, queue_config)
        assert claim_entry(test_db_session, entry.id, now=NOW, config=queue_config) is True
        assert claim_entry(test_db_session, entry.id, now=NOW, config=queue_config) is False

    def test_claim_expires(self, test_db_session, overdue_facility, queue_config):
        entry = _enqueue(test_db_session, overdue_facility, queue_config)
        claim_entry(test_db_session, entry.id, now=NOW, config=queue_config)
        later = NOW + timedelta(seconds=queue_config.claim_lease_seconds)
        assert claim_entry(test_db_session, entry.id, now=later, config=queue_config) is True

    def test_claimed_entries_are_not_due(self, test_db_session, overdue_facility, queue_config):
        entry = _enqueue(test_db_session, overdue_facility, queue_config)
        assert [e.id for e in due_entries(test_db_session, now=NOW, limit=10)] == [entry.id]
        claim_entry(test_db_session, entry.id, now=NOW, config=queue_config)
        assert due_entries(test_db_session, now=NOW, limit=10) == []

    def test_future_entries_are_not_due(self, test_db_session, overdue_facility, queue_config):
        _enqueue(test_db_session, overdue_facility, queue_config)
        assert due_entries(test_db_session, now=NOW - timedelta(minutes=1), limit=10) == []


class TestMarkSent:
    def test_appends_one_history_row(self, test_db_session, overdue_facility, queue_config):
        entry = _enqueue(test_db_session, overdue_facility, queue_config)
        hist = mark_sent(test_db_session, entry.id, now=NOW)

        test_db_session.refresh(entry)
        assert entry.status == "sent"
        assert entry.sent_at == NOW
        assert hist.queue_entry_id == entry.id
        assert hist.subject == entry.subject
        assert hist.read_at is None
        assert test_db_session.query(NotificationHistoryEntry).count() == 1

    def test_stamps_compliance_record(self, test_db_session, overdue_facility, queue_config):
        entry = _enqueue(test_db_session, overdue_facility, queue_config)
        mark_sent(test_db_session, entry.id, now=NOW)

        record = (
            test_db_session.query(ComplianceRecord)
            .filter(ComplianceRecord.facility_id == overdue_facility.id)
            .one()
        )
        assert record.last_notified_at == NOW

    def test_sent_is_terminal(self, test_db_session, overdue_facility, queue_config):
        entry = _enqueue(test_db_session, overdue_facility, queue_config)
        mark_sent(test_db_session, entry.id, now=NOW)
        with pytest.raises(InvalidTransition):
            mark_sent(test_db_session, entry.id, now=NOW)
        with pytest.raises(InvalidTransition):
            mark_failed(test_db_session, entry.id, "late", now=NOW, config=queue_config)
        assert test_db_session.query(NotificationHistoryEntry).count() == 1

    def test_missing_entry(self, test_db_session):
        with pytest.raises(NotificationNotFound):
            mark_sent(test_db_session, 12345, now=NOW)


class TestMarkFailed:
    def test_backoff_is_exponential(self, queue_config):
        assert retry_backoff(1, queue_config) == timedelta(minutes=15)
        assert retry_backoff(2, queue_config) == timedelta(minutes=30)
        assert retry_backoff(3, queue_config) == timedelta(minutes=60)

    def test_retries_then_becomes_terminal(self, test_db_session, overdue_facility, queue_config):
        entry = _enqueue(test_db_session, overdue_facility, queue_config)
        now = NOW

        for attempt in (1, 2, 3):
            entry = mark_failed(test_db_session, entry.id, "smtp timeout", now=now, config=queue_config)
            assert entry.status == "pending"
            assert entry.retry_count == attempt
            assert entry.scheduled_for == now + retry_backoff(attempt, queue_config)
            now = entry.scheduled_for

        entry = mark_failed(test_db_session, entry.id, "smtp timeout", now=now, config=queue_config)
        assert entry.status == "failed"
        assert entry.retry_count == 4
        assert entry.error_message == "smtp timeout"
        assert entry.dedupe_key is None
        assert test_db_session.query(NotificationHistoryEntry).count() == 0

    def test_terminal_failure_frees_the_pair(self, test_db_session, overdue_facility, queue_config):
        entry = _enqueue(test_db_session, overdue_facility, queue_config)
        for _ in range(4):
            entry = mark_failed(test_db_session, entry.id, "boom", now=NOW, config=queue_config)
        assert entry.status == "failed"

        again = _enqueue(test_db_session, overdue_facility, queue_config)
        assert again is not None
        assert again.id != entry.id

    def test_failed_entries_visible_to_operator(self, test_db_session, overdue_facility, queue_config):
        entry = _enqueue(test_db_session, overdue_facility, queue_config)
        for _ in range(4):
            mark_failed(test_db_session, entry.id, "boom", now=NOW, config=queue_config)

        rows = list_queue(test_db_session, tenant_id=overdue_facility.tenant_id, status="failed")
        assert [r.id for r in rows] == [entry.id]
        with pytest.raises(ValueError):
            list_queue(test_db_session, status="bogus")


class TestProcessPending:
    def test_delivers_due_entries(self, test_db_session, overdue_facility, queue_config):
        entry = _enqueue(test_db_session, overdue_facility, queue_config)
        deliverer = RecordingDeliverer()

        counters = process_pending(test_db_session, deliverer, now=NOW, config=queue_config)

        assert counters == {"claimed": 1, "sent": 1, "retrying": 0, "failed": 0}
        assert deliverer.delivered == [entry.id]
        assert test_db_session.query(NotificationHistoryEntry).count() == 1

    def test_failures_are_rescheduled(self, test_db_session, overdue_facility, queue_config):
        entry = _enqueue(test_db_session, overdue_facility, queue_config)
        deliverer = FailingDeliverer()

        counters = process_pending(test_db_session, deliverer, now=NOW, config=queue_config)
        assert counters["retrying"] == 1

        # not due again until the backoff passes
        assert process_pending(test_db_session, deliverer, now=NOW, config=queue_config)["claimed"] == 0

        test_db_session.refresh(entry)
        assert entry.retry_count == 1
        assert entry.error_message == "smtp unavailable"
        assert entry.locked_until is None

    def test_exhausted_entry_ends_failed(self, test_db_session, overdue_facility, queue_config):
        entry = _enqueue(test_db_session, overdue_facility, queue_config)
        deliverer = FailingDeliverer()

        now = NOW
        outcomes = []
        for _ in range(4):
            counters = process_pending(test_db_session, deliverer, now=now, config=queue_config)
            outcomes.append(counters)
            now += timedelta(days=1)

        assert [c["retrying"] for c in outcomes] == [1, 1, 1, 0]
        assert outcomes[-1]["failed"] == 1
        test_db_session.refresh(entry)
        assert entry.status == "failed"
        assert deliverer.calls == 4
