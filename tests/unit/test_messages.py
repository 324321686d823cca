"""Unit tests for reminder subject/body rendering."""

import pytest

from facility_compliance.models.enums import NotificationType
from facility_compliance.services.messages import render_message


def test_spcc_initial_due():
    out = render_message(
        NotificationType.SPCC_INITIAL_DUE,
        {"facility_name": "North Pad", "due_date": "2024-07-01", "days_until_due": 30},
    )
    assert out["subject"] == "Action Required: SPCC Plan Due in 30 days - North Pad"
    assert "2024-07-01" in out["message"]


def test_singular_day():
    out = render_message("spcc_renewal_due", {"facility_name": "X", "days_until_due": 1})
    assert "Due in 1 day -" in out["subject"]


def test_overdue_uses_absolute_days_and_plan_kind():
    initial = render_message(
        NotificationType.SPCC_OVERDUE,
        {"facility_name": "North Pad", "due_date": "2024-07-01", "days_until_due": -31, "renewal_cycle_number": 0},
    )
    assert "31 days past due" in initial["subject"]
    assert "initial SPCC plan" in initial["message"]

    renewal = render_message(
        NotificationType.SPCC_OVERDUE,
        {"facility_name": "North Pad", "days_until_due": -5, "renewal_cycle_number": 2},
    )
    assert "SPCC plan renewal" in renewal["message"]


def test_inspection_types_are_named():
    out = render_message(
        NotificationType.INSPECTION_OVERDUE,
        {"facility_name": "Tank 4", "inspection_type": "environmental", "days_until_due": -3},
    )
    assert out["subject"].startswith("Overdue: Inspection 3 days past due")
    assert "environmental inspection" in out["message"]


def test_digest_counts():
    out = render_message(
        NotificationType.DAILY_DIGEST,
        {"overdue_count": 2, "upcoming_count": 5, "horizon_days": 30, "as_of": "2024-08-01"},
    )
    assert out["subject"] == "Daily compliance digest: 2 overdue, 5 upcoming"


@pytest.mark.parametrize("ntype", list(NotificationType))
def test_every_type_has_a_template(ntype):
    out = render_message(ntype, {})
    assert out["subject"]
    assert out["message"]


def test_unknown_type_rejected():
    with pytest.raises(ValueError):
        render_message("bogus", {})
