# facility_compliance/services/messages.py
from __future__ import annotations

from typing import Any, Dict

from facility_compliance.models.enums import NotificationType


def _days_text(days: int) -> str:
    days = abs(int(days))
    return "1 day" if days == 1 else f"{days} days"


def render_message(notif_type: NotificationType | str, payload: Dict[str, Any]) -> Dict[str, str]:
    """
    Subject/body templates for the delivery collaborator and the in-app history. EN only.
    """
    ntype = NotificationType(notif_type)
    name = payload.get("facility_name") or "Facility"
    due = payload.get("due_date") or "-"
    days = int(payload.get("days_until_due") or 0)

    if ntype == NotificationType.SPCC_INITIAL_DUE:
        return {
            "subject": f"Action Required: SPCC Plan Due in {_days_text(days)} - {name}",
            "message": f"The initial SPCC plan for {name} is due in {_days_text(days)} ({due}).",
        }

    if ntype == NotificationType.SPCC_RENEWAL_DUE:
        return {
            "subject": f"Renewal Reminder: SPCC Plan Due in {_days_text(days)} - {name}",
            "message": f"The SPCC plan renewal for {name} is due in {_days_text(days)} ({due}).",
        }

    if ntype == NotificationType.SPCC_OVERDUE:
        cycle = payload.get("renewal_cycle_number") or 0
        what = "initial SPCC plan" if int(cycle) == 0 else "SPCC plan renewal"
        return {
            "subject": f"Overdue: SPCC Plan {_days_text(days)} past due - {name}",
            "message": f"The {what} for {name} was due on {due} and is {_days_text(days)} overdue.",
        }

    if ntype == NotificationType.INSPECTION_DUE:
        itype = (payload.get("inspection_type") or "annual").replace("_", " ")
        return {
            "subject": f"Inspection Reminder: Due in {_days_text(days)} - {name}",
            "message": f"The {itype} inspection for {name} is due in {_days_text(days)} ({due}).",
        }

    if ntype == NotificationType.INSPECTION_OVERDUE:
        itype = (payload.get("inspection_type") or "annual").replace("_", " ")
        return {
            "subject": f"Overdue: Inspection {_days_text(days)} past due - {name}",
            "message": f"The {itype} inspection for {name} was due on {due} and is {_days_text(days)} overdue.",
        }

    if ntype == NotificationType.DAILY_DIGEST:
        n_over = int(payload.get("overdue_count") or 0)
        n_up = int(payload.get("upcoming_count") or 0)
        return {
            "subject": f"Daily compliance digest: {n_over} overdue, {n_up} upcoming",
            "message": (
                f"{n_over} item(s) are overdue and {n_up} item(s) are due within "
                f"{payload.get('horizon_days', '-')} days as of {payload.get('as_of', '-')}."
            ),
        }

    raise ValueError(f"No template for notification type {ntype.value!r}")
