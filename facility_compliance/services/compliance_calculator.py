# facility_compliance/services/compliance_calculator.py
from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Dict, Optional

from facility_compliance.models.enums import ComplianceStatus
from facility_compliance.utils.dates import add_days, add_months, add_years, days_between

INITIAL_DUE_MONTHS = 6
RENEWAL_CYCLE_YEARS = 5
EXPIRING_WINDOW_DAYS = 90


@dataclass(frozen=True)
class ComplianceResult:
    status: ComplianceStatus
    is_compliant: bool
    initial_due_date: Optional[date] = None
    renewal_cycle_number: int = 0
    current_renewal_due_date: Optional[date] = None
    days_until_due: Optional[int] = None

    def as_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["status"] = self.status.value
        return d


def calculate(
    production_start_date: Optional[date],
    completion_date: Optional[date],
    today: date,
) -> ComplianceResult:
    """
    Derive the compliance lifecycle state for one facility.

    Pure and deterministic: no I/O, no clock reads; `today` is supplied by the caller.
      - no production date              -> not_started (not compliant)
      - no completion, before due       -> initial_due (grace period, compliant)
      - no completion, past due         -> overdue
      - completion present              -> 5-year renewal windows; expiring in the
                                           last 90 days, overdue once the window lapses
    """
    if production_start_date is None:
        return ComplianceResult(status=ComplianceStatus.NOT_STARTED, is_compliant=False)

    initial_due = add_months(production_start_date, INITIAL_DUE_MONTHS)

    if completion_date is None:
        status = ComplianceStatus.OVERDUE if today > initial_due else ComplianceStatus.INITIAL_DUE
        return ComplianceResult(
            status=status,
            is_compliant=status == ComplianceStatus.INITIAL_DUE,
            initial_due_date=initial_due,
            renewal_cycle_number=0,
            current_renewal_due_date=initial_due,
            days_until_due=days_between(today, initial_due),
        )

    cycle = 1
    due = add_years(completion_date, RENEWAL_CYCLE_YEARS)

    # Skip renewal windows that lapsed more than one full cycle ago.
    # Bounded by ceil(years since completion / 5) iterations.
    horizon = add_years(today, -RENEWAL_CYCLE_YEARS)
    while due < horizon:
        due = add_years(due, RENEWAL_CYCLE_YEARS)
        cycle += 1

    if today > due:
        status, compliant = ComplianceStatus.OVERDUE, False
    elif today >= add_days(due, -EXPIRING_WINDOW_DAYS):
        status, compliant = ComplianceStatus.EXPIRING, True
    elif cycle <= 1:
        status, compliant = ComplianceStatus.INITIAL_COMPLETE, True
    else:
        status, compliant = ComplianceStatus.RENEWAL_COMPLETE, True

    return ComplianceResult(
        status=status,
        is_compliant=compliant,
        initial_due_date=initial_due,
        renewal_cycle_number=cycle,
        current_renewal_due_date=due,
        days_until_due=days_between(today, due),
    )
