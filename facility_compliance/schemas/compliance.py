# facility_compliance/schemas/compliance.py
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ComplianceRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    facility_id: int
    tenant_id: int
    production_start_date: Optional[date] = None
    completion_date: Optional[date] = None
    calculated_for: date
    initial_due_date: Optional[date] = None
    renewal_cycle_number: int
    current_renewal_due_date: Optional[date] = None
    status: str
    is_compliant: bool
    days_until_due: Optional[int] = None
    last_notified_at: Optional[datetime] = None


class ComplianceStatusOut(BaseModel):
    """Live result for a facility, whether or not a record is stored yet."""

    facility_id: int
    as_of: date
    status: str
    is_compliant: bool
    initial_due_date: Optional[date] = None
    renewal_cycle_number: int = 0
    current_renewal_due_date: Optional[date] = None
    days_until_due: Optional[int] = None
    record: Optional[ComplianceRecordOut] = None


class DueItemOut(BaseModel):
    facility_id: int
    facility_name: str
    tenant_id: int
    source: str = Field(..., description="spcc | inspection")
    inspection_type: Optional[str] = None
    notification_type: str
    due_date: date
    days_until_due: int
    days_overdue: int
    status: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class DueListOut(BaseModel):
    as_of: date
    items: List[DueItemOut]
    count: int
