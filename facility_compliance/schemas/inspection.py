# facility_compliance/schemas/inspection.py
from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from facility_compliance.models.enums import InspectionType
from facility_compliance.schemas.facility import check_date_bounds


class InspectionRecordIn(BaseModel):
    inspection_date: date = Field(..., description="Date the inspection was performed")
    inspection_type: InspectionType = InspectionType.SPCC

    @field_validator("inspection_date")
    @classmethod
    def _check_date_bounds(cls, v: date) -> date:
        return check_date_bounds(v)


class InspectionScheduleIn(BaseModel):
    frequency_days: int = Field(..., ge=1, description="Inspection cadence in days")
    is_active: Optional[bool] = None


class InspectionScheduleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    facility_id: int
    tenant_id: int
    inspection_type: str
    frequency_days: int
    last_inspection_date: Optional[date] = None
    next_due_date: Optional[date] = None
    is_overdue: bool
    reminder_sent_at: Optional[datetime] = None
    is_active: bool
