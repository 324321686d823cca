# facility_compliance/schemas/facility.py
from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, constr, field_validator, model_validator

# Renewal arithmetic runs decades past the inputs; keep them well inside date.max.
MAX_INPUT_YEAR = 9000

_DATE_FIELDS = ("production_start_date", "plan_completed_date", "pe_stamp_date", "last_inspection_date")


def check_date_bounds(v: Optional[date]) -> Optional[date]:
    if v is not None and v.year > MAX_INPUT_YEAR:
        raise ValueError(f"date must be in year {MAX_INPUT_YEAR} or earlier")
    return v


class FacilityBase(BaseModel):
    name: constr(strip_whitespace=True, min_length=1, max_length=255)
    production_start_date: Optional[date] = Field(
        None, description="Date production started; starts the SPCC compliance clock"
    )
    plan_completed_date: Optional[date] = Field(None, description="Informal plan completion date")
    pe_stamp_date: Optional[date] = Field(
        None, description="Certified (PE-stamped) plan date; wins over plan_completed_date"
    )
    inspection_frequency_days: int = Field(365, ge=1, description="Default inspection cadence in days")
    last_inspection_date: Optional[date] = None


class FacilityCreate(FacilityBase):
    @field_validator(*_DATE_FIELDS)
    @classmethod
    def _check_date_bounds(cls, v: Optional[date]) -> Optional[date]:
        return check_date_bounds(v)


class FacilityUpdate(BaseModel):
    """
    Partial update. Only the fields sent are applied; sending null clears a date.
    """

    name: Optional[constr(strip_whitespace=True, min_length=1, max_length=255)] = None
    tenant_id: Optional[int] = Field(None, ge=1, description="Reassign the facility to another tenant")
    production_start_date: Optional[date] = None
    plan_completed_date: Optional[date] = None
    pe_stamp_date: Optional[date] = None
    inspection_frequency_days: Optional[int] = Field(None, ge=1)
    last_inspection_date: Optional[date] = None

    @field_validator(*_DATE_FIELDS)
    @classmethod
    def _check_date_bounds(cls, v: Optional[date]) -> Optional[date]:
        return check_date_bounds(v)

    @model_validator(mode="after")
    def _no_null_required(self) -> "FacilityUpdate":
        for key in ("name", "tenant_id", "inspection_frequency_days"):
            if key in self.model_fields_set and getattr(self, key) is None:
                raise ValueError(f"{key} cannot be null.")
        return self


class FacilityOut(FacilityBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    created_at: datetime
    updated_at: datetime
