# facility_compliance/api/v1/facilities.py
from __future__ import annotations

from datetime import date
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from facility_compliance.api.deps import get_db, resolve_today
from facility_compliance.crud.facility import (
    create_facility,
    delete_facility,
    get_facilities_by_tenant,
    get_facility_or_404,
    update_facility,
)
from facility_compliance.models.enums import InspectionType
from facility_compliance.models.inspection_schedule import InspectionSchedule
from facility_compliance.schemas.compliance import ComplianceRecordOut, ComplianceStatusOut
from facility_compliance.schemas.facility import FacilityCreate, FacilityOut, FacilityUpdate
from facility_compliance.schemas.inspection import (
    InspectionRecordIn,
    InspectionScheduleIn,
    InspectionScheduleOut,
)
from facility_compliance.services.compliance_calculator import calculate
from facility_compliance.services.inspection_tracker import record_inspection, set_frequency
from facility_compliance.services.recalculation import get_record, recalculate_facility

router = APIRouter(tags=["facilities"])


# -----------------------------
# Facility CRUD (each write recalculates)
# -----------------------------
@router.get("/tenants/{tenant_id}/facilities", response_model=List[FacilityOut])
def list_facilities(
    tenant_id: int,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    return get_facilities_by_tenant(db, tenant_id, skip=skip, limit=limit)


@router.post(
    "/tenants/{tenant_id}/facilities",
    response_model=FacilityOut,
    status_code=status.HTTP_201_CREATED,
)
def create_facility_endpoint(
    tenant_id: int,
    payload: FacilityCreate,
    today: date = Depends(resolve_today),
    db: Session = Depends(get_db),
):
    return create_facility(db, tenant_id, payload, today=today)


@router.get("/facilities/{facility_id}", response_model=FacilityOut)
def get_facility_endpoint(facility_id: int, db: Session = Depends(get_db)):
    return get_facility_or_404(db, facility_id)


@router.patch("/facilities/{facility_id}", response_model=FacilityOut)
def update_facility_endpoint(
    facility_id: int,
    payload: FacilityUpdate,
    today: date = Depends(resolve_today),
    db: Session = Depends(get_db),
):
    obj = get_facility_or_404(db, facility_id)
    return update_facility(db, obj, payload, today=today)


@router.delete("/facilities/{facility_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_facility_endpoint(facility_id: int, db: Session = Depends(get_db)):
    obj = get_facility_or_404(db, facility_id)
    delete_facility(db, obj)
    return None


# -----------------------------
# Compliance state
# -----------------------------
@router.get("/facilities/{facility_id}/compliance", response_model=ComplianceStatusOut)
def get_compliance(
    facility_id: int,
    today: date = Depends(resolve_today),
    db: Session = Depends(get_db),
):
    """
    Live status as of `today` (pure calculation) alongside the stored record.
    Reading never writes.
    """
    facility = get_facility_or_404(db, facility_id)
    result = calculate(facility.production_start_date, facility.effective_completion_date, today)
    record = get_record(db, facility_id)
    return ComplianceStatusOut(
        facility_id=facility_id,
        as_of=today,
        record=ComplianceRecordOut.model_validate(record) if record is not None else None,
        **result.as_dict(),
    )


@router.post("/facilities/{facility_id}/recalculate", response_model=ComplianceStatusOut)
def recalculate_endpoint(
    facility_id: int,
    today: date = Depends(resolve_today),
    db: Session = Depends(get_db),
):
    facility = get_facility_or_404(db, facility_id)
    record = recalculate_facility(db, facility_id, today)
    result = calculate(facility.production_start_date, facility.effective_completion_date, today)
    return ComplianceStatusOut(
        facility_id=facility_id,
        as_of=today,
        record=ComplianceRecordOut.model_validate(record) if record is not None else None,
        **result.as_dict(),
    )


# -----------------------------
# Inspections
# -----------------------------
@router.get("/facilities/{facility_id}/inspection-schedules", response_model=List[InspectionScheduleOut])
def list_schedules(facility_id: int, db: Session = Depends(get_db)):
    get_facility_or_404(db, facility_id)
    return (
        db.query(InspectionSchedule)
        .filter(InspectionSchedule.facility_id == facility_id)
        .order_by(InspectionSchedule.inspection_type.asc())
        .all()
    )


@router.post(
    "/facilities/{facility_id}/inspections",
    response_model=InspectionScheduleOut,
    status_code=status.HTTP_201_CREATED,
)
def record_inspection_endpoint(
    facility_id: int,
    payload: InspectionRecordIn,
    today: date = Depends(resolve_today),
    db: Session = Depends(get_db),
):
    return record_inspection(
        db,
        facility_id,
        payload.inspection_date,
        today=today,
        inspection_type=payload.inspection_type,
    )


@router.put(
    "/facilities/{facility_id}/inspection-schedules/{inspection_type}",
    response_model=InspectionScheduleOut,
)
def set_schedule_endpoint(
    facility_id: int,
    inspection_type: str,
    payload: InspectionScheduleIn,
    today: date = Depends(resolve_today),
    db: Session = Depends(get_db),
):
    try:
        itype = InspectionType(inspection_type.strip().lower())
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown inspection type '{inspection_type}'")
    return set_frequency(
        db,
        facility_id,
        payload.frequency_days,
        today=today,
        inspection_type=itype,
        is_active=payload.is_active,
    )
