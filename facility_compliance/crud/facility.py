# facility_compliance/crud/facility.py
from __future__ import annotations

from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from facility_compliance.core.errors import FacilityNotFound
from facility_compliance.models.facility import Facility
from facility_compliance.schemas.facility import FacilityCreate, FacilityUpdate
from facility_compliance.services.recalculation import on_facility_written


# --- Read helpers -------------------------------------------------------------

def get_facility(db: Session, facility_id: int) -> Optional[Facility]:
    return db.query(Facility).filter(Facility.id == facility_id).first()


def get_facility_or_404(db: Session, facility_id: int) -> Facility:
    obj = get_facility(db, facility_id)
    if obj is None:
        raise FacilityNotFound(facility_id)
    return obj


def get_facilities_by_tenant(
    db: Session,
    tenant_id: int,
    skip: int = 0,
    limit: int = 50,
) -> List[Facility]:
    return (
        db.query(Facility)
        .filter(Facility.tenant_id == tenant_id)
        .order_by(Facility.name.asc(), Facility.id.asc())
        .offset(skip)
        .limit(limit)
        .all()
    )


# --- Create / Update / Delete ------------------------------------------------
# Every write path ends in on_facility_written so derived compliance state never lags.

def create_facility(db: Session, tenant_id: int, payload: FacilityCreate, *, today: date) -> Facility:
    obj = Facility(tenant_id=tenant_id, **payload.model_dump())
    db.add(obj)
    db.commit()
    db.refresh(obj)

    on_facility_written(db, obj, today=today, created=True)
    return obj


def update_facility(db: Session, obj: Facility, payload: FacilityUpdate, *, today: date) -> Facility:
    # only the fields actually sent; record which ones really changed
    data = payload.model_dump(exclude_unset=True)
    changed = set()
    for k, v in data.items():
        if getattr(obj, k) != v:
            setattr(obj, k, v)
            changed.add(k)

    if changed:
        db.add(obj)
        db.commit()
        db.refresh(obj)

    on_facility_written(db, obj, today=today, changed_fields=changed)
    return obj


def delete_facility(db: Session, obj: Facility) -> None:
    # compliance record, schedules and pending queue entries go with it (FK cascade)
    db.delete(obj)
    db.commit()
