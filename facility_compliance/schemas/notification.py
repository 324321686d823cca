# facility_compliance/schemas/notification.py
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, conint

from facility_compliance.services.reminder_settings import MAX_OFFSET_DAYS


class QueueEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    facility_id: Optional[int] = None
    notification_type: str
    inspection_type: Optional[str] = None
    subject: str
    message: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    due_date: Optional[date] = None
    scheduled_for: datetime
    status: str
    retry_count: int
    sent_at: Optional[datetime] = None
    error_message: Optional[str] = None
    created_at: datetime


class QueueListOut(BaseModel):
    items: List[QueueEntryOut]
    count: int


class DeliveryFailureIn(BaseModel):
    error: str = Field(..., min_length=1, max_length=2000, description="Reason reported by the delivery channel")


class HistoryEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    facility_id: Optional[int] = None
    queue_entry_id: Optional[int] = None
    notification_type: str
    subject: str
    message: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    sent_at: datetime
    read_at: Optional[datetime] = None
    dismissed_at: Optional[datetime] = None


class HistoryListOut(BaseModel):
    items: List[HistoryEntryOut]
    count: int
    unread: int


class ReminderSettingsIn(BaseModel):
    """Days-before-due offsets per reminder kind. Omitted lists keep their current value; [] turns a kind off."""

    spcc_initial_reminders: Optional[List[conint(ge=0, le=MAX_OFFSET_DAYS)]] = Field(None, max_length=20)
    spcc_renewal_reminders: Optional[List[conint(ge=0, le=MAX_OFFSET_DAYS)]] = Field(None, max_length=20)
    inspection_reminders: Optional[List[conint(ge=0, le=MAX_OFFSET_DAYS)]] = Field(None, max_length=20)


class ReminderSettingsOut(BaseModel):
    tenant_id: int
    spcc_initial_reminders: List[int]
    spcc_renewal_reminders: List[int]
    inspection_reminders: List[int]
    is_default: bool
