# demo_scheduling/schemas/demo_session.py
from datetime import date, datetime, time
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator


def _check_meeting_link(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if not value:
        return None
    if not value.startswith(("http://", "https://")):
        raise ValueError("meeting_link must be an http(s) URL")
    return value


class DemoSession(BaseModel):
    id: str
    title: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    session_date: date
    session_time: Optional[time] = None
    meeting_link: Optional[str] = None
    max_scheduled: int
    signup_count: int
    available_slots: int
    is_active: bool
    is_cancelled: bool
    is_archived: bool = False
    created_at: datetime
    updated_at: datetime
    model_config = {"from_attributes": True}


class DemoSessionSummary(BaseModel):
    """Public availability view of a session."""
    id: str
    title: Optional[str] = None
    session_date: date
    session_time: Optional[time] = None
    meeting_link: Optional[str] = None
    max_scheduled: int
    signup_count: int
    available_slots: int
    is_active: bool
    is_cancelled: bool
    user_signed_up: bool = False
    model_config = {"from_attributes": True}


class DemoSessionCreate(BaseModel):
    session_date: date
    session_time: Optional[time] = None
    max_scheduled: int = Field(..., gt=0, json_schema_extra={"example": 6})
    title: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    # Older admin clients send ``zoom_link``.
    meeting_link: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("meeting_link", "zoom_link")
    )
    is_active: bool = True
    is_cancelled: bool = False

    validate_meeting_link = field_validator("meeting_link")(_check_meeting_link)


class DemoSessionUpdate(BaseModel):
    session_date: Optional[date] = None
    session_time: Optional[time] = None
    max_scheduled: Optional[int] = Field(default=None, gt=0)
    title: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    meeting_link: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("meeting_link", "zoom_link")
    )
    # Applied under the session lock with the same checks as the admin toggles.
    is_active: Optional[bool] = None
    is_cancelled: Optional[bool] = None

    validate_meeting_link = field_validator("meeting_link")(_check_meeting_link)


class DemoSessionBulkCreate(BaseModel):
    sessions: List[DemoSessionCreate] = Field(..., min_length=1, max_length=100)


class DemoSessionDeleteResult(BaseModel):
    deleted: bool
    archived: bool
    session: Optional[DemoSession] = None
