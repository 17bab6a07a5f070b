# demo_scheduling/schemas/demo_signup.py
from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


class DemoSignup(BaseModel):
    id: str
    session_id: str
    student_id: str
    demo_ref: Optional[str] = None
    notes: Optional[str] = None
    status: str
    did_present: Optional[bool] = None
    attendance_notes: Optional[str] = None
    rating: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    withdrawn_at: Optional[datetime] = None
    model_config = {"from_attributes": True}


class DemoSignupCreate(BaseModel):
    # The frontend still sends the older ``demo_id`` / ``signup_notes`` names.
    demo_ref: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("demo_ref", "demo_id")
    )
    notes: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("notes", "signup_notes")
    )


class DemoSignupUpdate(BaseModel):
    """Student-side edit of a live signup."""
    demo_ref: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("demo_ref", "demo_id")
    )
    notes: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("notes", "signup_notes")
    )
    status: Optional[str] = None


class DemoSignupAdminUpdate(BaseModel):
    """Admin attendance / feedback update."""
    status: Optional[str] = None
    did_present: Optional[bool] = None
    # Range is enforced by the lifecycle so the caller gets an InvalidRating error.
    presentation_rating: Optional[int] = None
    presentation_notes: Optional[str] = None
