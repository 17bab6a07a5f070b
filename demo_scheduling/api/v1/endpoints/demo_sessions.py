# demo_scheduling/api/v1/endpoints/demo_sessions.py
"""
Student-facing demo session endpoints: availability, signup, edit, withdraw.
"""
from typing import List

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from demo_scheduling.api import deps
from demo_scheduling.constants.signup import SignupStatus
from demo_scheduling.core.config import settings
from demo_scheduling.core.exceptions import SessionNotFoundError
from demo_scheduling.core.limiter import limiter
from demo_scheduling.crud import demo_session as demo_session_crud
from demo_scheduling.crud import demo_signup as demo_signup_crud
from demo_scheduling.db.session import get_db
from demo_scheduling.schemas.demo_session import (
    DemoSession as DemoSessionSchema,
    DemoSessionSummary,
)
from demo_scheduling.schemas.demo_signup import (
    DemoSignup as DemoSignupSchema,
    DemoSignupCreate,
    DemoSignupUpdate,
)
from demo_scheduling.schemas.token import Caller
from demo_scheduling.services.admission import admission_controller
from demo_scheduling.services.lifecycle import signup_lifecycle

router = APIRouter(tags=["Demo Sessions"])


@router.get("/demo-sessions", response_model=List[DemoSessionSummary])
def list_available_sessions(
    db: Session = Depends(get_db),
    caller: Caller = Depends(deps.get_caller),
):
    """Sessions currently open for signup, with the caller's own signup marked."""
    sessions = demo_session_crud.get_multi(db)
    signed_up = demo_signup_crud.live_session_ids_for_student(
        db, student_id=caller.user_id, session_ids=[s.id for s in sessions]
    )
    return [
        DemoSessionSummary.model_validate(s).model_copy(
            update={"user_signed_up": s.id in signed_up}
        )
        for s in sessions
    ]


@router.get("/demo-sessions/{session_id}", response_model=DemoSessionSchema)
def get_session(
    session_id: str,
    db: Session = Depends(get_db),
    caller: Caller = Depends(deps.get_caller),
):
    """Retrieve a specific demo session, including its live signup count."""
    session_obj = demo_session_crud.get(db, session_id)
    if not session_obj:
        raise SessionNotFoundError(session_id)
    return session_obj


@router.post(
    "/demo-sessions/{session_id}/signup",
    response_model=DemoSignupSchema,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(settings.SIGNUP_RATE_LIMIT)
def signup_for_session(
    request: Request,  # Required for rate limiting
    session_id: str,
    signup_in: DemoSignupCreate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(deps.get_caller),
):
    """
    Reserve a presentation slot in a demo session.

    **Errors**:
    - 404 `SessionNotFound`
    - 403 `SessionInactive` / `SessionCancelled`
    - 409 `Full` / `AlreadySignedUp` / `Conflict`
    - 503 `Busy` (retry after the `Retry-After` header)
    """
    return admission_controller.reserve(
        db,
        session_id=session_id,
        student_id=caller.user_id,
        demo_ref=signup_in.demo_ref,
        notes=signup_in.notes,
    )


@router.put("/demo-signups/{signup_id}", response_model=DemoSignupSchema)
def update_signup(
    signup_id: str,
    signup_in: DemoSignupUpdate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(deps.get_caller),
):
    """
    Edit notes / demo selection on a live signup.

    Sending `status: "withdrawn"` withdraws the signup. Edits sent along with
    it are saved together with the withdrawal or not at all.
    """
    patch = signup_in.model_dump(exclude_unset=True)
    to_status = patch.pop("status", None)

    if to_status and to_status != SignupStatus.SIGNED_UP:
        return signup_lifecycle.transition(
            db, signup_id=signup_id, to_status=to_status, caller=caller, edits=patch
        )
    return signup_lifecycle.edit_signup(
        db, signup_id=signup_id, patch=patch, caller=caller
    )


@router.delete("/demo-signups/{signup_id}", response_model=DemoSignupSchema)
@limiter.limit(settings.SIGNUP_RATE_LIMIT)
def cancel_signup(
    request: Request,  # Required for rate limiting
    signup_id: str,
    db: Session = Depends(get_db),
    caller: Caller = Depends(deps.get_caller),
):
    """Withdraw a signup and free its slot. Returns the withdrawn signup."""
    return admission_controller.release(db, signup_id=signup_id, caller=caller)


@router.get("/students/me/demo-signups", response_model=List[DemoSignupSchema])
def list_my_signups(
    include_withdrawn: bool = True,
    db: Session = Depends(get_db),
    caller: Caller = Depends(deps.get_caller),
):
    """The caller's own signups, newest first."""
    return demo_signup_crud.get_multi_by_student(
        db, student_id=caller.user_id, include_withdrawn=include_withdrawn
    )
