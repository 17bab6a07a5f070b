# demo_scheduling/api/v1/endpoints/admin_demo_sessions.py
"""
Admin endpoints for demo session management and attendance review.

**Authorization**: every route requires the `admin` role.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from demo_scheduling.api import deps
from demo_scheduling.constants.signup import SignupStatus
from demo_scheduling.core.exceptions import SignupNotFoundError
from demo_scheduling.crud import demo_signup as demo_signup_crud
from demo_scheduling.db.session import get_db
from demo_scheduling.schemas.demo_session import (
    DemoSession as DemoSessionSchema,
    DemoSessionBulkCreate,
    DemoSessionCreate,
    DemoSessionDeleteResult,
    DemoSessionUpdate,
)
from demo_scheduling.schemas.demo_signup import (
    DemoSignup as DemoSignupSchema,
    DemoSignupAdminUpdate,
)
from demo_scheduling.schemas.token import Caller
from demo_scheduling.services.lifecycle import signup_lifecycle
from demo_scheduling.services.session_admin import session_admin

router = APIRouter(prefix="/admin", tags=["Admin Demo Sessions"])


# ==================== Helper Functions ====================

def resolve_target_status(update_in: DemoSignupAdminUpdate) -> Optional[str]:
    """
    Work out which status the admin is asking for.

    The admin UI sends either an explicit `status`, a `did_present` flag, or
    both; when both are present they must agree.
    """
    from_flag = None
    if update_in.did_present is not None:
        from_flag = SignupStatus.PRESENTED if update_in.did_present else SignupStatus.NO_SHOW

    if update_in.status is not None and from_flag is not None and update_in.status != from_flag:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="did_present does not match status",
        )
    return update_in.status or from_flag


# ==================== Sessions ====================

@router.get("/demo-sessions", response_model=List[DemoSessionSchema])
def list_sessions(
    include_inactive: bool = True,
    include_cancelled: bool = True,
    db: Session = Depends(get_db),
    caller: Caller = Depends(deps.require_admin),
):
    """**[ADMIN]** List demo sessions, inactive and cancelled ones included by default."""
    return session_admin.list_sessions(
        db, include_inactive=include_inactive, include_cancelled=include_cancelled
    )


@router.post(
    "/demo-sessions",
    response_model=DemoSessionSchema,
    status_code=status.HTTP_201_CREATED,
)
def create_session(
    session_in: DemoSessionCreate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(deps.require_admin),
):
    """**[ADMIN]** Create a demo session."""
    return session_admin.create_session(db, obj_in=session_in)


@router.post(
    "/demo-sessions/bulk-create",
    response_model=List[DemoSessionSchema],
    status_code=status.HTTP_201_CREATED,
)
def bulk_create_sessions(
    bulk_in: DemoSessionBulkCreate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(deps.require_admin),
):
    """**[ADMIN]** Create several demo sessions at once. Either all are created or none."""
    return session_admin.bulk_create_sessions(db, objs_in=bulk_in.sessions)


@router.get("/demo-sessions/{session_id}", response_model=DemoSessionSchema)
def get_session(
    session_id: str,
    db: Session = Depends(get_db),
    caller: Caller = Depends(deps.require_admin),
):
    return session_admin.get_session(db, session_id=session_id)


@router.put("/demo-sessions/{session_id}", response_model=DemoSessionSchema)
def update_session(
    session_id: str,
    session_in: DemoSessionUpdate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(deps.require_admin),
):
    """
    **[ADMIN]** Update a demo session.

    **Errors**:
    - 404 `SessionNotFound`
    - 409 `CapacityConflict`: `max_scheduled` below the current signup count
    """
    return session_admin.update_session(db, session_id=session_id, obj_in=session_in)


@router.delete("/demo-sessions/{session_id}", response_model=DemoSessionDeleteResult)
def delete_session(
    session_id: str,
    db: Session = Depends(get_db),
    caller: Caller = Depends(deps.require_admin),
):
    """
    **[ADMIN]** Delete a demo session.

    Sessions that signups reference are archived (soft-retired) instead.
    """
    session_obj, archived = session_admin.delete_session(db, session_id=session_id)
    return DemoSessionDeleteResult(
        deleted=not archived,
        archived=archived,
        session=DemoSessionSchema.model_validate(session_obj) if session_obj else None,
    )


@router.post("/demo-sessions/{session_id}/deactivate", response_model=DemoSessionSchema)
def deactivate_session(
    session_id: str,
    db: Session = Depends(get_db),
    caller: Caller = Depends(deps.require_admin),
):
    """**[ADMIN]** Stop new signups. Existing signups are kept."""
    return session_admin.deactivate(db, session_id=session_id)


@router.post("/demo-sessions/{session_id}/reactivate", response_model=DemoSessionSchema)
def reactivate_session(
    session_id: str,
    db: Session = Depends(get_db),
    caller: Caller = Depends(deps.require_admin),
):
    return session_admin.reactivate(db, session_id=session_id)


@router.post("/demo-sessions/{session_id}/cancel", response_model=DemoSessionSchema)
def cancel_session(
    session_id: str,
    db: Session = Depends(get_db),
    caller: Caller = Depends(deps.require_admin),
):
    """**[ADMIN]** Cancel a session. Existing signups are kept."""
    return session_admin.cancel(db, session_id=session_id)


@router.post("/demo-sessions/{session_id}/uncancel", response_model=DemoSessionSchema)
def uncancel_session(
    session_id: str,
    db: Session = Depends(get_db),
    caller: Caller = Depends(deps.require_admin),
):
    return session_admin.uncancel(db, session_id=session_id)


# ==================== Signups ====================

@router.get("/demo-sessions/{session_id}/signups", response_model=List[DemoSignupSchema])
def list_session_signups(
    session_id: str,
    db: Session = Depends(get_db),
    caller: Caller = Depends(deps.require_admin),
):
    """**[ADMIN]** Every signup of a session, in signup order."""
    return session_admin.list_signups(db, session_id=session_id)


@router.put("/demo-signups/{signup_id}/admin", response_model=DemoSignupSchema)
def admin_update_signup(
    signup_id: str,
    update_in: DemoSignupAdminUpdate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(deps.require_admin),
):
    """
    **[ADMIN]** Record attendance and feedback for a signup.

    - `signed_up` → `presented` / `no_show` / `withdrawn` via `status` or `did_present`
    - Repeating the current `presented` / `no_show` status only corrects
      `presentation_notes` / `presentation_rating`

    **Errors**:
    - 404 `SignupNotFound`
    - 409 `InvalidTransition`: the signup is already in a terminal state
    - 400 `InvalidRating`: rating outside 1-5, or given for a non-presented signup
    """
    signup = demo_signup_crud.get(db, signup_id)
    if not signup:
        raise SignupNotFoundError(signup_id)

    target = resolve_target_status(update_in)
    is_feedback_only = target is None or (
        target == signup.status
        and target in (SignupStatus.PRESENTED, SignupStatus.NO_SHOW)
    )
    if is_feedback_only:
        return session_admin.record_feedback(
            db,
            signup_id=signup_id,
            caller=caller,
            attendance_notes=update_in.presentation_notes,
            rating=update_in.presentation_rating,
        )

    return signup_lifecycle.transition(
        db,
        signup_id=signup_id,
        to_status=target,
        caller=caller,
        attendance_notes=update_in.presentation_notes,
        rating=update_in.presentation_rating,
    )
