# demo_scheduling/services/lifecycle.py
"""
Signup status state machine.

    signed_up --(student or admin)--> withdrawn
    signed_up --(admin)-------------> presented   (did_present=True, optional rating 1-5)
    signed_up --(admin)-------------> no_show     (did_present=False, no rating)

``presented``, ``no_show`` and ``withdrawn`` are terminal.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from demo_scheduling.constants.signup import (
    EDITABLE_FIELDS,
    MAX_RATING,
    MIN_RATING,
    SignupStatus,
)
from demo_scheduling.core.exceptions import (
    AppError,
    ForbiddenError,
    InvalidRatingError,
    InvalidStateError,
    InvalidTransitionError,
    SignupNotFoundError,
)
from demo_scheduling.crud.crud_demo_session import demo_session as demo_session_crud
from demo_scheduling.crud.crud_demo_signup import demo_signup as demo_signup_crud
from demo_scheduling.models.demo_signup import DemoSignup
from demo_scheduling.schemas.token import Caller
from demo_scheduling.services.admission import admission_controller

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    SignupStatus.SIGNED_UP: {
        SignupStatus.PRESENTED,
        SignupStatus.NO_SHOW,
        SignupStatus.WITHDRAWN,
    },
}

ADMIN_ONLY_TARGETS = {SignupStatus.PRESENTED, SignupStatus.NO_SHOW}


def can_transition(from_status: str, to_status: str) -> bool:
    if SignupStatus.is_terminal(from_status):
        return False
    return to_status in ALLOWED_TRANSITIONS.get(from_status, set())


def validate_rating(to_status: str, rating: Optional[int]) -> None:
    """A rating is only meaningful for a presented signup, and must be 1-5."""
    if rating is None:
        return
    if to_status != SignupStatus.PRESENTED:
        raise InvalidRatingError(
            f"A rating can only be given to a '{SignupStatus.PRESENTED}' signup", rating
        )
    if not MIN_RATING <= rating <= MAX_RATING:
        raise InvalidRatingError(
            f"Rating must be between {MIN_RATING} and {MAX_RATING}", rating
        )


class SignupLifecycle:
    def transition(
        self,
        db: Session,
        *,
        signup_id: str,
        to_status: str,
        caller: Caller,
        attendance_notes: Optional[str] = None,
        rating: Optional[int] = None,
        edits: Optional[Dict[str, Any]] = None,
    ) -> DemoSignup:
        """
        Move a signup to ``to_status``.

        Withdrawals are handed to the admission controller so the slot is
        released in the same transaction. Attendance outcomes keep the live
        count unchanged but still take the session lock so they serialize
        with a concurrent withdrawal.

        ``edits`` to the editable signup fields are written in the same
        transaction as the status change.
        """
        signup = demo_signup_crud.get(db, signup_id)
        if not signup:
            raise SignupNotFoundError(signup_id)

        if not SignupStatus.is_valid(to_status):
            raise InvalidTransitionError(signup.status, to_status)
        if to_status in ADMIN_ONLY_TARGETS and not caller.is_admin:
            raise ForbiddenError("Only an admin can record attendance")
        if not caller.acts_for(signup.student_id):
            raise ForbiddenError("Not authorized to change this signup")
        if not can_transition(signup.status, to_status):
            raise InvalidTransitionError(signup.status, to_status)
        validate_rating(to_status, rating)

        if to_status == SignupStatus.WITHDRAWN:
            return admission_controller.release(
                db, signup_id=signup_id, caller=caller, edits=edits
            )

        try:
            demo_session_crud.get_for_update(db, session_id=signup.session_id)
            signup = demo_signup_crud.get_for_update(db, signup_id=signup_id)
            if not can_transition(signup.status, to_status):
                raise InvalidTransitionError(signup.status, to_status)

            for field, value in (edits or {}).items():
                if field in EDITABLE_FIELDS:
                    setattr(signup, field, value)
            demo_signup_crud.mark_attendance(
                db,
                signup=signup,
                status=to_status,
                attendance_notes=attendance_notes,
                rating=rating,
            )
            db.commit()
        except AppError:
            db.rollback()
            raise
        except Exception as e:
            logger.error(
                f"Failed to move signup {signup_id} to {to_status}: {str(e)}",
                exc_info=True,
                extra={"signup_id": signup_id, "to_status": to_status},
            )
            db.rollback()
            raise

        logger.info(f"Signup {signup_id} marked {to_status} by {caller.user_id}")
        return signup

    def edit_signup(
        self,
        db: Session,
        *,
        signup_id: str,
        patch: Dict[str, Any],
        caller: Caller,
    ) -> DemoSignup:
        """Edit ``notes`` / ``demo_ref`` while the signup is still ``signed_up``."""
        try:
            signup = demo_signup_crud.get_for_update(db, signup_id=signup_id)
            if not signup:
                raise SignupNotFoundError(signup_id)
            if not caller.acts_for(signup.student_id):
                raise ForbiddenError("Only the student who signed up or an admin can edit")
            if signup.status != SignupStatus.SIGNED_UP:
                raise InvalidStateError(
                    f"Only a '{SignupStatus.SIGNED_UP}' signup can be edited",
                    current_status=signup.status,
                )

            changes = {k: v for k, v in patch.items() if k in EDITABLE_FIELDS}
            return demo_signup_crud.update(db, db_obj=signup, obj_in=changes)

        except AppError:
            db.rollback()
            raise
        except Exception as e:
            logger.error(
                f"Failed to edit signup {signup_id}: {str(e)}",
                exc_info=True,
                extra={"signup_id": signup_id},
            )
            db.rollback()
            raise


# Singleton instance
signup_lifecycle = SignupLifecycle()
