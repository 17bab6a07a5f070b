# demo_scheduling/services/admission.py
"""
Admission control for demo sessions.

``reserve`` and ``release`` are the only ways a presentation slot is taken or
freed. Both run as one transaction holding the session row lock, so for any
session the live signup count never exceeds ``max_scheduled``. Sessions do
not contend with each other.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from demo_scheduling.constants.signup import EDITABLE_FIELDS, SignupStatus
from demo_scheduling.core.exceptions import (
    AlreadySignedUpError,
    AppError,
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    SessionCancelledError,
    SessionFullError,
    SessionInactiveError,
    SessionNotFoundError,
    SignupNotFoundError,
)
from demo_scheduling.crud.crud_demo_session import demo_session as demo_session_crud
from demo_scheduling.crud.crud_demo_signup import demo_signup as demo_signup_crud
from demo_scheduling.models.demo_session import DemoSession
from demo_scheduling.models.demo_signup import DemoSignup
from demo_scheduling.schemas.token import Caller

logger = logging.getLogger(__name__)


def ensure_open_for_signup(session_obj: DemoSession) -> None:
    """Raise if the session is not accepting new signups."""
    if session_obj.is_cancelled:
        raise SessionCancelledError(session_obj.id)
    if not session_obj.is_active or session_obj.is_archived:
        raise SessionInactiveError(session_obj.id)


class AdmissionController:
    """Atomic check-and-reserve / release of demo session slots."""

    def reserve(
        self,
        db: Session,
        *,
        session_id: str,
        student_id: str,
        demo_ref: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> DemoSignup:
        """
        Reserve a slot in a session for a student.

        Raises:
            SessionNotFoundError, SessionInactiveError, SessionCancelledError,
            AlreadySignedUpError, SessionFullError: typed rejections
            BusyError: the session lock could not be acquired in time
            ConflictError: a concurrent write violated the one-live-signup rule
        """
        try:
            session_obj = demo_session_crud.get_for_update(db, session_id=session_id)
            if not session_obj:
                raise SessionNotFoundError(session_id)

            ensure_open_for_signup(session_obj)

            existing = demo_signup_crud.get_live_for_student(
                db, session_id=session_id, student_id=student_id
            )
            if existing:
                raise AlreadySignedUpError(session_id, student_id)

            current_count = demo_signup_crud.count_live(db, session_id=session_id)
            if current_count >= session_obj.max_scheduled:
                logger.info(
                    f"Signup rejected for student {student_id} - session {session_id} at capacity "
                    f"({current_count}/{session_obj.max_scheduled})"
                )
                raise SessionFullError(session_id, session_obj.max_scheduled)

            signup = demo_signup_crud.add_live(
                db,
                session=session_obj,
                student_id=student_id,
                demo_ref=demo_ref,
                notes=notes,
            )

            # Signup row + cached count commit together
            db.commit()

        except AppError:
            db.rollback()
            raise
        except IntegrityError as e:
            db.rollback()
            logger.warning(
                f"Concurrent signup conflict for student {student_id}, session {session_id}: {e}",
                extra={"student_id": student_id, "session_id": session_id},
            )
            raise ConflictError(
                "Signup conflicted with a concurrent change. Refresh and try again.",
                details={"session_id": session_id},
            ) from e
        except Exception as e:
            logger.error(
                f"Failed to reserve slot for student {student_id}, session {session_id}: {str(e)}",
                exc_info=True,
                extra={"student_id": student_id, "session_id": session_id},
            )
            db.rollback()
            raise

        logger.info(
            f"Student {student_id} signed up for session {session_id} "
            f"({session_obj.signup_count}/{session_obj.max_scheduled})"
        )
        return signup

    def release(
        self,
        db: Session,
        *,
        signup_id: str,
        caller: Caller,
        edits: Optional[Dict[str, Any]] = None,
    ) -> DemoSignup:
        """
        Withdraw a ``signed_up`` signup, freeing its slot.

        ``edits`` (``notes`` / ``demo_ref``) are applied in the same
        transaction, so they are saved only if the withdrawal is.

        Raises:
            SignupNotFoundError: unknown signup id
            ForbiddenError: caller is neither the owning student nor an admin
            InvalidStateError: the signup is no longer ``signed_up``
            BusyError: the session lock could not be acquired in time
        """
        try:
            signup = demo_signup_crud.get(db, signup_id)
            if not signup:
                raise SignupNotFoundError(signup_id)
            if not caller.acts_for(signup.student_id):
                raise ForbiddenError("Only the student who signed up or an admin can withdraw")

            session_obj = demo_session_crud.get_for_update(db, session_id=signup.session_id)
            # Re-read under the lock; a concurrent request may have moved it on.
            signup = demo_signup_crud.get_for_update(db, signup_id=signup_id)
            if signup.status != SignupStatus.SIGNED_UP:
                raise InvalidStateError(
                    f"Only a '{SignupStatus.SIGNED_UP}' signup can be withdrawn",
                    current_status=signup.status,
                )

            for field, value in (edits or {}).items():
                if field in EDITABLE_FIELDS:
                    setattr(signup, field, value)
            demo_signup_crud.mark_withdrawn(db, session=session_obj, signup=signup)

            # Withdrawal + count decrement commit together
            db.commit()

        except AppError:
            db.rollback()
            raise
        except Exception as e:
            logger.error(
                f"Failed to release signup {signup_id}: {str(e)}",
                exc_info=True,
                extra={"signup_id": signup_id, "caller": caller.user_id},
            )
            db.rollback()
            raise

        logger.info(
            f"Signup {signup_id} withdrawn by {caller.user_id}; session {session_obj.id} "
            f"now {session_obj.signup_count}/{session_obj.max_scheduled}"
        )
        return signup


# Singleton instance
admission_controller = AdmissionController()
