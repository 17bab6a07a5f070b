# demo_scheduling/services/session_admin.py
"""
Administrative operations on demo sessions and signup feedback.

Anything that can change what admission control sees (capacity, the
active/cancelled flags) locks the session row first, so it serializes with
concurrent ``reserve`` / ``release`` calls on the same session. Deactivating
or cancelling a session only blocks new signups; existing signups stay as
they are.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from demo_scheduling.constants.signup import SignupStatus
from demo_scheduling.core.exceptions import (
    AppError,
    CapacityConflictError,
    ForbiddenError,
    InvalidStateError,
    SessionNotFoundError,
    SignupNotFoundError,
)
from demo_scheduling.crud.crud_demo_session import demo_session as demo_session_crud
from demo_scheduling.crud.crud_demo_signup import demo_signup as demo_signup_crud
from demo_scheduling.models.demo_session import DemoSession
from demo_scheduling.models.demo_signup import DemoSignup
from demo_scheduling.schemas.demo_session import DemoSessionCreate, DemoSessionUpdate
from demo_scheduling.schemas.token import Caller
from demo_scheduling.services.lifecycle import validate_rating

logger = logging.getLogger(__name__)

# Columns that cannot be cleared with an explicit null
_REQUIRED_FIELDS = {"session_date", "max_scheduled"}
_FLAG_FIELDS = {"is_active", "is_cancelled"}


def ensure_flags_allowed(session_obj: DemoSession, *, is_active: Optional[bool]) -> None:
    if is_active is True and session_obj.is_archived:
        raise InvalidStateError("An archived session cannot be reactivated")


class SessionAdminOps:
    def create_session(self, db: Session, *, obj_in: DemoSessionCreate) -> DemoSession:
        session_obj = demo_session_crud.create(db, obj_in=obj_in)
        logger.info(
            f"Demo session {session_obj.id} created for {session_obj.session_date} "
            f"(capacity {session_obj.max_scheduled})"
        )
        return session_obj

    def bulk_create_sessions(
        self, db: Session, *, objs_in: List[DemoSessionCreate]
    ) -> List[DemoSession]:
        sessions = demo_session_crud.create_many(db, objs_in=objs_in)
        logger.info(f"Bulk created {len(sessions)} demo sessions")
        return sessions

    def list_sessions(
        self,
        db: Session,
        *,
        include_inactive: bool = True,
        include_cancelled: bool = True,
    ) -> List[DemoSession]:
        return demo_session_crud.get_multi(
            db, include_inactive=include_inactive, include_cancelled=include_cancelled
        )

    def get_session(self, db: Session, *, session_id: str) -> DemoSession:
        session_obj = demo_session_crud.get(db, session_id)
        if not session_obj:
            raise SessionNotFoundError(session_id)
        return session_obj

    def update_session(
        self, db: Session, *, session_id: str, obj_in: DemoSessionUpdate
    ) -> DemoSession:
        """
        Apply an admin patch to a session.

        Shrinking ``max_scheduled`` below the live signup count is refused
        with CapacityConflictError and nothing is changed.
        """
        patch = obj_in.model_dump(exclude_unset=True)
        flags = {k: patch.pop(k) for k in list(patch) if k in _FLAG_FIELDS}
        patch = {
            k: v for k, v in patch.items() if not (k in _REQUIRED_FIELDS and v is None)
        }

        try:
            session_obj = self._lock(db, session_id)

            new_capacity = patch.get("max_scheduled")
            if new_capacity is not None:
                live_count = demo_signup_crud.count_live(db, session_id=session_id)
                if new_capacity < live_count:
                    raise CapacityConflictError(session_id, new_capacity, live_count)

            ensure_flags_allowed(session_obj, is_active=flags.get("is_active"))
            demo_session_crud.set_flags(db, db_obj=session_obj, **flags)

            session_obj = demo_session_crud.update(db, db_obj=session_obj, obj_in=patch)

        except AppError:
            db.rollback()
            raise
        except Exception as e:
            logger.error(
                f"Failed to update demo session {session_id}: {str(e)}",
                exc_info=True,
                extra={"session_id": session_id, "patch": patch, "flags": flags},
            )
            db.rollback()
            raise

        logger.info(f"Demo session {session_id} updated: {sorted({**patch, **flags})}")
        return session_obj

    def deactivate(self, db: Session, *, session_id: str) -> DemoSession:
        return self._set_flags(db, session_id, is_active=False)

    def reactivate(self, db: Session, *, session_id: str) -> DemoSession:
        return self._set_flags(db, session_id, is_active=True)

    def cancel(self, db: Session, *, session_id: str) -> DemoSession:
        return self._set_flags(db, session_id, is_cancelled=True)

    def uncancel(self, db: Session, *, session_id: str) -> DemoSession:
        return self._set_flags(db, session_id, is_cancelled=False)

    def delete_session(
        self, db: Session, *, session_id: str
    ) -> Tuple[Optional[DemoSession], bool]:
        """
        Delete a session, or soft-retire it if any signup references it.

        Returns:
            (session, archived): ``(None, False)`` when the row was removed,
            ``(session, True)`` when it was archived instead.
        """
        try:
            session_obj = self._lock(db, session_id)
            if demo_session_crud.has_signups(db, session_id=session_id):
                session_obj = demo_session_crud.archive(db, db_obj=session_obj)
                logger.info(f"Demo session {session_id} archived (has signups)")
                return session_obj, True

            demo_session_crud.remove(db, id=session_id)
        except AppError:
            db.rollback()
            raise
        except Exception as e:
            logger.error(
                f"Failed to delete demo session {session_id}: {str(e)}",
                exc_info=True,
                extra={"session_id": session_id},
            )
            db.rollback()
            raise

        logger.info(f"Demo session {session_id} deleted")
        return None, False

    def list_signups(self, db: Session, *, session_id: str) -> List[DemoSignup]:
        """All signups of a session (every status) for admin review."""
        self.get_session(db, session_id=session_id)
        return demo_signup_crud.get_multi_by_session(db, session_id=session_id)

    def record_feedback(
        self,
        db: Session,
        *,
        signup_id: str,
        caller: Caller,
        attendance_notes: Optional[str] = None,
        rating: Optional[int] = None,
    ) -> DemoSignup:
        """
        Correct the feedback on an already-recorded attendance outcome.

        The status itself never changes here; see SignupLifecycle.transition.
        """
        if not caller.is_admin:
            raise ForbiddenError("Only an admin can record feedback")

        try:
            signup = demo_signup_crud.get_for_update(db, signup_id=signup_id)
            if not signup:
                raise SignupNotFoundError(signup_id)
            if signup.status not in (SignupStatus.PRESENTED, SignupStatus.NO_SHOW):
                raise InvalidStateError(
                    "Feedback can only be recorded once attendance is marked",
                    current_status=signup.status,
                )
            validate_rating(signup.status, rating)

            changes = {}
            if attendance_notes is not None:
                changes["attendance_notes"] = attendance_notes
            if rating is not None:
                changes["rating"] = rating
            signup = demo_signup_crud.update(db, db_obj=signup, obj_in=changes)

        except AppError:
            db.rollback()
            raise
        except Exception as e:
            logger.error(
                f"Failed to record feedback for signup {signup_id}: {str(e)}",
                exc_info=True,
                extra={"signup_id": signup_id},
            )
            db.rollback()
            raise

        logger.info(f"Feedback for signup {signup_id} updated by {caller.user_id}")
        return signup

    def _lock(self, db: Session, session_id: str) -> DemoSession:
        session_obj = demo_session_crud.get_for_update(db, session_id=session_id)
        if not session_obj:
            raise SessionNotFoundError(session_id)
        return session_obj

    def _set_flags(
        self,
        db: Session,
        session_id: str,
        *,
        is_active: Optional[bool] = None,
        is_cancelled: Optional[bool] = None,
    ) -> DemoSession:
        try:
            session_obj = self._lock(db, session_id)
            ensure_flags_allowed(session_obj, is_active=is_active)
            session_obj = demo_session_crud.set_flags(
                db, db_obj=session_obj, is_active=is_active, is_cancelled=is_cancelled
            )
            db.commit()
        except AppError:
            db.rollback()
            raise
        except Exception as e:
            logger.error(
                f"Failed to toggle flags on demo session {session_id}: {str(e)}",
                exc_info=True,
                extra={"session_id": session_id},
            )
            db.rollback()
            raise

        logger.info(
            f"Demo session {session_id} flags set: "
            f"is_active={session_obj.is_active}, is_cancelled={session_obj.is_cancelled}"
        )
        return session_obj


# Singleton instance
session_admin = SessionAdminOps()
