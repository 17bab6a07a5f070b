# demo_scheduling/crud/crud_demo_signup.py
"""
CRUD operations for demo signups (the signup ledger).

Write helpers here only stage changes: the caller owns the transaction and
must hold the session row lock (see ``CRUDDemoSession.get_for_update``)
whenever ``signup_count`` is recomputed, so the cached count can never be
derived from a stale view of the ledger.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Set

from sqlalchemy import and_, func
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from demo_scheduling.constants.signup import SignupStatus
from demo_scheduling.core.config import settings
from demo_scheduling.core.exceptions import BusyError
from demo_scheduling.crud.base import CRUDBase
from demo_scheduling.db.session import apply_lock_timeout, begin_locking_transaction
from demo_scheduling.models.demo_session import DemoSession
from demo_scheduling.models.demo_signup import DemoSignup
from demo_scheduling.schemas.demo_signup import DemoSignupCreate, DemoSignupUpdate

logger = logging.getLogger(__name__)


class CRUDDemoSignup(CRUDBase[DemoSignup, DemoSignupCreate, DemoSignupUpdate]):
    def get_for_update(self, db: Session, *, signup_id: str) -> Optional[DemoSignup]:
        """Lock a signup row and reload it from the database."""
        try:
            begin_locking_transaction(db)
            apply_lock_timeout(db)
            return (
                db.query(self.model)
                .filter(self.model.id == signup_id)
                .with_for_update()
                .populate_existing()
                .first()
            )
        except OperationalError as e:
            logger.warning(
                f"Timed out waiting for lock on demo signup {signup_id}: {e}",
                extra={"signup_id": signup_id, "lock_timeout_ms": settings.LOCK_TIMEOUT_MS},
            )
            db.rollback()
            raise BusyError(settings.BUSY_RETRY_AFTER_SECONDS, signup_id=signup_id) from e

    def get_live_for_student(
        self,
        db: Session,
        *,
        session_id: str,
        student_id: str,
    ) -> Optional[DemoSignup]:
        """Get a student's live (non-withdrawn) signup for a session."""
        return db.query(self.model).filter(
            and_(
                self.model.session_id == session_id,
                self.model.student_id == student_id,
                self.model.status.in_(SignupStatus.live_values()),
            )
        ).first()

    def count_live(self, db: Session, *, session_id: str) -> int:
        """Count live signups for a session straight from the ledger."""
        return db.query(func.count(self.model.id)).filter(
            and_(
                self.model.session_id == session_id,
                self.model.status.in_(SignupStatus.live_values()),
            )
        ).scalar() or 0

    def get_multi_by_session(
        self,
        db: Session,
        *,
        session_id: str,
        status: Optional[str] = None,
    ) -> List[DemoSignup]:
        """Get all signups for a session, optionally filtered by status."""
        query = db.query(self.model).filter(self.model.session_id == session_id)
        if status:
            query = query.filter(self.model.status == status)
        return query.order_by(self.model.created_at.asc(), self.model.id.asc()).all()

    def get_multi_by_student(
        self,
        db: Session,
        *,
        student_id: str,
        include_withdrawn: bool = True,
    ) -> List[DemoSignup]:
        query = db.query(self.model).filter(self.model.student_id == student_id)
        if not include_withdrawn:
            query = query.filter(self.model.status.in_(SignupStatus.live_values()))
        return query.order_by(self.model.created_at.desc()).all()

    def live_session_ids_for_student(
        self,
        db: Session,
        *,
        student_id: str,
        session_ids: Iterable[str],
    ) -> Set[str]:
        """Which of ``session_ids`` the student currently holds a live signup in."""
        session_ids = list(session_ids)
        if not session_ids:
            return set()
        rows = db.query(self.model.session_id).filter(
            and_(
                self.model.student_id == student_id,
                self.model.session_id.in_(session_ids),
                self.model.status.in_(SignupStatus.live_values()),
            )
        ).all()
        return {row[0] for row in rows}

    def sync_signup_count(self, db: Session, *, session: DemoSession) -> int:
        """Recompute the cached ``signup_count`` from the ledger."""
        db.flush()
        session.signup_count = self.count_live(db, session_id=session.id)
        db.add(session)
        return session.signup_count

    def add_live(
        self,
        db: Session,
        *,
        session: DemoSession,
        student_id: str,
        demo_ref: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> DemoSignup:
        """Stage a new ``signed_up`` signup and refresh the session count."""
        signup = DemoSignup(
            session_id=session.id,
            student_id=student_id,
            demo_ref=demo_ref,
            notes=notes,
            status=SignupStatus.SIGNED_UP,
        )
        db.add(signup)
        self.sync_signup_count(db, session=session)
        return signup

    def mark_withdrawn(
        self,
        db: Session,
        *,
        session: DemoSession,
        signup: DemoSignup,
    ) -> DemoSignup:
        """Stage a withdrawal and refresh the session count."""
        signup.status = SignupStatus.WITHDRAWN
        signup.withdrawn_at = datetime.now(timezone.utc)
        db.add(signup)
        self.sync_signup_count(db, session=session)
        return signup

    def mark_attendance(
        self,
        db: Session,
        *,
        signup: DemoSignup,
        status: str,
        attendance_notes: Optional[str] = None,
        rating: Optional[int] = None,
    ) -> DemoSignup:
        """Stage a ``presented`` / ``no_show`` outcome. The live count is unchanged."""
        signup.status = status
        signup.did_present = status == SignupStatus.PRESENTED
        if attendance_notes is not None:
            signup.attendance_notes = attendance_notes
        signup.rating = rating if status == SignupStatus.PRESENTED else None
        db.add(signup)
        return signup


demo_signup = CRUDDemoSignup(DemoSignup)
