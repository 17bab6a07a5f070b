# demo_scheduling/crud/crud_demo_session.py
"""
CRUD operations for demo sessions.

Besides plain reads and writes this module owns the per-session row lock
that admission control and admin edits serialize on.
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from demo_scheduling.core.config import settings
from demo_scheduling.core.exceptions import BusyError
from demo_scheduling.crud.base import CRUDBase
from demo_scheduling.db.session import apply_lock_timeout, begin_locking_transaction
from demo_scheduling.models.demo_session import DemoSession
from demo_scheduling.models.demo_signup import DemoSignup
from demo_scheduling.schemas.demo_session import DemoSessionCreate, DemoSessionUpdate

logger = logging.getLogger(__name__)


class CRUDDemoSession(CRUDBase[DemoSession, DemoSessionCreate, DemoSessionUpdate]):
    def get_for_update(self, db: Session, *, session_id: str) -> Optional[DemoSession]:
        """
        Lock and return a session row (SELECT ... FOR UPDATE).

        The wait for the lock is bounded; on timeout the transaction is rolled
        back and BusyError is raised so the caller can retry later.
        """
        try:
            begin_locking_transaction(db)
            apply_lock_timeout(db)
            return (
                db.query(self.model)
                .filter(self.model.id == session_id)
                .with_for_update()
                .populate_existing()
                .first()
            )
        except OperationalError as e:
            logger.warning(
                f"Timed out waiting for lock on demo session {session_id}: {e}",
                extra={"session_id": session_id, "lock_timeout_ms": settings.LOCK_TIMEOUT_MS},
            )
            db.rollback()
            raise BusyError(settings.BUSY_RETRY_AFTER_SECONDS, session_id=session_id) from e

    def get_multi(
        self,
        db: Session,
        *,
        include_inactive: bool = False,
        include_cancelled: bool = False,
        include_archived: bool = False,
        skip: int = 0,
        limit: int = 100,
    ) -> List[DemoSession]:
        query = db.query(self.model)
        if not include_inactive:
            query = query.filter(self.model.is_active.is_(True))
        if not include_cancelled:
            query = query.filter(self.model.is_cancelled.is_(False))
        if not include_archived:
            query = query.filter(self.model.is_archived.is_(False))
        return (
            query.order_by(self.model.session_date.asc(), self.model.session_time.asc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def create_many(self, db: Session, *, objs_in: List[DemoSessionCreate]) -> List[DemoSession]:
        """Create several sessions in one transaction (all or nothing)."""
        try:
            db_objs = [self.model(**obj_in.model_dump()) for obj_in in objs_in]
            db.add_all(db_objs)
            db.commit()
        except Exception as e:
            logger.error(
                f"Failed to bulk create {len(objs_in)} demo sessions: {str(e)}",
                exc_info=True,
            )
            db.rollback()
            raise
        return db_objs

    def set_flags(
        self,
        db: Session,
        *,
        db_obj: DemoSession,
        is_active: Optional[bool] = None,
        is_cancelled: Optional[bool] = None,
    ) -> DemoSession:
        """Stage admission flag changes; the caller commits. Signups are never touched."""
        if is_active is not None:
            db_obj.is_active = is_active
        if is_cancelled is not None:
            db_obj.is_cancelled = is_cancelled
        db.add(db_obj)
        return db_obj

    def archive(self, db: Session, *, db_obj: DemoSession) -> DemoSession:
        """Soft-retire a session that signups still reference."""
        db_obj.is_archived = True
        db_obj.is_active = False
        db.add(db_obj)
        db.commit()
        return db_obj

    def has_signups(self, db: Session, *, session_id: str) -> bool:
        """True if any signup (in any status) references the session."""
        return db.query(DemoSignup.id).filter(
            DemoSignup.session_id == session_id
        ).first() is not None


demo_session = CRUDDemoSession(DemoSession)
