# demo_scheduling/models/demo_signup.py
"""
Demo signup model: a student's reservation of a presentation slot.

At most one live (non-withdrawn) signup may exist per (session, student);
withdrawn rows are kept as history, so the uniqueness is a partial index.
"""

import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from demo_scheduling.db.base_class import Base

_LIVE_ONLY = text("status <> 'withdrawn'")


class DemoSignup(Base):
    __tablename__ = "demo_signups"

    id = Column(String, primary_key=True, default=lambda: f"dsu_{uuid.uuid4().hex[:12]}")
    session_id = Column(
        String, ForeignKey("demo_sessions.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    student_id = Column(String, nullable=False, index=True)
    demo_ref = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    status = Column(String(20), nullable=False, default="signed_up", server_default="signed_up")
    did_present = Column(Boolean, nullable=True)
    attendance_notes = Column(Text, nullable=True)
    rating = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )
    withdrawn_at = Column(DateTime(timezone=True), nullable=True)

    session = relationship("DemoSession", back_populates="signups")

    __table_args__ = (
        CheckConstraint(
            "status IN ('signed_up', 'presented', 'no_show', 'withdrawn')",
            name="check_demo_signup_status",
        ),
        CheckConstraint(
            "rating IS NULL OR (rating >= 1 AND rating <= 5)",
            name="check_demo_signup_rating_range",
        ),
        Index(
            "uq_demo_signups_live_student",
            "session_id",
            "student_id",
            unique=True,
            postgresql_where=_LIVE_ONLY,
            sqlite_where=_LIVE_ONLY,
        ),
        Index("idx_demo_signups_session_status", "session_id", "status"),
    )
    # Server-set timestamps are loaded at flush, never lazily after commit.
    __mapper_args__ = {"eager_defaults": True}
