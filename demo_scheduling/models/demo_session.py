# demo_scheduling/models/demo_session.py
import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Integer,
    String,
    Text,
    Time,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from demo_scheduling.db.base_class import Base


class DemoSession(Base):
    """
    A capacity-limited demo session students sign up to present in.

    ``signup_count`` caches the number of live (non-withdrawn) signups. It is
    written only by the signup ledger while the session row is locked.
    """
    __tablename__ = "demo_sessions"

    id = Column(String, primary_key=True, default=lambda: f"dses_{uuid.uuid4().hex[:12]}")
    title = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    session_date = Column(Date, nullable=False, index=True)
    session_time = Column(Time, nullable=True)
    meeting_link = Column(String, nullable=True)

    max_scheduled = Column(Integer, nullable=False)
    signup_count = Column(Integer, nullable=False, default=0, server_default="0")

    is_active = Column(Boolean, nullable=False, default=True, server_default=text("true"))
    is_cancelled = Column(Boolean, nullable=False, default=False, server_default=text("false"))
    is_archived = Column(Boolean, nullable=False, default=False, server_default=text("false"))

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    signups = relationship("DemoSignup", back_populates="session", passive_deletes=True)

    __table_args__ = (
        CheckConstraint("max_scheduled > 0", name="check_demo_session_capacity_positive"),
        CheckConstraint("signup_count >= 0", name="check_demo_session_count_non_negative"),
        CheckConstraint(
            "signup_count <= max_scheduled", name="check_demo_session_count_lte_capacity"
        ),
    )
    __mapper_args__ = {"eager_defaults": True}

    @property
    def available_slots(self) -> int:
        return max(0, self.max_scheduled - self.signup_count)
