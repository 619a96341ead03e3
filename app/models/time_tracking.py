"""
Time Tracking Data Models
=====================================
SQLAlchemy ORM models for work sessions and their aggregates.

Models:
- TimeSession: One tracking interval of a user against a subject
- TimeTracker: Running totals per (user, subject) pair
- UserDailyLog: Per-user totals for one UTC calendar day

All timestamps are integer milliseconds since the epoch.

At most one active session per user is enforced twice: by a pre-check in
the service and by a partial unique index on (user_id) where status is
'active', so concurrent starts cannot both commit.
"""

from sqlalchemy import Column, String, Enum, Integer, BigInteger, Boolean, Float, JSON, Index, UniqueConstraint, ForeignKey, text
import enum
import uuid
from app.db.database import Base

class SessionStatus(str, enum.Enum):
    active = "active"
    completed = "completed"

class TimeSession(Base):
    __tablename__ = "time_sessions"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    subject_id = Column(String, nullable=False, index=True)
    subject_type = Column(String, nullable=False)
    start_time = Column(BigInteger, nullable=False)
    last_ping = Column(BigInteger, nullable=False)
    last_activity = Column(BigInteger, nullable=True)
    status = Column(Enum(SessionStatus), nullable=False, default=SessionStatus.active)
    end_time = Column(BigInteger, nullable=True)
    duration = Column(BigInteger, nullable=True)
    local_start_time = Column(Float, nullable=True)
    local_end_time = Column(Float, nullable=True)
    inactivity_ended = Column(Boolean, nullable=False, default=False)
    client_session_id = Column(String, nullable=True)

    __table_args__ = (
        Index("ix_time_sessions_user_status", "user_id", "status"),
        Index(
            "uq_time_sessions_one_active_per_user",
            "user_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
        UniqueConstraint("user_id", "client_session_id", name="uq_time_sessions_client_session"),
    )

class TimeTracker(Base):
    __tablename__ = "time_trackers"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    subject_id = Column(String, nullable=False)
    subject_type = Column(String, nullable=False)
    total_duration = Column(BigInteger, nullable=False, default=0)
    session_count = Column(Integer, nullable=False, default=0)
    average_session_duration = Column(Float, nullable=False, default=0.0)
    last_session_date = Column(BigInteger, nullable=True)
    updated_at = Column(BigInteger, nullable=True)

    __table_args__ = (UniqueConstraint("user_id", "subject_id", name="uq_time_tracker_user_subject"),)

class UserDailyLog(Base):
    __tablename__ = "user_daily_logs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(String(10), nullable=False)
    total_duration = Column(BigInteger, nullable=False, default=0)
    session_ids = Column(JSON, nullable=False, default=list)
    subject_breakdown = Column(JSON, nullable=False, default=dict)

    __table_args__ = (UniqueConstraint("user_id", "date", name="uq_daily_log_user_date"),)
