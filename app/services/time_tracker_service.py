# --------------------------------------------------
# Time Tracker Service - Work Session State Machine
#
# States: no session -> active -> completed (terminal)
#
# - start_session()   : one active session per user, checked
#                       up front and backed by a partial unique index
# - heartbeat()       : soft results only; inactivity past the
#                       timeout completes the session without
#                       touching the aggregates
# - end_session()     : idempotent; first completion adds the
#                       duration to TimeTracker and UserDailyLog
# - reporting queries : active session, subject stats, daily
#                       stats, recent sessions, insights
#
# Daily buckets use the UTC date of the moment the session ends,
# so a session crossing midnight counts entirely for the later day.
# --------------------------------------------------

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from app.core import clock
from app.core.config import INACTIVITY_TIMEOUT_MS, MAX_SESSION_DURATION_MS, SESSION_RETENTION_DAYS
from app.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    SessionAlreadyActiveError,
    InvalidSessionTimeError,
    SessionTooLongError,
)
from app.models.user import User
from app.models.time_tracking import TimeSession, TimeTracker, UserDailyLog, SessionStatus

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000


def _find_active_session(db: Session, user_id: str) -> Optional[TimeSession]:
    return db.query(TimeSession).filter(
        TimeSession.user_id == user_id,
        TimeSession.status == SessionStatus.active
    ).first()


def _get_owned_session(db: Session, user: User, session_id: str) -> TimeSession:
    session = db.query(TimeSession).filter(TimeSession.id == session_id).first()
    if not session:
        raise NotFoundError("Session", session_id)
    if session.user_id != user.id:
        logger.warning(f"User {user.id} attempted to access session {session_id} owned by {session.user_id}")
        raise AuthorizationError("Not authorized", details={"session_id": session_id})
    return session


def record_completed_session(db: Session, session: TimeSession, duration: int, now: int) -> None:
    """Add a completed session to its (user, subject) tracker and to the daily log of `now`.

    Does not commit; callers commit together with the session row.
    """
    tracker = db.query(TimeTracker).filter(
        TimeTracker.user_id == session.user_id,
        TimeTracker.subject_id == session.subject_id
    ).first()

    if tracker:
        tracker.session_count = tracker.session_count + 1
        tracker.total_duration = tracker.total_duration + duration
        tracker.average_session_duration = tracker.total_duration / tracker.session_count
        tracker.last_session_date = now
        tracker.updated_at = now
    else:
        db.add(TimeTracker(
            user_id=session.user_id,
            subject_id=session.subject_id,
            subject_type=session.subject_type,
            total_duration=duration,
            session_count=1,
            average_session_duration=float(duration),
            last_session_date=now,
            updated_at=now
        ))

    today = clock.utc_date_string(now)
    daily_log = db.query(UserDailyLog).filter(
        UserDailyLog.user_id == session.user_id,
        UserDailyLog.date == today
    ).first()

    if daily_log:
        breakdown = dict(daily_log.subject_breakdown or {})
        breakdown[session.subject_id] = breakdown.get(session.subject_id, 0) + duration
        daily_log.total_duration = daily_log.total_duration + duration
        daily_log.session_ids = list(daily_log.session_ids or []) + [session.id]
        daily_log.subject_breakdown = breakdown
    else:
        db.add(UserDailyLog(
            user_id=session.user_id,
            date=today,
            total_duration=duration,
            session_ids=[session.id],
            subject_breakdown={session.subject_id: duration}
        ))

    logger.debug(f"Aggregated session {session.id}: +{duration}ms on {today} for subject {session.subject_id}")


# --- Lifecycle ---

def start_session(
    db: Session,
    user: User,
    subject_id: str,
    subject_type: str,
    local_start_time: Optional[float] = None
) -> Dict:
    existing = _find_active_session(db, user.id)
    if existing:
        logger.warning(f"User {user.id} tried to start a session while {existing.id} is active")
        raise SessionAlreadyActiveError(existing.id)

    now = clock.current_time_ms()
    local_start = local_start_time if local_start_time is not None else now

    session = TimeSession(
        user_id=user.id,
        subject_id=subject_id,
        subject_type=subject_type,
        start_time=now,
        last_ping=now,
        last_activity=now,
        status=SessionStatus.active,
        local_start_time=local_start,
        inactivity_ended=False
    )
    try:
        db.add(session)
        db.commit()
    except IntegrityError:
        # Lost the race against a concurrent start for the same user.
        db.rollback()
        logger.warning(f"Concurrent start rejected for user {user.id}")
        raise SessionAlreadyActiveError()
    except Exception as e:
        logger.error(f"Failed to start session for user {user.id}: {e}")
        db.rollback()
        raise

    logger.info(f"Session {session.id} started by user {user.id} on {subject_type} {subject_id}")
    return {
        "session_id": session.id,
        "started_at": now,
        "local_start_time": local_start
    }


def heartbeat(db: Session, user: User, session_id: str, is_active: bool = True) -> Dict:
    session = db.query(TimeSession).filter(TimeSession.id == session_id).first()
    if not session or session.user_id != user.id:
        return {"status": "invalid_session"}

    if session.status != SessionStatus.active:
        return {"status": "session_not_active", "current_status": session.status.value}

    now = clock.current_time_ms()
    if is_active:
        last_active_time = now
    else:
        last_active_time = session.last_activity or session.last_ping or session.start_time
    inactivity_duration = now - last_active_time

    try:
        if not is_active and inactivity_duration > INACTIVITY_TIMEOUT_MS:
            duration = now - session.start_time
            session.status = SessionStatus.completed
            session.end_time = now
            session.last_ping = now
            session.duration = duration
            session.inactivity_ended = True
            db.commit()

            logger.info(f"Session {session_id} auto-completed after {inactivity_duration}ms of inactivity")
            return {
                "status": "auto_paused",
                "duration": duration,
                "ended_at": now,
                "inactivity_duration": inactivity_duration
            }

        session.last_ping = now
        if is_active:
            session.last_activity = now
        db.commit()
    except Exception as e:
        logger.error(f"Heartbeat failed for session {session_id}: {e}")
        db.rollback()
        raise

    return {
        "status": "updated",
        "is_active": is_active,
        "inactivity_duration": inactivity_duration
    }


def end_session(db: Session, user: User, session_id: str, local_end_time: Optional[float] = None) -> Dict:
    session = _get_owned_session(db, user, session_id)

    if session.status == SessionStatus.completed:
        recorded = session.duration
        if recorded is None:
            recorded = (session.end_time - session.start_time) if session.end_time else 0
        return {
            "status": "already_completed",
            "duration": recorded,
            "ended_at": session.end_time or clock.current_time_ms(),
            "local_end_time": session.local_end_time
        }

    now = clock.current_time_ms()
    duration = now - session.start_time

    if session.start_time > now:
        logger.warning(f"Session {session_id} starts in the future ({session.start_time} > {now})")
        raise InvalidSessionTimeError(session_id)
    if duration > MAX_SESSION_DURATION_MS:
        logger.warning(f"Session {session_id} rejected: {duration}ms exceeds {MAX_SESSION_DURATION_MS}ms")
        raise SessionTooLongError(duration, MAX_SESSION_DURATION_MS)

    local_end = local_end_time if local_end_time is not None else now
    try:
        session.status = SessionStatus.completed
        session.end_time = now
        session.last_ping = now
        session.duration = duration
        session.local_end_time = local_end
        record_completed_session(db, session, duration, now)
        db.commit()
    except Exception as e:
        logger.error(f"Failed to end session {session_id}: {e}")
        db.rollback()
        raise

    logger.info(f"Session {session_id} completed by user {user.id}: {duration}ms")
    return {
        "status": "completed",
        "duration": duration,
        "ended_at": now,
        "local_end_time": local_end
    }


def cleanup_old_sessions(db: Session, user: User, days_old: int = SESSION_RETENTION_DAYS) -> Dict:
    """Delete the user's completed sessions started before the cutoff. Aggregates are kept."""
    cutoff = clock.current_time_ms() - days_old * DAY_MS

    try:
        deleted = db.query(TimeSession).filter(
            TimeSession.user_id == user.id,
            TimeSession.status == SessionStatus.completed,
            TimeSession.start_time < cutoff
        ).delete(synchronize_session=False)
        db.commit()
    except Exception as e:
        logger.error(f"Session cleanup failed for user {user.id}: {e}")
        db.rollback()
        raise

    logger.info(f"Deleted {deleted} sessions older than {days_old} days for user {user.id}")
    return {
        "deleted_sessions": deleted,
        "cutoff_date": clock.utc_date_string(cutoff)
    }


# --- Queries ---

def get_active_session(db: Session, user: User, subject_id: Optional[str] = None) -> Optional[Dict]:
    query = db.query(TimeSession).filter(
        TimeSession.user_id == user.id,
        TimeSession.status == SessionStatus.active
    )
    if subject_id:
        query = query.filter(TimeSession.subject_id == subject_id)
    session = query.first()

    if not session:
        return None
    return {
        "session_id": session.id,
        "subject_id": session.subject_id,
        "subject_type": session.subject_type,
        "start_time": session.start_time,
        "last_ping": session.last_ping,
        "status": session.status.value
    }


def _logs_since(db: Session, user_id: str, start_date: str, end_date: Optional[str] = None) -> List[UserDailyLog]:
    query = db.query(UserDailyLog).filter(
        UserDailyLog.user_id == user_id,
        UserDailyLog.date >= start_date
    )
    if end_date:
        query = query.filter(UserDailyLog.date <= end_date)
    return query.all()


def get_subject_stats(db: Session, user: User, subject_id: str) -> Dict:
    tracker = db.query(TimeTracker).filter(
        TimeTracker.user_id == user.id,
        TimeTracker.subject_id == subject_id
    ).first()

    if not tracker:
        return {
            "total_time": 0,
            "session_count": 0,
            "average_session": 0.0,
            "last_session": None,
            "today_time": 0,
            "week_time": 0
        }

    today = clock.utc_date_string(clock.current_time_ms())
    week_logs = _logs_since(db, user.id, clock.days_before(today, 7))

    today_time = 0
    week_time = 0
    for log in week_logs:
        subject_time = (log.subject_breakdown or {}).get(subject_id, 0)
        week_time += subject_time
        if log.date == today:
            today_time = subject_time

    return {
        "total_time": tracker.total_duration,
        "session_count": tracker.session_count,
        "average_session": tracker.average_session_duration,
        "last_session": tracker.last_session_date,
        "today_time": today_time,
        "week_time": week_time
    }


def get_daily_stats(db: Session, user: User, date: Optional[str] = None, days: int = 1) -> List[Dict]:
    target_date = date or clock.utc_date_string(clock.current_time_ms())
    start_date = clock.days_before(target_date, max(days, 1) - 1)

    logs = _logs_since(db, user.id, start_date, target_date)
    return [
        {
            "date": log.date,
            "total_duration": log.total_duration,
            "session_count": len(log.session_ids or []),
            "subject_breakdown": log.subject_breakdown or {}
        }
        for log in sorted(logs, key=lambda l: l.date)
    ]


def get_recent_sessions(db: Session, user: User, subject_id: Optional[str] = None, limit: int = 10) -> List[Dict]:
    query = db.query(TimeSession).filter(
        TimeSession.user_id == user.id,
        TimeSession.status == SessionStatus.completed
    )
    if subject_id:
        query = query.filter(TimeSession.subject_id == subject_id)

    sessions = query.order_by(TimeSession.end_time.desc()).limit(limit).all()
    return [
        {
            "id": session.id,
            "subject_id": session.subject_id,
            "subject_type": session.subject_type,
            "start_time": session.start_time,
            "end_time": session.end_time,
            "duration": session.duration if session.duration is not None else session.end_time - session.start_time,
            "inactivity_ended": bool(session.inactivity_ended)
        }
        for session in sessions
    ]


def get_productivity_insights(db: Session, user: User, days: int = 30) -> Dict:
    today = clock.utc_date_string(clock.current_time_ms())
    logs = _logs_since(db, user.id, clock.days_before(today, days))

    if not logs:
        return {
            "total_time": 0,
            "average_daily": 0.0,
            "active_days": 0,
            "longest_streak": 0,
            "current_streak": 0,
            "top_subjects": [],
            "daily_trend": []
        }

    total_time = sum(log.total_duration for log in logs)
    active_dates = {log.date for log in logs}

    # Walk back from today; the current streak only counts if today is active.
    current_streak = 0
    longest_streak = 0
    run = 0
    still_current = True
    day = datetime.strptime(today, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    for _ in range(days):
        if day.strftime("%Y-%m-%d") in active_dates:
            run += 1
            longest_streak = max(longest_streak, run)
            if still_current:
                current_streak += 1
        else:
            run = 0
            still_current = False
        day -= timedelta(days=1)

    subject_totals: Dict[str, int] = {}
    for log in logs:
        for subject_id, duration in (log.subject_breakdown or {}).items():
            subject_totals[subject_id] = subject_totals.get(subject_id, 0) + duration

    top_subjects = sorted(subject_totals.items(), key=lambda item: item[1], reverse=True)[:5]
    week_start = clock.days_before(today, 7)

    return {
        "total_time": total_time,
        "average_daily": total_time / len(logs),
        "active_days": len(logs),
        "longest_streak": longest_streak,
        "current_streak": current_streak,
        "top_subjects": [{"subject_id": s, "duration": d} for s, d in top_subjects],
        "daily_trend": [
            {"date": log.date, "duration": log.total_duration, "sessions": len(log.session_ids or [])}
            for log in sorted(logs, key=lambda l: l.date)
            if log.date >= week_start
        ]
    }
