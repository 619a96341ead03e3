"""
Offline Session Reconciliation
=====================================
Replays sessions recorded by a disconnected client into the same
aggregates as live sessions.

- Every entry is validated and committed on its own; a failure rolls back
  that entry only and is reported inline with the original payload
- Durations are taken from the client as-is; the server backdates
  start_time from its own clock, so every entry of a batch lands in the
  daily bucket of the processing instant
- Without a client_session_id retries are counted again (at-least-once);
  with one, an already recorded id is rejected as a duplicate
"""

import logging
from typing import Any, Dict, List
from pydantic import ValidationError
from sqlalchemy.orm import Session
from app.core import clock
from app.core.config import MAX_SESSION_DURATION_MS
from app.core.exceptions import SessionTooLongError
from app.models.user import User
from app.models.time_tracking import TimeSession, SessionStatus
from app.schemas.time_tracking import OfflineSessionRecord
from app.services.time_tracker_service import record_completed_session

logger = logging.getLogger(__name__)


def _describe_validation_error(error: ValidationError) -> str:
    parts = []
    for issue in error.errors():
        location = ".".join(str(part) for part in issue.get("loc", ())) or "entry"
        parts.append(f"{location}: {issue.get('msg')}")
    return "Invalid session data - " + "; ".join(parts)


def _sync_one(db: Session, user: User, record: OfflineSessionRecord, now: int) -> Dict:
    # Clients may report fractional milliseconds; aggregates are integral.
    duration = max(int(round(record.duration)), 1)

    if duration > MAX_SESSION_DURATION_MS:
        raise SessionTooLongError(duration, MAX_SESSION_DURATION_MS)

    if record.client_session_id:
        duplicate = db.query(TimeSession).filter(
            TimeSession.user_id == user.id,
            TimeSession.client_session_id == record.client_session_id
        ).first()
        if duplicate:
            raise ValueError("Duplicate session detected")

    session = TimeSession(
        user_id=user.id,
        subject_id=record.subject_id,
        subject_type=record.subject_type,
        start_time=now - duration,
        end_time=now,
        last_ping=now,
        last_activity=now,
        duration=duration,
        status=SessionStatus.completed,
        local_start_time=record.local_start_time,
        local_end_time=record.local_end_time,
        inactivity_ended=False,
        client_session_id=record.client_session_id
    )
    db.add(session)
    db.flush()
    record_completed_session(db, session, duration, now)
    db.commit()

    return {
        "success": True,
        "session_id": session.id,
        "duration": duration,
        "date": clock.utc_date_string(now)
    }


def sync_offline_sessions(db: Session, user: User, sessions: List[Any]) -> Dict:
    logger.info(f"Offline sync requested by user {user.id} with {len(sessions)} sessions")

    now = clock.current_time_ms()
    results = []

    for entry in sessions:
        try:
            record = OfflineSessionRecord.model_validate(entry)
            results.append(_sync_one(db, user, record, now))
        except ValidationError as e:
            db.rollback()
            message = _describe_validation_error(e)
            logger.warning(f"Offline session rejected for user {user.id}: {message}")
            results.append({"success": False, "error": message, "session_data": entry})
        except Exception as e:
            db.rollback()
            message = getattr(e, "message", None) or str(e) or "Unknown error"
            logger.warning(f"Offline session failed for user {user.id}: {message}")
            results.append({"success": False, "error": message, "session_data": entry})

    successful = sum(1 for result in results if result["success"])
    failed = len(results) - successful
    if failed:
        logger.warning(f"Offline sync for user {user.id}: {successful} stored, {failed} failed")
    else:
        logger.info(f"Offline sync for user {user.id}: all {successful} sessions stored")

    return {
        "processed": len(sessions),
        "successful": successful,
        "failed": failed,
        "results": results
    }
