"""
Time Tracking API
========================
Work session lifecycle, offline reconciliation and reporting.

Every endpoint acts on the authenticated user's own sessions.
Heartbeats and repeated ends answer with status payloads instead of errors.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from app.db.database import get_db
from app.models.user import User
from app.core.config import SESSION_RETENTION_DAYS
from app.core.security import get_current_user
from app.schemas.time_tracking import (
    StartSessionRequest,
    StartSessionResponse,
    HeartbeatRequest,
    HeartbeatResponse,
    EndSessionRequest,
    EndSessionResponse,
    OfflineSyncRequest,
    OfflineSyncResponse,
    ActiveSessionResponse,
    SubjectStatsResponse,
    DailyStatsResponse,
    RecentSessionResponse,
    ProductivityInsightsResponse,
    CleanupResponse,
)
from app.services import time_tracker_service
from app.services.offline_sync_service import sync_offline_sessions

router = APIRouter(prefix="/api/time", tags=["Time Tracking"])

@router.post("/sessions", response_model=StartSessionResponse, status_code=201)
def start_session(
    payload: StartSessionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return time_tracker_service.start_session(
        db, current_user, payload.subject_id, payload.subject_type, payload.local_start_time
    )

@router.post("/sessions/{session_id}/heartbeat", response_model=HeartbeatResponse, response_model_exclude_none=True)
def heartbeat(
    session_id: str,
    payload: HeartbeatRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return time_tracker_service.heartbeat(db, current_user, session_id, payload.is_active)

@router.post("/sessions/{session_id}/end", response_model=EndSessionResponse)
def end_session(
    session_id: str,
    payload: EndSessionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return time_tracker_service.end_session(db, current_user, session_id, payload.local_end_time)

@router.post("/sync", response_model=OfflineSyncResponse, response_model_exclude_none=True)
def sync_sessions(
    payload: OfflineSyncRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return sync_offline_sessions(db, current_user, payload.sessions)

@router.delete("/sessions/cleanup", response_model=CleanupResponse)
def cleanup_sessions(
    days_old: int = Query(SESSION_RETENTION_DAYS, ge=1),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return time_tracker_service.cleanup_old_sessions(db, current_user, days_old)

@router.get("/sessions/active", response_model=Optional[ActiveSessionResponse])
def get_active_session(
    subject_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return time_tracker_service.get_active_session(db, current_user, subject_id)

@router.get("/sessions/recent", response_model=List[RecentSessionResponse])
def get_recent_sessions(
    subject_id: Optional[str] = Query(None),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return time_tracker_service.get_recent_sessions(db, current_user, subject_id, limit)

@router.get("/stats/{subject_id}", response_model=SubjectStatsResponse)
def get_subject_stats(
    subject_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return time_tracker_service.get_subject_stats(db, current_user, subject_id)

@router.get("/daily", response_model=List[DailyStatsResponse])
def get_daily_stats(
    date: Optional[str] = Query(None, pattern=r"^\d{4}-\d{2}-\d{2}$", description="Last day of the range (UTC, YYYY-MM-DD)"),
    days: int = Query(1, ge=1, le=366),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return time_tracker_service.get_daily_stats(db, current_user, date, days)

@router.get("/insights", response_model=ProductivityInsightsResponse)
def get_productivity_insights(
    days: int = Query(30, ge=1, le=366),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return time_tracker_service.get_productivity_insights(db, current_user, days)
