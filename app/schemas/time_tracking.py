"""
Time Tracking Schemas
=====================================
Pydantic models for session lifecycle requests, offline sync and the
reporting queries. Timestamps are milliseconds since the epoch.
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

class StartSessionRequest(BaseModel):
    subject_id: str = Field(..., min_length=1)
    subject_type: str = Field(..., min_length=1)
    local_start_time: Optional[float] = None

class StartSessionResponse(BaseModel):
    session_id: str
    started_at: int
    local_start_time: float

class HeartbeatRequest(BaseModel):
    is_active: bool = True

class HeartbeatResponse(BaseModel):
    status: str
    current_status: Optional[str] = None
    is_active: Optional[bool] = None
    inactivity_duration: Optional[int] = None
    duration: Optional[int] = None
    ended_at: Optional[int] = None

class EndSessionRequest(BaseModel):
    local_end_time: Optional[float] = None

class EndSessionResponse(BaseModel):
    status: str
    duration: int
    ended_at: int
    local_end_time: Optional[float] = None

class OfflineSessionRecord(BaseModel):
    subject_id: str = Field(..., min_length=1)
    subject_type: str = Field(..., min_length=1)
    local_start_time: float
    local_end_time: float
    duration: float = Field(..., gt=0)
    client_session_id: Optional[str] = None

class OfflineSyncRequest(BaseModel):
    # Entries are validated one by one so a malformed record, even a non-object, fails alone.
    sessions: List[Any]

class OfflineSyncResult(BaseModel):
    success: bool
    session_id: Optional[str] = None
    duration: Optional[int] = None
    date: Optional[str] = None
    error: Optional[str] = None
    session_data: Optional[Any] = None

class OfflineSyncResponse(BaseModel):
    processed: int
    successful: int
    failed: int
    results: List[OfflineSyncResult]

class ActiveSessionResponse(BaseModel):
    session_id: str
    subject_id: str
    subject_type: str
    start_time: int
    last_ping: int
    status: str

class SubjectStatsResponse(BaseModel):
    total_time: int
    session_count: int
    average_session: float
    last_session: Optional[int] = None
    today_time: int
    week_time: int

class DailyStatsResponse(BaseModel):
    date: str
    total_duration: int
    session_count: int
    subject_breakdown: Dict[str, int]

class RecentSessionResponse(BaseModel):
    id: str
    subject_id: str
    subject_type: str
    start_time: int
    end_time: int
    duration: int
    inactivity_ended: bool

class SubjectTotal(BaseModel):
    subject_id: str
    duration: int

class DailyTrendEntry(BaseModel):
    date: str
    duration: int
    sessions: int

class ProductivityInsightsResponse(BaseModel):
    total_time: int
    average_daily: float
    active_days: int
    longest_streak: int
    current_streak: int
    top_subjects: List[SubjectTotal]
    daily_trend: List[DailyTrendEntry]

class CleanupResponse(BaseModel):
    deleted_sessions: int
    cutoff_date: str
