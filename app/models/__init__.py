from .user import User, RefreshToken
from .access import Role, Permission, Module, Company, CompanyModule
from .time_tracking import TimeSession, TimeTracker, UserDailyLog, SessionStatus

__all__ = [
    "User", "RefreshToken",
    "Role", "Permission", "Module", "Company", "CompanyModule",
    "TimeSession", "TimeTracker", "UserDailyLog", "SessionStatus"
]
