import os
from dotenv import load_dotenv

load_dotenv()

SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    raise ValueError("SECRET_KEY is not set! Set it in environment variables.")

ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))
REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "30"))

# Time tracking
# A heartbeat reporting inactivity auto-completes the session once this much
# time has passed since the last recorded activity.
INACTIVITY_TIMEOUT_MS = int(os.getenv("INACTIVITY_TIMEOUT_MS", str(60 * 1000)))
MAX_SESSION_DURATION_MS = int(os.getenv("MAX_SESSION_DURATION_MS", str(24 * 60 * 60 * 1000)))
SESSION_RETENTION_DAYS = int(os.getenv("SESSION_RETENTION_DAYS", "90"))

# Access control
DEFAULT_ROLE_NAME = os.getenv("DEFAULT_ROLE_NAME", "Default")
DEFAULT_ROLE_LEVEL = os.getenv("DEFAULT_ROLE_LEVEL", "read")
SUPER_ADMIN_ROLE_NAME = "Super Admin"

CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
