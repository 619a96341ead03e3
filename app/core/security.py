from passlib.context import CryptContext
from jose import jwt, JWTError, ExpiredSignatureError
from datetime import datetime, timedelta, timezone
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from app.core.config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES, REFRESH_TOKEN_EXPIRE_DAYS
from app.db.database import get_db
from app.core.exceptions import NotAuthenticatedError
from app.models.user import User, RefreshToken
from app.services.permission_service import RoleLevel, require_permission
import logging
import hashlib
import secrets

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
security = HTTPBearer(auto_error=False)

def get_password_hash(password: str):
    return pwd_context.hash(password)

def verify_password(plain_password: str, hashed_password: str):
    return pwd_context.verify(plain_password, hashed_password)

def create_access_token(data: dict, expires_delta: timedelta | None = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

def verify_token(token: str):

    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        email: str = payload.get("sub")
        if email is None:
            raise NotAuthenticatedError("Invalid token payload")
        return email
    except ExpiredSignatureError:
        raise NotAuthenticatedError("Token has expired")
    except JWTError as e:
        logger.error(f"JWT error: {type(e).__name__}")
        raise NotAuthenticatedError("Token verification failed")

def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db)
):
    if credentials is None:
        raise NotAuthenticatedError()
    email = verify_token(credentials.credentials)
    user = db.query(User).filter(User.email == email).first()
    if user is None:
        logger.warning(f"Valid token but user not found in database: {email}")
        raise NotAuthenticatedError("User account not found or deleted")
    return user

def require_level(level: RoleLevel):
    """Dependency factory: the current user's role must reach `level`."""

    def dependency(
        current_user: User = Depends(get_current_user),
        db: Session = Depends(get_db)
    ) -> User:
        return require_permission(db, current_user, level)

    return dependency

def generate_refresh_token() -> str:
    return secrets.token_urlsafe(32)

def hash_refresh_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()

def create_refresh_token(db: Session, user_id: str) -> str:
    token = generate_refresh_token()
    token_hash = hash_refresh_token(token)
    
    expires_at = datetime.now(timezone.utc) + timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS)
    
    old_tokens = db.query(RefreshToken).filter(
        RefreshToken.user_id == user_id,
        RefreshToken.is_revoked == False
    ).all()
    
    for old_token in old_tokens:
        old_token.is_revoked = True
    
    refresh_token_record = RefreshToken(
        user_id=user_id,
        token_hash=token_hash,
        expires_at=expires_at
    )
    
    db.add(refresh_token_record)
    db.commit()
    
    return token

def verify_refresh_token(db: Session, token: str) -> User | None:
    if not token:
        return None
    
    token_hash = hash_refresh_token(token)
    
    refresh_token_record = db.query(RefreshToken).filter(
        RefreshToken.token_hash == token_hash,
        RefreshToken.is_revoked == False
    ).first()
    
    if not refresh_token_record:
        return None

    # SQLite hands back naive datetimes
    expires_at = refresh_token_record.expires_at
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    if expires_at <= datetime.now(timezone.utc):
        return None
    
    user = db.query(User).filter(User.id == refresh_token_record.user_id).first()
    return user

def revoke_refresh_token(db: Session, token: str) -> bool:
    if not token:
        return False
        
    token_hash = hash_refresh_token(token)
    
    refresh_token_record = db.query(RefreshToken).filter(
        RefreshToken.token_hash == token_hash,
        RefreshToken.is_revoked == False
    ).first()
    
    if refresh_token_record:
        refresh_token_record.is_revoked = True
        db.commit()
        return True
    
    return False
