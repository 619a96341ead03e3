# ------------------------------------------
# Authentication service functions
# - register_user() : Creates a new user with hashed password and the default role
# - authenticate_user() : Verifies credentials and returns both access & refresh tokens
# - refresh_user_token() : Generates new access token using refresh token
# Works with SQLAlchemy DB session and security utilities
# ------------------------------------------

import logging
from sqlalchemy.orm import Session
from datetime import timedelta
from app.models.user import User
from app.core.exceptions import InvariantViolationError
from app.core.security import (get_password_hash, verify_password, create_access_token, create_refresh_token, verify_refresh_token)
from app.core.config import ACCESS_TOKEN_EXPIRE_MINUTES
from app.services.permission_service import resolve_user_role
from app.services.role_service import get_or_create_default_role

logger = logging.getLogger(__name__)

def register_user(db: Session, name: str, email: str, password: str):
    existing_user_by_email = db.query(User).filter(User.email == email).first()
    if existing_user_by_email:
        raise InvariantViolationError("Email already registered", details={"email": email})

    try:
        default_role = get_or_create_default_role(db)
        hashed_password = get_password_hash(password)
        new_user = User(name=name, email=email, password_hash=hashed_password, role_id=default_role.id)
        db.add(new_user)
        db.commit()
    except Exception as e:
        logger.error(f"Registration failed for {email}: {e}")
        db.rollback()
        raise
    db.refresh(new_user)

    logger.info(f"Registered user {new_user.id} with role '{default_role.name}'")
    return new_user

def authenticate_user(db: Session, email: str, password: str):
    user = db.query(User).filter(User.email == email).first()
    if not user or not verify_password(password, user.password_hash):
        logger.warning(f"Failed login attempt for {email}")
        return None
    
    access_token = create_access_token(
        data={"sub": user.email},
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    
    refresh_token = create_refresh_token(db, user.id)
    
    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "token_type": "bearer",
        "expires_in": ACCESS_TOKEN_EXPIRE_MINUTES * 60
    }

def describe_user(db: Session, user: User):
    role = resolve_user_role(db, user)
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role_id": user.role_id,
        "role_level": role.level if role else None
    }

def refresh_user_token(db: Session, refresh_token: str):

    user = verify_refresh_token(db, refresh_token)
    if not user:
        return None
    
    access_token = create_access_token(
        data={"sub": user.email},
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "expires_in": ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        "user": describe_user(db, user)
    }
