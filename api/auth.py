# ------------------------------------------
# Authentication API routes (FastAPI)
# - /auth/register : Registers a new user with the default role
# - /auth/login    : Authenticates user and returns JWT tokens (access + refresh)
# - /auth/refresh  : Refreshes access token using refresh token
# - /auth/logout   : Revokes refresh token
# - /auth/me       : Current principal with its role level
# Uses dependency-injected DB session via get_db()
# ------------------------------------------

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from app.schemas.user import UserCreate, UserLogin, LoginResponse, RefreshTokenRequest, RefreshTokenResponse, UserInfo
from app.services.auth_service import register_user, authenticate_user, refresh_user_token, describe_user
from app.core.security import revoke_refresh_token, get_current_user
from app.core.exceptions import NotAuthenticatedError
from app.db.database import get_db
from app.models.user import User

router = APIRouter(prefix="/auth", tags=["Auth"])

@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(user: UserCreate, db: Session = Depends(get_db)):
    new_user = register_user(db, user.name, user.email, user.password)
    return {"message": "User registered successfully", "user_id": new_user.id}

@router.post("/login", response_model=LoginResponse)
def login(user: UserLogin, db: Session = Depends(get_db)):
    tokens = authenticate_user(db, user.email, user.password)
    if not tokens:
        raise NotAuthenticatedError("Invalid credentials")
    return tokens

@router.post("/refresh", response_model=RefreshTokenResponse)
def refresh_token(
    request: RefreshTokenRequest, 
    db: Session = Depends(get_db)
):
    tokens = refresh_user_token(db, request.refresh_token)
    if not tokens:
        raise NotAuthenticatedError("Invalid or expired refresh token")
    return tokens

@router.post("/logout")
def logout(
    request: RefreshTokenRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):

    success = revoke_refresh_token(db, request.refresh_token)
    if success:
        return {"message": "Successfully logged out"}
    else:
        return {"message": "Logout completed"}

@router.get("/me", response_model=UserInfo)
def me(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return describe_user(db, current_user)
