from pydantic import BaseModel, EmailStr
from datetime import datetime
from typing import Optional

class UserCreate(BaseModel):
    name: str
    email: EmailStr
    password: str

class UserLogin(BaseModel):
    email: EmailStr
    password: str

class LoginResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str
    expires_in: int

class RefreshTokenRequest(BaseModel):
    refresh_token: str

class UserInfo(BaseModel):
    id: str
    email: str
    name: str
    role_id: Optional[str] = None
    role_level: Optional[str] = None

class RefreshTokenResponse(BaseModel):
    access_token: str
    token_type: str
    expires_in: int
    user: UserInfo

class UserRoleUpdate(BaseModel):
    role_id: Optional[str] = None

class UserResponse(BaseModel):
    id: str
    name: str
    email: EmailStr
    role_id: Optional[str] = None
    company_id: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
