"""
Access Control Schemas
=====================================
Pydantic models for roles, permissions, modules and company activation.

Role levels form a fixed total order: read < write < admin.
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Literal
from datetime import datetime

RoleLevelName = Literal["read", "write", "admin"]

class PermissionCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None

class PermissionResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    assigned_roles: List[str] = []
    assigned_modules: List[str] = []

    class Config:
        from_attributes = True

class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    level: RoleLevelName = "read"
    permissions: List[str] = []
    company_id: Optional[str] = None

class RoleUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    level: Optional[RoleLevelName] = None
    permissions: Optional[List[str]] = None

class RoleResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    level: Optional[str] = None
    permissions: List[str] = []
    company_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class RoleDetailResponse(RoleResponse):
    permission_names: List[str] = []

class NamedPermissionCheckResponse(BaseModel):
    permission: str
    allowed: bool

class PermissionCheckResponse(BaseModel):
    required_level: str
    allowed: bool

class CompanyCreate(BaseModel):
    name: str = Field(..., min_length=1)

class CompanyResponse(BaseModel):
    id: str
    name: str
    owner_id: Optional[str] = None
    modules: List[str] = []

    class Config:
        from_attributes = True

class ModuleCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    is_active_by_default: bool = False
    permissions: List[str] = []

class ModuleUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    is_active_by_default: Optional[bool] = None
    permissions: Optional[List[str]] = None

class ModuleResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    is_active_by_default: bool
    permissions: List[str] = []
    is_active: Optional[bool] = None

    class Config:
        from_attributes = True

class BulkDeleteModulesRequest(BaseModel):
    ids: List[str] = Field(..., min_length=1)

class OperationResult(BaseModel):
    success: bool
    message: Optional[str] = None
    record_id: Optional[str] = None
