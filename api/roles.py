"""
Roles & Permissions API
========================
Endpoints for managing permissions and roles.

- Listing requires at least 'read' access
- Every mutation requires 'admin' access (checked in the service layer)
- /api/roles/check/{level} reports whether the caller reaches a level
- /api/permissions/check/{name} reports whether the caller holds a named permission
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from app.db.database import get_db
from app.models.user import User
from app.schemas.access import (
    PermissionCreate,
    PermissionResponse,
    RoleCreate,
    RoleUpdate,
    RoleDetailResponse,
    PermissionCheckResponse,
    NamedPermissionCheckResponse,
)
from app.core.security import get_current_user, require_level
from app.services.permission_service import RoleLevel, check_permission, has_named_permission
from app.services import role_service
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Roles"])

# --- Permissions ---

@router.get("/permissions", response_model=List[PermissionResponse])
def get_permissions(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_level(RoleLevel.read))
):
    return role_service.list_permissions(db)

@router.get("/permissions/check/{permission_name}", response_model=NamedPermissionCheckResponse)
def check_named_permission(
    permission_name: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Whether the caller's company role carries the named permission."""
    allowed = has_named_permission(db, current_user.id, permission_name)
    return {"permission": permission_name, "allowed": allowed}

@router.post("/permissions", response_model=PermissionResponse, status_code=201)
def create_permission(
    payload: PermissionCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return role_service.create_permission(db, current_user, payload)

@router.delete("/permissions/{permission_id}")
def delete_permission(
    permission_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    role_service.delete_permission(db, current_user, permission_id)
    return {"message": "Permission deleted successfully"}

# --- Roles ---

@router.get("/roles", response_model=List[RoleDetailResponse])
def get_roles(
    company_id: Optional[str] = Query(None, description="Include roles scoped to this company"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_level(RoleLevel.read))
):
    return role_service.list_roles(db, company_id)

@router.get("/roles/check/{level}", response_model=PermissionCheckResponse)
def check_role_level(
    level: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    allowed = check_permission(db, current_user.id, level)
    logger.debug(f"Level check '{level}' for user {current_user.id}: {allowed}")
    return {"required_level": level, "allowed": allowed}

@router.get("/roles/{role_id}", response_model=RoleDetailResponse)
def get_role(
    role_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_level(RoleLevel.read))
):
    role = role_service.get_role_or_404(db, role_id)
    return role_service.describe_role(db, role)

@router.post("/roles", response_model=RoleDetailResponse, status_code=201)
def create_role(
    payload: RoleCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    role = role_service.create_role(db, current_user, payload)
    return role_service.describe_role(db, role)

@router.put("/roles/{role_id}", response_model=RoleDetailResponse)
def update_role(
    role_id: str,
    payload: RoleUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    role = role_service.update_role(db, current_user, role_id, payload)
    return role_service.describe_role(db, role)

@router.delete("/roles/{role_id}")
def delete_role(
    role_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    role_service.delete_role(db, current_user, role_id)
    return {"message": "Role deleted successfully"}
