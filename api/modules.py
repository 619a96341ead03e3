"""
Modules & Company Activation API
========================
Endpoints for the module catalogue and per-company activation.

- Module listing requires 'read'; with company_id each module carries is_active
- Create, update, delete, bulk delete and (de)activation require 'admin'
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from app.db.database import get_db
from app.models.user import User
from app.schemas.access import (
    CompanyCreate,
    CompanyResponse,
    ModuleCreate,
    ModuleUpdate,
    ModuleResponse,
    BulkDeleteModulesRequest,
    OperationResult,
)
from app.core.security import get_current_user, require_level
from app.services.permission_service import RoleLevel
from app.services import module_service

router = APIRouter(prefix="/api", tags=["Modules"])

@router.post("/companies", response_model=CompanyResponse, status_code=201)
def create_company(
    payload: CompanyCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return module_service.create_company(db, current_user, payload)

@router.get("/modules", response_model=List[ModuleResponse])
def get_modules(
    company_id: Optional[str] = Query(None, description="Report activation state for this company"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_level(RoleLevel.read))
):
    return module_service.list_modules(db, company_id)

@router.post("/modules", response_model=ModuleResponse, status_code=201)
def create_module(
    payload: ModuleCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return module_service.create_module(db, current_user, payload)

@router.post("/modules/bulk-delete")
def bulk_delete_modules(
    payload: BulkDeleteModulesRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return module_service.bulk_delete_modules(db, current_user, payload.ids)

@router.put("/modules/{module_id}", response_model=ModuleResponse)
def update_module(
    module_id: str,
    payload: ModuleUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return module_service.update_module(db, current_user, module_id, payload)

@router.delete("/modules/{module_id}")
def delete_module(
    module_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return module_service.delete_module(db, current_user, module_id)

@router.post("/companies/{company_id}/modules/{module_id}", response_model=OperationResult)
def activate_module(
    company_id: str,
    module_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return module_service.activate_module_for_company(db, current_user, company_id, module_id)

@router.delete("/companies/{company_id}/modules/{module_id}", response_model=OperationResult)
def deactivate_module(
    company_id: str,
    module_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return module_service.deactivate_module_for_company(db, current_user, company_id, module_id)
