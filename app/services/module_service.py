# --------------------------------------------------
# Module & Company Activation Service
#
# One module activation is recorded twice: as a company_modules
# join row and as an id in Company.modules. Every operation here
# keeps both in lockstep, together with the Module <-> Permission
# edges (Module.permissions / Permission.assigned_modules).
#
# - Bulk deletes clean up with one set-membership pass over
#   join rows, permissions and companies
# - Activation is idempotent; the unique (company, module)
#   constraint backs the pre-check
# --------------------------------------------------

import logging
from typing import Dict, List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from app.core import clock
from app.core.exceptions import NotFoundError
from app.models.user import User
from app.models.access import Module, Permission, Company, CompanyModule
from app.schemas.access import ModuleCreate, ModuleUpdate, CompanyCreate
from app.services.permission_service import RoleLevel, require_permission
from app.services.role_service import load_permissions
from app.services import reference_graph

logger = logging.getLogger(__name__)

_REQUIRED_MODULE_FIELDS = {"name", "is_active_by_default"}


def get_company_or_404(db: Session, company_id: str) -> Company:
    company = db.query(Company).filter(Company.id == company_id).first()
    if not company:
        raise NotFoundError("Company", company_id)
    return company


def get_module_or_404(db: Session, module_id: str) -> Module:
    module = db.query(Module).filter(Module.id == module_id).first()
    if not module:
        raise NotFoundError("Module", module_id)
    return module


def _find_activation(db: Session, company_id: str, module_id: str) -> Optional[CompanyModule]:
    return db.query(CompanyModule).filter(
        CompanyModule.company_id == company_id,
        CompanyModule.module_id == module_id
    ).first()


# --- Companies ---

def create_company(db: Session, actor: User, data: CompanyCreate) -> Company:
    require_permission(db, actor, RoleLevel.admin)

    company = Company(name=data.name, owner_id=actor.id, modules=[], settings={})
    try:
        db.add(company)
        db.flush()
        if not actor.company_id:
            actor.company_id = company.id
        db.commit()
    except Exception as e:
        logger.error(f"Failed to create company '{data.name}': {e}")
        db.rollback()
        raise
    db.refresh(company)

    logger.info(f"Company {company.id} ('{company.name}') created by {actor.id}")
    return company


# --- Modules ---

def create_module(db: Session, actor: User, data: ModuleCreate) -> Module:
    require_permission(db, actor, RoleLevel.admin)

    permissions = load_permissions(db, data.permissions)

    module = Module(
        name=data.name,
        description=data.description,
        is_active_by_default=data.is_active_by_default,
        permissions=[]
    )
    try:
        db.add(module)
        db.flush()
        for permission in permissions:
            reference_graph.link(module, "permissions", permission, "assigned_modules")
        db.commit()
    except Exception as e:
        logger.error(f"Failed to create module '{data.name}': {e}")
        db.rollback()
        raise
    db.refresh(module)

    logger.info(f"Module {module.id} ('{module.name}') created by {actor.id}")
    return module


def update_module(db: Session, actor: User, module_id: str, data: ModuleUpdate) -> Module:
    require_permission(db, actor, RoleLevel.admin)

    module = get_module_or_404(db, module_id)
    new_permissions = None
    if data.permissions is not None:
        new_permissions = load_permissions(db, data.permissions)

    try:
        updates = data.model_dump(exclude_unset=True, exclude={"permissions"})
        for field, value in updates.items():
            if value is None and field in _REQUIRED_MODULE_FIELDS:
                continue
            setattr(module, field, value)

        if new_permissions is not None:
            added, removed = reference_graph.diff_references(module.permissions, [p.id for p in new_permissions])
            added_docs = [p for p in new_permissions if p.id in set(added)]
            removed_docs = db.query(Permission).filter(Permission.id.in_(removed)).all() if removed else []

            for permission in removed_docs:
                reference_graph.unlink(module, "permissions", permission, "assigned_modules")
            reference_graph.strip_references(module, "permissions", removed)
            for permission in added_docs:
                reference_graph.link(module, "permissions", permission, "assigned_modules")

        db.commit()
    except Exception as e:
        logger.error(f"Failed to update module {module_id}: {e}")
        db.rollback()
        raise
    db.refresh(module)

    logger.info(f"Module {module_id} updated by {actor.id}")
    return module


def delete_module(db: Session, actor: User, module_id: str) -> Dict:
    return bulk_delete_modules(db, actor, [module_id])


def bulk_delete_modules(db: Session, actor: User, module_ids: List[str]) -> Dict:
    require_permission(db, actor, RoleLevel.admin)

    ids = list(dict.fromkeys(module_ids))
    found = {m.id: m for m in db.query(Module).filter(Module.id.in_(ids)).all()}
    for module_id in ids:
        if module_id not in found:
            logger.warning(f"Bulk delete aborted: module {module_id} not found")
            raise NotFoundError("Module", module_id)

    id_set = set(ids)
    try:
        for module in found.values():
            db.delete(module)

        removed_links = db.query(CompanyModule).filter(
            CompanyModule.module_id.in_(ids)
        ).delete(synchronize_session=False)

        touched_permissions = 0
        for permission in db.query(Permission).all():
            if reference_graph.strip_references(permission, "assigned_modules", id_set):
                touched_permissions += 1

        touched_companies = 0
        for company in db.query(Company).all():
            if reference_graph.strip_references(company, "modules", id_set):
                touched_companies += 1

        db.commit()
    except Exception as e:
        logger.error(f"Failed to delete modules {ids}: {e}")
        db.rollback()
        raise

    logger.info(
        f"Deleted {len(ids)} modules by {actor.id}: {removed_links} activations, "
        f"{touched_permissions} permissions, {touched_companies} companies cleaned"
    )
    return {"success": True, "deleted": ids}


def list_modules(db: Session, company_id: Optional[str] = None) -> List[Dict]:
    modules = db.query(Module).all()

    active_ids = set()
    if company_id:
        active_ids = {
            row.module_id
            for row in db.query(CompanyModule).filter(CompanyModule.company_id == company_id).all()
        }

    return [
        {
            "id": module.id,
            "name": module.name,
            "description": module.description,
            "is_active_by_default": module.is_active_by_default,
            "permissions": list(module.permissions or []),
            "is_active": module.id in active_ids,
        }
        for module in modules
    ]


# --- Company activation ---

def activate_module_for_company(db: Session, actor: User, company_id: str, module_id: str) -> Dict:
    require_permission(db, actor, RoleLevel.admin)

    company = get_company_or_404(db, company_id)
    get_module_or_404(db, module_id)

    if _find_activation(db, company_id, module_id):
        if reference_graph.add_reference(company, "modules", module_id):
            db.commit()
        logger.info(f"Module {module_id} already active for company {company_id}")
        return {"success": True, "message": "Module already activated for this company"}

    record = CompanyModule(
        company_id=company_id,
        module_id=module_id,
        activated_by=actor.id,
        activated_at=clock.current_time_ms()
    )
    try:
        db.add(record)
        reference_graph.add_reference(company, "modules", module_id)
        db.commit()
    except IntegrityError:
        # A concurrent activation committed first.
        db.rollback()
        logger.info(f"Module {module_id} activated concurrently for company {company_id}")
        return {"success": True, "message": "Module already activated for this company"}
    except Exception as e:
        logger.error(f"Failed to activate module {module_id} for company {company_id}: {e}")
        db.rollback()
        raise

    logger.info(f"Module {module_id} activated for company {company_id} by {actor.id}")
    return {"success": True, "record_id": record.id}


def deactivate_module_for_company(db: Session, actor: User, company_id: str, module_id: str) -> Dict:
    require_permission(db, actor, RoleLevel.admin)

    company = get_company_or_404(db, company_id)

    try:
        record = _find_activation(db, company_id, module_id)
        if record:
            db.delete(record)
        reference_graph.remove_reference(company, "modules", module_id)
        db.commit()
    except Exception as e:
        logger.error(f"Failed to deactivate module {module_id} for company {company_id}: {e}")
        db.rollback()
        raise

    logger.info(f"Module {module_id} deactivated for company {company_id} by {actor.id}")
    return {"success": True}
