# --------------------------------------------------
# Role & Permission Service
# Roles reference permissions; permissions keep the
# back-references in assigned_roles.
#
# - Validate-then-write: every referenced permission must
#   exist before any row is touched
# - Both sides of each Role <-> Permission edge change in the
#   same transaction
# - Deleting a role also detaches it from users holding it
# --------------------------------------------------

import logging
from typing import Dict, Iterable, List, Optional
from sqlalchemy.orm import Session
from app.core.config import DEFAULT_ROLE_NAME, DEFAULT_ROLE_LEVEL, SUPER_ADMIN_ROLE_NAME
from app.core.exceptions import NotFoundError, InvariantViolationError
from app.models.user import User
from app.models.access import Role, Permission, Module, Company
from app.schemas.access import RoleCreate, RoleUpdate, PermissionCreate
from app.services.permission_service import RoleLevel, require_permission
from app.services import reference_graph

logger = logging.getLogger(__name__)

_REQUIRED_ROLE_FIELDS = {"name", "level"}


def load_permissions(db: Session, permission_ids: Iterable[str]) -> List[Permission]:
    """Fetch permissions by id, raising NotFoundError on the first missing one."""
    ordered_ids = list(dict.fromkeys(permission_ids or []))
    if not ordered_ids:
        return []

    found = {p.id: p for p in db.query(Permission).filter(Permission.id.in_(ordered_ids)).all()}
    for permission_id in ordered_ids:
        if permission_id not in found:
            logger.warning(f"Permission {permission_id} referenced but not found")
            raise NotFoundError("Permission", permission_id)
    return [found[permission_id] for permission_id in ordered_ids]


def get_role_or_404(db: Session, role_id: str) -> Role:
    role = db.query(Role).filter(Role.id == role_id).first()
    if not role:
        raise NotFoundError("Role", role_id)
    return role


def _permission_names(db: Session, permission_ids: List[str]) -> List[str]:
    if not permission_ids:
        return []
    names = dict(db.query(Permission.id, Permission.name).filter(Permission.id.in_(permission_ids)).all())
    return [names.get(permission_id, "Unknown") for permission_id in permission_ids]


# --- Permissions ---

def create_permission(db: Session, actor: User, data: PermissionCreate) -> Permission:
    require_permission(db, actor, RoleLevel.admin)

    if db.query(Permission).filter(Permission.name == data.name).first():
        raise InvariantViolationError(
            "Permission name already exists",
            details={"name": data.name}
        )

    permission = Permission(
        name=data.name,
        description=data.description,
        assigned_roles=[],
        assigned_modules=[]
    )
    try:
        db.add(permission)
        db.commit()
    except Exception as e:
        logger.error(f"Failed to create permission '{data.name}': {e}")
        db.rollback()
        raise
    db.refresh(permission)

    logger.info(f"Permission {permission.id} ('{permission.name}') created by {actor.id}")
    return permission


def delete_permission(db: Session, actor: User, permission_id: str) -> None:
    require_permission(db, actor, RoleLevel.admin)

    permission = db.query(Permission).filter(Permission.id == permission_id).first()
    if not permission:
        raise NotFoundError("Permission", permission_id)

    try:
        for role in db.query(Role).all():
            reference_graph.remove_reference(role, "permissions", permission_id)
        for module in db.query(Module).all():
            reference_graph.remove_reference(module, "permissions", permission_id)
        db.delete(permission)
        db.commit()
    except Exception as e:
        logger.error(f"Failed to delete permission {permission_id}: {e}")
        db.rollback()
        raise

    logger.info(f"Permission {permission_id} deleted by {actor.id}")


def list_permissions(db: Session) -> List[Dict]:
    permissions = db.query(Permission).all()
    role_names = dict(db.query(Role.id, Role.name).all())

    return [
        {
            "id": permission.id,
            "name": permission.name,
            "description": permission.description,
            "assigned_roles": [role_names[r] for r in (permission.assigned_roles or []) if r in role_names],
            "assigned_modules": list(permission.assigned_modules or []),
        }
        for permission in permissions
    ]


# --- Roles ---

def create_role(db: Session, actor: User, data: RoleCreate) -> Role:
    require_permission(db, actor, RoleLevel.admin)

    permissions = load_permissions(db, data.permissions)
    if data.company_id and not db.query(Company).filter(Company.id == data.company_id).first():
        raise NotFoundError("Company", data.company_id)

    role = Role(
        name=data.name,
        description=data.description,
        level=data.level,
        permissions=[],
        company_id=data.company_id
    )
    try:
        db.add(role)
        db.flush()
        for permission in permissions:
            reference_graph.link(role, "permissions", permission, "assigned_roles")
        db.commit()
    except Exception as e:
        logger.error(f"Failed to create role '{data.name}': {e}")
        db.rollback()
        raise
    db.refresh(role)

    logger.info(f"Role {role.id} ('{role.name}', level={role.level}) created by {actor.id} with {len(permissions)} permissions")
    return role


def update_role(db: Session, actor: User, role_id: str, data: RoleUpdate) -> Role:
    require_permission(db, actor, RoleLevel.admin)

    role = get_role_or_404(db, role_id)
    new_permissions = None
    if data.permissions is not None:
        new_permissions = load_permissions(db, data.permissions)

    try:
        updates = data.model_dump(exclude_unset=True, exclude={"permissions"})
        for field, value in updates.items():
            # An explicit null clears optional fields only.
            if value is None and field in _REQUIRED_ROLE_FIELDS:
                continue
            setattr(role, field, value)

        if new_permissions is not None:
            added, removed = reference_graph.diff_references(role.permissions, [p.id for p in new_permissions])
            added_docs = [p for p in new_permissions if p.id in set(added)]
            removed_docs = db.query(Permission).filter(Permission.id.in_(removed)).all() if removed else []

            for permission in removed_docs:
                reference_graph.unlink(role, "permissions", permission, "assigned_roles")
            # Dangling ids with no permission document left
            reference_graph.strip_references(role, "permissions", removed)
            for permission in added_docs:
                reference_graph.link(role, "permissions", permission, "assigned_roles")
            logger.debug(f"Role {role_id} permissions: +{added} -{removed}")

        db.commit()
    except Exception as e:
        logger.error(f"Failed to update role {role_id}: {e}")
        db.rollback()
        raise
    db.refresh(role)

    logger.info(f"Role {role_id} updated by {actor.id}")
    return role


def delete_role(db: Session, actor: User, role_id: str) -> None:
    require_permission(db, actor, RoleLevel.admin)

    role = get_role_or_404(db, role_id)
    try:
        permission_ids = list(role.permissions or [])
        if permission_ids:
            for permission in db.query(Permission).filter(Permission.id.in_(permission_ids)).all():
                reference_graph.remove_reference(permission, "assigned_roles", role_id)

        holders = db.query(User).filter(User.role_id == role_id).all()
        for holder in holders:
            holder.role_id = None

        db.delete(role)
        db.commit()
    except Exception as e:
        logger.error(f"Failed to delete role {role_id}: {e}")
        db.rollback()
        raise

    logger.info(f"Role {role_id} deleted by {actor.id}; detached from {len(permission_ids)} permissions and {len(holders)} users")


def list_roles(db: Session, company_id: Optional[str] = None) -> List[Dict]:
    query = db.query(Role)
    if company_id:
        query = query.filter((Role.company_id == company_id) | (Role.company_id.is_(None)))
    return [describe_role(db, role) for role in query.all()]


def describe_role(db: Session, role: Role) -> Dict:
    return {
        "id": role.id,
        "name": role.name,
        "description": role.description,
        "level": role.level,
        "permissions": list(role.permissions or []),
        "company_id": role.company_id,
        "created_at": role.created_at,
        "updated_at": role.updated_at,
        "permission_names": _permission_names(db, list(role.permissions or [])),
    }


def get_or_create_default_role(db: Session) -> Role:
    """Global role handed to new users; created on first use. Caller commits."""
    role = db.query(Role).filter(Role.name == DEFAULT_ROLE_NAME, Role.company_id.is_(None)).first()
    if role:
        return role

    role = Role(
        name=DEFAULT_ROLE_NAME,
        description="Default role for newly registered users",
        level=DEFAULT_ROLE_LEVEL,
        permissions=[]
    )
    db.add(role)
    db.flush()
    logger.info(f"Created default role {role.id} at level '{DEFAULT_ROLE_LEVEL}'")
    return role


# --- User role assignment ---

def assign_user_role(db: Session, actor: User, user_id: str, role_id: Optional[str]) -> User:
    require_permission(db, actor, RoleLevel.admin)

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User", user_id)
    if role_id is not None:
        get_role_or_404(db, role_id)

    user.role_id = role_id
    db.commit()
    db.refresh(user)

    logger.info(f"User {user_id} assigned role {role_id} by {actor.id}")
    return user


def revoke_user_from_company(db: Session, actor: User, user_id: str) -> User:
    require_permission(db, actor, RoleLevel.admin)

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User", user_id)
    if not user.company_id:
        raise InvariantViolationError(
            "User is not associated with any company",
            details={"user_id": user_id}
        )

    try:
        previous_company = user.company_id
        user.company_id = None
        user.role_id = get_or_create_default_role(db).id
        db.commit()
    except Exception as e:
        logger.error(f"Failed to revoke user {user_id}: {e}")
        db.rollback()
        raise
    db.refresh(user)

    logger.info(f"User {user_id} revoked from company {previous_company} by {actor.id}")
    return user


def initialize_super_admin(db: Session, email: str) -> Role:
    """Bootstrap: give the user with this email a global admin role holding every permission."""
    user = db.query(User).filter(User.email == email).first()
    if not user:
        raise NotFoundError("User", email)

    try:
        role = db.query(Role).filter(Role.name == SUPER_ADMIN_ROLE_NAME, Role.company_id.is_(None)).first()
        if not role:
            role = Role(
                name=SUPER_ADMIN_ROLE_NAME,
                description="Full system access",
                level=RoleLevel.admin.value,
                permissions=[]
            )
            db.add(role)
            db.flush()
            for permission in db.query(Permission).all():
                reference_graph.link(role, "permissions", permission, "assigned_roles")
        elif role.level != RoleLevel.admin.value:
            role.level = RoleLevel.admin.value

        user.role_id = role.id
        db.commit()
    except Exception as e:
        logger.error(f"Failed to initialize super admin {email}: {e}")
        db.rollback()
        raise

    logger.info(f"User {email} is now {SUPER_ADMIN_ROLE_NAME}")
    return role
