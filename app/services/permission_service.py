# --------------------------------------------------
# Permission Kernel
# Role levels form a fixed total order: read < write < admin.
#
# - check_permission()      : level comparison, fails closed
# - has_named_permission()  : named permission lookup through the role
# - require_permission()    : raises AuthorizationError when denied
# --------------------------------------------------

import enum
import logging
from typing import Optional, Union
from sqlalchemy.orm import Session
from app.core.exceptions import AuthorizationError
from app.models.user import User
from app.models.access import Role, Permission

logger = logging.getLogger(__name__)

class RoleLevel(str, enum.Enum):
    read = "read"
    write = "write"
    admin = "admin"

ROLE_HIERARCHY = {
    RoleLevel.read.value: 0,
    RoleLevel.write.value: 1,
    RoleLevel.admin.value: 2,
}

def resolve_level(value: Union[RoleLevel, str, None]) -> Optional[int]:
    """Numeric level for a role level name, None when unrecognised."""
    if value is None:
        return None
    return ROLE_HIERARCHY.get(getattr(value, "value", value))

def resolve_user_role(db: Session, user: Optional[User]) -> Optional[Role]:
    if user is None or not user.role_id:
        return None
    return db.query(Role).filter(Role.id == user.role_id).first()

def check_permission(db: Session, principal_id: Optional[str], required_level: Union[RoleLevel, str]) -> bool:
    required = resolve_level(required_level)
    if required is None:
        logger.warning(f"Unknown required level '{required_level}', denying")
        return False

    if not principal_id:
        return False

    user = db.query(User).filter(User.id == principal_id).first()
    role = resolve_user_role(db, user)
    if role is None:
        return False

    user_level = resolve_level(role.level)
    if user_level is None:
        logger.warning(f"Role {role.id} has unrecognised level '{role.level}', denying user {principal_id}")
        return False

    return user_level >= required

def has_named_permission(db: Session, principal_id: Optional[str], permission_name: str) -> bool:
    """True when the principal's company role carries a permission with this name."""
    if not principal_id:
        return False

    user = db.query(User).filter(User.id == principal_id).first()
    if user is None or not user.company_id:
        return False

    role = resolve_user_role(db, user)
    if role is None or not role.permissions:
        return False

    match = db.query(Permission).filter(
        Permission.id.in_(role.permissions),
        Permission.name == permission_name
    ).first()
    return match is not None

def require_permission(db: Session, user: User, required_level: Union[RoleLevel, str]) -> User:
    if not check_permission(db, user.id, required_level):
        level_name = getattr(required_level, "value", required_level)
        logger.warning(f"User {user.id} denied: requires '{level_name}' access")
        raise AuthorizationError(
            f"Access forbidden. This action requires '{level_name}' access.",
            details={"required_level": level_name}
        )
    return user
