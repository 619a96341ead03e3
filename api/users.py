from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db.database import get_db
from app.models.user import User
from app.schemas.user import UserResponse, UserRoleUpdate
from app.core.security import get_current_user
from app.services.role_service import assign_user_role, revoke_user_from_company

router = APIRouter(prefix="/api/users", tags=["Users"])

@router.put("/{user_id}/role", response_model=UserResponse)
def update_user_role(
    user_id: str,
    payload: UserRoleUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return assign_user_role(db, current_user, user_id, payload.role_id)

@router.post("/{user_id}/revoke", response_model=UserResponse)
def revoke_user(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Detach a user from their company and fall back to the default role."""
    return revoke_user_from_company(db, current_user, user_id)
