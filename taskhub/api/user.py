#taskhub/api/user.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from taskhub.schemas.user import UserUpdate, UserRead
from taskhub.schemas.audit import AuditLogRead, UserEventDetails
from taskhub.crud.user import get_user_or_404, update_user, get_users, set_user_active
from taskhub.crud.audit import log_action, get_user_activity
from taskhub.dependencies import get_db, get_current_active_user, get_current_admin, get_request_meta, RequestMeta
from taskhub.models.user import User as DBUser
from taskhub.core.exceptions import UserValidationError

router = APIRouter(prefix="/api/users", tags=["Users"])

@router.get("/me", response_model=UserRead)
def read_users_me(current_user: DBUser = Depends(get_current_active_user)):
    """
    Get current logged-in user profile.
    """
    return current_user

@router.patch("/me", response_model=UserRead)
def patch_users_me(
    data: UserUpdate,
    db: Session = Depends(get_db),
    current_user: DBUser = Depends(get_current_active_user),
    meta: RequestMeta = Depends(get_request_meta),
):
    """
    Update own profile (email, name, avatar, password).
    """
    payload = data.model_dump(exclude_unset=True)
    user_obj = update_user(db, current_user.id, payload)
    log_action(
        db, user_id=current_user.id, action="user_update", resource="user", resource_id=current_user.id,
        details=UserEventDetails(target_user_id=current_user.id, operation="update_profile"),
        ip_address=meta.ip_address, user_agent=meta.user_agent,
    )
    return user_obj

@router.get("/", response_model=List[UserRead])
def list_users(
    is_active: Optional[bool] = Query(None),
    role: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    admin: DBUser = Depends(get_current_admin)
):
    """
    Get list of users (admin only).
    Filter by active, role, search.
    """
    filters = {}
    if is_active is not None:
        filters["is_active"] = is_active
    if role:
        filters["role"] = role
    if search:
        filters["search"] = search
    return get_users(db, filters=filters)

@router.get("/{user_id}", response_model=UserRead)
def get_user_profile(
    user_id: int,
    db: Session = Depends(get_db),
    admin: DBUser = Depends(get_current_admin)
):
    return get_user_or_404(db, user_id)

def _set_active(db: Session, user_id: int, is_active: bool, admin: DBUser, meta: RequestMeta) -> DBUser:
    if user_id == admin.id and not is_active:
        raise UserValidationError("You cannot deactivate your own account.")
    user_obj = set_user_active(db, user_id, is_active)
    operation = "activate" if is_active else "deactivate"
    log_action(
        db, user_id=admin.id, action=f"user_{operation}", resource="user", resource_id=user_id,
        details=UserEventDetails(target_user_id=user_id, operation=operation),
        ip_address=meta.ip_address, user_agent=meta.user_agent,
    )
    return user_obj

@router.put("/{user_id}/activate", response_model=UserRead)
def activate_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: DBUser = Depends(get_current_admin),
    meta: RequestMeta = Depends(get_request_meta),
):
    """
    Activate user account (admin only).
    """
    return _set_active(db, user_id, True, admin, meta)

@router.put("/{user_id}/deactivate", response_model=UserRead)
def deactivate_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: DBUser = Depends(get_current_admin),
    meta: RequestMeta = Depends(get_request_meta),
):
    """
    Deactivate user account (admin only). The user keeps their tasks but cannot log in.
    """
    return _set_active(db, user_id, False, admin, meta)

@router.get("/{user_id}/audit", response_model=List[AuditLogRead])
def get_user_audit(
    user_id: int,
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    admin: DBUser = Depends(get_current_admin)
):
    """
    Recent audit entries of a user (admin only).
    """
    get_user_or_404(db, user_id)
    return get_user_activity(db, user_id, limit=limit)
