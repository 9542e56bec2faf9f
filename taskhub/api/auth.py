#taskhub/api/auth.py
from datetime import timedelta
from typing import Optional
import logging

from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from taskhub.schemas.auth import LoginResponse
from taskhub.schemas.user import UserCreate, UserRead
from taskhub.schemas.audit import AuthEventDetails, UserEventDetails
from taskhub.schemas.response import MessageResponse
from taskhub.crud.user import authenticate_user, create_user, set_last_login
from taskhub.crud.audit import log_action
from taskhub.core.security import create_access_token
from taskhub.core.exceptions import AuthenticationError, AuthorizationError, BaseAppException
from taskhub.dependencies import (
    get_db,
    get_current_active_user,
    get_optional_user,
    get_request_meta,
    RequestMeta,
)
from taskhub.models.user import User
from taskhub.core.settings import settings

router = APIRouter(prefix="/auth", tags=["Auth"])
logger = logging.getLogger("TaskHub.Auth")

ACCESS_TOKEN_EXPIRE_MINUTES = settings.ACCESS_TOKEN_EXPIRE_MINUTES

def _issue_token(user: User) -> LoginResponse:
    access_token_str, _ = create_access_token(
        data={"sub": user.username, "user_id": user.id, "role": user.role},
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    return LoginResponse(
        access_token=access_token_str,
        token_type="bearer",
        expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=UserRead.model_validate(user),
    )

def _resolve_role(data: UserCreate, caller: Optional[User]) -> str:
    """
    Роль admin: либо регистрирует существующий админ, либо передан верный код.
    """
    requested = data.role or "user"
    if requested != "admin":
        return requested
    if caller is not None and caller.is_admin:
        return "admin"
    code = settings.ADMIN_REGISTRATION_CODE
    if code and data.admin_code == code:
        return "admin"
    raise AuthorizationError("Admin registration requires a valid admin code")

@router.post("/register", response_model=LoginResponse, status_code=status.HTTP_201_CREATED)
def register(
    data: UserCreate,
    db: Session = Depends(get_db),
    caller: Optional[User] = Depends(get_optional_user),
    meta: RequestMeta = Depends(get_request_meta),
):
    """
    Регистрация нового пользователя. Сразу возвращает access token.
    """
    try:
        role = _resolve_role(data, caller)
        payload = data.model_dump(exclude={"admin_code"})
        payload["role"] = role
        user = create_user(db, payload)
    except BaseAppException as e:
        log_action(
            db, user_id=caller.id if caller else None, action="user_register", resource="user",
            details=UserEventDetails(operation="register", role=data.role or "user"), status="failure",
            error_message=e.message, ip_address=meta.ip_address, user_agent=meta.user_agent,
        )
        raise
    log_action(
        db, user_id=user.id, action="user_register", resource="user", resource_id=user.id,
        details=UserEventDetails(target_user_id=user.id, operation="register", role=user.role),
        ip_address=meta.ip_address, user_agent=meta.user_agent,
    )
    return _issue_token(user)

@router.post("/login", response_model=LoginResponse, status_code=status.HTTP_200_OK)
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
    meta: RequestMeta = Depends(get_request_meta),
):
    """
    Логин по username/email + password.
    """
    user = authenticate_user(db, form_data.username, form_data.password)
    if not user or not user.is_active:
        log_action(
            db, user_id=user.id if user else None, action="user_login", resource="user",
            resource_id=user.id if user else None, details=AuthEventDetails(login=form_data.username),
            status="failure", error_message="Incorrect username or password",
            ip_address=meta.ip_address, user_agent=meta.user_agent,
        )
        raise AuthenticationError("Incorrect username or password")

    set_last_login(db, user.id)
    log_action(
        db, user_id=user.id, action="user_login", resource="user", resource_id=user.id,
        details=AuthEventDetails(login=form_data.username),
        ip_address=meta.ip_address, user_agent=meta.user_agent,
    )
    logger.info(f"User {user.id} logged in")
    return _issue_token(user)

@router.get("/me", response_model=UserRead)
def get_me(current_user: User = Depends(get_current_active_user)):
    """
    Получить данные текущего пользователя.
    """
    return current_user

@router.post("/logout", response_model=MessageResponse, status_code=status.HTTP_200_OK)
def logout(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    meta: RequestMeta = Depends(get_request_meta),
):
    """
    Logout. Токены stateless, поэтому только фиксируем событие в аудите.
    """
    log_action(
        db, user_id=current_user.id, action="user_logout", resource="user", resource_id=current_user.id,
        details=AuthEventDetails(login=current_user.username),
        ip_address=meta.ip_address, user_agent=meta.user_agent,
    )
    return MessageResponse(message="Logout successful")
