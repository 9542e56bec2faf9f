# taskhub/dependencies.py

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from taskhub.core.security import oauth2_scheme, verify_access_token
from taskhub.core.exceptions import AuthenticationError, AuthorizationError
from taskhub.models.user import User
from taskhub.database import get_db
from taskhub.crud.user import get_user

__all__ = [
    "get_db",
    "get_current_user",
    "get_current_active_user",
    "get_current_admin",
    "get_optional_user",
    "RequestMeta",
    "get_request_meta",
]

def _user_from_token(db: Session, token: Optional[str]) -> Optional[User]:
    if not token:
        return None
    payload = verify_access_token(token)
    if not payload or payload.get("type") != "access":
        return None
    user_id = payload.get("user_id")
    if not isinstance(user_id, int):
        return None
    return get_user(db, user_id)

def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> User:
    """
    Декодирует JWT-токен, получает пользователя из базы, если токен валиден.
    """
    if not token:
        raise AuthenticationError("Not authenticated")
    user = _user_from_token(db, token)
    if user is None:
        raise AuthenticationError("Could not validate credentials")
    return user

def get_current_active_user(
    current_user: User = Depends(get_current_user)
) -> User:
    """
    Проверяет, что пользователь активен.
    """
    if not current_user.is_active:
        raise AuthorizationError("Inactive user")
    return current_user

def get_current_admin(
    current_user: User = Depends(get_current_active_user)
) -> User:
    """
    Только для администраторов.
    """
    if not current_user.is_admin:
        raise AuthorizationError("Admin privileges required")
    return current_user

def get_optional_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> Optional[User]:
    """
    Пользователь, если передан валидный токен; иначе None (регистрация).
    """
    user = _user_from_token(db, token)
    if user is None or not user.is_active:
        return None
    return user

@dataclass
class RequestMeta:
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

def get_request_meta(request: Request) -> RequestMeta:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    else:
        ip = request.client.host if request.client else None
    return RequestMeta(ip_address=ip, user_agent=request.headers.get("user-agent"))
