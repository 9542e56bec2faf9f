#taskhub/crud/user.py
from typing import Any, Dict, List, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from taskhub.models.user import User, USER_ROLES
from taskhub.core.exceptions import UserNotFound, UserValidationError
from taskhub.core.security import get_password_hash, verify_password
from taskhub.core.timeutils import utcnow
import logging

logger = logging.getLogger("TaskHub.Users")

__all__ = [
    "get_password_hash",
    "verify_password",
    "create_user",
    "get_user",
    "get_user_or_404",
    "get_user_by_username",
    "get_user_by_email",
    "get_user_by_login",
    "get_users",
    "update_user",
    "set_user_active",
    "set_user_role",
    "delete_user",
    "authenticate_user",
    "set_last_login",
]

PROFILE_FIELDS = ("first_name", "last_name", "avatar_url")

def _commit(db: Session, user: User, action: str) -> User:
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Integrity error while trying to {action} user: {e}")
        raise UserValidationError("User with this username or email already exists.")
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to {action} user: {e}")
        raise UserValidationError(f"Database error while trying to {action} user.")
    return user

def create_user(db: Session, data: Dict[str, Any]) -> User:
    """
    Создать пользователя. Пароль хэшируется, сырой не сохраняется.
    """
    username = (data.get("username") or "").strip()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password")
    role = data.get("role") or "user"

    errors = []
    if not 3 <= len(username) <= 50:
        errors.append({"field": "username", "message": "Username must be 3-50 characters"})
    if "@" not in email:
        errors.append({"field": "email", "message": "A valid email is required"})
    if not data.get("google_id") and (not password or len(password) < 8):
        errors.append({"field": "password", "message": "Password must be at least 8 characters"})
    if role not in USER_ROLES:
        errors.append({"field": "role", "message": f"Role must be one of: {', '.join(USER_ROLES)}"})
    if errors:
        raise UserValidationError.from_errors(errors)

    existing = db.scalar(select(User).where(or_(User.username == username, User.email == email)))
    if existing:
        raise UserValidationError("User with this username or email already exists.")

    user = User(
        username=username,
        email=email,
        password_hash=get_password_hash(password) if password else None,
        google_id=data.get("google_id"),
        role=role,
        is_active=data.get("is_active", True),
        **{field: data.get(field) for field in PROFILE_FIELDS},
    )
    db.add(user)
    _commit(db, user, "create")
    logger.info(f"Created user {user.id} ({user.username}, role={user.role})")
    return user

def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.get(User, user_id)

def get_user_or_404(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise UserNotFound(f"User {user_id} not found.")
    return user

def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return db.scalar(select(User).where(User.username == username))

def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.scalar(select(User).where(User.email == email.strip().lower()))

def get_user_by_login(db: Session, login: str) -> Optional[User]:
    """По username или email."""
    login = login.strip()
    return db.scalar(select(User).where(or_(User.username == login, User.email == login.lower())))

def get_users(db: Session, filters: Optional[Dict[str, Any]] = None) -> List[User]:
    """
    Список пользователей с фильтрами is_active, role, search.
    """
    filters = filters or {}
    query = select(User)
    if "is_active" in filters:
        query = query.where(User.is_active.is_(filters["is_active"]))
    if "role" in filters:
        query = query.where(User.role == filters["role"])
    if "search" in filters:
        val = f"%{filters['search']}%"
        query = query.where(or_(User.username.ilike(val), User.email.ilike(val)))
    return list(db.scalars(query.order_by(User.id.asc())).all())

def update_user(db: Session, user_id: int, data: Dict[str, Any]) -> User:
    """
    Обновить профиль, email или пароль.
    """
    user = get_user_or_404(db, user_id)
    if "email" in data and data["email"]:
        email = data["email"].strip().lower()
        clash = db.scalar(select(User).where(User.email == email, User.id != user.id))
        if clash:
            raise UserValidationError("User with this username or email already exists.")
        user.email = email
    for field in PROFILE_FIELDS:
        if field in data:
            setattr(user, field, data[field])
    if data.get("password"):
        if len(data["password"]) < 8:
            raise UserValidationError.from_errors(
                [{"field": "password", "message": "Password must be at least 8 characters"}]
            )
        user.password_hash = get_password_hash(data["password"])
    _commit(db, user, "update")
    logger.info(f"Updated user {user.id}")
    return user

def set_user_active(db: Session, user_id: int, is_active: bool) -> User:
    user = get_user_or_404(db, user_id)
    user.is_active = is_active
    _commit(db, user, "activate" if is_active else "deactivate")
    logger.info(f"User {user.id} is_active={is_active}")
    return user

def set_user_role(db: Session, user_id: int, role: str) -> User:
    if role not in USER_ROLES:
        raise UserValidationError.from_errors(
            [{"field": "role", "message": f"Role must be one of: {', '.join(USER_ROLES)}"}]
        )
    user = get_user_or_404(db, user_id)
    user.role = role
    _commit(db, user, "update role of")
    logger.info(f"User {user.id} role set to {role}")
    return user

def delete_user(db: Session, user_id: int) -> int:
    """
    Удалить пользователя вместе с его задачами.
    """
    user = get_user_or_404(db, user_id)
    db.delete(user)
    _commit(db, user, "delete")
    logger.info(f"Deleted user {user_id}")
    return user_id

def authenticate_user(db: Session, login: str, password: str) -> Optional[User]:
    user = get_user_by_login(db, login)
    if not user or not verify_password(password, user.password_hash):
        return None
    return user

def set_last_login(db: Session, user_id: int) -> None:
    user = get_user(db, user_id)
    if not user:
        return
    user.last_login_at = utcnow()
    _commit(db, user, "update last login of")
